"""对话编排引擎。

负责一轮对话的完整流程：追加用户消息 → 调用 AI 后端（同步或流式）→
解析回复并提取发票数据 → 汇总工具活动 → 追加助手消息 → 发布视图更新。
任何请求级失败都会被分类，既作为 is_error 助手消息写入会话，也以
ChatTurnError 的形式抛给调用方。
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from invoice_chat.agents.error_classifier import ErrorClassifier
from invoice_chat.agents.interpreter import ExtractedPayload, ResponseInterpreter
from invoice_chat.agents.publisher import UpdatePublisher, ViewUpdate
from invoice_chat.agents.streaming import FrameBuffer, StreamAccumulator
from invoice_chat.config.settings import settings
from invoice_chat.domain.conversation import Clock, Conversation, IdFactory, utc_now
from invoice_chat.domain.exceptions import ChatTurnError, NetworkError
from invoice_chat.domain.models import ErrorEnvelope, InvokeRequest, InvokeResult, Message, ToolChoice
from invoice_chat.infrastructure.logging.logger import logger
from invoice_chat.prompts import load_system_prompt
from invoice_chat.providers.base import AgentClient
from invoice_chat.tools.tracker import ToolActivityTracker

EMPTY_REPLY = "No response."

FragmentCallback = Callable[[str], None]


@dataclass
class EngineConfig:
    max_steps: int = 5
    tool_choice: ToolChoice = "auto"
    model: Optional[str] = None
    streaming: bool = True
    turn_timeout: float = 120.0  # 仅流式模式；同步模式由 http_timeout 控制
    record_tool_activity: bool = False

    @classmethod
    def from_settings(cls, s) -> "EngineConfig":
        return cls(
            max_steps=s.ai_max_steps,
            tool_choice=s.ai_tool_choice,
            model=s.ai_model,
            streaming=s.ai_streaming,
            turn_timeout=s.turn_timeout,
            record_tool_activity=s.record_tool_activity,
        )


@dataclass
class TurnState:
    """一轮对话的全部临时状态，每轮开始时整体替换。"""

    busy: bool = False
    trace_id: str = ""
    deadline: Optional[float] = None
    frames: FrameBuffer = field(default_factory=FrameBuffer)
    stream: StreamAccumulator = field(default_factory=StreamAccumulator)
    tools: ToolActivityTracker = field(default_factory=ToolActivityTracker)
    payload: Optional[ExtractedPayload] = None
    updates: List[ViewUpdate] = field(default_factory=list)
    error: Optional[ErrorEnvelope] = None


class ChatEngine:
    def __init__(
        self,
        client: AgentClient,
        publisher: Optional[UpdatePublisher] = None,
        config: Optional[EngineConfig] = None,
        system_prompt: Optional[str] = None,
        id_factory: Optional[IdFactory] = None,
        clock: Optional[Clock] = None,
        monotonic: Callable[[], float] = time.monotonic,
        interpreter: Optional[ResponseInterpreter] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self._client = client
        self._publisher = publisher or UpdatePublisher()
        self._config = config or EngineConfig.from_settings(settings)
        self._system_prompt = system_prompt if system_prompt is not None else load_system_prompt(settings.prompt_locale)
        self._id_factory = id_factory
        self._clock = clock or utc_now
        self._monotonic = monotonic
        self._interpreter = interpreter or ResponseInterpreter()
        self._classifier = classifier or ErrorClassifier()
        self._conversation = Conversation.start(self._system_prompt, id_factory, self._clock)
        self._turn = TurnState()

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def publisher(self) -> UpdatePublisher:
        return self._publisher

    @property
    def busy(self) -> bool:
        return self._turn.busy

    @property
    def last_payload(self) -> Optional[ExtractedPayload]:
        return self._turn.payload

    @property
    def last_updates(self) -> List[ViewUpdate]:
        return list(self._turn.updates)

    @property
    def last_error(self) -> Optional[ErrorEnvelope]:
        return self._turn.error

    def reset(self) -> Optional[Conversation]:
        """开始一个新会话（新的会话 ID 和 system 消息）；进行中的轮次期间忽略。"""

        if self._turn.busy:
            return None
        self._conversation = Conversation.start(self._system_prompt, self._id_factory, self._clock)
        self._turn = TurnState()
        self._log(logging.INFO, "Started new conversation", {"conversation_id": self._conversation.id})
        return self._conversation

    def send(self, text: str, on_fragment: Optional[FragmentCallback] = None) -> Optional[Message]:
        """发送一条用户消息并运行一轮对话。

        Returns:
            追加到会话中的助手消息；若引擎正忙或输入为空则返回 None。

        Raises:
            ChatTurnError: 请求失败。此时会话中已追加对应的 is_error 助手消息。
        """

        if self._turn.busy:
            self._log(logging.INFO, "Send ignored while a turn is in flight", {"conversation_id": self._conversation.id})
            return None
        if not text or not text.strip():
            return None

        start_time = self._monotonic()
        turn = TurnState(
            busy=True,
            trace_id=f"tr-{uuid4().hex}",
            deadline=start_time + self._config.turn_timeout if self._config.streaming else None,
        )
        self._turn = turn
        log_ctx: Dict[str, Any] = {"trace_id": turn.trace_id, "conversation_id": self._conversation.id}

        try:
            self._conversation = self._conversation.append(
                Message(role="user", content=text, timestamp=self._now())
            )
            self._log(logging.INFO, "Stored user message", log_ctx, message_count=len(self._conversation.messages))
            try:
                result = self._request(turn, log_ctx, on_fragment)
                assistant = self._complete(turn, result, log_ctx)
            except Exception as exc:
                envelope = self._fail(turn, exc, log_ctx)
                raise ChatTurnError(envelope) from exc
            self._publish(turn)
            self._log(
                logging.INFO,
                "Completed turn",
                log_ctx,
                elapsed_seconds=round(self._monotonic() - start_time, 2),
            )
            return assistant
        finally:
            turn.busy = False

    def _request(
        self,
        turn: TurnState,
        log_ctx: Dict[str, Any],
        on_fragment: Optional[FragmentCallback],
    ) -> InvokeResult:
        req = InvokeRequest(
            messages=self._conversation.to_wire(),
            conversation_id=self._conversation.id,
            max_steps=self._config.max_steps,
            tool_choice=self._config.tool_choice,
            model=self._config.model,
        )
        self._log(
            logging.INFO,
            "Calling agent" + (" (stream)" if self._config.streaming else ""),
            log_ctx,
            client=getattr(self._client, "name", "unknown"),
            message_count=len(req.messages),
        )
        if not self._config.streaming:
            return self._client.invoke(req)

        chunks = self._client.stream(req)
        try:
            for chunk in chunks:
                self._check_deadline(turn)
                for frame in turn.frames.feed(chunk):
                    self._consume_frame(turn, frame, on_fragment)
        finally:
            # 超时或帧错误时提前结束，生成器关闭后底层连接随之释放
            close = getattr(chunks, "close", None)
            if close is not None:
                close()
        for frame in turn.frames.flush():
            self._consume_frame(turn, frame, on_fragment)
        return turn.stream.result()

    @staticmethod
    def _consume_frame(turn: TurnState, frame: Dict[str, Any], on_fragment: Optional[FragmentCallback]) -> None:
        delta = turn.stream.add(frame)
        if delta and on_fragment is not None:
            on_fragment(delta)

    def _now(self) -> datetime:
        return self._conversation.stamp(self._clock())

    def _check_deadline(self, turn: TurnState) -> None:
        if turn.deadline is not None and self._monotonic() > turn.deadline:
            raise NetworkError(
                code="TURN_TIMEOUT",
                message=f"The assistant did not finish within {self._config.turn_timeout:g} seconds",
            )

    def _complete(self, turn: TurnState, result: InvokeResult, log_ctx: Dict[str, Any]) -> Message:
        turn.tools.record_calls(result.tool_calls)
        turn.tools.record_results(result.tool_results)
        if result.conversation_id and result.conversation_id != self._conversation.id:
            self._log(logging.WARNING, "Agent replied with a different conversation id", log_ctx, reply_id=result.conversation_id)

        interpretation = self._interpreter.interpret(result.text)
        turn.payload = interpretation.payload
        meta = turn.tools.summarize(self._conversation.id, result.steps)

        if self._config.record_tool_activity:
            self._append_tool_activity(turn)

        content = interpretation.cleaned_text or ("" if interpretation.payload else EMPTY_REPLY)
        assistant = Message(role="assistant", content=content, timestamp=self._now(), meta=meta)
        self._conversation = self._conversation.append(assistant)
        self._log(
            logging.INFO,
            "Stored assistant message",
            log_ctx,
            step_count=meta.step_count,
            tool_result_count=meta.tool_result_count,
            has_payload=interpretation.payload is not None,
        )
        return assistant

    def _publish(self, turn: TurnState) -> None:
        if turn.payload is not None:
            update = self._publisher.publish(turn.payload)
            if update is not None:
                turn.updates.append(update)
        else:
            turn.updates.extend(turn.tools.forward(self._publisher))

    def _append_tool_activity(self, turn: TurnState) -> None:
        for call in turn.tools.calls:
            content = f"{call.tool} {json.dumps(call.args, ensure_ascii=False, default=str)}"
            self._conversation = self._conversation.append(
                Message(role="tool", content=content, timestamp=self._now())
            )
        for result in turn.tools.results:
            content = json.dumps(result.data, ensure_ascii=False, default=str)
            self._conversation = self._conversation.append(
                Message(role="tool-result", content=content, timestamp=self._now())
            )

    def _fail(self, turn: TurnState, exc: Exception, log_ctx: Dict[str, Any]) -> ErrorEnvelope:
        envelope = self._classifier.classify(exc)
        turn.error = envelope
        content = envelope.message
        if envelope.suggestion:
            content = f"{content}\n\n{envelope.suggestion}"
        self._conversation = self._conversation.append(
            Message(role="assistant", content=content, timestamp=self._now(), is_error=True, error=envelope)
        )
        self._log(
            logging.ERROR,
            "Agent request failed",
            log_ctx,
            error_kind=envelope.kind,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return envelope

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
