"""流式帧的重组与汇总。

传输层只保证按顺序送达文本块，不保证一帧完整地出现在一个块里。
FrameBuffer 持续缓冲，直到拿到完整的一行才解析，并丢弃已消费的部分；
StreamAccumulator 把解析出的帧汇总成与同步模式相同的 InvokeResult。
"""

import json
from typing import Any, Callable, Dict, List, Optional

from invoice_chat.domain.exceptions import ApiError
from invoice_chat.domain.models import InvokeResult
from invoice_chat.infrastructure.logging.logger import logger
from invoice_chat.providers.base import parse_invoke_body
from invoice_chat.tools.definitions import ToolCall, ToolResult, parse_tool_call, parse_tool_result

FRAME_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

_DELTA_KEYS = ("content", "textDelta", "delta")


class FrameBuffer:
    """按行切分的帧缓冲区。"""

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> List[Dict[str, Any]]:
        """追加一个文本块，返回其中已完整到达的帧。"""

        self._pending += chunk
        frames: List[Dict[str, Any]] = []
        while "\n" in self._pending:
            line, self._pending = self._pending.split("\n", 1)
            frame = self._decode_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> List[Dict[str, Any]]:
        """流结束时处理最后一行（可能没有换行符结尾）。"""

        line, self._pending = self._pending, ""
        frame = self._decode_line(line)
        return [frame] if frame is not None else []

    @staticmethod
    def _decode_line(line: str) -> Optional[Dict[str, Any]]:
        line = line.strip()
        if not line.startswith(FRAME_PREFIX):
            return None
        body = line[len(FRAME_PREFIX):].strip()
        if not body or body == DONE_SENTINEL:
            return None
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            logger.warning("Failed to parse stream frame", extra={"extra": {"frame": body[:200]}})
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object stream frame", extra={"extra": {"frame": body[:200]}})
            return None
        return data


class StreamAccumulator:
    """把内容片段、工具帧和终止帧汇总为 InvokeResult。"""

    def __init__(self) -> None:
        self._pieces: List[str] = []
        self._tool_calls: List[ToolCall] = []
        self._tool_results: List[ToolResult] = []
        self._final: Optional[InvokeResult] = None

    @property
    def text_so_far(self) -> str:
        return "".join(self._pieces)

    def add(self, frame: Dict[str, Any]) -> str:
        """处理一帧，返回本帧带来的文本增量（没有时为空串）。"""

        kind = frame.get("type")
        if kind == "error" or (kind is None and "error" in frame and "text" not in frame):
            message = frame.get("error") or "Stream failed"
            raise ApiError(code="STREAM_ERROR", message=str(message), http_status=502, body=frame)
        if kind == "tool-call":
            call = parse_tool_call(frame)
            if call is not None:
                self._tool_calls.append(call)
            return ""
        if kind == "tool-result":
            result, call = parse_tool_result(frame)
            self._tool_results.append(result)
            # 流中通常已有对应的 tool-call 帧，只补录带 call_id 且未出现过的调用
            if call is not None and call.call_id and not any(c.call_id == call.call_id for c in self._tool_calls):
                self._tool_calls.append(call)
            return ""
        if kind in ("done", "finish") or (kind is None and "text" in frame):
            self._final = parse_invoke_body(frame)
            return ""
        for key in _DELTA_KEYS:
            value = frame.get(key)
            if isinstance(value, str):
                self._pieces.append(value)
                return value
        logger.debug("Ignoring unrecognised stream frame", extra={"extra": {"frame_type": kind}})
        return ""

    def result(self) -> InvokeResult:
        streamed = self.text_so_far
        if self._final is None:
            return InvokeResult(text=streamed, tool_calls=list(self._tool_calls), tool_results=list(self._tool_results))
        final = self._final
        final.tool_calls = _merge(self._tool_calls, final.tool_calls, lambda c: (c.tool, c.args))
        final.tool_results = _merge(self._tool_results, final.tool_results, lambda r: r.data)
        if not final.text:
            final.text = streamed
        return final


def _merge(streamed: list, summary: list, content: Callable[[Any], Any]) -> list:
    """合并流中的工具帧与终止帧里的汇总。

    汇总是对同一批工具活动的重述：带 call_id 的按 call_id 对应，
    否则按内容（调用看工具名与参数，结果只看数据）对应，每个流中条目
    至多抵消汇总里的一条。只有对应不上的汇总条目才追加。
    """

    merged = list(streamed)
    unmatched = list(streamed)
    for item in summary:
        twin = next((s for s in unmatched if _same(s, item, content)), None)
        if twin is not None:
            unmatched.remove(twin)
            continue
        merged.append(item)
    return merged


def _same(streamed: Any, summary: Any, content: Callable[[Any], Any]) -> bool:
    if streamed.call_id and summary.call_id:
        return streamed.call_id == summary.call_id
    return content(streamed) == content(summary)
