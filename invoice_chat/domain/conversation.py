"""会话模型。

Conversation 是不可变值对象：append 返回新的会话，原会话保持不变，
因此外部观察者任何时候读到的都是完整的消息序列。
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from .exceptions import ValidationError
from .models import Message, Transcript


IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


def default_conversation_id() -> str:
    return f"conv-{uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Conversation:
    id: str
    messages: Transcript

    @classmethod
    def start(
        cls,
        system_prompt: str,
        id_factory: Optional[IdFactory] = None,
        clock: Optional[Clock] = None,
    ) -> "Conversation":
        """创建新会话，第一条消息固定为唯一的 system 消息。"""

        conversation_id = (id_factory or default_conversation_id)()
        system = Message(role="system", content=system_prompt, timestamp=(clock or utc_now)())
        return cls(id=conversation_id, messages=(system,))

    def stamp(self, now: datetime) -> datetime:
        """下一条消息可用的时间戳：墙钟回拨时沿用最后一条消息的时间。"""

        return max(now, self.messages[-1].timestamp)

    def append(self, message: Message) -> "Conversation":
        if message.role == "system":
            raise ValidationError(code="DUPLICATE_SYSTEM_MESSAGE", message="conversation already has a system message")
        last = self.messages[-1]
        if message.timestamp < last.timestamp:
            raise ValidationError(
                code="OUT_OF_ORDER_MESSAGE",
                message=f"message at {message.timestamp.isoformat()} is older than {last.timestamp.isoformat()}",
            )
        return replace(self, messages=self.messages + (message,))

    def visible_slice(self) -> Transcript:
        """除 system 消息以外、可展示给用户的消息。"""

        return self.messages[1:]

    def to_wire(self) -> List[Dict[str, str]]:
        """转换为请求体中的 messages 字段；错误消息只是记录，不发给 Agent。"""

        return [{"role": m.role, "content": m.content} for m in self.messages if not m.is_error]
