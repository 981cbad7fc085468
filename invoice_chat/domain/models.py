"""统一的对话与结果数据模型。

本模块定义引擎内部在各组件之间共享的标准数据结构：

- Message: 会话中的一条消息（system/user/assistant/tool/tool-result），创建后不可变。
- MessageMeta: 助手消息上的本轮摘要信息（步骤数、工具结果数、会话 ID）。
- ErrorEnvelope: 错误分类器的输出，挂在 is_error 助手消息上。
- InvokeRequest / InvokeResult: 发给 AI 后端的请求与（同步或流式汇总后的）统一结果。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Any, Dict, List, Tuple, TYPE_CHECKING, assert_never

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from invoice_chat.tools.definitions import ToolCall, ToolResult


Role = Literal["system", "user", "assistant", "tool", "tool-result"]

ErrorKind = Literal["auth", "network", "general"]

ToolChoice = Literal["auto", "none", "required"]


@dataclass(frozen=True)
class ErrorEnvelope:
    """分类后的错误：kind 为 auth/network/general，suggestion 为可选的补救提示。"""

    kind: ErrorKind
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


@dataclass(frozen=True)
class MessageMeta:
    step_count: int
    tool_result_count: int
    conversation_id: str


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - role: 消息角色。
    - content: 纯文本内容；助手消息中为去掉数据块后的展示文本。
    - timestamp: 创建时间，会话内严格按时间顺序追加。
    - meta: 仅助手消息携带，记录本轮工具活动摘要。
    - is_error / error: 错误消息标记及其分类结果。
    """

    role: Role
    content: str
    timestamp: datetime
    meta: Optional[MessageMeta] = None
    is_error: bool = False
    error: Optional[ErrorEnvelope] = None


def role_label(role: Role) -> str:
    """返回角色在对话记录中的显示标签。"""

    match role:
        case "system":
            return "System"
        case "user":
            return "You"
        case "assistant":
            return "AI"
        case "tool":
            return "Tool Call"
        case "tool-result":
            return "Tool Result"
        case _:
            assert_never(role)


@dataclass
class InvokeRequest:
    """一次发给 AI 后端的请求（同步与流式共用）。"""

    messages: List[Dict[str, str]]
    conversation_id: str
    max_steps: int = 5
    tool_choice: ToolChoice = "auto"
    model: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messages": self.messages,
            "toolChoice": self.tool_choice,
            "maxSteps": self.max_steps,
            "conversationId": self.conversation_id,
        }
        if self.model:
            payload["model"] = self.model
        return payload


@dataclass
class InvokeResult:
    """AI 后端的最终结果。

    同步模式直接由响应体解析；流式模式由 StreamAccumulator 汇总得到，
    两者形状一致，后续交给 ResponseInterpreter 处理。
    """

    text: str
    tool_calls: List["ToolCall"] = field(default_factory=list)
    tool_results: List["ToolResult"] = field(default_factory=list)
    steps: Optional[int] = None
    conversation_id: Optional[str] = None


def parse_steps(raw: Any) -> Optional[int]:
    """steps 字段可能是整数，也可能是步骤列表（取长度）。"""

    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, (list, tuple)):
        return len(raw)
    return None


Transcript = Tuple[Message, ...]
