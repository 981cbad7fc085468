"""工具数据结构定义。

这些 dataclass 描述 Agent 在后端触发的工具活动：
- ToolCall: 模型发起的一次工具调用（工具名 + 参数）。
- ToolResult: 工具执行返回的结构化结果，形状由具体工具决定，本层不做校验。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ToolCall:
    """模型发起的一次工具调用请求。"""

    tool: str
    args: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None


@dataclass(frozen=True)
class ToolResult:
    """工具执行结果；data 是记录、记录数组或任意原始值。"""

    data: Any
    tool: Optional[str] = None
    call_id: Optional[str] = None


def parse_tool_call(raw: Any) -> Optional[ToolCall]:
    """解析后端返回的工具调用，兼容 {tool, args} 与 {toolName, args} 两种写法。"""

    if not isinstance(raw, dict):
        return None
    name = raw.get("tool") or raw.get("toolName") or raw.get("name") or ""
    args = raw.get("args")
    if not isinstance(args, dict):
        args = raw.get("arguments") if isinstance(raw.get("arguments"), dict) else {}
    return ToolCall(tool=name, args=args, call_id=raw.get("toolCallId") or raw.get("id"))


def parse_tool_result(raw: Any) -> Tuple[ToolResult, Optional[ToolCall]]:
    """解析一条工具结果。

    AI SDK 风格的结果会包一层 {toolCallId, toolName, args, result}，
    这种情况下拆出 result 作为数据，同时还原出对应的 ToolCall。
    其他形状原样作为数据保存。
    """

    if isinstance(raw, dict) and "result" in raw and ("toolName" in raw or "toolCallId" in raw or "tool" in raw):
        name = raw.get("toolName") or raw.get("tool")
        call_id = raw.get("toolCallId")
        call = None
        if "args" in raw:
            call = ToolCall(tool=name or "", args=raw.get("args") or {}, call_id=call_id)
        return ToolResult(data=raw["result"], tool=name, call_id=call_id), call
    return ToolResult(data=raw), None
