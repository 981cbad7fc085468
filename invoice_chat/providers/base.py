"""AI 调用客户端抽象接口。

上层 ChatEngine 不直接依赖 HTTP 细节，而是依赖此协议：

- invoke(req): 同步调用，返回完整的 InvokeResult。
- stream(req): 流式调用，按到达顺序产出原始文本块。一个帧可能被拆分到
  多个文本块中，帧的重组由引擎持有的 FrameBuffer 负责。
"""

from typing import Any, Dict, Iterable, Protocol

from invoice_chat.domain.models import InvokeRequest, InvokeResult, parse_steps
from invoice_chat.tools.definitions import parse_tool_call, parse_tool_result


class AgentClient(Protocol):
    """AI 后端客户端协议。"""

    name: str

    def invoke(self, req: InvokeRequest) -> InvokeResult:
        ...

    def stream(self, req: InvokeRequest) -> Iterable[str]:
        ...


def parse_invoke_body(data: Dict[str, Any]) -> InvokeResult:
    """把后端成功响应体（或流式终止帧）解析为统一的 InvokeResult。"""

    tool_calls = []
    for raw in data.get("toolCalls") or []:
        call = parse_tool_call(raw)
        if call is not None:
            tool_calls.append(call)
    tool_results = []
    for raw in data.get("toolResults") or []:
        result, call = parse_tool_result(raw)
        tool_results.append(result)
        if call is not None and not any(c.call_id and c.call_id == call.call_id for c in tool_calls):
            tool_calls.append(call)
    text = data.get("text")
    return InvokeResult(
        text=text if isinstance(text, str) else "",
        tool_calls=tool_calls,
        tool_results=tool_results,
        steps=parse_steps(data.get("steps")),
        conversation_id=data.get("conversationId"),
    )
