"""本轮工具活动记录器。"""

from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from invoice_chat.domain.models import MessageMeta
from invoice_chat.tools.definitions import ToolCall, ToolResult

if TYPE_CHECKING:
    from invoice_chat.agents.publisher import UpdatePublisher, ViewUpdate


class ToolActivityTracker:
    """只记录当前这一轮的工具调用与结果，每轮开始时由引擎新建。

    本轮结束后：
    - summarize() 生成挂在助手消息上的 MessageMeta；
    - forward() 把原始工具结果按顺序交给 UpdatePublisher。
    """

    def __init__(self) -> None:
        self._calls: List[ToolCall] = []
        self._results: List[ToolResult] = []

    @property
    def calls(self) -> Tuple[ToolCall, ...]:
        return tuple(self._calls)

    @property
    def results(self) -> Tuple[ToolResult, ...]:
        return tuple(self._results)

    def record_call(self, call: ToolCall) -> None:
        self._calls.append(call)

    def record_result(self, result: ToolResult) -> None:
        self._results.append(result)

    def record_calls(self, calls: Iterable[ToolCall]) -> None:
        for call in calls:
            # 同一调用可能既出现在流式 tool-call 帧，又随结果一起返回
            if call.call_id and any(c.call_id == call.call_id for c in self._calls):
                continue
            self._calls.append(call)

    def record_results(self, results: Iterable[ToolResult]) -> None:
        for result in results:
            if result.call_id and any(r.call_id == result.call_id for r in self._results):
                continue
            self._results.append(result)

    def summarize(self, conversation_id: str, steps: Optional[int] = None) -> MessageMeta:
        return MessageMeta(
            step_count=steps if steps is not None else len(self._calls),
            tool_result_count=len(self._results),
            conversation_id=conversation_id,
        )

    def forward(self, publisher: "UpdatePublisher") -> List["ViewUpdate"]:
        updates = []
        for result in self._results:
            update = publisher.publish(result.data)
            if update is not None:
                updates.append(update)
        return updates
