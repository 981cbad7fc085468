"""对外服务模块。

提供简化的函数接口供上层应用（UI、脚本）调用，并负责把
UpdatePublisher 的 reload 通知接到发票 REST API 上。
"""

from typing import Any, Dict, List, Optional

from invoice_chat.agents.chat_engine import ChatEngine
from invoice_chat.agents.publisher import UpdatePublisher, ViewUpdate
from invoice_chat.domain.exceptions import BusinessError, ChatTurnError
from invoice_chat.domain.models import Message, role_label
from invoice_chat.infrastructure.logging.logger import logger
from invoice_chat.providers import create_client, create_invoice_api
from invoice_chat.providers.invoice_api import InvoiceApiClient


_engine: Optional[ChatEngine] = None


class ListingReloader:
    """订阅 reload 通知：重新拉取完整发票列表并回填给 publisher 作为对账缓存。"""

    def __init__(self, publisher: UpdatePublisher, api: InvoiceApiClient):
        self._publisher = publisher
        self._api = api
        self.latest: List[Dict[str, Any]] = []

    def __call__(self, update: ViewUpdate) -> None:
        if update.action != "reload":
            return
        try:
            self.latest = self._api.list_invoices()
        except BusinessError as e:
            # 列表由视图自行重试加载，这里只记录
            logger.warning("Failed to reload invoices", extra={"extra": {"code": e.code, "error": e.message}})
            return
        self._publisher.remember_listing(self.latest)


def get_default_engine() -> ChatEngine:
    """获取默认的 ChatEngine 实例（单例）。"""
    global _engine
    if _engine is None:
        publisher = UpdatePublisher()
        publisher.subscribe(ListingReloader(publisher, create_invoice_api()))
        _engine = ChatEngine(client=create_client(), publisher=publisher)
    return _engine


def message_to_dict(message: Message) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "role": message.role,
        "label": role_label(message.role),
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }
    if message.meta:
        data["metadata"] = {
            "stepCount": message.meta.step_count,
            "toolResultCount": message.meta.tool_result_count,
            "conversationId": message.meta.conversation_id,
        }
    if message.is_error:
        data["isError"] = True
        if message.error:
            data["error"] = message.error.to_dict()
    return data


def update_to_dict(update: ViewUpdate) -> Dict[str, Any]:
    return {"action": update.action, "source": update.source, "records": [dict(r) for r in update.records]}


def run_invoice_chat(user_input: str, engine: Optional[ChatEngine] = None) -> Dict[str, Any]:
    """运行一轮发票助手对话。

    Args:
        user_input: 用户输入
        engine: 可选的引擎实例，默认使用单例

    Returns:
        包含会话ID、助手消息、错误信息（如有）和视图更新的字典。
        引擎正忙或输入为空时 status 为 "ignored"。
    """
    engine = engine or get_default_engine()
    try:
        reply = engine.send(user_input)
    except ChatTurnError as e:
        return {
            "status": "error",
            "conversation_id": engine.conversation.id,
            "error": e.envelope.to_dict(),
            "message": message_to_dict(engine.conversation.messages[-1]),
        }
    if reply is None:
        return {"status": "ignored", "conversation_id": engine.conversation.id}
    return {
        "status": "ok",
        "conversation_id": engine.conversation.id,
        "message": message_to_dict(reply),
        "updates": [update_to_dict(u) for u in engine.last_updates],
    }


def transcript(engine: Optional[ChatEngine] = None) -> List[Dict[str, Any]]:
    """返回可展示的对话记录（不含 system 消息）。"""
    engine = engine or get_default_engine()
    return [message_to_dict(m) for m in engine.conversation.visible_slice()]


def show_all_invoices(engine: Optional[ChatEngine] = None) -> Dict[str, Any]:
    """取消收窄视图，重新加载完整发票列表。"""
    engine = engine or get_default_engine()
    return update_to_dict(engine.publisher.show_all())
