"""外部服务集成层。

该包下的模块负责：
- 定义 AI 调用客户端抽象接口 (base)。
- 提供基于 httpx 的 AI 后端实现 (http_client)。
- 提供发票 REST API 客户端 (invoice_api)。
"""

from invoice_chat.config.settings import settings
from invoice_chat.providers.base import AgentClient
from invoice_chat.providers.http_client import HttpAgentClient
from invoice_chat.providers.invoice_api import InvoiceApiClient


def create_client() -> AgentClient:
    """根据当前配置创建 AI 客户端实例。"""

    return HttpAgentClient(settings)


def create_invoice_api() -> InvoiceApiClient:
    return InvoiceApiClient(settings)


__all__ = ["AgentClient", "HttpAgentClient", "InvoiceApiClient", "create_client", "create_invoice_api"]
