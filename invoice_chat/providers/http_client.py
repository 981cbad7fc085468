"""AI 后端 HTTP 适配器。

本模块负责：

1. 接收统一的 InvokeRequest，转换为后端的 JSON 请求体。
2. 调用 /ai/invoke（同步）或 /ai/stream（流式）并处理网络/API 异常。
3. 同步模式下把响应体解析为 InvokeResult；流式模式下原样产出文本块。

后端失败时会返回结构化错误体 {error, errorType?, needsAuth?, suggestion?}，
这里把它完整保存在 ApiError.extra["body"] 中，交给 ErrorClassifier 解读。
"""

from typing import Any, Dict, Iterable

import httpx

from invoice_chat.domain.models import InvokeRequest, InvokeResult
from invoice_chat.domain.exceptions import ApiError, NetworkError
from invoice_chat.providers.base import parse_invoke_body


class HttpAgentClient:
    """AI 后端客户端实现。"""

    name = "http"

    def __init__(self, settings):
        # Settings 里包含 ai_base_url、超时等配置
        self._settings = settings

    @property
    def base_url(self) -> str:
        return self._settings.ai_base_url.rstrip("/")

    def invoke(self, req: InvokeRequest) -> InvokeResult:
        """执行一次同步调用。"""

        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self.base_url}/ai/invoke",
                    json=req.to_payload(),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code >= 400:
            raise self._api_error(resp.status_code, self._error_body(resp), resp.text)
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(code="MALFORMED_RESPONSE", message="AI response is not valid JSON", http_status=resp.status_code)
        if not isinstance(data, dict):
            raise ApiError(code="MALFORMED_RESPONSE", message="AI response is not a JSON object", http_status=resp.status_code)
        return parse_invoke_body(data)

    def stream(self, req: InvokeRequest) -> Iterable[str]:
        """执行一次流式调用，按到达顺序 yield 原始文本块。"""

        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{self.base_url}/ai/stream",
                    json=req.to_payload(),
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        raise self._api_error(resp.status_code, self._error_body(resp), resp.text)
                    for chunk in resp.iter_text():
                        if chunk:
                            yield chunk
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)

    @staticmethod
    def _error_body(resp) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _api_error(status: int, body: Dict[str, Any], fallback: str) -> ApiError:
        message = body.get("error") or fallback or "Failed to get AI response"
        return ApiError(code="API_ERROR", message=str(message), http_status=status, body=body)
