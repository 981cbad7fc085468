"""发票 REST API 客户端。

发票的增删改查与邮件发送由外部服务提供，本模块只是薄的 httpx 封装，
主要用于在 UpdatePublisher 发出 reload 通知后重新拉取完整列表。
"""

from typing import Any, Dict, List, Optional

import httpx

from invoice_chat.domain.exceptions import ApiError, NetworkError


class InvoiceApiClient:
    def __init__(self, settings):
        self._settings = settings

    @property
    def base_url(self) -> str:
        return self._settings.invoice_api_base_url.rstrip("/")

    def list_invoices(self) -> List[Dict[str, Any]]:
        data = self._request("GET", "/invoices", failure="Failed to fetch invoices")
        return data if isinstance(data, list) else []

    def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/invoices/{invoice_id}", failure="Failed to fetch invoice")

    def create_invoice(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/invoices", json=invoice, failure="Failed to create invoice")

    def update_invoice(self, invoice_id: str, invoice: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/invoices/{invoice_id}", json=invoice, failure="Failed to update invoice")

    def delete_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/invoices/{invoice_id}", failure="Failed to delete invoice")

    def email_invoice(self, invoice_id: str, email: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/invoices/{invoice_id}/email",
            json={"email": email},
            failure="Failed to email invoice",
        )

    def _request(self, method: str, path: str, *, failure: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.request(method, f"{self.base_url}{path}", json=json)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code >= 400:
            raise ApiError(code="INVOICE_API_ERROR", message=failure, http_status=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            raise ApiError(code="MALFORMED_RESPONSE", message=failure, http_status=resp.status_code)
