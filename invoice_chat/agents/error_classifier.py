"""把任意失败映射为 auth / network / general 三类 ErrorEnvelope。"""

from typing import Any, Dict, Optional

from invoice_chat.domain.exceptions import ApiError, BusinessError, NetworkError
from invoice_chat.domain.models import ErrorEnvelope, ErrorKind

AUTH_REMEDIATION = "Authentication required. Please reconnect your accounting account and try again."

_KIND_ALIASES: Dict[str, ErrorKind] = {
    "auth": "auth",
    "authentication": "auth",
    "authorization": "auth",
    "unauthorized": "auth",
    "forbidden": "auth",
    "network": "network",
    "timeout": "network",
    "connection": "network",
    "general": "general",
}


def _declared_kind(raw: Any) -> Optional[ErrorKind]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return _KIND_ALIASES.get(raw.strip().lower(), "general")


def _describe(failure: BaseException) -> str:
    if isinstance(failure, BusinessError):
        text = failure.message
    else:
        text = str(failure)
    return text or type(failure).__name__


class ErrorClassifier:
    def classify(self, failure: BaseException) -> ErrorEnvelope:
        if isinstance(failure, ApiError) and failure.body:
            return self._from_body(failure.body, _describe(failure))
        if isinstance(failure, NetworkError):
            return ErrorEnvelope(kind="network", message=_describe(failure))
        return ErrorEnvelope(kind="general", message=_describe(failure))

    @staticmethod
    def _from_body(body: Dict[str, Any], fallback: str) -> ErrorEnvelope:
        kind = _declared_kind(body.get("errorType")) or "general"
        suggestion = body.get("suggestion")
        if not isinstance(suggestion, str) or not suggestion:
            suggestion = None
        if body.get("needsAuth") is True or kind == "auth":
            return ErrorEnvelope(kind="auth", message=AUTH_REMEDIATION, suggestion=suggestion)
        message = body.get("error")
        if not isinstance(message, str) or not message:
            message = fallback
        return ErrorEnvelope(kind=kind, message=message, suggestion=suggestion)


def classify(failure: BaseException) -> ErrorEnvelope:
    return ErrorClassifier().classify(failure)
