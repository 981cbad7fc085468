"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层或 UI 层做统一捕获与用户提示。
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from invoice_chat.domain.models import ErrorEnvelope


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如后端返回的结构化错误体 body）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """后端返回非 2xx 或流中出现错误帧时抛出。

    若后端返回了结构化错误体，则保存在 extra["body"] 中。
    """

    @property
    def body(self) -> dict:
        body = self.extra.get("body")
        return body if isinstance(body, dict) else {}


class ValidationError(BusinessError):
    """参数、配置或会话不变量校验失败。"""


class ChatTurnError(BusinessError):
    """一轮对话失败，携带已分类的 ErrorEnvelope。

    抛出前，引擎已经把同一错误作为 is_error 助手消息写入会话。
    """

    def __init__(self, envelope: "ErrorEnvelope"):
        self.envelope = envelope
        super().__init__(code=f"CHAT_{envelope.kind.upper()}_ERROR", message=envelope.message)
