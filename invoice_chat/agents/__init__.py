"""对话编排：引擎、回复解析、错误分类、流式帧重组与视图更新发布。"""

from invoice_chat.agents.chat_engine import ChatEngine, EngineConfig
from invoice_chat.agents.error_classifier import ErrorClassifier, classify
from invoice_chat.agents.interpreter import ExtractedPayload, Interpretation, ResponseInterpreter, interpret
from invoice_chat.agents.publisher import UpdatePublisher, ViewUpdate

__all__ = [
    "ChatEngine",
    "EngineConfig",
    "ErrorClassifier",
    "ExtractedPayload",
    "Interpretation",
    "ResponseInterpreter",
    "UpdatePublisher",
    "ViewUpdate",
    "classify",
    "interpret",
]
