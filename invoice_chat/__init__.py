"""Invoice Chat 顶层包。

该包实现发票管理 AI 助手的对话编排核心，
包括配置加载、会话模型、AI 后端适配、回复解析与数据提取、
工具活动记录、错误分类以及记录视图更新通知等能力。
"""

from invoice_chat.agents import ChatEngine, EngineConfig, UpdatePublisher, ViewUpdate

__all__ = ["ChatEngine", "EngineConfig", "UpdatePublisher", "ViewUpdate"]
