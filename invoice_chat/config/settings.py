"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置，优先级：
初始化参数 > 环境变量 > .env > config.yaml。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("INVOICE_CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """运行配置（使用 Pydantic）。"""

    # ---- AI 后端 ----
    ai_base_url: str = Field(
        default="http://localhost:3000",
        description="AI 后端基础 URL，提供 /ai/invoke 与 /ai/stream",
    )
    ai_model: Optional[str] = Field(default=None, description="可选的模型名，为空时由后端决定")
    ai_max_steps: int = Field(default=5, ge=1, le=20, description="单轮对话内 Agent 最大步骤数")
    ai_tool_choice: Literal["auto", "none", "required"] = Field(
        default="auto",
        description="模型是否必须/禁止使用工具",
    )
    ai_streaming: bool = Field(default=True, description="是否使用流式接口")

    # ---- 发票 REST API ----
    invoice_api_base_url: str = Field(
        default="http://localhost:3000",
        description="发票 REST API 基础 URL",
    )

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    turn_timeout: float = Field(
        default=120.0,
        ge=1.0,
        description="流式模式下单轮对话的总时限（秒）",
    )
    record_tool_activity: bool = Field(
        default=False,
        description="是否把工具调用与结果作为 tool/tool-result 消息写入会话",
    )
    prompt_locale: str = Field(default="en", description="系统提示词语言目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("ai_base_url", "invoice_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
