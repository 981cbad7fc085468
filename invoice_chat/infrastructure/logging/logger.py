"""invoice_chat 的 JSON 行日志。

每条日志一行 JSON，固定带 conversation_id / trace_id 两个字段（没有时为 null），
便于按会话或按轮次检索。日志目录在第一次真正写入时才创建，导入本模块没有副作用。
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from invoice_chat.config.settings import settings

LOGGER_NAME = "invoice_chat"
LOG_FILE_NAME = "agent.log"

# 每条记录都带上的上下文字段
CONTEXT_FIELDS = ("conversation_id", "trace_id")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if settings.log_redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        payload.update(dict.fromkeys(CONTEXT_FIELDS))
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LazyFileHandler(logging.FileHandler):
    """第一次写入时才创建目录并打开文件。"""

    def __init__(self, path: Path) -> None:
        super().__init__(path, encoding="utf-8", delay=True)

    def _open(self):
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()


def setup_logger(log_dir: Optional[str] = None) -> logging.Logger:
    """配置 invoice_chat logger；重复调用不会叠加 handler。"""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    if any(isinstance(h, LazyFileHandler) for h in logger.handlers):
        return logger
    fh = LazyFileHandler(Path(log_dir or settings.log_dir) / LOG_FILE_NAME)
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
