"""助手回复解析器。

Agent 会在自然语言回复中嵌入一段结构化发票数据：

    ===INVOICE_DATA_START===
    [{"Id": "42", "DocNumber": "INV-9", ...}]
    ===INVOICE_DATA_END===

ResponseInterpreter 负责把它从展示文本中剥离出来，解析为 JSON，
并按字段别名表归一化为规范记录。数据块损坏属于 Agent 输出质量问题，
这里只记日志，不影响本轮对话。
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from invoice_chat.domain.invoice import InvoiceRecord, normalize_record
from invoice_chat.infrastructure.logging.logger import logger

BEGIN_MARKER = "===INVOICE_DATA_START==="
END_MARKER = "===INVOICE_DATA_END==="


@dataclass(frozen=True)
class ExtractedPayload:
    """归一化后的记录序列。single 表示 Agent 原本给出的是单条记录而非数组。"""

    records: Tuple[InvoiceRecord, ...]
    single: bool = False


@dataclass(frozen=True)
class Interpretation:
    cleaned_text: str
    payload: Optional[ExtractedPayload] = None


def split_marked_block(text: str) -> Optional[Tuple[str, str]]:
    """定位第一对标记，返回 (去掉标记段后的文本, 标记之间的内容)。

    起始标记取第一次出现，结束标记取其后的第一次出现；找不到成对标记时返回 None。
    """

    begin = text.find(BEGIN_MARKER)
    if begin < 0:
        return None
    end = text.find(END_MARKER, begin + len(BEGIN_MARKER))
    if end < 0:
        return None
    inner = text[begin + len(BEGIN_MARKER):end]
    remainder = text[:begin] + text[end + len(END_MARKER):]
    return remainder.strip(), inner


def _strip_code_fence(candidate: str) -> str:
    body = candidate.strip()
    if body.startswith("```") and body.endswith("```") and len(body) >= 6:
        body = body[3:-3]
        first_newline = body.find("\n")
        # ```json 这类语言标记
        if first_newline >= 0 and body[:first_newline].strip().isalpha():
            body = body[first_newline + 1:]
    return body.strip()


class ResponseInterpreter:
    def interpret(self, text: str) -> Interpretation:
        split = split_marked_block(text)
        if split is None:
            return Interpretation(cleaned_text=text)
        cleaned, candidate = split
        return Interpretation(cleaned_text=cleaned, payload=self.decode_payload(candidate))

    def decode_payload(self, candidate: str) -> Optional[ExtractedPayload]:
        try:
            value: Any = json.loads(_strip_code_fence(candidate))
        except json.JSONDecodeError as e:
            logger.warning(
                "Failed to parse embedded invoice data",
                extra={"extra": {"error": str(e), "payload_preview": candidate[:200]}},
            )
            return None
        if isinstance(value, dict):
            return ExtractedPayload(records=(normalize_record(value),), single=True)
        if isinstance(value, list):
            records = []
            for item in value:
                if isinstance(item, dict):
                    records.append(normalize_record(item))
                else:
                    logger.warning(
                        "Dropping non-record item from invoice data",
                        extra={"extra": {"item_type": type(item).__name__}},
                    )
            return ExtractedPayload(records=tuple(records))
        logger.warning(
            "Embedded invoice data is not a record or array of records",
            extra={"extra": {"value_type": type(value).__name__}},
        )
        return None


def interpret(text: str) -> Interpretation:
    return ResponseInterpreter().interpret(text)
