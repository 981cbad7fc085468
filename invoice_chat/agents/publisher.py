"""把提取出的发票数据或原始工具结果转换为记录视图的更新通知。

判定顺序（先命中者生效）：

1. 记录数组且每条都带单号：整表替换为这些记录。
2. 单条带单号的记录：按 id 在已知完整列表中查找，命中则用缓存记录
   （叠加本次记录中给出的字段）替换视图，否则原样展示这一条。
3. 只带 id 的记录（创建/更新信号），或包含“已删除/已发送”一类完成语句：
   使完整列表失效并重新加载，同时取消收窄的视图。
4. 其他情况不发布任何通知。
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from invoice_chat.agents.interpreter import ExtractedPayload
from invoice_chat.domain.invoice import (
    DOC_NUMBER_FIELD,
    ID_FIELD,
    InvoiceRecord,
    has_doc_number,
    has_id,
    normalize_record,
)
from invoice_chat.infrastructure.logging.logger import logger

COMPLETION_PATTERN = re.compile(r"\b(deleted|removed|voided|sent|emailed|delivered)\b", re.IGNORECASE)

# 工具结果中可能承载完成语句的字段
_MESSAGE_KEYS = ("message", "status", "result", "detail")


@dataclass(frozen=True)
class ViewUpdate:
    """记录视图应执行的动作。

    - action="replace": 用 records 替换视图（视图进入收窄状态）。
    - action="reload": 丢弃缓存并重新加载完整列表（视图恢复为显示全部）。
    - source: listing / cached / partial / mutation / user，便于日志与调试。
    """

    action: Literal["replace", "reload"]
    records: Tuple[InvoiceRecord, ...] = ()
    source: str = "listing"


Subscriber = Callable[[ViewUpdate], None]


def _completion_phrase(value: Any) -> bool:
    if isinstance(value, str):
        return COMPLETION_PATTERN.search(value) is not None
    if isinstance(value, Mapping):
        return any(_completion_phrase(value.get(k)) for k in _MESSAGE_KEYS)
    return False


class UpdatePublisher:
    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._known_listing: Optional[Tuple[InvoiceRecord, ...]] = None
        self._narrowed = False

    @property
    def narrowed(self) -> bool:
        return self._narrowed

    @property
    def known_listing(self) -> Optional[Tuple[InvoiceRecord, ...]]:
        return self._known_listing

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def remember_listing(self, records: Iterable[Mapping[str, Any]]) -> None:
        """记录一份完整列表（例如 reload 完成后），供单条记录对账使用。"""

        self._known_listing = tuple(normalize_record(r) for r in records)

    def show_all(self) -> ViewUpdate:
        """用户主动要求显示全部记录。"""

        return self._emit(ViewUpdate(action="reload", source="user"))

    def publish(self, item: Any) -> Optional[ViewUpdate]:
        """根据 ExtractedPayload 或原始工具结果决定并发布视图更新。"""

        if isinstance(item, ExtractedPayload):
            update = self._decide(item.records, single=item.single)
        elif isinstance(item, Mapping):
            update = self._decide((normalize_record(item),), single=True, raw=item)
        elif isinstance(item, (list, tuple)):
            records = tuple(normalize_record(r) for r in item if isinstance(r, Mapping))
            update = self._decide(records, single=False)
        else:
            update = self._mutation_update(item)
        if update is None:
            return None
        return self._emit(update)

    def _decide(
        self,
        records: Sequence[InvoiceRecord],
        *,
        single: bool,
        raw: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ViewUpdate]:
        if not single and records and all(has_doc_number(r) for r in records):
            return ViewUpdate(action="replace", records=tuple(records), source="listing")
        if single and len(records) == 1 and has_doc_number(records[0]):
            return self._reconcile(records[0])
        if single and len(records) == 1 and has_id(records[0]):
            return ViewUpdate(action="reload", source="mutation")
        return self._mutation_update(raw)

    def _reconcile(self, partial: InvoiceRecord) -> ViewUpdate:
        cached = self._find_cached(partial)
        if cached is None:
            return ViewUpdate(action="replace", records=(partial,), source="partial")
        merged = dict(cached)
        merged.update(partial)
        return ViewUpdate(action="replace", records=(merged,), source="cached")

    def _find_cached(self, partial: InvoiceRecord) -> Optional[InvoiceRecord]:
        if not self._known_listing:
            return None
        if has_id(partial):
            for record in self._known_listing:
                if str(record.get(ID_FIELD)) == str(partial[ID_FIELD]):
                    return record
            return None
        for record in self._known_listing:
            if str(record.get(DOC_NUMBER_FIELD)) == str(partial[DOC_NUMBER_FIELD]):
                return record
        return None

    @staticmethod
    def _mutation_update(item: Any) -> Optional[ViewUpdate]:
        if item is not None and _completion_phrase(item):
            return ViewUpdate(action="reload", source="mutation")
        return None

    def _emit(self, update: ViewUpdate) -> ViewUpdate:
        if update.action == "replace":
            self._narrowed = True
            if update.source == "listing":
                self._known_listing = update.records
        else:
            self._narrowed = False
            self._known_listing = None
        logger.info(
            "Publishing view update",
            extra={"extra": {"action": update.action, "source": update.source, "record_count": len(update.records)}},
        )
        for subscriber in list(self._subscribers):
            subscriber(update)
        return update
