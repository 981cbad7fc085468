"""发票记录的字段别名表。

Agent 输出的记录字段名并不统一：同一个标识可能叫 id 也可能叫 Id，
单号可能是 DocNumber 也可能是 "Invoice #"。这里集中声明每个规范字段
可接受的别名（按优先级排列，点号表示嵌套字段），由 normalize_record
统一解析，别名集合可以单独审阅和测试。
"""

from typing import Any, Dict, Mapping, Tuple

InvoiceRecord = Dict[str, Any]

FIELD_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "id": ("Id", "id", "ID", "invoiceId", "InvoiceId"),
    "doc_number": ("DocNumber", "docNumber", "Invoice #", "Invoice Number", "invoiceNumber", "InvoiceNumber"),
    "customer_name": ("CustomerRef.name", "customerName", "CustomerName", "Customer", "customer"),
    "customer_id": ("CustomerRef.value", "customerId", "CustomerId", "Customer ID"),
    "email": ("BillEmail.Address", "email", "Email", "billEmail"),
    "txn_date": ("TxnDate", "txnDate", "Date", "date", "Invoice Date"),
    "due_date": ("DueDate", "dueDate", "Due Date"),
    "total": ("TotalAmt", "totalAmt", "Total", "total", "Amount", "amount"),
    "balance": ("Balance", "balance", "Balance Due"),
    "status": ("Status", "status"),
    "memo": ("CustomerMemo.value", "memo", "Memo"),
}

# 规范字段中被视为“单号类”字段的键，用于判定记录是否是完整发票
DOC_NUMBER_FIELD = "doc_number"
ID_FIELD = "id"

_MISSING = object()


def _lookup(raw: Mapping[str, Any], path: str) -> Any:
    current: Any = raw
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def normalize_record(raw: Mapping[str, Any]) -> InvoiceRecord:
    """按 FIELD_ALIASES 把任意形状的记录转换为规范形状。

    没有任何别名命中的字段不会出现在结果中（不补 0 或空串），
    显式给出的空值则原样保留。
    """

    record: InvoiceRecord = {}
    for canonical, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = _lookup(raw, alias)
            if value is not _MISSING:
                record[canonical] = value
                break
    return record


def has_doc_number(record: Mapping[str, Any]) -> bool:
    return record.get(DOC_NUMBER_FIELD) not in (None, "")


def has_id(record: Mapping[str, Any]) -> bool:
    return record.get(ID_FIELD) not in (None, "")
