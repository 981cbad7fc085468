from invoice_chat.agents.interpreter import BEGIN_MARKER, END_MARKER, ResponseInterpreter, interpret
from invoice_chat.domain.invoice import FIELD_ALIASES, normalize_record


def _wrap(before, payload, after):
    return f"{before}{BEGIN_MARKER}{payload}{END_MARKER}{after}"


def test_no_markers_returns_text_verbatim():
    text = "  Here is your answer.  "
    result = interpret(text)
    assert result.cleaned_text == text
    assert result.payload is None


def test_marker_span_removed_and_trimmed():
    text = _wrap("Found one invoice:\n", '{"Id": "1", "DocNumber": "1001"}', "\n")
    result = interpret(text)
    assert result.cleaned_text == "Found one invoice:"
    assert BEGIN_MARKER not in result.cleaned_text
    assert END_MARKER not in result.cleaned_text


def test_text_after_block_is_kept():
    text = _wrap("Before ", "[]", " after")
    assert interpret(text).cleaned_text == "Before  after"


def test_alias_normalization_example():
    text = _wrap("Results:", '[{"id":"42","Invoice #":"INV-9","Total":"150.00"}]', "")
    payload = interpret(text).payload
    assert payload is not None
    assert payload.single is False
    assert payload.records == ({"id": "42", "doc_number": "INV-9", "total": "150.00"},)


def test_single_record_coerced_to_sequence():
    payload = interpret(_wrap("", '{"Id": "7", "DocNumber": "1007"}', "")).payload
    assert payload.single is True
    assert len(payload.records) == 1
    assert payload.records[0]["id"] == "7"


def test_malformed_payload_yields_no_payload_but_clean_text():
    text = _wrap("Summary text. ", "{not json", " Thanks!")
    result = interpret(text)
    assert result.payload is None
    assert result.cleaned_text == "Summary text.  Thanks!"


def test_scalar_payload_is_ignored():
    result = interpret(_wrap("ok", "42", ""))
    assert result.payload is None
    assert result.cleaned_text == "ok"


def test_missing_end_marker_leaves_text_untouched():
    text = f"Hello {BEGIN_MARKER} [1, 2]"
    result = interpret(text)
    assert result.cleaned_text == text
    assert result.payload is None


def test_first_begin_pairs_with_first_following_end():
    text = f"a {END_MARKER} b {BEGIN_MARKER}[]{END_MARKER} c {BEGIN_MARKER}[]{END_MARKER}"
    result = interpret(text)
    assert result.cleaned_text == f"a {END_MARKER} b  c {BEGIN_MARKER}[]{END_MARKER}"
    assert result.payload is not None


def test_code_fence_inside_markers_is_tolerated():
    text = _wrap("x", '\n```json\n[{"DocNumber": "1"}]\n```\n', "")
    payload = interpret(text).payload
    assert payload.records == ({"doc_number": "1"},)


def test_non_record_items_are_dropped():
    payload = interpret(_wrap("", '[{"DocNumber": "1"}, "junk", 3]', "")).payload
    assert payload.records == ({"doc_number": "1"},)


def test_interpretation_is_idempotent():
    first = ResponseInterpreter().interpret(_wrap("Done.", '[{"Id": "1"}]', ""))
    second = ResponseInterpreter().interpret(first.cleaned_text)
    assert second.cleaned_text == first.cleaned_text
    assert second.payload is None


def test_missing_fields_stay_absent_and_explicit_empty_is_kept():
    record = normalize_record({"Id": "3", "Balance": "", "CustomerRef": {"name": "Acme", "value": "9"}})
    assert record == {"id": "3", "balance": "", "customer_name": "Acme", "customer_id": "9"}
    assert "total" not in record


def test_alias_priority_prefers_machine_keys():
    record = normalize_record({"TotalAmt": 10, "Total": "ignored"})
    assert record["total"] == 10


def test_alias_table_has_identifier_and_doc_number():
    assert "Id" in FIELD_ALIASES["id"] and "id" in FIELD_ALIASES["id"]
    assert "DocNumber" in FIELD_ALIASES["doc_number"]
