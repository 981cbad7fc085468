import pytest

from invoice_chat.agents.streaming import FrameBuffer, StreamAccumulator
from invoice_chat.domain.exceptions import ApiError


def test_frame_split_across_chunks_is_reassembled():
    buf = FrameBuffer()
    assert buf.feed('data: {"type": "delta", "con') == []
    assert buf.pending == 'data: {"type": "delta", "con'
    frames = buf.feed('tent": "hel"}\ndata: {"type": "delta", "content": "lo"}\n')
    assert frames == [{"type": "delta", "content": "hel"}, {"type": "delta", "content": "lo"}]
    assert buf.pending == ""


def test_skips_blank_done_and_non_data_lines():
    buf = FrameBuffer()
    frames = buf.feed(': keep-alive\n\ndata: [DONE]\nevent: x\n')
    assert frames == []


def test_undecodable_frame_is_skipped():
    buf = FrameBuffer()
    frames = buf.feed('data: {broken\ndata: {"content": "ok"}\n')
    assert frames == [{"content": "ok"}]


def test_flush_handles_last_line_without_newline():
    buf = FrameBuffer()
    assert buf.feed('data: {"type": "done", "text": "hi"}') == []
    assert buf.flush() == [{"type": "done", "text": "hi"}]
    assert buf.pending == ""


def test_crlf_line_endings():
    buf = FrameBuffer()
    assert buf.feed('data: {"content": "a"}\r\n') == [{"content": "a"}]


def test_accumulator_without_terminal_frame_uses_fragments():
    acc = StreamAccumulator()
    assert acc.add({"type": "delta", "content": "Hel"}) == "Hel"
    assert acc.add({"textDelta": "lo"}) == "lo"
    result = acc.result()
    assert result.text == "Hello"
    assert result.steps is None


def test_accumulator_terminal_frame_wins():
    acc = StreamAccumulator()
    acc.add({"type": "delta", "content": "partial"})
    acc.add({"type": "done", "text": "Full answer", "steps": 2, "conversationId": "c1"})
    result = acc.result()
    assert result.text == "Full answer"
    assert result.steps == 2
    assert result.conversation_id == "c1"


def test_accumulator_empty_terminal_text_falls_back_to_fragments():
    acc = StreamAccumulator()
    acc.add({"type": "delta", "content": "streamed"})
    acc.add({"type": "done", "text": "", "toolResults": [{"Id": "5"}]})
    result = acc.result()
    assert result.text == "streamed"
    assert [r.data for r in result.tool_results] == [{"Id": "5"}]


def test_accumulator_collects_tool_frames_without_duplicates():
    acc = StreamAccumulator()
    acc.add({"type": "tool-call", "tool": "listInvoices", "args": {}, "toolCallId": "t1"})
    acc.add({"type": "tool-result", "tool": "listInvoices", "toolCallId": "t1", "result": [{"DocNumber": "1"}]})
    acc.add(
        {
            "type": "done",
            "text": "ok",
            "toolResults": [{"toolCallId": "t1", "toolName": "listInvoices", "args": {}, "result": [{"DocNumber": "1"}]}],
        }
    )
    result = acc.result()
    assert [c.tool for c in result.tool_calls] == ["listInvoices"]
    assert len(result.tool_results) == 1
    assert result.tool_results[0].data == [{"DocNumber": "1"}]


def test_error_frame_raises_api_error_with_body():
    acc = StreamAccumulator()
    with pytest.raises(ApiError) as exc_info:
        acc.add({"type": "error", "error": "token expired", "needsAuth": True})
    assert exc_info.value.body["needsAuth"] is True


def test_terminal_summary_does_not_repeat_streamed_results():
    acc = StreamAccumulator()
    acc.add({"type": "tool-result", "tool": "createInvoice", "result": {"Id": "12"}})
    acc.add({"type": "done", "text": "Created.", "toolResults": [{"Id": "12"}]})
    result = acc.result()
    assert len(result.tool_results) == 1
    assert result.tool_results[0].tool == "createInvoice"


def test_terminal_summary_keeps_results_not_streamed():
    acc = StreamAccumulator()
    acc.add({"type": "tool-result", "tool": "getInvoice", "result": {"Id": "1"}})
    acc.add({"type": "done", "text": "ok", "toolResults": [{"Id": "1"}, {"Id": "2"}]})
    assert [r.data for r in acc.result().tool_results] == [{"Id": "1"}, {"Id": "2"}]


def test_repeated_identical_results_are_each_counted_once():
    acc = StreamAccumulator()
    acc.add({"type": "tool-result", "tool": "sendInvoice", "result": {"message": "Invoice sent"}})
    acc.add({"type": "tool-result", "tool": "sendInvoice", "result": {"message": "Invoice sent"}})
    acc.add({"type": "done", "text": "ok", "toolResults": [{"message": "Invoice sent"}, {"message": "Invoice sent"}]})
    assert len(acc.result().tool_results) == 2


def test_terminal_summary_does_not_repeat_streamed_calls():
    acc = StreamAccumulator()
    acc.add({"type": "tool-call", "tool": "createInvoice", "args": {"amount": 5}})
    acc.add({"type": "done", "text": "ok", "toolCalls": [{"toolName": "createInvoice", "args": {"amount": 5}}]})
    assert [c.tool for c in acc.result().tool_calls] == ["createInvoice"]
