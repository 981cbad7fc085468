import httpx
import pytest

from invoice_chat.domain.exceptions import ApiError, NetworkError
from invoice_chat.domain.models import InvokeRequest
from invoice_chat.providers.http_client import HttpAgentClient


class SettingsStub:
    ai_base_url = "http://localhost:3000/"
    http_timeout = 1.0


def _request():
    return InvokeRequest(
        messages=[{"role": "user", "content": "hi"}],
        conversation_id="conv-1",
        max_steps=3,
        tool_choice="auto",
    )


class Resp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def _client_returning(resp, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, **_):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
            return resp

    return Client


def test_invoke_parses_success_body(monkeypatch):
    captured = {}
    body = {
        "text": "ok",
        "toolResults": [{"toolCallId": "t1", "toolName": "listInvoices", "args": {}, "result": [{"Id": "1"}]}],
        "steps": [{"stepType": "initial"}, {"stepType": "tool-result"}],
        "conversationId": "conv-1",
    }
    monkeypatch.setattr("httpx.Client", _client_returning(Resp(body=body), captured))
    res = HttpAgentClient(SettingsStub()).invoke(_request())
    assert res.text == "ok"
    assert res.steps == 2
    assert res.tool_results[0].data == [{"Id": "1"}]
    assert res.tool_calls[0].tool == "listInvoices"
    assert captured["url"] == "http://localhost:3000/ai/invoke"
    assert captured["payload"] == {
        "messages": [{"role": "user", "content": "hi"}],
        "toolChoice": "auto",
        "maxSteps": 3,
        "conversationId": "conv-1",
    }


def test_invoke_error_body_is_preserved(monkeypatch):
    body = {"error": "token expired", "needsAuth": True}
    monkeypatch.setattr("httpx.Client", _client_returning(Resp(status_code=401, body=body, text="{}")))
    with pytest.raises(ApiError) as exc_info:
        HttpAgentClient(SettingsStub()).invoke(_request())
    assert exc_info.value.message == "token expired"
    assert exc_info.value.http_status == 401
    assert exc_info.value.body == body


def test_invoke_network_failure(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError):
        HttpAgentClient(SettingsStub()).invoke(_request())


def test_invoke_malformed_body(monkeypatch):
    monkeypatch.setattr("httpx.Client", _client_returning(Resp(body=None, text="<html>")))
    with pytest.raises(ApiError) as exc_info:
        HttpAgentClient(SettingsStub()).invoke(_request())
    assert exc_info.value.code == "MALFORMED_RESPONSE"


class StreamResponse(Resp):
    def __init__(self, chunks, status_code=200, body=None):
        super().__init__(status_code=status_code, body=body, text="")
        self._chunks = list(chunks)

    def read(self):
        return b""

    def iter_text(self):
        for chunk in self._chunks:
            yield chunk


def _stream_client(response, captured=None):
    class StreamContext:
        def __enter__(self):
            return response

        def __exit__(self, *args):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise AssertionError("post should not be called in stream test")

        def stream(self, method, url, **kw):
            if captured is not None:
                captured["url"] = url
            return StreamContext()

    return Client


def test_stream_yields_raw_chunks(monkeypatch):
    captured = {}
    chunks = ['data: {"type": "delta", "con', 'tent": "hi"}\n', ""]
    monkeypatch.setattr("httpx.Client", _stream_client(StreamResponse(chunks), captured))
    out = list(HttpAgentClient(SettingsStub()).stream(_request()))
    assert out == ['data: {"type": "delta", "con', 'tent": "hi"}\n']
    assert captured["url"] == "http://localhost:3000/ai/stream"


def test_stream_error_status(monkeypatch):
    response = StreamResponse([], status_code=500, body={"error": "boom", "errorType": "general"})
    monkeypatch.setattr("httpx.Client", _stream_client(response))
    with pytest.raises(ApiError) as exc_info:
        list(HttpAgentClient(SettingsStub()).stream(_request()))
    assert exc_info.value.body["error"] == "boom"
