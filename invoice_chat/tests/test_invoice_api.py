import pytest

from invoice_chat.domain.exceptions import ApiError
from invoice_chat.providers.invoice_api import InvoiceApiClient


class SettingsStub:
    invoice_api_base_url = "http://localhost:3000"
    http_timeout = 1.0


def _client(status_code, body, calls):
    class Resp:
        def __init__(self):
            self.status_code = status_code

        def json(self):
            return body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def request(self, method, url, json=None):
            calls.append((method, url, json))
            return Resp()

    return Client


def test_list_invoices(monkeypatch):
    calls = []
    monkeypatch.setattr("httpx.Client", _client(200, [{"Id": "1"}], calls))
    assert InvoiceApiClient(SettingsStub()).list_invoices() == [{"Id": "1"}]
    assert calls == [("GET", "http://localhost:3000/invoices", None)]


def test_email_invoice_posts_address(monkeypatch):
    calls = []
    monkeypatch.setattr("httpx.Client", _client(200, {"message": "sent"}, calls))
    InvoiceApiClient(SettingsStub()).email_invoice("7", "a@b.com")
    assert calls == [("POST", "http://localhost:3000/invoices/7/email", {"email": "a@b.com"})]


def test_delete_failure_raises(monkeypatch):
    monkeypatch.setattr("httpx.Client", _client(404, {}, []))
    with pytest.raises(ApiError) as exc_info:
        InvoiceApiClient(SettingsStub()).delete_invoice("7")
    assert exc_info.value.message == "Failed to delete invoice"
