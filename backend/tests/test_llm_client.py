from __future__ import annotations

import pytest
import requests

from investment_portal.core.config import settings
from investment_portal.core.http.llm_client import (
    LLM_API_KEY_HEADER,
    build_llm_headers,
    get_llm_service_api_key,
    llm_request,
)
from investment_portal.services.llm_service import LLMServiceClient


class _DummyResponse:
    def __init__(self, status_code: int = 200, body=None, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def _patch_request(monkeypatch, response=None, exc: Exception | None = None) -> dict:
    captured: dict = {}

    def _fake_request(*, method, url, headers, **kwargs):
        captured["method"] = method
        captured["url"] = url
        captured["headers"] = headers
        captured.update(kwargs)
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr("investment_portal.core.http.llm_client.requests.request", _fake_request)
    return captured


def test_missing_api_key_logs_and_raises(monkeypatch, caplog):
    monkeypatch.setattr(settings, "llm_service_api_key", None)

    with pytest.raises(RuntimeError):
        get_llm_service_api_key()

    assert "LLM_SERVICE_API_KEY" in caplog.text


def test_build_headers_uses_settings():
    headers = build_llm_headers({"Accept": "application/json"})

    assert headers[LLM_API_KEY_HEADER] == "test-key"
    assert headers["Accept"] == "application/json"


def test_llm_request_resolves_relative_paths(monkeypatch):
    captured = _patch_request(monkeypatch, _DummyResponse())

    llm_request("GET", "/health")

    assert captured["url"] == "http://llm.test/health"
    assert captured["headers"][LLM_API_KEY_HEADER] == "test-key"
    assert captured["timeout"] == settings.llm_service_timeout_seconds


def test_client_returns_body_on_success(monkeypatch):
    captured = _patch_request(monkeypatch, _DummyResponse(body={"analysis": "Solid cash flows"}))

    result = LLMServiceClient().analyze_document(document_id="file-1")

    assert result.success
    assert result.text == "Solid cash flows"
    assert captured["json"]["document_id"] == "file-1"
    assert captured["url"].endswith("/documents/analyze")


def test_client_maps_error_status(monkeypatch):
    _patch_request(monkeypatch, _DummyResponse(status_code=503, body={"detail": "overloaded"}))

    result = LLMServiceClient().summarize(document_id="file-1")

    assert not result.success
    assert result.status_code == 503
    assert "overloaded" in result.error


def test_client_maps_timeout(monkeypatch):
    _patch_request(monkeypatch, exc=requests.Timeout("slow"))

    result = LLMServiceClient(timeout=7).health()

    assert not result.success
    assert "timed out after 7s" in result.error


def test_client_maps_connection_error(monkeypatch):
    _patch_request(monkeypatch, exc=requests.ConnectionError("refused"))

    result = LLMServiceClient().health()

    assert not result.success
    assert result.error.startswith("LLM service unavailable")


def test_client_rejects_malformed_json(monkeypatch):
    _patch_request(monkeypatch, _DummyResponse(text="<html>"))

    result = LLMServiceClient().health()

    assert not result.success
    assert result.error == "LLM service returned malformed JSON"


def test_client_honours_success_false(monkeypatch):
    _patch_request(monkeypatch, _DummyResponse(body={"success": False, "error": "bad file"}))

    result = LLMServiceClient().upload_and_vectorize(content=b"x", filename="a.pdf")

    assert not result.success
    assert result.error == "bad file"


def test_client_without_key_fails_softly(monkeypatch):
    monkeypatch.setattr(settings, "llm_service_api_key", "")

    result = LLMServiceClient().health()

    assert not result.success
    assert "LLM_SERVICE_API_KEY" in result.error


def test_search_documents_payload(monkeypatch):
    captured = _patch_request(monkeypatch, _DummyResponse(body={"results": [{"id": "file-1"}]}))

    result = LLMServiceClient().search_documents(query="covenants", document_ids=["file-1"])

    assert result.success
    assert result.get("results") == [{"id": "file-1"}]
    assert captured["json"] == {"query": "covenants", "document_ids": ["file-1"], "context": {}}
