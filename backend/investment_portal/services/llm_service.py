from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

import requests
import structlog

from investment_portal.core.config import settings
from investment_portal.core.http.llm_client import llm_request

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LLMServiceResult:
    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    status_code: int | None = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def text(self) -> str | None:
        # Endpoints name their main output differently.
        for key in ("response", "analysis", "summary", "insights", "answer"):
            value = self.data.get(key)
            if isinstance(value, str) and value:
                return value
        return None


def _error_from_body(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:500] or "Unknown error"
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])
    return "Unknown error"


class LLMServiceClient:
    """
    Adapter for the LLM microservice (document vectorization, analysis, Q&A).

    Every call returns an `LLMServiceResult`; transport failures, non-2xx
    responses and malformed bodies become `success=False` with a message.
    """

    def __init__(self, *, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.llm_service_url).rstrip("/")
        self.timeout = timeout or settings.llm_service_timeout_seconds

    def _call(self, method: str, path: str, payload: dict[str, Any] | None = None) -> LLMServiceResult:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = llm_request(method, url, json=payload, timeout=self.timeout)
        except RuntimeError as e:
            # Missing API key.
            return LLMServiceResult(success=False, error=str(e))
        except requests.Timeout:
            logger.warning("llm_service.timeout", path=path, timeout=self.timeout)
            return LLMServiceResult(success=False, error=f"LLM service timed out after {self.timeout:.0f}s")
        except requests.RequestException as e:
            logger.warning("llm_service.unavailable", path=path, error=str(e))
            return LLMServiceResult(success=False, error=f"LLM service unavailable: {e}")

        if not 200 <= resp.status_code < 300:
            message = _error_from_body(resp)
            logger.warning("llm_service.error_response", path=path, status_code=resp.status_code, error=message)
            return LLMServiceResult(
                success=False,
                error=f"LLM service error ({resp.status_code}): {message}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError:
            return LLMServiceResult(success=False, error="LLM service returned malformed JSON", status_code=resp.status_code)
        if not isinstance(body, dict):
            return LLMServiceResult(success=False, error="LLM service returned an unexpected payload", status_code=resp.status_code)

        if body.get("success") is False:
            return LLMServiceResult(
                success=False,
                data=body,
                error=str(body.get("error") or "LLM service reported failure"),
                status_code=resp.status_code,
            )
        return LLMServiceResult(success=True, data=body, status_code=resp.status_code)

    def health(self) -> LLMServiceResult:
        return self._call("GET", "/health")

    def upload_and_vectorize(
        self,
        *,
        content: bytes,
        filename: str,
        attributes: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {
            "file_content": base64.b64encode(content).decode("ascii"),
            "filename": filename,
            "attributes": {**(attributes or {}), "upload_method": "api_service"},
        }
        return self._call("POST", "/documents/upload-and-vectorize", payload)

    def analyze_document(
        self,
        *,
        document_id: str,
        analysis_type: str = "investment",
        context: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {"document_id": document_id, "analysis_type": analysis_type, "context": context or {}}
        return self._call("POST", "/documents/analyze", payload)

    def search_documents(
        self,
        *,
        query: str,
        document_ids: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {"query": query, "document_ids": document_ids or [], "context": context or {}}
        return self._call("POST", "/documents/search", payload)

    def chat_completion(
        self,
        *,
        messages: list[dict[str, str]],
        model: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {"messages": messages, "model": model or settings.openai_model, "context": context or {}}
        return self._call("POST", "/chat/completion", payload)

    def document_qa(
        self,
        *,
        question: str,
        document_ids: list[str],
        context: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {"question": question, "document_ids": document_ids, "context": context or {}}
        return self._call("POST", "/chat/document-qa", payload)

    def summarize(
        self,
        *,
        document_id: str | None = None,
        content: str | None = None,
        summary_type: str = "detailed",
    ) -> LLMServiceResult:
        payload = {"content": content, "document_id": document_id, "summary_type": summary_type}
        return self._call("POST", "/analysis/summarize", payload)

    def investment_insights(
        self,
        *,
        document_ids: list[str],
        analysis_focus: str = "general",
        context: dict[str, Any] | None = None,
    ) -> LLMServiceResult:
        payload = {"document_ids": document_ids, "analysis_focus": analysis_focus, "context": context or {}}
        return self._call("POST", "/analysis/investment-insights", payload)


def get_llm_service_client() -> LLMServiceClient:
    return LLMServiceClient()
