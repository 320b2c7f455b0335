from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import openai
import structlog
from openai import OpenAI

from investment_portal.core.config import settings

logger = structlog.get_logger(__name__)

FINGERPRINT_ATTRIBUTE = "content_sha256"


@dataclass(frozen=True)
class ResponseResult:
    success: bool
    text: str | None = None
    response_id: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    processing_time_ms: int | None = None
    error: str | None = None


def _describe(e: openai.OpenAIError) -> str:
    if isinstance(e, openai.APITimeoutError):
        return "OpenAI request timed out"
    if isinstance(e, openai.APIStatusError):
        return f"OpenAI error ({e.status_code}): {e.message}"
    if isinstance(e, openai.APIConnectionError):
        return "OpenAI service unavailable"
    return str(e) or type(e).__name__


def _fingerprint_filter(fingerprints: list[str]) -> dict[str, Any] | None:
    if not fingerprints:
        return None
    clauses = [{"type": "eq", "key": FINGERPRINT_ATTRIBUTE, "value": f} for f in sorted(set(fingerprints))]
    if len(clauses) == 1:
        return clauses[0]
    return {"type": "or", "filters": clauses}


class VectorStoreGateway:
    """
    Adapter over the OpenAI files / vector store / Responses APIs.

    Files pushed by the document pipeline carry a `content_sha256` attribute
    so a retried or repeated upload can be matched to the file already stored.
    """

    def __init__(
        self,
        *,
        client: OpenAI | None = None,
        vector_store_id: str | None = None,
        model: str | None = None,
    ) -> None:
        self._client = client
        self.vector_store_id = vector_store_id or settings.openai_vector_store_id
        self.model = model or settings.openai_model

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.openai_api_key:
                raise RuntimeError("Missing required setting: OPENAI_API_KEY")
            self._client = OpenAI(api_key=settings.openai_api_key, timeout=settings.openai_timeout_seconds)
        return self._client

    def _store_id(self) -> str:
        if not self.vector_store_id:
            raise RuntimeError("Missing required setting: OPENAI_VECTOR_STORE_ID")
        return self.vector_store_id

    @property
    def is_configured(self) -> bool:
        return bool(self.vector_store_id and (self._client is not None or settings.openai_api_key))

    def find_file_by_fingerprint(self, fingerprint: str) -> str | None:
        """
        Id of a vector store file tagged with this content hash, if any.

        Provider errors propagate so the calling job step is retried; an
        unconfigured store just means there is nothing to deduplicate against.
        """
        if not self.is_configured:
            logger.info("vector_store.lookup_skipped", reason="not_configured")
            return None
        for item in self.client.vector_stores.files.list(vector_store_id=self._store_id(), limit=100):
            attrs = getattr(item, "attributes", None) or {}
            if attrs.get(FINGERPRINT_ATTRIBUTE) == fingerprint:
                return item.id
        return None

    def _respond(self, **kwargs: Any) -> ResponseResult:
        started = time.monotonic()
        try:
            resp = self.client.responses.create(model=self.model, **kwargs)
        except openai.OpenAIError as e:
            logger.warning("vector_store.response_failed", error=_describe(e))
            return ResponseResult(success=False, error=_describe(e))
        except RuntimeError as e:
            return ResponseResult(success=False, error=str(e))

        usage = getattr(resp, "usage", None)
        return ResponseResult(
            success=True,
            text=resp.output_text,
            response_id=resp.id,
            model=getattr(resp, "model", self.model),
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None),
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    def query_documents(
        self,
        *,
        query: str,
        fingerprints: list[str],
        previous_response_id: str | None = None,
    ) -> ResponseResult:
        try:
            tool: dict[str, Any] = {"type": "file_search", "vector_store_ids": [self._store_id()]}
        except RuntimeError as e:
            return ResponseResult(success=False, error=str(e))
        filters = _fingerprint_filter(fingerprints)
        if filters:
            tool["filters"] = filters
        kwargs: dict[str, Any] = {"input": query, "tools": [tool]}
        if previous_response_id:
            kwargs["previous_response_id"] = previous_response_id
        return self._respond(**kwargs)

    def web_search(self, *, query: str, previous_response_id: str | None = None) -> ResponseResult:
        kwargs: dict[str, Any] = {"input": query, "tools": [{"type": "web_search_preview"}]}
        if previous_response_id:
            kwargs["previous_response_id"] = previous_response_id
        return self._respond(**kwargs)


def get_vector_store_gateway() -> VectorStoreGateway:
    return VectorStoreGateway()
