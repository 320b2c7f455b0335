from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import openai
import structlog

from investment_portal.services.llm_service import LLMServiceClient, LLMServiceResult, get_llm_service_client
from investment_portal.services.vector_store import (
    FINGERPRINT_ATTRIBUTE,
    VectorStoreGateway,
    get_vector_store_gateway,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UploadOutcome:
    success: bool
    file_id: str | None = None
    deduplicated: bool = False
    error: str | None = None


@dataclass(frozen=True)
class TextOutcome:
    success: bool
    text: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


def _file_id_from(result: LLMServiceResult) -> str | None:
    file_info = result.get("file")
    if isinstance(file_info, dict) and file_info.get("id"):
        return str(file_info["id"])
    if result.get("file_id"):
        return str(result.get("file_id"))
    return None


def _text_outcome(result: LLMServiceResult, label: str) -> TextOutcome:
    if not result.success:
        return TextOutcome(success=False, raw=result.data, error=result.error)
    text = result.text
    if not text:
        return TextOutcome(success=False, raw=result.data, error=f"LLM service returned no {label}")
    return TextOutcome(success=True, text=text, raw=result.data)


class DocumentAIGateway:
    """
    The document pipeline's view of the external AI services.

    Uploads go through the LLM service, which vectorizes the file into the
    shared vector store. Before uploading, the vector store is searched for a
    file carrying the same content hash and that file id is returned instead.
    """

    def __init__(self, *, llm: LLMServiceClient | None = None, vector_store: VectorStoreGateway | None = None) -> None:
        self.llm = llm or get_llm_service_client()
        self.vector_store = vector_store or get_vector_store_gateway()

    def upload_document(
        self,
        *,
        content: bytes,
        filename: str,
        fingerprint: str,
        attributes: dict[str, str] | None = None,
    ) -> UploadOutcome:
        try:
            existing = self.vector_store.find_file_by_fingerprint(fingerprint)
        except openai.OpenAIError as e:
            return UploadOutcome(success=False, error=f"Vector store lookup failed: {e}")
        if existing:
            logger.info("document_ai.upload_deduplicated", file_id=existing, filename=filename)
            return UploadOutcome(success=True, file_id=existing, deduplicated=True)

        result = self.llm.upload_and_vectorize(
            content=content,
            filename=filename,
            attributes={**(attributes or {}), FINGERPRINT_ATTRIBUTE: fingerprint},
        )
        if not result.success:
            return UploadOutcome(success=False, error=result.error)
        file_id = _file_id_from(result)
        if not file_id:
            return UploadOutcome(success=False, error="LLM service upload returned no file id")
        return UploadOutcome(success=True, file_id=file_id)

    def analyze(self, *, file_id: str, context: dict[str, Any] | None = None) -> TextOutcome:
        return _text_outcome(
            self.llm.analyze_document(document_id=file_id, analysis_type="investment", context=context),
            "analysis",
        )

    def summarize(self, *, file_id: str) -> TextOutcome:
        return _text_outcome(self.llm.summarize(document_id=file_id, summary_type="detailed"), "summary")

    def insights(self, *, file_ids: list[str], context: dict[str, Any] | None = None) -> TextOutcome:
        return _text_outcome(
            self.llm.investment_insights(document_ids=file_ids, analysis_focus="general", context=context),
            "insights",
        )

    def answer(self, *, question: str, file_ids: list[str]) -> TextOutcome:
        return _text_outcome(self.llm.document_qa(question=question, document_ids=file_ids), "answer")


def get_document_ai_gateway() -> DocumentAIGateway:
    return DocumentAIGateway()
