from __future__ import annotations

from typing import TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.modules.ai.models import CrossDocumentQuery, DocumentQuery, WebSearchQuery
from investment_portal.modules.ai.schemas import EnhancementType
from investment_portal.modules.documents.models import Document
from investment_portal.modules.documents.service import get_document, list_documents
from investment_portal.modules.workflow.service import load_request
from investment_portal.services.document_ai import DocumentAIGateway
from investment_portal.services.llm_service import LLMServiceClient
from investment_portal.services.vector_store import ResponseResult, VectorStoreGateway
from investment_portal.shared.enums import RequestType
from investment_portal.shared.exceptions import ExternalServiceError, NotAuthorized, NotFound, ValidationError

logger = structlog.get_logger(__name__)

HistoryRow = TypeVar("HistoryRow", CrossDocumentQuery, WebSearchQuery)

ENHANCEMENT_PROMPTS: dict[EnhancementType, str] = {
    EnhancementType.professional: (
        "Rewrite the text in a professional tone suitable for an investment committee memo. "
        "Keep every fact and figure."
    ),
    EnhancementType.grammar: "Correct grammar, spelling and punctuation. Change nothing else.",
    EnhancementType.clarity: "Make the text clearer and more concise while preserving its meaning.",
    EnhancementType.rewrite: "Rewrite the text to read well for a financial audience, preserving its meaning.",
}


def _prepared_document(db: Session, document_id: int) -> Document:
    doc = get_document(db, document_id=document_id)
    if not doc.external_file_id:
        raise ValidationError("Document is not prepared for AI yet; trigger prepare-ai first")
    return doc


def generate_insights(db: Session, *, ctx: RequestContext, gateway: DocumentAIGateway, document_id: int) -> str:
    doc = _prepared_document(db, document_id)
    outcome = gateway.insights(
        file_ids=[doc.external_file_id],
        context={"request_type": doc.request_type, "request_id": doc.request_id, "filename": doc.original_name},
    )
    if not outcome.success or not outcome.text:
        raise ExternalServiceError(outcome.error or "Failed to generate insights")

    doc.analysis_result = {**(doc.analysis_result or {}), "insights": outcome.text}
    doc.updated_by = ctx.actor_label
    db.commit()
    logger.info("ai.insights_generated", document_id=doc.id)
    return outcome.text


def custom_query(
    db: Session,
    *,
    ctx: RequestContext,
    gateway: DocumentAIGateway,
    document_id: int,
    query: str,
) -> DocumentQuery:
    actor = ctx.require_actor()
    if not query.strip():
        raise ValidationError("Query is required")
    doc = _prepared_document(db, document_id)
    outcome = gateway.answer(question=query, file_ids=[doc.external_file_id])
    if not outcome.success or not outcome.text:
        raise ExternalServiceError(outcome.error or "Failed to process query")

    row = DocumentQuery(document_id=doc.id, user_id=actor.user_id, query=query, response=outcome.text)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_document_queries(db: Session, *, document_id: int) -> list[DocumentQuery]:
    get_document(db, document_id=document_id)
    stmt = (
        select(DocumentQuery)
        .where(DocumentQuery.document_id == document_id)
        .order_by(DocumentQuery.created_at.desc(), DocumentQuery.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def _last_response_id(db: Session, model: type[HistoryRow], *, request_type: RequestType, request_id: int, user_id: int) -> str | None:
    stmt = (
        select(model.response_id)
        .where(
            model.request_type == request_type.value,
            model.request_id == request_id,
            model.user_id == user_id,
            model.response_id.is_not(None),
        )
        .order_by(model.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def _meta(result: ResponseResult) -> dict:
    return {
        "response_id": result.response_id,
        "model": result.model,
        "input_tokens": result.input_tokens,
        "output_tokens": result.output_tokens,
        "total_tokens": result.total_tokens,
        "processing_time_ms": result.processing_time_ms,
    }


def cross_document_query(
    db: Session,
    *,
    ctx: RequestContext,
    vector_store: VectorStoreGateway,
    request_type: RequestType,
    request_id: int,
    query: str,
    document_ids: list[int] | None = None,
) -> CrossDocumentQuery:
    """
    Ask one question across the request's AI-ready documents. The conversation
    continues from this user's previous answer on the same request.
    """
    actor = ctx.require_actor()
    if not query.strip():
        raise ValidationError("Query is required")
    load_request(db, request_type, request_id)

    docs = [d for d in list_documents(db, request_type=request_type, request_id=request_id) if d.external_file_id]
    if document_ids:
        wanted = set(document_ids)
        docs = [d for d in docs if d.id in wanted]
    if not docs:
        raise ValidationError("No documents prepared for AI on this request")

    previous = _last_response_id(db, CrossDocumentQuery, request_type=request_type, request_id=request_id, user_id=actor.user_id)
    result = vector_store.query_documents(
        query=query,
        fingerprints=[d.content_hash for d in docs],
        previous_response_id=previous,
    )
    if not result.success or not result.text:
        raise ExternalServiceError(result.error or "Failed to process cross-document query")

    row = CrossDocumentQuery(
        request_type=request_type.value,
        request_id=request_id,
        user_id=actor.user_id,
        query=query,
        response=result.text,
        document_count=len(docs),
        **_meta(result),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("ai.cross_document_query", request_id=request_id, documents=len(docs), tokens=result.total_tokens)
    return row


def web_search(
    db: Session,
    *,
    ctx: RequestContext,
    vector_store: VectorStoreGateway,
    request_type: RequestType,
    request_id: int,
    query: str,
) -> WebSearchQuery:
    actor = ctx.require_actor()
    if not query.strip():
        raise ValidationError("Query is required")
    load_request(db, request_type, request_id)

    previous = _last_response_id(db, WebSearchQuery, request_type=request_type, request_id=request_id, user_id=actor.user_id)
    result = vector_store.web_search(query=query, previous_response_id=previous)
    if not result.success or not result.text:
        raise ExternalServiceError(result.error or "Failed to process web search query")

    row = WebSearchQuery(
        request_type=request_type.value,
        request_id=request_id,
        user_id=actor.user_id,
        query=query,
        response=result.text,
        **_meta(result),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_history(db: Session, model: type[HistoryRow], *, request_type: RequestType, request_id: int) -> list[HistoryRow]:
    stmt = (
        select(model)
        .where(model.request_type == request_type.value, model.request_id == request_id)
        .order_by(model.created_at.desc(), model.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def delete_history_row(db: Session, model: type[HistoryRow], *, ctx: RequestContext, query_id: int) -> None:
    actor = ctx.require_actor()
    row = db.get(model, query_id)
    if row is None:
        raise NotFound("Query not found")
    if row.user_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only delete your own queries")
    db.delete(row)
    db.commit()


def enhance_text(*, llm: LLMServiceClient, text: str, enhancement: EnhancementType) -> str:
    if not text.strip():
        raise ValidationError("Text is required")
    result = llm.chat_completion(
        messages=[
            {"role": "system", "content": ENHANCEMENT_PROMPTS[enhancement]},
            {"role": "user", "content": text},
        ],
        context={"task": "text_enhancement", "type": enhancement.value},
    )
    enhanced = result.text if result.success else None
    if not enhanced:
        raise ExternalServiceError(result.error or "Failed to enhance text")
    return enhanced.strip()
