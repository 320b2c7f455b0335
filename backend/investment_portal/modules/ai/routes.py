from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.ai import service
from investment_portal.modules.ai.models import CrossDocumentQuery, WebSearchQuery
from investment_portal.modules.ai.schemas import (
    CrossDocumentQueryIn,
    CrossDocumentQueryOut,
    DocumentQueryOut,
    EnhanceTextIn,
    EnhanceTextOut,
    InsightsOut,
    QueryIn,
    WebSearchQueryIn,
    WebSearchQueryOut,
)
from investment_portal.services.document_ai import DocumentAIGateway, get_document_ai_gateway
from investment_portal.services.llm_service import LLMServiceClient, get_llm_service_client
from investment_portal.services.vector_store import VectorStoreGateway, get_vector_store_gateway
from investment_portal.shared.enums import RequestType

router = APIRouter(tags=["ai"])


@router.post("/documents/{document_id}/insights", response_model=InsightsOut)
def document_insights(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    gateway: DocumentAIGateway = Depends(get_document_ai_gateway),
) -> InsightsOut:
    text = service.generate_insights(db, ctx=ctx, gateway=gateway, document_id=document_id)
    return InsightsOut(document_id=document_id, insights=text)


@router.post("/documents/{document_id}/custom-query", response_model=DocumentQueryOut)
def document_custom_query(
    document_id: int,
    payload: QueryIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    gateway: DocumentAIGateway = Depends(get_document_ai_gateway),
) -> DocumentQueryOut:
    return service.custom_query(db, ctx=ctx, gateway=gateway, document_id=document_id, query=payload.query)


@router.get("/documents/{document_id}/queries", response_model=list[DocumentQueryOut])
def document_queries(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[DocumentQueryOut]:
    return service.list_document_queries(db, document_id=document_id)


@router.post("/cross-document-queries", response_model=CrossDocumentQueryOut)
def create_cross_document_query(
    payload: CrossDocumentQueryIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    vector_store: VectorStoreGateway = Depends(get_vector_store_gateway),
) -> CrossDocumentQueryOut:
    return service.cross_document_query(
        db,
        ctx=ctx,
        vector_store=vector_store,
        request_type=payload.request_type,
        request_id=payload.request_id,
        query=payload.query,
        document_ids=payload.document_ids,
    )


@router.get("/cross-document-queries/{request_type}/{request_id}", response_model=list[CrossDocumentQueryOut])
def list_cross_document_queries(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[CrossDocumentQueryOut]:
    return service.list_history(db, CrossDocumentQuery, request_type=request_type, request_id=request_id)


@router.delete("/cross-document-queries/{query_id}")
def delete_cross_document_query(
    query_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.delete_history_row(db, CrossDocumentQuery, ctx=ctx, query_id=query_id)
    return {"message": "Cross-document query deleted successfully"}


@router.post("/web-search-queries", response_model=WebSearchQueryOut)
def create_web_search_query(
    payload: WebSearchQueryIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    vector_store: VectorStoreGateway = Depends(get_vector_store_gateway),
) -> WebSearchQueryOut:
    return service.web_search(
        db,
        ctx=ctx,
        vector_store=vector_store,
        request_type=payload.request_type,
        request_id=payload.request_id,
        query=payload.query,
    )


@router.get("/web-search-queries/{request_type}/{request_id}", response_model=list[WebSearchQueryOut])
def list_web_search_queries(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[WebSearchQueryOut]:
    return service.list_history(db, WebSearchQuery, request_type=request_type, request_id=request_id)


@router.delete("/web-search-queries/{query_id}")
def delete_web_search_query(
    query_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.delete_history_row(db, WebSearchQuery, ctx=ctx, query_id=query_id)
    return {"message": "Web search query deleted successfully"}


@router.post("/ai/enhance-text", response_model=EnhanceTextOut)
def enhance_text(
    payload: EnhanceTextIn,
    ctx: RequestContext = Depends(get_context),
    llm: LLMServiceClient = Depends(get_llm_service_client),
) -> EnhanceTextOut:
    return EnhanceTextOut(enhanced_text=service.enhance_text(llm=llm, text=payload.text, enhancement=payload.type))
