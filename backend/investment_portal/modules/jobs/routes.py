from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context, require_roles
from investment_portal.modules.documents.schemas import DocumentOut
from investment_portal.modules.jobs import service
from investment_portal.modules.jobs.schemas import (
    BatchAnalyzeIn,
    BatchAnalyzeItem,
    BatchAnalyzeOut,
    DocumentAnalysisOut,
    JobOut,
    JobStatusOut,
    PrepareAIOut,
)
from investment_portal.shared.enums import AnalysisStatus, Role

router = APIRouter(prefix="/documents", tags=["jobs"])


@router.get("/pending-analysis", response_model=list[DocumentOut])
def pending_analysis(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_roles([Role.admin])),
    status: AnalysisStatus = Query(default=AnalysisStatus.pending),
    limit: int = Query(100, ge=1, le=500),
) -> list[DocumentOut]:
    return service.documents_by_analysis_status(db, status=status, limit=limit)


@router.post("/batch-analyze", response_model=BatchAnalyzeOut)
def batch_analyze(
    payload: BatchAnalyzeIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_roles([Role.admin])),
) -> BatchAnalyzeOut:
    results = service.batch_trigger(db, ctx=ctx, document_ids=payload.document_ids)
    return BatchAnalyzeOut(
        message="Batch analysis queued",
        total=len(results),
        results=[
            BatchAnalyzeItem(
                document_id=r.document_id,
                outcome=r.outcome,
                job=JobOut.model_validate(r.job) if r.job is not None else None,
            )
            for r in results
        ],
    )


@router.get("/{document_id}/analysis", response_model=DocumentAnalysisOut)
def document_analysis(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> DocumentAnalysisOut:
    return service.get_document_analysis(db, document_id=document_id)


@router.get("/{document_id}/job-status", response_model=JobStatusOut)
def job_status(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> JobStatusOut:
    view = service.get_job_status(db, document_id=document_id)
    return JobStatusOut(
        has_job=view.has_job,
        job=JobOut.model_validate(view.job) if view.job is not None else None,
        needs_manual_trigger=view.needs_manual_trigger,
    )


@router.post("/{document_id}/prepare-ai", response_model=PrepareAIOut)
def prepare_ai(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> PrepareAIOut:
    job = service.trigger_prepare_ai(db, ctx=ctx, document_id=document_id)
    if job is None:
        return PrepareAIOut(message="Document is already prepared for AI", job=None)
    return PrepareAIOut(message="AI preparation queued", job=JobOut.model_validate(job))
