from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import structlog
from sqlalchemy import case, delete, select, update
from sqlalchemy.orm import Session

from investment_portal.core.config import settings
from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.modules.documents.models import Document
from investment_portal.modules.jobs.models import BackgroundJob
from investment_portal.shared.enums import AnalysisStatus, JobPriority, JobStatus, JobStep
from investment_portal.shared.exceptions import NotFound
from investment_portal.shared.utils import as_utc, sa_model_to_dict, utcnow

logger = structlog.get_logger(__name__)

PREPARE_AI_JOB = "prepare_ai"

ACTIVE_STATUSES = (JobStatus.pending.value, JobStatus.processing.value)

_PRIORITY_ORDER = case(
    (BackgroundJob.priority == JobPriority.high.value, 0),
    (BackgroundJob.priority == JobPriority.normal.value, 1),
    else_=2,
)


@dataclass(frozen=True)
class JobStatusView:
    has_job: bool
    job: BackgroundJob | None
    needs_manual_trigger: bool


def active_job_for(db: Session, document_id: int) -> BackgroundJob | None:
    stmt = (
        select(BackgroundJob)
        .where(BackgroundJob.document_id == document_id, BackgroundJob.status.in_(ACTIVE_STATUSES))
        .order_by(BackgroundJob.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def latest_job_for(db: Session, document_id: int) -> BackgroundJob | None:
    stmt = select(BackgroundJob).where(BackgroundJob.document_id == document_id).order_by(BackgroundJob.id.desc())
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def enqueue_document_job(
    db: Session,
    *,
    document: Document,
    priority: JobPriority = JobPriority.normal,
) -> BackgroundJob:
    """
    Queue the prepare-AI pipeline for a document. A document never has two
    active jobs; the existing one is returned instead. Does not commit.
    """
    existing = active_job_for(db, document.id)
    if existing is not None:
        return existing

    job = BackgroundJob(
        job_type=PREPARE_AI_JOB,
        status=JobStatus.pending.value,
        current_step=JobStep.queued.value,
        document_id=document.id,
        request_type=document.request_type,
        request_id=document.request_id,
        priority=priority.value,
        attempts=0,
        max_attempts=settings.job_max_attempts,
        result={},
    )
    db.add(job)
    document.analysis_status = AnalysisStatus.pending.value
    db.flush()
    logger.info("jobs.enqueued", job_id=job.id, document_id=document.id, priority=priority.value)
    return job


def pending_job_ids(db: Session, *, limit: int) -> list[int]:
    """Oldest first within priority (high, normal, low)."""
    stmt = (
        select(BackgroundJob.id)
        .where(BackgroundJob.status == JobStatus.pending.value)
        .order_by(_PRIORITY_ORDER, BackgroundJob.created_at.asc(), BackgroundJob.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def claim_job(db: Session, job_id: int) -> bool:
    """
    pending -> processing as a single conditional UPDATE. Only one worker can
    see rowcount 1 for a given job. Commits.
    """
    stmt = (
        update(BackgroundJob)
        .where(BackgroundJob.id == job_id, BackgroundJob.status == JobStatus.pending.value)
        .values(status=JobStatus.processing.value, started_at=utcnow(), attempts=BackgroundJob.attempts + 1)
        .execution_options(synchronize_session=False)
    )
    claimed = (db.execute(stmt).rowcount or 0) == 1
    db.commit()
    return claimed


def _settle(db: Session, job: BackgroundJob, error: str) -> JobStatus:
    """Back to pending while attempts remain, else failed. The document mirrors the job. Does not commit."""
    job.error_message = error[:2000]
    if job.attempts < job.max_attempts:
        job.status = JobStatus.pending.value
        outcome = JobStatus.pending
        doc_status = AnalysisStatus.pending
    else:
        job.status = JobStatus.failed.value
        job.completed_at = utcnow()
        outcome = JobStatus.failed
        doc_status = AnalysisStatus.failed
    if job.document_id is not None:
        doc = db.get(Document, job.document_id)
        if doc is not None:
            doc.analysis_status = doc_status.value
    return outcome


def record_failure(db: Session, job: BackgroundJob, error: str) -> JobStatus:
    """
    Attempts are counted at claim time. Below max_attempts the job goes back to
    pending for the next poll; otherwise it fails and so does the document.
    Commits.
    """
    outcome = _settle(db, job, error)
    db.commit()
    logger.warning(
        "jobs.attempt_failed",
        job_id=job.id,
        attempts=job.attempts,
        max_attempts=job.max_attempts,
        outcome=outcome.value,
        error=error,
    )
    return outcome


def is_stale(job: BackgroundJob, *, lease_seconds: float | None = None) -> bool:
    """A processing job whose claim is older than the lease; its worker is presumed gone."""
    if job.status != JobStatus.processing.value or job.started_at is None:
        return False
    lease = settings.job_lease_seconds if lease_seconds is None else lease_seconds
    return as_utc(job.started_at) < utcnow() - dt.timedelta(seconds=lease)


def recover_stale_jobs(db: Session, *, lease_seconds: float | None = None) -> int:
    """
    Release claims that outlived the lease, e.g. after a worker crash. The
    claim already counted as an attempt, so a job at max_attempts fails.
    Commits.
    """
    lease = settings.job_lease_seconds if lease_seconds is None else lease_seconds
    cutoff = utcnow() - dt.timedelta(seconds=lease)
    stale = db.execute(
        select(BackgroundJob).where(
            BackgroundJob.status == JobStatus.processing.value,
            BackgroundJob.started_at < cutoff,
        )
    ).scalars().all()
    for job in stale:
        outcome = _settle(db, job, f"Worker lease expired after {lease:.0f}s")
        logger.warning("jobs.lease_expired", job_id=job.id, attempts=job.attempts, outcome=outcome.value)
    db.commit()
    return len(stale)


def get_job_status(db: Session, *, document_id: int) -> JobStatusView:
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFound("Document not found")
    job = latest_job_for(db, document_id)
    if job is None:
        return JobStatusView(
            has_job=False,
            job=None,
            needs_manual_trigger=doc.analysis_status != AnalysisStatus.completed.value,
        )
    return JobStatusView(
        has_job=True,
        job=job,
        needs_manual_trigger=job.status == JobStatus.failed.value or is_stale(job),
    )


def trigger_prepare_ai(db: Session, *, ctx: RequestContext, document_id: int) -> BackgroundJob | None:
    """
    Manual re-trigger. A document that is already analyzed yields None; a live
    active job is returned as is. A stale claim is abandoned and its finished
    steps carried over to a fresh high-priority job.
    """
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFound("Document not found")
    if doc.analysis_status == AnalysisStatus.completed.value and doc.external_file_id:
        return None

    existing = active_job_for(db, document_id)
    if existing is not None and not is_stale(existing):
        return existing

    carried: dict = {}
    if existing is not None:
        carried = dict(existing.result or {})
        existing.status = JobStatus.failed.value
        existing.error_message = "Worker lease expired; requeued manually"
        existing.completed_at = utcnow()
        db.flush()
        logger.warning("jobs.stale_job_requeued", job_id=existing.id, document_id=document_id)

    job = enqueue_document_job(db, document=doc, priority=JobPriority.high)
    if carried:
        job.result = carried
    write_audit_event(
        db,
        ctx=ctx,
        action="jobs.prepare_ai.trigger",
        entity_type="background_job",
        entity_id=job.id,
        before=None,
        after=sa_model_to_dict(job),
    )
    db.commit()
    db.refresh(job)
    return job


def delete_jobs_for_document(db: Session, *, document_id: int) -> int:
    stmt = delete(BackgroundJob).where(BackgroundJob.document_id == document_id)
    return db.execute(stmt.execution_options(synchronize_session=False)).rowcount or 0


def documents_by_analysis_status(db: Session, *, status: AnalysisStatus, limit: int) -> list[Document]:
    stmt = (
        select(Document)
        .where(Document.analysis_status == status.value)
        .order_by(Document.created_at.asc(), Document.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_document_analysis(db: Session, *, document_id: int) -> Document:
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFound("Document not found")
    if doc.analysis_result is None:
        raise NotFound("Analysis not found")
    return doc


@dataclass(frozen=True)
class BatchOutcome:
    document_id: int
    outcome: str
    job: BackgroundJob | None = None


def batch_trigger(db: Session, *, ctx: RequestContext, document_ids: list[int]) -> list[BatchOutcome]:
    """`trigger_prepare_ai` for each id; unknown documents are reported, not raised."""
    results: list[BatchOutcome] = []
    for document_id in dict.fromkeys(document_ids):
        try:
            job = trigger_prepare_ai(db, ctx=ctx, document_id=document_id)
        except NotFound:
            results.append(BatchOutcome(document_id=document_id, outcome="not_found"))
            continue
        if job is None:
            results.append(BatchOutcome(document_id=document_id, outcome="already_prepared"))
        else:
            results.append(BatchOutcome(document_id=document_id, outcome="queued", job=job))
    logger.info("jobs.batch_triggered", requested=len(results), queued=sum(r.outcome == "queued" for r in results))
    return results
