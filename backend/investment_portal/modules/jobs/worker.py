from __future__ import annotations

import argparse
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.orm import Session

from investment_portal.core.config import settings
from investment_portal.core.db.session import get_session_local
from investment_portal.core.logging import configure_logging
from investment_portal.modules.documents.models import Document
from investment_portal.modules.jobs import service
from investment_portal.modules.jobs.models import PIPELINE_STEPS, BackgroundJob
from investment_portal.modules.tasks.service import mark_overdue_tasks
from investment_portal.services import file_storage
from investment_portal.services.document_ai import DocumentAIGateway, TextOutcome, get_document_ai_gateway
from investment_portal.services.document_text_extractor import extract_text
from investment_portal.shared.enums import AnalysisStatus, JobStatus, JobStep
from investment_portal.shared.exceptions import ExternalServiceError, NotFound
from investment_portal.shared.utils import utcnow

logger = structlog.get_logger(__name__)


class StepFailed(ExternalServiceError):
    def __init__(self, step: JobStep, message: str) -> None:
        super().__init__(f"{step.value}: {message}")
        self.step = step


@dataclass(frozen=True)
class WorkerResult:
    claimed: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0


class JobWorker:
    """
    Polls pending background jobs and runs the prepare-AI pipeline.

    Each step stores its output in `job.result` and commits, so a retried job
    resumes after the last finished step. In particular a file that already
    reached the vector store is not uploaded a second time.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        gateway: DocumentAIGateway | None = None,
        batch_size: int | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self._gateway = gateway
        self.batch_size = batch_size or settings.job_batch_size
        self.poll_interval = poll_interval if poll_interval is not None else settings.job_poll_interval_seconds

    @property
    def gateway(self) -> DocumentAIGateway:
        if self._gateway is None:
            self._gateway = get_document_ai_gateway()
        return self._gateway

    def run_once(self) -> WorkerResult:
        claimed = completed = retried = failed = 0
        with self.session_factory() as db:
            overdue = mark_overdue_tasks(db)
            if overdue:
                logger.info("worker.tasks_overdue", count=overdue)
            released = service.recover_stale_jobs(db)
            if released:
                logger.info("worker.stale_jobs_released", count=released)
            job_ids = service.pending_job_ids(db, limit=self.batch_size)

        for job_id in job_ids:
            with self.session_factory() as db:
                if not service.claim_job(db, job_id):
                    continue
                claimed += 1
                outcome = self._process(db, job_id)
            if outcome == JobStatus.completed:
                completed += 1
            elif outcome == JobStatus.pending:
                retried += 1
            else:
                failed += 1
        return WorkerResult(claimed=claimed, completed=completed, retried=retried, failed=failed)

    def run_forever(self, stop_event: threading.Event) -> None:
        logger.info("worker.started", batch_size=self.batch_size, poll_interval=self.poll_interval)
        while not stop_event.is_set():
            try:
                result = self.run_once()
            except Exception:
                logger.exception("worker.cycle_failed")
            else:
                if result.claimed:
                    logger.info("worker.cycle", **result.__dict__)
            stop_event.wait(self.poll_interval)
        logger.info("worker.stopped")

    def _process(self, db: Session, job_id: int) -> JobStatus:
        job = db.get(BackgroundJob, job_id)
        if job is None:
            return JobStatus.failed
        log = logger.bind(job_id=job.id, document_id=job.document_id, attempt=job.attempts)
        try:
            self._run_pipeline(db, job)
        except Exception as e:
            db.rollback()
            log.warning("worker.job_failed", error=str(e), exc_info=not isinstance(e, StepFailed))
            job = db.get(BackgroundJob, job_id)
            if job is None:
                return JobStatus.failed
            return service.record_failure(db, job, str(e))
        log.info("worker.job_completed")
        return JobStatus.completed

    def _run_pipeline(self, db: Session, job: BackgroundJob) -> None:
        doc = db.get(Document, job.document_id) if job.document_id is not None else None
        if doc is None:
            raise NotFound(f"Document {job.document_id} no longer exists")
        doc.analysis_status = AnalysisStatus.processing.value
        db.commit()

        handlers: dict[JobStep, Callable[[Document, dict[str, Any]], dict[str, Any]]] = {
            JobStep.preparing: self._prepare,
            JobStep.uploading: self._upload,
            JobStep.analyzing: self._analyze,
            JobStep.generating_summary: self._summarize,
            JobStep.generating_insights: self._insights,
        }
        for number, step in enumerate(PIPELINE_STEPS, start=1):
            done = dict(job.result or {})
            if step.value in done:
                continue
            job.current_step = step.value
            job.current_step_number = number
            job.step_progress = int((number - 1) * 100 / len(PIPELINE_STEPS))
            db.commit()

            output = handlers[step](doc, done)
            # Reassign so the JSON column is flagged dirty.
            job.result = {**done, step.value: output}
            db.commit()

        result = dict(job.result or {})
        doc.external_file_id = result[JobStep.uploading.value]["file_id"]
        doc.analysis_result = {
            "analysis": result[JobStep.analyzing.value].get("text"),
            "summary": result[JobStep.generating_summary.value].get("text"),
            "insights": result[JobStep.generating_insights.value].get("text"),
            "deduplicated": result[JobStep.uploading.value].get("deduplicated", False),
        }
        doc.analysis_status = AnalysisStatus.completed.value
        doc.analyzed_at = utcnow()
        job.status = JobStatus.completed.value
        job.current_step = JobStep.completed.value
        job.current_step_number = len(PIPELINE_STEPS)
        job.step_progress = 100
        job.error_message = None
        job.completed_at = utcnow()
        db.commit()

    def _prepare(self, doc: Document, done: dict[str, Any]) -> dict[str, Any]:
        data = file_storage.read_bytes(doc.file_path)
        extracted = extract_text(data, mime_type=doc.mime_type)
        doc.extracted_text = extracted.text or None
        return {"pages": len(extracted.pages), "characters": len(extracted.text)}

    def _upload(self, doc: Document, done: dict[str, Any]) -> dict[str, Any]:
        outcome = self.gateway.upload_document(
            content=file_storage.read_bytes(doc.file_path),
            filename=doc.original_name,
            fingerprint=doc.content_hash,
            attributes={
                "document_id": str(doc.id),
                "request_type": doc.request_type,
                "request_id": str(doc.request_id),
            },
        )
        if not outcome.success or not outcome.file_id:
            raise StepFailed(JobStep.uploading, outcome.error or "upload failed")
        doc.external_file_id = outcome.file_id
        return {"file_id": outcome.file_id, "deduplicated": outcome.deduplicated}

    def _context(self, doc: Document) -> dict[str, Any]:
        return {"request_type": doc.request_type, "request_id": doc.request_id, "filename": doc.original_name}

    def _analyze(self, doc: Document, done: dict[str, Any]) -> dict[str, Any]:
        file_id = done[JobStep.uploading.value]["file_id"]
        return _text(JobStep.analyzing, self.gateway.analyze(file_id=file_id, context=self._context(doc)))

    def _summarize(self, doc: Document, done: dict[str, Any]) -> dict[str, Any]:
        file_id = done[JobStep.uploading.value]["file_id"]
        return _text(JobStep.generating_summary, self.gateway.summarize(file_id=file_id))

    def _insights(self, doc: Document, done: dict[str, Any]) -> dict[str, Any]:
        file_id = done[JobStep.uploading.value]["file_id"]
        return _text(
            JobStep.generating_insights,
            self.gateway.insights(file_ids=[file_id], context=self._context(doc)),
        )


def _text(step: JobStep, outcome: TextOutcome) -> dict[str, Any]:
    if not outcome.success:
        raise StepFailed(step, outcome.error or "no output")
    return {"text": outcome.text}


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run the background job worker (document AI preparation, task SLAs).")
    p.add_argument("--once", action="store_true", help="Process a single batch and exit.")
    p.add_argument("--batch-size", type=int, default=None, help="Jobs claimed per poll.")
    p.add_argument("--poll-interval", type=float, default=None, help="Seconds between polls.")
    return p


def main() -> int:
    args = _build_arg_parser().parse_args()
    configure_logging()
    worker = JobWorker(
        session_factory=get_session_local(),
        batch_size=args.batch_size,
        poll_interval=args.poll_interval,
    )
    if args.once:
        result = worker.run_once()
        logger.info("worker.batch_done", **result.__dict__)
        return 0

    stop = threading.Event()
    try:
        worker.run_forever(stop)
    except KeyboardInterrupt:
        stop.set()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
