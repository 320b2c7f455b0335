from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.core.config import settings
from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.modules.documents.models import Document
from investment_portal.modules.jobs import service as jobs
from investment_portal.modules.workflow.service import load_request
from investment_portal.services import file_storage
from investment_portal.shared.enums import AnalysisStatus, JobPriority, RequestType
from investment_portal.shared.exceptions import NotAuthorized, NotFound, ValidationError
from investment_portal.shared.utils import sa_model_to_dict

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    content_type: str | None
    data: bytes


@dataclass
class UploadSummary:
    documents: list[Document] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.documents) + len(self.errors)


def _check_file(f: IncomingFile) -> None:
    if not f.filename:
        raise ValidationError("File name is required")
    if not f.data:
        raise ValidationError("File is empty")
    if len(f.data) > settings.max_upload_bytes:
        raise ValidationError(f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit")


def _store_one(
    db: Session,
    *,
    ctx: RequestContext,
    request_type: RequestType,
    request_id: int,
    f: IncomingFile,
) -> Document:
    actor = ctx.require_actor()
    _check_file(f)
    stored = file_storage.save_bytes(data=f.data, original_name=f.filename, content_type=f.content_type)
    try:
        doc = Document(
            file_name=stored.file_name,
            original_name=f.filename,
            file_size=stored.size_bytes,
            mime_type=stored.mime_type,
            file_path=stored.file_path,
            content_hash=stored.sha256,
            uploader_id=actor.user_id,
            request_type=request_type.value,
            request_id=request_id,
            analysis_status=AnalysisStatus.pending.value,
            created_by=ctx.actor_label,
            updated_by=ctx.actor_label,
        )
        db.add(doc)
        db.flush()
        jobs.enqueue_document_job(db, document=doc, priority=JobPriority.high)
        write_audit_event(
            db,
            ctx=ctx,
            action="documents.upload",
            entity_type="document",
            entity_id=doc.id,
            before=None,
            after=sa_model_to_dict(doc, exclude={"extracted_text"}),
        )
        db.commit()
    except Exception:
        db.rollback()
        file_storage.delete_file(stored.file_path)
        raise
    db.refresh(doc)
    return doc


def upload_documents(
    db: Session,
    *,
    ctx: RequestContext,
    request_type: RequestType,
    request_id: int,
    files: list[IncomingFile],
) -> UploadSummary:
    """
    Store each file, create its row and queue AI preparation. Files are
    handled one at a time so one bad file does not sink the batch.
    """
    load_request(db, request_type, request_id)
    if not files:
        raise ValidationError("No files uploaded")

    summary = UploadSummary()
    for f in files:
        try:
            doc = _store_one(db, ctx=ctx, request_type=request_type, request_id=request_id, f=f)
        except (ValidationError, OSError) as e:
            logger.warning("documents.upload_failed", filename=f.filename, error=str(e))
            summary.errors.append({"file_name": f.filename, "error": str(e)})
            continue
        summary.documents.append(doc)
        logger.info("documents.uploaded", document_id=doc.id, filename=f.filename, size=doc.file_size)
    return summary


def list_documents(db: Session, *, request_type: RequestType, request_id: int) -> list[Document]:
    stmt = (
        select(Document)
        .where(Document.request_type == request_type.value, Document.request_id == request_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def get_document(db: Session, *, document_id: int) -> Document:
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFound("Document not found")
    return doc


def read_document_bytes(db: Session, *, document_id: int) -> tuple[Document, bytes]:
    doc = get_document(db, document_id=document_id)
    try:
        data = file_storage.read_bytes(doc.file_path)
    except FileNotFoundError:
        logger.error("documents.file_missing", document_id=doc.id, path=doc.file_path)
        raise NotFound("File not found on server")
    return doc, data


def delete_document(db: Session, *, ctx: RequestContext, document_id: int) -> None:
    """Uploader or admin only. Jobs go first, then the stored file, then the row."""
    actor = ctx.require_actor()
    doc = get_document(db, document_id=document_id)
    if doc.uploader_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only delete documents you uploaded")

    before = sa_model_to_dict(doc, exclude={"extracted_text"})
    removed_jobs = jobs.delete_jobs_for_document(db, document_id=doc.id)
    if not file_storage.delete_file(doc.file_path):
        logger.warning("documents.file_already_gone", document_id=doc.id, path=doc.file_path)
    db.delete(doc)
    write_audit_event(
        db,
        ctx=ctx,
        action="documents.delete",
        entity_type="document",
        entity_id=document_id,
        before=before,
        after=None,
    )
    db.commit()
    logger.info("documents.deleted", document_id=document_id, jobs_removed=removed_jobs)
