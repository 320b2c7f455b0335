from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import Base, IdMixin
from investment_portal.shared.enums import JobPriority, JobStatus, JobStep

PIPELINE_STEPS: tuple[JobStep, ...] = (
    JobStep.preparing,
    JobStep.uploading,
    JobStep.analyzing,
    JobStep.generating_summary,
    JobStep.generating_insights,
)


class BackgroundJob(Base, IdMixin):
    __tablename__ = "background_jobs"

    job_type: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default=JobStatus.pending.value, index=True)
    current_step: Mapped[str] = mapped_column(String(32), default=JobStep.queued.value)
    step_progress: Mapped[int] = mapped_column(default=0)
    current_step_number: Mapped[int] = mapped_column(default=0)
    total_steps: Mapped[int] = mapped_column(default=len(PIPELINE_STEPS))

    document_id: Mapped[int | None] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=True, index=True)
    request_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    request_id: Mapped[int | None] = mapped_column(nullable=True)

    priority: Mapped[str] = mapped_column(String(16), default=JobPriority.normal.value)
    attempts: Mapped[int] = mapped_column(default=0)
    max_attempts: Mapped[int] = mapped_column(default=3)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    started_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("ix_background_jobs_status_priority", "status", "priority", "created_at"),)
