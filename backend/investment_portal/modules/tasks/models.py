from __future__ import annotations

import datetime as dt

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin
from investment_portal.shared.enums import TaskStatus


class Task(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "tasks"

    assignee_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    request_type: Mapped[str] = mapped_column(String(32))
    request_id: Mapped[int]
    stage: Mapped[int] = mapped_column(default=0)
    approval_cycle: Mapped[int] = mapped_column(default=1)
    task_type: Mapped[str] = mapped_column(String(32))
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=TaskStatus.pending.value, index=True)
    priority: Mapped[str] = mapped_column(String(16), default="medium")
    due_date: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("ix_tasks_request", "request_type", "request_id"),)
