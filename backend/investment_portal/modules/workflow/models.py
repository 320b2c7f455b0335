from __future__ import annotations

import datetime as dt

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin


class ApprovalWorkflowStage(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "approval_workflow_stages"

    workflow_type: Mapped[str] = mapped_column(String(32), index=True)
    stage: Mapped[int]
    approver_role: Mapped[str] = mapped_column(String(32))
    sla_hours: Mapped[int] = mapped_column(default=48)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (UniqueConstraint("workflow_type", "stage", name="uq_workflow_stage"),)


class Approval(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "approvals"

    request_type: Mapped[str] = mapped_column(String(32))
    request_id: Mapped[int]
    approval_cycle: Mapped[int]
    stage: Mapped[int]
    approver_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    status: Mapped[str] = mapped_column(String(32))
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    is_current_cycle: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (
        Index("ix_approvals_request", "request_type", "request_id"),
        # At most one live decision per (request, stage).
        Index(
            "uq_approvals_current_stage",
            "request_type",
            "request_id",
            "stage",
            unique=True,
            postgresql_where=text("is_current_cycle"),
            sqlite_where=text("is_current_cycle = 1"),
        ),
    )
