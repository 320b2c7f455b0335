from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin
from investment_portal.shared.enums import RequestStatus


class WorkflowTrackedMixin:
    """Columns shared by every request type that runs through the approval workflow."""

    request_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    @declared_attr
    def requester_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("users.id"), index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2))
    status: Mapped[str] = mapped_column(String(32), default=RequestStatus.draft.value, index=True)
    current_approval_stage: Mapped[int] = mapped_column(default=0, nullable=False)
    current_approval_cycle: Mapped[int] = mapped_column(default=1, nullable=False)
    sla_deadline: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    deleted_at: Mapped[dt.datetime | None] = mapped_column(nullable=True, index=True)


class InvestmentRequest(Base, IdMixin, WorkflowTrackedMixin, AuditMetaMixin):
    __tablename__ = "investment_requests"

    target_company: Mapped[str] = mapped_column(String(300))
    investment_type: Mapped[str] = mapped_column(String(32))
    expected_return: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    expected_return_min: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    expected_return_max: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    expected_return_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    enhanced_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_level: Mapped[str] = mapped_column(String(16))


class CashRequest(Base, IdMixin, WorkflowTrackedMixin, AuditMetaMixin):
    __tablename__ = "cash_requests"

    investment_id: Mapped[int | None] = mapped_column(ForeignKey("investment_requests.id"), nullable=True, index=True)
    purpose: Mapped[str] = mapped_column(Text)
    payment_timeline: Mapped[str] = mapped_column(String(16))
