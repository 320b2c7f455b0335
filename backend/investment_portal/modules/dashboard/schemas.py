from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel


class Bucket(BaseModel):
    count: int = 0
    value: Decimal = Decimal("0")


class ProposalSummary(BaseModel):
    draft: Bucket
    pending_by_role: dict[str, Bucket]
    changes_requested: Bucket
    approved: Bucket
    rejected: Bucket
    total: Bucket


class DashboardStats(BaseModel):
    pending_approvals: int
    sla_breaches: int
    active_investments: int
    pending_cash_requests: int
    investments: ProposalSummary
    cash_requests: ProposalSummary
    risk_profile: dict[str, Bucket]
    value_distribution: dict[str, Bucket]


class RequesterOut(BaseModel):
    id: int
    first_name: str | None
    last_name: str | None


class RecentRequestOut(BaseModel):
    id: int
    request_id: str
    type: str
    amount: Decimal
    status: str
    current_approval_stage: int
    created_at: dt.datetime
    requester: RequesterOut
    target_company: str | None = None
    investment_type: str | None = None
    risk_level: str | None = None
