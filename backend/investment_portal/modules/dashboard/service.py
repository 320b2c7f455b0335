from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.models import User
from investment_portal.modules.dashboard.schemas import (
    Bucket,
    DashboardStats,
    ProposalSummary,
    RecentRequestOut,
    RequesterOut,
)
from investment_portal.modules.requests.models import CashRequest, InvestmentRequest
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.workflow.stages import get_stages
from investment_portal.shared.enums import RequestStatus, RequestType, RiskLevel, Role, TaskStatus

VALUE_BANDS: tuple[tuple[str, Decimal | None], ...] = (
    ("small", Decimal("1000000")),
    ("medium", Decimal("5000000")),
    ("large", Decimal("10000000")),
    ("extra_large", None),
)


def _scoped(stmt, model, ctx: RequestContext):
    actor = ctx.require_actor()
    stmt = stmt.where(model.deleted_at.is_(None))
    if actor.role == Role.analyst:
        stmt = stmt.where(model.requester_id == actor.user_id)
    return stmt


def _add(bucket: Bucket, count: int, value) -> None:
    bucket.count += int(count or 0)
    bucket.value += Decimal(value or 0)


def _proposal_summary(db: Session, ctx: RequestContext, model, request_type: RequestType) -> ProposalSummary:
    stages = get_stages(db, request_type)
    role_by_stage = {s.stage: s.role.value for s in stages}
    summary = ProposalSummary(
        draft=Bucket(),
        pending_by_role={s.role.value: Bucket() for s in stages},
        changes_requested=Bucket(),
        approved=Bucket(),
        rejected=Bucket(),
        total=Bucket(),
    )
    stmt = _scoped(
        select(model.status, model.current_approval_stage, func.count(model.id), func.sum(model.amount)),
        model,
        ctx,
    ).group_by(model.status, model.current_approval_stage)

    for status, stage, count, value in db.execute(stmt).all():
        if status == RequestStatus.pending.value:
            role = role_by_stage.get(stage)
            if role is not None:
                _add(summary.pending_by_role[role], count, value)
        else:
            _add(getattr(summary, status), count, value)
        _add(summary.total, count, value)
    return summary


def _value_band():
    whens = [(InvestmentRequest.amount <= limit, name) for name, limit in VALUE_BANDS if limit is not None]
    return case(*whens, else_=VALUE_BANDS[-1][0])


def get_stats(db: Session, *, ctx: RequestContext) -> DashboardStats:
    actor = ctx.require_actor()

    pending_approvals = db.execute(
        select(func.count(Task.id)).where(Task.assignee_id == actor.user_id, Task.status == TaskStatus.pending.value)
    ).scalar_one()
    breaches_stmt = select(func.count(Task.id)).where(Task.status == TaskStatus.overdue.value)
    if actor.role == Role.analyst:
        breaches_stmt = breaches_stmt.where(Task.assignee_id == actor.user_id)
    sla_breaches = db.execute(breaches_stmt).scalar_one()

    investments = _proposal_summary(db, ctx, InvestmentRequest, RequestType.investment)
    cash = _proposal_summary(db, ctx, CashRequest, RequestType.cash_request)

    risk_profile = {r.value: Bucket() for r in RiskLevel}
    stmt = _scoped(
        select(InvestmentRequest.risk_level, func.count(InvestmentRequest.id), func.sum(InvestmentRequest.amount)),
        InvestmentRequest,
        ctx,
    ).group_by(InvestmentRequest.risk_level)
    for risk, count, value in db.execute(stmt).all():
        _add(risk_profile.setdefault(risk, Bucket()), count, value)

    distribution = {name: Bucket() for name, _ in VALUE_BANDS}
    band = _value_band()
    stmt = _scoped(
        select(band, func.count(InvestmentRequest.id), func.sum(InvestmentRequest.amount)),
        InvestmentRequest,
        ctx,
    ).group_by(band)
    for name, count, value in db.execute(stmt).all():
        _add(distribution[name], count, value)

    return DashboardStats(
        pending_approvals=pending_approvals,
        sla_breaches=sla_breaches,
        active_investments=investments.approved.count,
        pending_cash_requests=sum(b.count for b in cash.pending_by_role.values()),
        investments=investments,
        cash_requests=cash,
        risk_profile=risk_profile,
        value_distribution=distribution,
    )


def recent_requests(db: Session, *, ctx: RequestContext, limit: int = 10) -> list[RecentRequestOut]:
    out: list[RecentRequestOut] = []
    for model, request_type in ((InvestmentRequest, RequestType.investment), (CashRequest, RequestType.cash_request)):
        stmt = _scoped(select(model, User).join(User, User.id == model.requester_id), model, ctx)
        stmt = stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit)
        for req, user in db.execute(stmt).all():
            extra = {}
            if isinstance(req, InvestmentRequest):
                extra = {
                    "target_company": req.target_company,
                    "investment_type": req.investment_type,
                    "risk_level": req.risk_level,
                }
            out.append(
                RecentRequestOut(
                    id=req.id,
                    request_id=req.request_id,
                    type=request_type.value,
                    amount=req.amount,
                    status=req.status,
                    current_approval_stage=req.current_approval_stage,
                    created_at=req.created_at,
                    requester=RequesterOut(id=user.id, first_name=user.first_name, last_name=user.last_name),
                    **extra,
                )
            )
    out.sort(key=lambda r: (r.created_at, r.id), reverse=True)
    return out[:limit]
