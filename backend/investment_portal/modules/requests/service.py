from __future__ import annotations

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.modules.requests.models import CashRequest, InvestmentRequest
from investment_portal.modules.requests.schemas import (
    CashRequestCreate,
    CashRequestUpdate,
    InvestmentCreate,
    InvestmentUpdate,
)
from investment_portal.modules.sequences.service import next_identifier
from investment_portal.modules.tasks import service as tasks
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.workflow import service as workflow
from investment_portal.modules.workflow.models import Approval
from investment_portal.shared.enums import RequestStatus, RequestType, Role
from investment_portal.shared.exceptions import NotAuthorized, NotFound, ValidationError
from investment_portal.shared.utils import sa_model_to_dict, utcnow

logger = structlog.get_logger(__name__)

INVESTMENT_PREFIX = "INV"
CASH_PREFIX = "CASH"

DELETABLE_STATUSES = {
    RequestStatus.draft.value,
    RequestStatus.rejected.value,
    RequestStatus.changes_requested.value,
}


def _apply_status_filter(stmt, model, status: str | None):
    if not status:
        return stmt
    if status == "pending":
        # Not yet approved or rejected.
        return stmt.where(
            model.status.in_(
                [RequestStatus.draft.value, RequestStatus.pending.value, RequestStatus.changes_requested.value]
            )
        )
    return stmt.where(model.status == status)


def create_investment(db: Session, *, ctx: RequestContext, data: InvestmentCreate) -> InvestmentRequest:
    actor = ctx.require_actor()
    req = InvestmentRequest(
        request_id=next_identifier(db, INVESTMENT_PREFIX),
        requester_id=actor.user_id,
        target_company=data.target_company,
        investment_type=data.investment_type.value,
        amount=data.amount,
        expected_return=data.expected_return,
        expected_return_min=data.expected_return_min,
        expected_return_max=data.expected_return_max,
        expected_return_type=data.expected_return_type,
        description=data.description,
        risk_level=data.risk_level.value,
        status=RequestStatus.draft.value,
        current_approval_stage=0,
        current_approval_cycle=1,
        created_by=ctx.actor_label,
        updated_by=ctx.actor_label,
    )
    db.add(req)
    db.flush()

    write_audit_event(
        db,
        ctx=ctx,
        action="requests.investment.create",
        entity_type=RequestType.investment.value,
        entity_id=req.id,
        before=None,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    logger.info("requests.investment_created", request_id=req.request_id, amount=str(req.amount))

    if data.submit:
        return workflow.submit_request(db, ctx=ctx, request_type=RequestType.investment, request_id=req.id)
    return req


def list_investments(
    db: Session,
    *,
    ctx: RequestContext,
    status: str | None,
    limit: int,
    offset: int,
) -> list[InvestmentRequest]:
    """
    Role-scoped listing: analysts see their own requests, admins see all, and
    approvers see requests they acted on or currently hold a task for.
    """
    actor = ctx.require_actor()
    stmt = select(InvestmentRequest).where(InvestmentRequest.deleted_at.is_(None))

    if actor.is_admin:
        pass
    elif actor.role == Role.analyst:
        stmt = stmt.where(InvestmentRequest.requester_id == actor.user_id)
    else:
        acted = select(Approval.request_id).where(
            Approval.approver_id == actor.user_id,
            Approval.request_type == RequestType.investment.value,
        )
        assigned = select(Task.request_id).where(
            Task.assignee_id == actor.user_id,
            Task.request_type == RequestType.investment.value,
        )
        stmt = stmt.where(
            or_(
                InvestmentRequest.id.in_(acted),
                InvestmentRequest.id.in_(assigned),
                InvestmentRequest.requester_id == actor.user_id,
            )
        )

    stmt = _apply_status_filter(stmt, InvestmentRequest, status)
    stmt = stmt.order_by(InvestmentRequest.created_at.desc(), InvestmentRequest.id.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())


def get_investment(db: Session, *, request_id: int) -> InvestmentRequest:
    return workflow.load_request(db, RequestType.investment, request_id)


def _owned_investment(db: Session, *, ctx: RequestContext, request_id: int) -> InvestmentRequest:
    actor = ctx.require_actor()
    req = get_investment(db, request_id=request_id)
    if req.requester_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only change your own investment requests")
    return req


def _apply_update(req: InvestmentRequest, patch: InvestmentUpdate) -> None:
    for key, value in patch.model_dump(exclude_unset=True).items():
        if hasattr(value, "value"):
            value = value.value
        setattr(req, key, value)
    lo, hi = req.expected_return_min, req.expected_return_max
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError("expected_return_min must not exceed expected_return_max")


def update_investment(db: Session, *, ctx: RequestContext, request_id: int, patch: InvestmentUpdate) -> InvestmentRequest:
    req = _owned_investment(db, ctx=ctx, request_id=request_id)
    if req.status != RequestStatus.draft.value:
        raise ValidationError("Only draft requests can be edited; use modify for returned requests")

    before = sa_model_to_dict(req)
    _apply_update(req, patch)
    req.updated_by = ctx.actor_label
    db.flush()
    write_audit_event(
        db,
        ctx=ctx,
        action="requests.investment.update",
        entity_type=RequestType.investment.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    return req


def modify_investment(db: Session, *, ctx: RequestContext, request_id: int, patch: InvestmentUpdate) -> InvestmentRequest:
    """Edit a rejected or changes-requested request and reopen it as a draft in a new approval cycle."""
    req = _owned_investment(db, ctx=ctx, request_id=request_id)
    if not workflow.can_revise(db, req, RequestType.investment):
        raise ValidationError(f"Cannot modify a request in status '{req.status}'")

    before = sa_model_to_dict(req)
    workflow.reopen_for_revision(db, ctx=ctx, req=req, request_type=RequestType.investment)
    _apply_update(req, patch)
    req.updated_by = ctx.actor_label
    db.flush()

    write_audit_event(
        db,
        ctx=ctx,
        action="requests.investment.modify",
        entity_type=RequestType.investment.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    return req


def soft_delete_investment(db: Session, *, ctx: RequestContext, request_id: int) -> None:
    req = _owned_investment(db, ctx=ctx, request_id=request_id)

    if req.status == RequestStatus.pending.value:
        approvals = db.execute(
            select(func.count(Approval.id)).where(
                Approval.request_type == RequestType.investment.value,
                Approval.request_id == req.id,
                Approval.is_current_cycle.is_(True),
            )
        ).scalar_one()
        if approvals:
            raise ValidationError("Cannot delete an investment request that is actively in the approval workflow")
    elif req.status not in DELETABLE_STATUSES:
        raise ValidationError(f"Cannot delete an investment request in status '{req.status}'")

    before = sa_model_to_dict(req)
    req.deleted_at = utcnow()
    req.updated_by = ctx.actor_label
    closed = tasks.complete_open_tasks(db, request_type=RequestType.investment, request_id=req.id)
    db.flush()

    write_audit_event(
        db,
        ctx=ctx,
        action="requests.investment.soft_delete",
        entity_type=RequestType.investment.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    logger.info("requests.investment_deleted", request_id=req.request_id, tasks_closed=closed)


def _check_linked_investment(db: Session, investment_id: int) -> None:
    investment = db.get(InvestmentRequest, investment_id)
    if investment is None or investment.deleted_at is not None:
        raise NotFound("Linked investment request not found")


def create_cash_request(db: Session, *, ctx: RequestContext, data: CashRequestCreate) -> CashRequest:
    actor = ctx.require_actor()
    if data.investment_id is not None:
        _check_linked_investment(db, data.investment_id)

    req = CashRequest(
        request_id=next_identifier(db, CASH_PREFIX),
        requester_id=actor.user_id,
        investment_id=data.investment_id,
        amount=data.amount,
        purpose=data.purpose,
        payment_timeline=data.payment_timeline.value,
        status=RequestStatus.draft.value,
        current_approval_stage=0,
        current_approval_cycle=1,
        created_by=ctx.actor_label,
        updated_by=ctx.actor_label,
    )
    db.add(req)
    db.flush()
    write_audit_event(
        db,
        ctx=ctx,
        action="requests.cash_request.create",
        entity_type=RequestType.cash_request.value,
        entity_id=req.id,
        before=None,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)

    if data.submit:
        return workflow.submit_request(db, ctx=ctx, request_type=RequestType.cash_request, request_id=req.id)
    return req


def list_cash_requests(
    db: Session,
    *,
    ctx: RequestContext,
    status: str | None,
    mine: bool,
    limit: int,
    offset: int,
) -> list[CashRequest]:
    actor = ctx.require_actor()
    stmt = select(CashRequest).where(CashRequest.deleted_at.is_(None))
    if mine or actor.role == Role.analyst:
        stmt = stmt.where(CashRequest.requester_id == actor.user_id)
    stmt = _apply_status_filter(stmt, CashRequest, status)
    stmt = stmt.order_by(CashRequest.created_at.desc(), CashRequest.id.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())


def get_cash_request(db: Session, *, request_id: int) -> CashRequest:
    return workflow.load_request(db, RequestType.cash_request, request_id)


def modify_cash_request(db: Session, *, ctx: RequestContext, request_id: int, patch: CashRequestUpdate) -> CashRequest:
    """Cash counterpart of `modify_investment`: edit a returned request and reopen it as a draft."""
    actor = ctx.require_actor()
    req = get_cash_request(db, request_id=request_id)
    if req.requester_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only change your own cash requests")
    if not workflow.can_revise(db, req, RequestType.cash_request):
        raise ValidationError(f"Cannot modify a request in status '{req.status}'")

    # Only the link may be cleared.
    changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None or k == "investment_id"}
    if changes.get("investment_id") is not None:
        _check_linked_investment(db, changes["investment_id"])

    before = sa_model_to_dict(req)
    workflow.reopen_for_revision(db, ctx=ctx, req=req, request_type=RequestType.cash_request)
    for key, value in changes.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(req, key, value)
    req.updated_by = ctx.actor_label
    db.flush()

    write_audit_event(
        db,
        ctx=ctx,
        action="requests.cash_request.modify",
        entity_type=RequestType.cash_request.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    return req
