from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.modules.notifications.service import notify
from investment_portal.modules.requests.models import CashRequest, InvestmentRequest
from investment_portal.modules.tasks import service as tasks
from investment_portal.modules.workflow.models import Approval
from investment_portal.modules.workflow.stages import StageDefinition, get_stages
from investment_portal.modules.workflow.states import EVENT_FOR_ACTION, WorkflowEvent, WorkflowState
from investment_portal.shared.enums import (
    ApprovalAction,
    ApprovalOutcome,
    NotificationType,
    RequestStatus,
    RequestType,
    TaskType,
)
from investment_portal.shared.exceptions import Conflict, NotAuthorized, NotFound
from investment_portal.shared.utils import sa_model_to_dict, utcnow

logger = structlog.get_logger(__name__)

WorkflowRequest = Union[InvestmentRequest, CashRequest]

REQUEST_MODELS: dict[RequestType, type[InvestmentRequest] | type[CashRequest]] = {
    RequestType.investment: InvestmentRequest,
    RequestType.cash_request: CashRequest,
}

OUTCOME_FOR_ACTION: dict[ApprovalAction, ApprovalOutcome] = {
    ApprovalAction.approve: ApprovalOutcome.approved,
    ApprovalAction.reject: ApprovalOutcome.rejected,
    ApprovalAction.changes_requested: ApprovalOutcome.changes_requested,
}


@dataclass(frozen=True)
class ApprovalResult:
    approval: Approval
    request: WorkflowRequest
    next_stage_tasks: int


def load_request(db: Session, request_type: RequestType, request_id: int) -> WorkflowRequest:
    model = REQUEST_MODELS[request_type]
    req = db.get(model, request_id)
    if req is None or req.deleted_at is not None:
        raise NotFound(f"{request_type.value} request {request_id} not found")
    return req


def _sla_deadline(stage: StageDefinition) -> dt.datetime:
    return utcnow() + dt.timedelta(hours=stage.sla_hours)


def _compare_and_swap(
    db: Session,
    req: WorkflowRequest,
    *,
    expected: WorkflowState,
    new: WorkflowState,
    **values,
) -> None:
    """
    Move the request from `expected` to `new` only if nobody else moved it first.

    The WHERE clause pins status, stage and cycle, so of two approvers acting
    on the same stage exactly one update matches a row.
    """
    model = type(req)
    stmt = (
        update(model)
        .where(
            model.id == req.id,
            model.status == expected.status.value,
            model.current_approval_stage == expected.stage,
            model.current_approval_cycle == req.current_approval_cycle,
            model.deleted_at.is_(None),
        )
        .values(status=new.status.value, current_approval_stage=new.stage, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if (db.execute(stmt).rowcount or 0) != 1:
        db.rollback()
        raise Conflict("Request was modified by another user; reload and retry")
    db.expire(req)


def _request_summary(req: WorkflowRequest) -> dict:
    summary = {"request_id": req.request_id, "amount": str(req.amount)}
    if isinstance(req, InvestmentRequest):
        summary["target_company"] = req.target_company
        summary["investment_type"] = req.investment_type
    return summary


def _assign_stage(
    db: Session,
    *,
    req: WorkflowRequest,
    request_type: RequestType,
    stage: StageDefinition,
    cycle: int,
    due: dt.datetime,
) -> int:
    created = tasks.create_stage_tasks(
        db,
        request_type=request_type,
        request_id=req.id,
        request_label=req.request_id,
        stage=stage.stage,
        cycle=cycle,
        role=stage.role,
        due_date=due,
    )
    for task in created:
        notify(
            db,
            user_id=task.assignee_id,
            title="Approval needed",
            message=f"{req.request_id} is waiting for your review (stage {stage.stage})",
            type=NotificationType.approval_needed,
            related_type=request_type,
            related_id=req.id,
        )
    if not created:
        logger.warning(
            "workflow.stage_without_approvers",
            request_id=req.request_id,
            stage=stage.stage,
            role=stage.role.value,
        )
    return len(created)


def submit_request(db: Session, *, ctx: RequestContext, request_type: RequestType, request_id: int) -> WorkflowRequest:
    actor = ctx.require_actor()
    req = load_request(db, request_type, request_id)
    if req.requester_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("Only the requester can submit this request")

    stages = get_stages(db, request_type)
    current = WorkflowState.of(req, len(stages))
    new = current.apply(WorkflowEvent.submit)
    first = stages[new.stage - 1]
    cycle = req.current_approval_cycle
    before = sa_model_to_dict(req)

    due = _sla_deadline(first)
    _compare_and_swap(db, req, expected=current, new=new, sla_deadline=due)
    _assign_stage(db, req=req, request_type=request_type, stage=first, cycle=cycle, due=due)

    write_audit_event(
        db,
        ctx=ctx,
        action="workflow.request.submit",
        entity_type=request_type.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    logger.info("workflow.submitted", request_id=req.request_id, stage=req.current_approval_stage)
    return req


def _notify_earlier_approvers(
    db: Session,
    *,
    req: WorkflowRequest,
    request_type: RequestType,
    stage: StageDefinition,
    outcome: ApprovalOutcome,
    comments: str | None,
) -> None:
    earlier = (
        db.execute(
            select(Approval).where(
                Approval.request_type == request_type.value,
                Approval.request_id == req.id,
                Approval.is_current_cycle.is_(True),
                Approval.status == ApprovalOutcome.approved.value,
                Approval.stage < stage.stage,
            )
        )
        .scalars()
        .all()
    )
    for a in earlier:
        notify(
            db,
            user_id=a.approver_id,
            title=f"{req.request_id} {outcome.value.replace('_', ' ')} at stage {stage.stage}",
            message=f"A {stage.role.value} reviewer took action on a request you approved",
            type=NotificationType.higher_stage_action,
            related_type=request_type,
            related_id=req.id,
            previous_approver_stage=a.stage,
            higher_stage_action=outcome.value,
            higher_stage_role=stage.role.value,
            higher_stage_comments=comments,
            investment_summary=_request_summary(req),
        )


def process_approval(
    db: Session,
    *,
    ctx: RequestContext,
    request_type: RequestType,
    request_id: int,
    action: ApprovalAction,
    comments: str | None = None,
) -> ApprovalResult:
    actor = ctx.require_actor()
    req = load_request(db, request_type, request_id)
    if req.status != RequestStatus.pending.value:
        raise NotFound("No pending approval for this request")

    stages = get_stages(db, request_type)
    current = WorkflowState.of(req, len(stages))
    stage = stages[current.stage - 1]
    cycle = req.current_approval_cycle

    task = tasks.find_open_approval_task(
        db,
        assignee_id=actor.user_id,
        request_type=request_type,
        request_id=req.id,
        stage=current.stage,
        cycle=cycle,
    )
    if task is None:
        raise NotFound("No pending approval for this approver at the current stage")

    new = current.apply(EVENT_FOR_ACTION[action])
    outcome = OUTCOME_FOR_ACTION[action]
    requester_id = req.requester_id
    before = sa_model_to_dict(req)

    next_stage: StageDefinition | None = None
    if new.status == RequestStatus.pending:
        next_stage = stages[new.stage - 1]
        deadline: dt.datetime | None = _sla_deadline(next_stage)
    else:
        deadline = None
    _compare_and_swap(db, req, expected=current, new=new, sla_deadline=deadline)

    approval = Approval(
        request_type=request_type.value,
        request_id=req.id,
        approval_cycle=cycle,
        stage=current.stage,
        approver_id=actor.user_id,
        status=outcome.value,
        comments=comments,
        approved_at=utcnow(),
        is_current_cycle=True,
        created_by=ctx.actor_label,
        updated_by=ctx.actor_label,
    )
    db.add(approval)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise Conflict("This stage already has a decision")

    tasks.complete_open_tasks(
        db,
        request_type=request_type,
        request_id=req.id,
        stage=current.stage,
        task_type=TaskType.approval,
    )

    created = 0
    if next_stage is not None and deadline is not None:
        created = _assign_stage(db, req=req, request_type=request_type, stage=next_stage, cycle=cycle, due=deadline)
        notify(
            db,
            user_id=requester_id,
            title=f"{req.request_id} approved at stage {current.stage}",
            message=f"Now waiting for {next_stage.role.value} review",
            type=NotificationType.status_update,
            related_type=request_type,
            related_id=req.id,
        )
    elif new.status == RequestStatus.approved:
        notify(
            db,
            user_id=requester_id,
            title=f"{req.request_id} approved",
            message="Your request completed all approval stages",
            type=NotificationType.status_update,
            related_type=request_type,
            related_id=req.id,
        )
    elif new.status == RequestStatus.rejected:
        tasks.complete_open_tasks(db, request_type=request_type, request_id=req.id)
        notify(
            db,
            user_id=requester_id,
            title=f"{req.request_id} rejected",
            message=comments or f"Rejected at stage {current.stage} ({stage.role.value})",
            type=NotificationType.status_update,
            related_type=request_type,
            related_id=req.id,
        )
        _notify_earlier_approvers(db, req=req, request_type=request_type, stage=stage, outcome=outcome, comments=comments)
    else:
        tasks.complete_open_tasks(db, request_type=request_type, request_id=req.id)
        tasks.create_changes_task(
            db,
            assignee_id=requester_id,
            request_type=request_type,
            request_id=req.id,
            request_label=req.request_id,
            stage=current.stage,
            cycle=cycle,
            comments=comments,
        )
        notify(
            db,
            user_id=requester_id,
            title=f"Changes requested on {req.request_id}",
            message=f"Stage {current.stage} ({stage.role.value}): {comments or 'no comments'}",
            type=NotificationType.task_assigned,
            related_type=request_type,
            related_id=req.id,
            previous_approver_stage=current.stage,
            higher_stage_action=outcome.value,
            higher_stage_role=stage.role.value,
            higher_stage_comments=comments,
        )
        _notify_earlier_approvers(db, req=req, request_type=request_type, stage=stage, outcome=outcome, comments=comments)

    write_audit_event(
        db,
        ctx=ctx,
        action=f"workflow.approval.{outcome.value}",
        entity_type=request_type.value,
        entity_id=req.id,
        before=before,
        after=sa_model_to_dict(req),
    )
    db.commit()
    db.refresh(req)
    db.refresh(approval)
    logger.info(
        "workflow.approval_processed",
        request_id=req.request_id,
        outcome=outcome.value,
        stage=approval.stage,
        status=req.status,
    )
    return ApprovalResult(approval=approval, request=req, next_stage_tasks=created)


def increment_approval_cycle(db: Session, req: WorkflowRequest, request_type: RequestType) -> int:
    """
    Start a fresh approval cycle: every live approval becomes history, the
    cycle counter moves past the highest cycle seen and the stage resets to 0.
    Does not commit.
    """
    db.execute(
        update(Approval)
        .where(
            Approval.request_type == request_type.value,
            Approval.request_id == req.id,
            Approval.is_current_cycle.is_(True),
        )
        .values(is_current_cycle=False)
        .execution_options(synchronize_session="fetch")
    )
    max_cycle = db.execute(
        select(func.max(Approval.approval_cycle)).where(
            Approval.request_type == request_type.value,
            Approval.request_id == req.id,
        )
    ).scalar_one_or_none()
    new_cycle = max(max_cycle or 0, req.current_approval_cycle or 0) + 1

    req.current_approval_cycle = new_cycle
    req.current_approval_stage = 0
    db.flush()
    return new_cycle


def can_revise(db: Session, req: WorkflowRequest, request_type: RequestType) -> bool:
    return WorkflowState.of(req, len(get_stages(db, request_type))).can(WorkflowEvent.revise)


def reopen_for_revision(db: Session, *, ctx: RequestContext, req: WorkflowRequest, request_type: RequestType) -> int:
    """changes_requested / rejected -> draft in a new cycle. Does not commit."""
    stages = get_stages(db, request_type)
    current = WorkflowState.of(req, len(stages))
    new = current.apply(WorkflowEvent.revise)
    _compare_and_swap(db, req, expected=current, new=new, sla_deadline=None)
    cycle = increment_approval_cycle(db, req, request_type)
    tasks.complete_open_tasks(
        db,
        request_type=request_type,
        request_id=req.id,
        task_type=TaskType.changes_requested,
    )
    logger.info("workflow.reopened", request_id=req.request_id, cycle=cycle, actor=ctx.actor_label)
    return cycle


def list_approvals(
    db: Session,
    *,
    request_type: RequestType,
    request_id: int,
    current_only: bool,
) -> list[Approval]:
    stmt = select(Approval).where(Approval.request_type == request_type.value, Approval.request_id == request_id)
    if current_only:
        stmt = stmt.where(Approval.is_current_cycle.is_(True)).order_by(Approval.stage.asc())
    else:
        stmt = stmt.order_by(Approval.approval_cycle.desc(), Approval.stage.asc())
    return list(db.execute(stmt).scalars().all())
