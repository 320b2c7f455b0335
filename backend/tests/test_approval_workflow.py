from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from investment_portal.core.db.audit import get_audit_log
from investment_portal.modules.notifications.models import Notification
from investment_portal.modules.requests import service as requests_service
from investment_portal.modules.requests.schemas import CashRequestCreate, InvestmentCreate, InvestmentUpdate
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.workflow import service as workflow
from investment_portal.modules.workflow.models import Approval
from investment_portal.modules.workflow.states import WorkflowState
from investment_portal.shared.enums import (
    ApprovalAction,
    NotificationType,
    RequestStatus,
    RequestType,
    Role,
    TaskStatus,
    TaskType,
)
from investment_portal.shared.exceptions import Conflict, NotAuthorized, NotFound, ValidationError
from investment_portal.shared.utils import utcnow


def _investment(db: Session, ctx, *, submit: bool = True):
    data = InvestmentCreate(
        target_company="Acme Holdings",
        investment_type="equity",
        amount=Decimal("1500000"),
        expected_return=Decimal("12.5"),
        risk_level="medium",
        description="Growth equity position",
        submit=submit,
    )
    return requests_service.create_investment(db, ctx=ctx, data=data)


def _open_tasks(db: Session, request_id: int) -> list[Task]:
    return list(
        db.execute(
            select(Task).where(
                Task.request_type == RequestType.investment.value,
                Task.request_id == request_id,
                Task.status.in_([TaskStatus.pending.value, TaskStatus.overdue.value]),
            )
        )
        .scalars()
        .all()
    )


def _approve(db, ctx, req, action=ApprovalAction.approve, comments=None):
    return workflow.process_approval(
        db,
        ctx=ctx,
        request_type=RequestType.investment,
        request_id=req.id,
        action=action,
        comments=comments,
    )


def test_create_assigns_sequential_identifier_and_stays_draft(db_session, users, ctx_for):
    first = _investment(db_session, ctx_for(users["analyst"]), submit=False)
    second = _investment(db_session, ctx_for(users["analyst"]), submit=False)

    year = utcnow().year
    assert first.request_id == f"INV-{year}-0001"
    assert second.request_id == f"INV-{year}-0002"
    assert first.status == RequestStatus.draft.value
    assert first.current_approval_stage == 0
    assert first.current_approval_cycle == 1


def test_submit_creates_stage_one_tasks_for_managers(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))

    assert req.status == RequestStatus.pending.value
    assert req.current_approval_stage == 1
    assert req.sla_deadline is not None
    tasks = _open_tasks(db_session, req.id)
    assert [t.assignee_id for t in tasks] == [users["manager"].id]
    assert tasks[0].stage == 1

    notes = db_session.execute(
        select(Notification).where(Notification.user_id == users["manager"].id)
    ).scalars().all()
    assert [n.type for n in notes] == [NotificationType.approval_needed.value]


def test_only_requester_can_submit(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]), submit=False)

    with pytest.raises(NotAuthorized):
        workflow.submit_request(
            db_session, ctx=ctx_for(users["manager"]), request_type=RequestType.investment, request_id=req.id
        )


def test_stage_one_approval_moves_to_stage_two_with_task(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))

    result = _approve(db_session, ctx_for(users["manager"]), req)

    assert result.request.status == RequestStatus.pending.value
    assert result.request.current_approval_stage == 2
    assert result.approval.stage == 1
    assert result.next_stage_tasks == 1
    tasks = _open_tasks(db_session, req.id)
    assert [(t.assignee_id, t.stage) for t in tasks] == [(users["committee"].id, 2)]


def test_final_approval_marks_approved_without_new_tasks(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))
    _approve(db_session, ctx_for(users["manager"]), req)
    _approve(db_session, ctx_for(users["committee"]), req)

    result = _approve(db_session, ctx_for(users["finance"]), req)

    assert result.request.status == RequestStatus.approved.value
    assert result.request.current_approval_stage == 3
    assert result.next_stage_tasks == 0
    assert _open_tasks(db_session, req.id) == []
    current = workflow.list_approvals(
        db_session, request_type=RequestType.investment, request_id=req.id, current_only=True
    )
    assert [a.stage for a in current] == [1, 2, 3]


def test_reject_completes_tasks_and_notifies_earlier_approvers(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))
    _approve(db_session, ctx_for(users["manager"]), req)

    result = _approve(db_session, ctx_for(users["committee"]), req, ApprovalAction.reject, "Too concentrated")

    assert result.request.status == RequestStatus.rejected.value
    assert result.request.current_approval_stage == 2
    assert _open_tasks(db_session, req.id) == []

    higher = db_session.execute(
        select(Notification).where(
            Notification.user_id == users["manager"].id,
            Notification.type == NotificationType.higher_stage_action.value,
        )
    ).scalar_one()
    assert higher.previous_approver_stage == 1
    assert higher.higher_stage_action == "rejected"
    assert higher.higher_stage_comments == "Too concentrated"


def test_changes_then_modify_starts_new_cycle(db_session, users, ctx_for):
    analyst_ctx = ctx_for(users["analyst"])
    req = _investment(db_session, analyst_ctx)
    _approve(db_session, ctx_for(users["manager"]), req)
    _approve(db_session, ctx_for(users["committee"]), req, ApprovalAction.changes_requested, "Add projections")

    changes_task = db_session.execute(
        select(Task).where(Task.request_id == req.id, Task.task_type == TaskType.changes_requested.value)
    ).scalar_one()
    assert changes_task.assignee_id == users["analyst"].id

    revised = requests_service.modify_investment(
        db_session,
        ctx=analyst_ctx,
        request_id=req.id,
        patch=InvestmentUpdate(description="Now with projections"),
    )

    assert revised.status == RequestStatus.draft.value
    assert revised.current_approval_cycle == 2
    assert revised.current_approval_stage == 0
    assert revised.description == "Now with projections"
    history = workflow.list_approvals(
        db_session, request_type=RequestType.investment, request_id=req.id, current_only=False
    )
    assert history and all(not a.is_current_cycle for a in history)
    db_session.refresh(changes_task)
    assert changes_task.status == TaskStatus.completed.value

    resubmitted = workflow.submit_request(
        db_session, ctx=analyst_ctx, request_type=RequestType.investment, request_id=req.id
    )
    assert resubmitted.current_approval_stage == 1
    again = _approve(db_session, ctx_for(users["manager"]), req)
    assert again.approval.approval_cycle == 2
    assert again.request.current_approval_stage == 2


def test_modify_rejects_pending_request(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))

    with pytest.raises(ValidationError):
        requests_service.modify_investment(
            db_session, ctx=ctx_for(users["analyst"]), request_id=req.id, patch=InvestmentUpdate()
        )


def test_approver_without_task_gets_not_found(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))

    with pytest.raises(NotFound):
        _approve(db_session, ctx_for(users["finance"]), req)


def test_second_manager_cannot_decide_a_stage_already_decided(db_session, users, make_user, ctx_for):
    other_manager = make_user(Role.manager, "max")
    req = _investment(db_session, ctx_for(users["analyst"]))
    _approve(db_session, ctx_for(users["manager"]), req)

    with pytest.raises(NotFound):
        _approve(db_session, ctx_for(other_manager), req)


def test_compare_and_swap_detects_stale_state(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))
    expected = WorkflowState(RequestStatus.pending, 1, 3)
    moved = WorkflowState(RequestStatus.pending, 2, 3)

    workflow._compare_and_swap(db_session, req, expected=expected, new=moved)
    db_session.commit()

    with pytest.raises(Conflict):
        workflow._compare_and_swap(db_session, req, expected=expected, new=moved)


def test_one_current_approval_per_stage(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))
    _approve(db_session, ctx_for(users["manager"]), req)

    db_session.add(
        Approval(
            request_type=RequestType.investment.value,
            request_id=req.id,
            approval_cycle=1,
            stage=1,
            approver_id=users["admin"].id,
            status="approved",
            is_current_cycle=True,
        )
    )
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_increment_cycle_is_strictly_increasing(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]), submit=False)

    first = workflow.increment_approval_cycle(db_session, req, RequestType.investment)
    second = workflow.increment_approval_cycle(db_session, req, RequestType.investment)

    assert first == 2
    assert second == 3
    assert req.current_approval_stage == 0


def test_cash_request_two_stage_workflow(db_session, users, ctx_for):
    cash = requests_service.create_cash_request(
        db_session,
        ctx=ctx_for(users["analyst"]),
        data=CashRequestCreate(amount=Decimal("25000"), purpose="Capital call", payment_timeline="week", submit=True),
    )
    assert cash.request_id.startswith("CASH-")

    for approver in ("manager", "finance"):
        result = workflow.process_approval(
            db_session,
            ctx=ctx_for(users[approver]),
            request_type=RequestType.cash_request,
            request_id=cash.id,
            action=ApprovalAction.approve,
        )

    assert result.request.status == RequestStatus.approved.value
    assert result.request.current_approval_stage == 2


def test_soft_delete_blocked_once_approvals_exist(db_session, users, ctx_for):
    analyst_ctx = ctx_for(users["analyst"])
    req = _investment(db_session, analyst_ctx)
    _approve(db_session, ctx_for(users["manager"]), req)

    with pytest.raises(ValidationError):
        requests_service.soft_delete_investment(db_session, ctx=analyst_ctx, request_id=req.id)


def test_soft_delete_pending_without_approvals_closes_tasks(db_session, users, ctx_for):
    analyst_ctx = ctx_for(users["analyst"])
    req = _investment(db_session, analyst_ctx)

    requests_service.soft_delete_investment(db_session, ctx=analyst_ctx, request_id=req.id)

    assert _open_tasks(db_session, req.id) == []
    with pytest.raises(NotFound):
        requests_service.get_investment(db_session, request_id=req.id)


def test_every_transition_is_audited(db_session, users, ctx_for):
    req = _investment(db_session, ctx_for(users["analyst"]))
    _approve(db_session, ctx_for(users["manager"]), req, comments="Looks fine")

    trail = get_audit_log(db_session, entity_id=req.id, entity_type=RequestType.investment.value)

    assert [e.action for e in trail] == [
        "requests.investment.create",
        "workflow.request.submit",
        "workflow.approval.approved",
    ]
    approval_event = trail[-1]
    assert approval_event.actor_id == str(users["manager"].id)
    assert approval_event.before["current_approval_stage"] == 1
    assert approval_event.after["current_approval_stage"] == 2
    assert approval_event.request_id == "test-request"
