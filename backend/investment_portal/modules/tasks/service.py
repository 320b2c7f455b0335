from __future__ import annotations

import datetime as dt

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.models import User
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.tasks.schemas import TaskUpdate
from investment_portal.shared.enums import RequestType, Role, TaskStatus, TaskType
from investment_portal.shared.exceptions import NotAuthorized, NotFound
from investment_portal.shared.utils import utcnow

OPEN_STATUSES = (TaskStatus.pending.value, TaskStatus.overdue.value)


def active_users_with_role(db: Session, role: Role) -> list[User]:
    stmt = select(User).where(User.role == role.value, User.is_active.is_(True)).order_by(User.id.asc())
    return list(db.execute(stmt).scalars().all())


def create_stage_tasks(
    db: Session,
    *,
    request_type: RequestType,
    request_id: int,
    request_label: str,
    stage: int,
    cycle: int,
    role: Role,
    due_date: dt.datetime | None,
) -> list[Task]:
    """One approval task per active user holding `role`."""
    tasks: list[Task] = []
    for user in active_users_with_role(db, role):
        task = Task(
            assignee_id=user.id,
            request_type=request_type.value,
            request_id=request_id,
            stage=stage,
            approval_cycle=cycle,
            task_type=TaskType.approval.value,
            title=f"Review {request_label}",
            description=f"Stage {stage} approval required ({role.value})",
            status=TaskStatus.pending.value,
            priority="high" if stage == 1 else "medium",
            due_date=due_date,
        )
        db.add(task)
        tasks.append(task)
    db.flush()
    return tasks


def create_changes_task(
    db: Session,
    *,
    assignee_id: int,
    request_type: RequestType,
    request_id: int,
    request_label: str,
    stage: int,
    cycle: int,
    comments: str | None,
) -> Task:
    task = Task(
        assignee_id=assignee_id,
        request_type=request_type.value,
        request_id=request_id,
        stage=stage,
        approval_cycle=cycle,
        task_type=TaskType.changes_requested.value,
        title=f"Changes requested on {request_label}",
        description=comments,
        status=TaskStatus.pending.value,
        priority="high",
    )
    db.add(task)
    db.flush()
    return task


def find_open_approval_task(
    db: Session,
    *,
    assignee_id: int,
    request_type: RequestType,
    request_id: int,
    stage: int,
    cycle: int,
) -> Task | None:
    stmt = select(Task).where(
        Task.assignee_id == assignee_id,
        Task.request_type == request_type.value,
        Task.request_id == request_id,
        Task.stage == stage,
        Task.approval_cycle == cycle,
        Task.task_type == TaskType.approval.value,
        Task.status.in_(OPEN_STATUSES),
    )
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def complete_open_tasks(
    db: Session,
    *,
    request_type: RequestType,
    request_id: int,
    stage: int | None = None,
    task_type: TaskType | None = None,
    assignee_id: int | None = None,
) -> int:
    stmt = update(Task).where(
        Task.request_type == request_type.value,
        Task.request_id == request_id,
        Task.status.in_(OPEN_STATUSES),
    )
    if stage is not None:
        stmt = stmt.where(Task.stage == stage)
    if task_type is not None:
        stmt = stmt.where(Task.task_type == task_type.value)
    if assignee_id is not None:
        stmt = stmt.where(Task.assignee_id == assignee_id)
    stmt = stmt.values(status=TaskStatus.completed.value, completed_at=utcnow()).execution_options(
        synchronize_session=False
    )
    return db.execute(stmt).rowcount or 0


def list_tasks_for_user(db: Session, *, user_id: int, status: TaskStatus | None = None) -> list[Task]:
    stmt = select(Task).where(Task.assignee_id == user_id)
    if status is not None:
        stmt = stmt.where(Task.status == status.value)
    stmt = stmt.order_by(Task.created_at.desc(), Task.id.desc())
    return list(db.execute(stmt).scalars().all())


def update_task(db: Session, *, ctx: RequestContext, task_id: int, patch: TaskUpdate) -> Task:
    actor = ctx.require_actor()
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    if task.assignee_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only update your own tasks")

    if patch.status is not None:
        task.status = patch.status.value
        task.completed_at = utcnow() if patch.status == TaskStatus.completed else None
    if patch.priority is not None:
        task.priority = patch.priority
    task.updated_by = ctx.actor_label
    db.commit()
    db.refresh(task)
    return task


def mark_overdue_tasks(db: Session, *, now: dt.datetime | None = None) -> int:
    """Flip pending tasks past their due date to overdue. Returns the number updated."""
    now = now or utcnow()
    stmt = (
        update(Task)
        .where(Task.status == TaskStatus.pending.value, Task.due_date.is_not(None), Task.due_date < now)
        .values(status=TaskStatus.overdue.value)
        .execution_options(synchronize_session=False)
    )
    count = db.execute(stmt).rowcount or 0
    db.commit()
    return count
