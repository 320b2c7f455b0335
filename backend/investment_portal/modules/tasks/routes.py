from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.tasks import service
from investment_portal.modules.tasks.schemas import TaskOut, TaskUpdate
from investment_portal.shared.enums import TaskStatus

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskOut])
def list_my_tasks(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    status: TaskStatus | None = Query(default=None),
) -> list[TaskOut]:
    return service.list_tasks_for_user(db, user_id=ctx.require_actor().user_id, status=status)


@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> TaskOut:
    return service.update_task(db, ctx=ctx, task_id=task_id, patch=payload)
