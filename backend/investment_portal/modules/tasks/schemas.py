from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict

from investment_portal.shared.enums import TaskStatus


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignee_id: int
    request_type: str
    request_id: int
    stage: int
    approval_cycle: int
    task_type: str
    title: str
    description: str | None
    status: str
    priority: str
    due_date: dt.datetime | None
    completed_at: dt.datetime | None
    created_at: dt.datetime


class TaskUpdate(BaseModel):
    status: TaskStatus | None = None
    priority: str | None = None
