from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool
    related_type: str | None
    related_id: int | None
    previous_approver_stage: int | None
    higher_stage_action: str | None
    higher_stage_role: str | None
    higher_stage_comments: str | None
    investment_summary: dict | None
    created_at: dt.datetime
