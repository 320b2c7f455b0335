from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from investment_portal.shared.enums import ApprovalAction, RequestType


class ApprovalCreate(BaseModel):
    request_type: RequestType
    request_id: int
    action: ApprovalAction
    comments: str | None = Field(default=None, max_length=5000)


class ApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_type: str
    request_id: int
    approval_cycle: int
    stage: int
    approver_id: int
    status: str
    comments: str | None
    approved_at: dt.datetime | None
    is_current_cycle: bool


class RequestStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: str
    status: str
    current_approval_stage: int
    current_approval_cycle: int


class ApprovalResultOut(BaseModel):
    approval: ApprovalOut
    request: RequestStateOut
    next_stage_tasks: int
