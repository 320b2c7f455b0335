from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context, require_roles
from investment_portal.modules.workflow import service
from investment_portal.modules.workflow.schemas import ApprovalCreate, ApprovalOut, ApprovalResultOut
from investment_portal.shared.enums import RequestType, Role

router = APIRouter(prefix="/approvals", tags=["approvals"])

APPROVER_ROLES = [Role.manager, Role.committee_member, Role.finance]


@router.post("", response_model=ApprovalResultOut)
def process_approval(
    payload: ApprovalCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_roles(APPROVER_ROLES)),
) -> ApprovalResultOut:
    result = service.process_approval(
        db,
        ctx=ctx,
        request_type=payload.request_type,
        request_id=payload.request_id,
        action=payload.action,
        comments=payload.comments,
    )
    return ApprovalResultOut.model_validate(
        {"approval": result.approval, "request": result.request, "next_stage_tasks": result.next_stage_tasks},
        from_attributes=True,
    )


@router.get("/{request_type}/{request_id}", response_model=list[ApprovalOut])
def list_approvals(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[ApprovalOut]:
    return service.list_approvals(db, request_type=request_type, request_id=request_id, current_only=False)


@router.get("/{request_type}/{request_id}/current", response_model=list[ApprovalOut])
def list_current_cycle_approvals(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[ApprovalOut]:
    return service.list_approvals(db, request_type=request_type, request_id=request_id, current_only=True)


@router.get("/{request_type}/{request_id}/all", response_model=list[ApprovalOut])
def list_all_cycle_approvals(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[ApprovalOut]:
    return service.list_approvals(db, request_type=request_type, request_id=request_id, current_only=False)
