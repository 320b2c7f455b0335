from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.modules.workflow.models import ApprovalWorkflowStage
from investment_portal.shared.enums import RequestType, Role


@dataclass(frozen=True)
class StageDefinition:
    stage: int
    role: Role
    sla_hours: int


DEFAULT_STAGES: dict[RequestType, tuple[StageDefinition, ...]] = {
    RequestType.investment: (
        StageDefinition(1, Role.manager, 48),
        StageDefinition(2, Role.committee_member, 72),
        StageDefinition(3, Role.finance, 48),
    ),
    RequestType.cash_request: (
        StageDefinition(1, Role.manager, 24),
        StageDefinition(2, Role.finance, 24),
    ),
}


def get_stages(db: Session, workflow_type: RequestType) -> list[StageDefinition]:
    """Active stages for `workflow_type`, falling back to the built-in defaults."""
    rows = (
        db.execute(
            select(ApprovalWorkflowStage)
            .where(
                ApprovalWorkflowStage.workflow_type == workflow_type.value,
                ApprovalWorkflowStage.is_active.is_(True),
            )
            .order_by(ApprovalWorkflowStage.stage.asc())
        )
        .scalars()
        .all()
    )
    if not rows:
        return list(DEFAULT_STAGES[workflow_type])
    # Renumber so configured stages are always contiguous from 1.
    return [StageDefinition(i, Role(r.approver_role), r.sla_hours) for i, r in enumerate(rows, start=1)]


def seed_default_stages(db: Session) -> int:
    created = 0
    for workflow_type, stages in DEFAULT_STAGES.items():
        exists = db.execute(
            select(ApprovalWorkflowStage.id).where(ApprovalWorkflowStage.workflow_type == workflow_type.value).limit(1)
        ).first()
        if exists:
            continue
        for s in stages:
            db.add(
                ApprovalWorkflowStage(
                    workflow_type=workflow_type.value,
                    stage=s.stage,
                    approver_role=s.role.value,
                    sla_hours=s.sla_hours,
                    is_active=True,
                    created_by="seed",
                    updated_by="seed",
                )
            )
            created += 1
    db.commit()
    return created
