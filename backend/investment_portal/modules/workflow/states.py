from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from investment_portal.shared.enums import ApprovalAction, RequestStatus
from investment_portal.shared.exceptions import ValidationError


class WorkflowEvent(str, Enum):
    submit = "submit"
    approve = "approve"
    reject = "reject"
    request_changes = "request_changes"
    revise = "revise"


class InvalidTransition(ValidationError):
    """Raised when an event is not allowed from the current workflow state."""


# (status, event) -> status. `approve` from the last stage is promoted to approved in WorkflowState.apply.
TRANSITIONS: dict[tuple[RequestStatus, WorkflowEvent], RequestStatus] = {
    (RequestStatus.draft, WorkflowEvent.submit): RequestStatus.pending,
    (RequestStatus.pending, WorkflowEvent.approve): RequestStatus.pending,
    (RequestStatus.pending, WorkflowEvent.reject): RequestStatus.rejected,
    (RequestStatus.pending, WorkflowEvent.request_changes): RequestStatus.changes_requested,
    (RequestStatus.changes_requested, WorkflowEvent.revise): RequestStatus.draft,
    (RequestStatus.rejected, WorkflowEvent.revise): RequestStatus.draft,
}

EVENT_FOR_ACTION: dict[ApprovalAction, WorkflowEvent] = {
    ApprovalAction.approve: WorkflowEvent.approve,
    ApprovalAction.reject: WorkflowEvent.reject,
    ApprovalAction.changes_requested: WorkflowEvent.request_changes,
}


@dataclass(frozen=True)
class WorkflowState:
    """
    Status plus stage number of a request within its workflow.

    Stage 0 means the request is not in the workflow (draft). While pending,
    the stage is the one awaiting a decision (1..stage_count). Approved always
    sits at stage_count; rejected and changes_requested keep the stage where
    the decision was taken.
    """

    status: RequestStatus
    stage: int
    stage_count: int

    def __post_init__(self) -> None:
        if self.stage_count < 1:
            raise ValidationError("workflow must have at least one stage")
        if self.status == RequestStatus.draft:
            ok = self.stage == 0
        elif self.status == RequestStatus.approved:
            ok = self.stage == self.stage_count
        else:
            ok = 1 <= self.stage <= self.stage_count
        if not ok:
            raise ValidationError(
                f"illegal workflow state: status={self.status.value} stage={self.stage} of {self.stage_count}"
            )

    @classmethod
    def of(cls, request, stage_count: int) -> "WorkflowState":
        return cls(
            status=RequestStatus(request.status),
            stage=int(request.current_approval_stage or 0),
            stage_count=stage_count,
        )

    @property
    def is_final_stage(self) -> bool:
        return self.stage == self.stage_count

    def can(self, event: WorkflowEvent) -> bool:
        return (self.status, event) in TRANSITIONS

    def apply(self, event: WorkflowEvent) -> "WorkflowState":
        target = TRANSITIONS.get((self.status, event))
        if target is None:
            raise InvalidTransition(f"Cannot {event.value} a request in status '{self.status.value}'")

        if event == WorkflowEvent.submit:
            return WorkflowState(target, 1, self.stage_count)
        if event == WorkflowEvent.approve:
            if self.is_final_stage:
                return WorkflowState(RequestStatus.approved, self.stage_count, self.stage_count)
            return WorkflowState(target, self.stage + 1, self.stage_count)
        if event == WorkflowEvent.revise:
            return WorkflowState(target, 0, self.stage_count)
        return WorkflowState(target, self.stage, self.stage_count)
