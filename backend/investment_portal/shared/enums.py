from __future__ import annotations

from enum import Enum


class Env(str, Enum):
    dev = "dev"
    prod = "prod"
    test = "test"


class Role(str, Enum):
    analyst = "analyst"
    manager = "manager"
    committee_member = "committee_member"
    finance = "finance"
    admin = "admin"


class RequestType(str, Enum):
    investment = "investment"
    cash_request = "cash_request"


class InvestmentType(str, Enum):
    equity = "equity"
    debt = "debt"
    real_estate = "real_estate"
    alternative = "alternative"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class PaymentTimeline(str, Enum):
    immediate = "immediate"
    week = "week"
    month = "month"
    scheduled = "scheduled"


class RequestStatus(str, Enum):
    draft = "draft"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    changes_requested = "changes_requested"


class ApprovalAction(str, Enum):
    approve = "approve"
    reject = "reject"
    changes_requested = "changes_requested"


class ApprovalOutcome(str, Enum):
    approved = "approved"
    rejected = "rejected"
    changes_requested = "changes_requested"


class TaskType(str, Enum):
    approval = "approval"
    changes_requested = "changes_requested"


class TaskStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    overdue = "overdue"


class NotificationType(str, Enum):
    task_assigned = "task_assigned"
    approval_needed = "approval_needed"
    sla_warning = "sla_warning"
    status_update = "status_update"
    higher_stage_action = "higher_stage_action"


class AnalysisStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class JobStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class JobStep(str, Enum):
    queued = "queued"
    preparing = "preparing"
    uploading = "uploading"
    analyzing = "analyzing"
    generating_summary = "generating_summary"
    generating_insights = "generating_insights"
    completed = "completed"


class JobPriority(str, Enum):
    low = "low"
    normal = "normal"
    high = "high"


class TemplateType(str, Enum):
    investment = "investment"
    rationale = "rationale"


class RationaleType(str, Enum):
    manual = "manual"
    ai_generated = "ai_generated"
