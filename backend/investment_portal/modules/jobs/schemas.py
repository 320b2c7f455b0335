from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_type: str
    status: str
    current_step: str
    step_progress: int
    current_step_number: int
    total_steps: int
    document_id: int | None
    priority: str
    attempts: int
    max_attempts: int
    error_message: str | None
    created_at: dt.datetime
    started_at: dt.datetime | None
    completed_at: dt.datetime | None


class JobStatusOut(BaseModel):
    has_job: bool
    job: JobOut | None
    needs_manual_trigger: bool


class PrepareAIOut(BaseModel):
    message: str
    job: JobOut | None


class DocumentAnalysisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_name: str
    analysis_status: str
    analysis_result: dict | None
    analyzed_at: dt.datetime | None


class BatchAnalyzeIn(BaseModel):
    document_ids: list[int] = Field(min_length=1, max_length=100)


class BatchAnalyzeItem(BaseModel):
    document_id: int
    outcome: str
    job: JobOut | None


class BatchAnalyzeOut(BaseModel):
    message: str
    total: int
    results: list[BatchAnalyzeItem]
