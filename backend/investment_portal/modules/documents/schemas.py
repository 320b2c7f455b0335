from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    content_hash: str
    uploader_id: int
    request_type: str
    request_id: int
    external_file_id: str | None
    analysis_status: str
    analysis_result: dict | None
    analyzed_at: dt.datetime | None
    created_at: dt.datetime


class UploadError(BaseModel):
    file_name: str
    error: str


class UploadResponse(BaseModel):
    documents: list[DocumentOut]
    successful: int
    total: int
    errors: list[UploadError]
