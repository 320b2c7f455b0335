from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from investment_portal.shared.enums import RequestType


class EnhancementType(str, Enum):
    professional = "professional"
    grammar = "grammar"
    clarity = "clarity"
    rewrite = "rewrite"


class QueryIn(BaseModel):
    query: str = Field(min_length=1, max_length=4000)


class InsightsOut(BaseModel):
    document_id: int
    insights: str


class DocumentQueryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int
    user_id: int
    query: str
    response: str
    created_at: dt.datetime


class CrossDocumentQueryIn(BaseModel):
    request_type: RequestType = RequestType.investment
    request_id: int
    query: str = Field(min_length=1, max_length=4000)
    document_ids: list[int] | None = None


class WebSearchQueryIn(BaseModel):
    request_type: RequestType
    request_id: int
    query: str = Field(min_length=1, max_length=4000)


class _HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_type: str
    request_id: int
    user_id: int
    query: str
    response: str
    response_id: str | None
    model: str | None
    input_tokens: int | None
    output_tokens: int | None
    total_tokens: int | None
    processing_time_ms: int | None
    created_at: dt.datetime


class CrossDocumentQueryOut(_HistoryOut):
    document_count: int


class WebSearchQueryOut(_HistoryOut):
    search_type: str


class EnhanceTextIn(BaseModel):
    text: str = Field(min_length=1, max_length=20000)
    type: EnhancementType = EnhancementType.professional


class EnhanceTextOut(BaseModel):
    enhanced_text: str
