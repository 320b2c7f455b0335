from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator

from investment_portal.shared.enums import InvestmentType, TemplateType


class TemplateSection(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    word_limit: int | None = Field(default=None, gt=0)


class TemplateData(BaseModel):
    sections: list[TemplateSection] = Field(min_length=1)


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: TemplateType
    investment_type: InvestmentType | None = None
    template_data: TemplateData


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    investment_type: InvestmentType | None = None
    template_data: TemplateData | None = None
    is_active: bool | None = None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: str
    investment_type: str | None
    template_data: dict
    creator_id: int | None
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class RationaleCreate(BaseModel):
    content: str = Field(min_length=1)
    template_id: int | None = None

    @field_validator("content")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        return v


class RationaleUpdate(BaseModel):
    content: str = Field(min_length=1)


class RationaleGenerate(BaseModel):
    template_id: int


class RationaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    investment_id: int
    content: str
    type: str
    template_id: int | None
    author_id: int | None
    created_at: dt.datetime
    updated_at: dt.datetime
