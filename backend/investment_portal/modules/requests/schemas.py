from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from investment_portal.shared.enums import InvestmentType, PaymentTimeline, RiskLevel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    limit: int
    offset: int


class InvestmentCreate(BaseModel):
    target_company: str = Field(min_length=1, max_length=300)
    investment_type: InvestmentType
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    expected_return: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_min: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_max: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_type: str | None = Field(default=None, max_length=16)
    description: str | None = None
    risk_level: RiskLevel
    submit: bool = False

    @model_validator(mode="after")
    def _return_range(self) -> "InvestmentCreate":
        lo, hi = self.expected_return_min, self.expected_return_max
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("expected_return_min must not exceed expected_return_max")
        return self


class InvestmentUpdate(BaseModel):
    target_company: str | None = Field(default=None, min_length=1, max_length=300)
    investment_type: InvestmentType | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=15, decimal_places=2)
    expected_return: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_min: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_max: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    expected_return_type: str | None = Field(default=None, max_length=16)
    description: str | None = None
    enhanced_description: str | None = None
    risk_level: RiskLevel | None = None


class InvestmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: str
    requester_id: int
    target_company: str
    investment_type: str
    amount: Decimal
    expected_return: Decimal | None
    expected_return_min: Decimal | None
    expected_return_max: Decimal | None
    expected_return_type: str | None
    description: str | None
    enhanced_description: str | None
    risk_level: str
    status: str
    current_approval_stage: int
    current_approval_cycle: int
    sla_deadline: dt.datetime | None
    created_at: dt.datetime
    updated_at: dt.datetime


class CashRequestCreate(BaseModel):
    investment_id: int | None = None
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    purpose: str = Field(min_length=3)
    payment_timeline: PaymentTimeline
    submit: bool = False


class CashRequestUpdate(BaseModel):
    investment_id: int | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=15, decimal_places=2)
    purpose: str | None = Field(default=None, min_length=3)
    payment_timeline: PaymentTimeline | None = None


class CashRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: str
    requester_id: int
    investment_id: int | None
    amount: Decimal
    purpose: str
    payment_timeline: str
    status: str
    current_approval_stage: int
    current_approval_cycle: int
    sla_deadline: dt.datetime | None
    created_at: dt.datetime
    updated_at: dt.datetime
