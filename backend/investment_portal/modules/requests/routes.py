from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.requests import service
from investment_portal.modules.requests.schemas import (
    CashRequestCreate,
    CashRequestOut,
    CashRequestUpdate,
    InvestmentCreate,
    InvestmentOut,
    InvestmentUpdate,
    Page,
)
from investment_portal.modules.workflow import service as workflow
from investment_portal.shared.enums import RequestType

router = APIRouter(tags=["requests"])


def _limit(limit: int = Query(50, ge=1, le=200)) -> int:
    return limit


def _offset(offset: int = Query(0, ge=0, le=10_000)) -> int:
    return offset


@router.post("/investments", response_model=InvestmentOut, status_code=status.HTTP_201_CREATED)
def create_investment(
    payload: InvestmentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> InvestmentOut:
    return service.create_investment(db, ctx=ctx, data=payload)


@router.get("/investments", response_model=Page[InvestmentOut])
def list_investments(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    status: str | None = Query(default=None),
    limit: int = Depends(_limit),
    offset: int = Depends(_offset),
) -> Page[InvestmentOut]:
    items = service.list_investments(db, ctx=ctx, status=status, limit=limit, offset=offset)
    return Page(items=items, limit=limit, offset=offset)


@router.get("/investments/{request_id}", response_model=InvestmentOut)
def get_investment(
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> InvestmentOut:
    return service.get_investment(db, request_id=request_id)


@router.put("/investments/{request_id}", response_model=InvestmentOut)
def update_investment(
    request_id: int,
    payload: InvestmentUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> InvestmentOut:
    return service.update_investment(db, ctx=ctx, request_id=request_id, patch=payload)


@router.post("/investments/{request_id}/submit", response_model=InvestmentOut)
def submit_investment(
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> InvestmentOut:
    return workflow.submit_request(db, ctx=ctx, request_type=RequestType.investment, request_id=request_id)


@router.put("/investments/{request_id}/modify", response_model=InvestmentOut)
def modify_investment(
    request_id: int,
    payload: InvestmentUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> InvestmentOut:
    return service.modify_investment(db, ctx=ctx, request_id=request_id, patch=payload)


@router.delete("/investments/{request_id}")
def delete_investment(
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.soft_delete_investment(db, ctx=ctx, request_id=request_id)
    return {"message": "Investment request deleted successfully"}


@router.post("/cash-requests", response_model=CashRequestOut, status_code=status.HTTP_201_CREATED)
def create_cash_request(
    payload: CashRequestCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> CashRequestOut:
    return service.create_cash_request(db, ctx=ctx, data=payload)


@router.get("/cash-requests", response_model=Page[CashRequestOut])
def list_cash_requests(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    status: str | None = Query(default=None),
    my: bool = Query(default=False),
    limit: int = Depends(_limit),
    offset: int = Depends(_offset),
) -> Page[CashRequestOut]:
    items = service.list_cash_requests(db, ctx=ctx, status=status, mine=my, limit=limit, offset=offset)
    return Page(items=items, limit=limit, offset=offset)


@router.get("/cash-requests/{request_id}", response_model=CashRequestOut)
def get_cash_request(
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> CashRequestOut:
    return service.get_cash_request(db, request_id=request_id)


@router.post("/cash-requests/{request_id}/submit", response_model=CashRequestOut)
def submit_cash_request(
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> CashRequestOut:
    return workflow.submit_request(db, ctx=ctx, request_type=RequestType.cash_request, request_id=request_id)


@router.put("/cash-requests/{request_id}/modify", response_model=CashRequestOut)
def modify_cash_request(
    request_id: int,
    payload: CashRequestUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> CashRequestOut:
    return service.modify_cash_request(db, ctx=ctx, request_id=request_id, patch=payload)
