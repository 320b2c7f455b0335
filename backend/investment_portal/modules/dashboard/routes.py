from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.dashboard import service
from investment_portal.modules.dashboard.schemas import DashboardStats, RecentRequestOut

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def stats(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> DashboardStats:
    return service.get_stats(db, ctx=ctx)


@router.get("/recent-requests", response_model=list[RecentRequestOut])
def recent_requests(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    limit: int = Query(10, ge=1, le=100),
) -> list[RecentRequestOut]:
    return service.recent_requests(db, ctx=ctx, limit=limit)
