from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.notifications import service
from investment_portal.modules.notifications.schemas import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    unread: bool = Query(default=False),
) -> list[NotificationOut]:
    return service.list_notifications(db, user_id=ctx.require_actor().user_id, unread_only=unread)


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> NotificationOut:
    return service.mark_read(db, ctx=ctx, notification_id=notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> None:
    service.delete_notification(db, ctx=ctx, notification_id=notification_id)
