from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.modules.notifications.models import Notification
from investment_portal.shared.enums import NotificationType, RequestType
from investment_portal.shared.exceptions import NotFound


def notify(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: NotificationType,
    related_type: RequestType | None = None,
    related_id: int | None = None,
    **extra: Any,
) -> Notification:
    n = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type.value,
        is_read=False,
        related_type=related_type.value if related_type else None,
        related_id=related_id,
        **extra,
    )
    db.add(n)
    db.flush()
    return n


def list_notifications(db: Session, *, user_id: int, unread_only: bool = False) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    return list(db.execute(stmt).scalars().all())


def _owned(db: Session, *, ctx: RequestContext, notification_id: int) -> Notification:
    actor = ctx.require_actor()
    n = db.get(Notification, notification_id)
    # Other users' notifications are reported as missing.
    if n is None or n.user_id != actor.user_id:
        raise NotFound("Notification not found")
    return n


def mark_read(db: Session, *, ctx: RequestContext, notification_id: int) -> Notification:
    n = _owned(db, ctx=ctx, notification_id=notification_id)
    n.is_read = True
    db.commit()
    db.refresh(n)
    return n


def delete_notification(db: Session, *, ctx: RequestContext, notification_id: int) -> None:
    n = _owned(db, ctx=ctx, notification_id=notification_id)
    db.delete(n)
    db.commit()
