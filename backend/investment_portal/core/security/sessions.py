from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

import jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.core.config import settings
from investment_portal.core.db.models import User, UserSession
from investment_portal.shared.utils import as_utc, utcnow

SESSION_ALGORITHM = "HS256"


def create_session(db: Session, *, user: User) -> tuple[UserSession, str]:
    """Persist a session row and return it with the signed cookie token."""
    expires_at = utcnow() + dt.timedelta(hours=settings.session_ttl_hours)
    row = UserSession(
        session_id=uuid.uuid4().hex,
        user_id=user.id,
        expires_at=expires_at,
        created_by=str(user.id),
        updated_by=str(user.id),
    )
    db.add(row)
    db.flush()

    token = jwt.encode(
        {"sid": row.session_id, "sub": str(user.id), "exp": expires_at},
        settings.session_secret,
        algorithm=SESSION_ALGORITHM,
    )
    return row, token


def decode_session_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALGORITHM])


def resolve_session(db: Session, token: str) -> User | None:
    try:
        claims = decode_session_token(token)
    except jwt.PyJWTError:
        return None

    row = db.execute(select(UserSession).where(UserSession.session_id == str(claims.get("sid")))).scalar_one_or_none()
    if row is None or row.revoked_at is not None:
        return None
    if as_utc(row.expires_at) <= utcnow():
        return None
    if str(row.user_id) != str(claims.get("sub")):
        return None

    user = db.get(User, row.user_id)
    if user is None or not user.is_active:
        return None
    return user


def revoke_session(db: Session, token: str) -> bool:
    try:
        claims = decode_session_token(token)
    except jwt.PyJWTError:
        return False
    row = db.execute(select(UserSession).where(UserSession.session_id == str(claims.get("sid")))).scalar_one_or_none()
    if row is None or row.revoked_at is not None:
        return False
    row.revoked_at = utcnow()
    db.flush()
    return True
