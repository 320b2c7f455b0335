from __future__ import annotations

import json

from sqlalchemy.orm import Session
from starlette.requests import Request

from investment_portal.core.config import settings
from investment_portal.core.context import Actor
from investment_portal.core.db.models import User
from investment_portal.core.security.sessions import resolve_session
from investment_portal.shared.enums import Env, Role
from investment_portal.shared.exceptions import NotAuthenticated


def actor_from_user(user: User) -> Actor:
    return Actor(user_id=user.id, username=user.username, role=Role(user.role))


def _parse_dev_actor_header(db: Session, raw: str) -> Actor:
    """
    DEV ONLY: X-DEV-ACTOR header payload as JSON.

    Example:
      {"user_id": 3}
    """
    payload = json.loads(raw)
    user = db.get(User, int(payload["user_id"]))
    if user is None or not user.is_active:
        raise NotAuthenticated("Unknown dev actor")
    return actor_from_user(user)


def actor_from_request(request: Request, db: Session) -> Actor:
    # DEV shortcut (only when ENV=dev)
    if settings.env == Env.dev:
        raw = request.headers.get(settings.dev_actor_header)
        if raw:
            return _parse_dev_actor_header(db, raw)

    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise NotAuthenticated("Missing session")

    user = resolve_session(db, token)
    if user is None:
        raise NotAuthenticated("Invalid or expired session")
    return actor_from_user(user)
