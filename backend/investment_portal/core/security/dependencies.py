from __future__ import annotations

from collections.abc import Callable, Iterable

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from investment_portal.core.context import Actor, RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.middleware.request_id import request_id_from
from investment_portal.core.security.auth import actor_from_request
from investment_portal.shared.enums import Role
from investment_portal.shared.exceptions import NotAuthenticated

logger = structlog.get_logger(__name__)


def get_actor(request: Request, db: Session = Depends(get_db)) -> Actor:
    try:
        actor = actor_from_request(request, db)
    except NotAuthenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    except (ValueError, KeyError):
        logger.warning("auth.actor_header_invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    structlog.contextvars.bind_contextvars(actor_id=actor.user_id, actor_role=actor.role.value)
    return actor


def get_context(request: Request, actor: Actor = Depends(get_actor)) -> RequestContext:
    return RequestContext(actor=actor, request_id=request_id_from(request))


def require_roles(required: Iterable[Role]) -> Callable[[RequestContext], RequestContext]:
    required_set = set(required)

    def _dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        actor = ctx.require_actor()
        if actor.is_admin:
            return ctx
        if actor.role not in required_set:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return ctx

    return _dep
