from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from investment_portal.core.config import settings
from investment_portal.core.context import Actor, RequestContext
from investment_portal.core.db.models import User
from investment_portal.core.db.session import get_db
from investment_portal.core.middleware.request_id import request_id_from
from investment_portal.core.security.auth import actor_from_request
from investment_portal.core.security.dependencies import get_actor
from investment_portal.modules.auth import service
from investment_portal.modules.auth.schemas import LoginRequest, RegisterRequest, UserOut
from investment_portal.shared.exceptions import NotAuthenticated, NotFound

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@router.post("/login", response_model=UserOut)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> UserOut:
    user, token = service.authenticate(db, data=payload)
    _set_session_cookie(response, token)
    return user


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> UserOut:
    try:
        ctx: RequestContext | None = RequestContext(actor=actor_from_request(request, db), request_id=request_id_from(request))
    except (NotAuthenticated, ValueError, KeyError):
        ctx = None
    user = service.register(db, ctx=ctx, data=payload)
    if ctx is None:
        # Self-registration logs the new user straight in.
        _, token = service.authenticate(db, data=LoginRequest(username=payload.username, password=payload.password))
        _set_session_cookie(response, token)
    return user


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)) -> dict[str, str]:
    service.logout(db, token=request.cookies.get(settings.session_cookie_name))
    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserOut)
def me(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> UserOut:
    user = db.get(User, actor.user_id)
    if user is None:
        raise NotFound("User not found")
    return user
