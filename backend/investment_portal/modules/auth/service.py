from __future__ import annotations

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.core.db.models import User
from investment_portal.core.security.passwords import hash_password, verify_password
from investment_portal.core.security.sessions import create_session, revoke_session
from investment_portal.modules.auth.schemas import LoginRequest, RegisterRequest
from investment_portal.shared.enums import Role
from investment_portal.shared.exceptions import NotAuthenticated, NotAuthorized, ValidationError
from investment_portal.shared.utils import sa_model_to_dict

logger = structlog.get_logger(__name__)

SECRET_COLUMNS = {"password_hash"}


def authenticate(db: Session, *, data: LoginRequest) -> tuple[User, str]:
    """Check credentials and open a session. Returns the user and the cookie token."""
    user = db.execute(select(User).where(User.username == data.username)).scalar_one_or_none()
    if user is None or not user.is_active or not verify_password(data.password, user.password_hash):
        logger.info("auth.login_failed", username=data.username)
        raise NotAuthenticated("Invalid credentials")

    _, token = create_session(db, user=user)
    db.commit()
    logger.info("auth.login", user_id=user.id)
    return user, token


def register(db: Session, *, ctx: RequestContext | None, data: RegisterRequest) -> User:
    # Self-registration always yields an analyst; other roles need an admin.
    if data.role != Role.analyst and (ctx is None or ctx.actor is None or not ctx.actor.is_admin):
        raise NotAuthorized("Only administrators can create users with elevated roles")

    clash = db.execute(
        select(User.id).where(or_(User.username == data.username, User.email == data.email))
    ).first()
    if clash:
        raise ValidationError("Username or email already registered")

    system_ctx = ctx or RequestContext.system("self-registration")
    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role.value,
        department=data.department,
        is_active=True,
        created_by=system_ctx.actor_label,
        updated_by=system_ctx.actor_label,
    )
    db.add(user)
    db.flush()
    write_audit_event(
        db,
        ctx=system_ctx,
        action="auth.user.register",
        entity_type="user",
        entity_id=user.id,
        before=None,
        after=sa_model_to_dict(user, exclude=SECRET_COLUMNS),
    )
    db.commit()
    db.refresh(user)
    return user


def logout(db: Session, *, token: str | None) -> bool:
    if not token:
        return False
    revoked = revoke_session(db, token)
    db.commit()
    return revoked
