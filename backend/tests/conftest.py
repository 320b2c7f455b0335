from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable, Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Make `backend/` importable regardless of pytest import mode.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from investment_portal.core.config import settings
from investment_portal.core.context import RequestContext
from investment_portal.core.db.base import Base
from investment_portal.core.db.models import User
from investment_portal.core.db.session import get_db, import_model_modules
from investment_portal.core.security.auth import actor_from_user
from investment_portal.core.security.passwords import hash_password
from investment_portal.main import create_app
from investment_portal.modules.requests.models import InvestmentRequest
from investment_portal.modules.requests.schemas import InvestmentCreate
from investment_portal.modules.requests.service import create_investment
from investment_portal.shared.enums import Env, Role

# Ensure model modules are imported so Base.metadata is complete.
import_model_modules()

DEFAULT_PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "env", Env.dev)
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "llm_service_api_key", "test-key")
    monkeypatch.setattr(settings, "llm_service_url", "http://llm.test")


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def session_factory(db_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False, class_=Session)


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def app(db_session: Session):
    app = create_app()

    def _override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return app


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: Role, username: str | None = None, *, is_active: bool = True) -> User:
        counter["n"] += 1
        name = username or f"{role.value}{counter['n']}"
        user = User(
            username=name,
            email=f"{name}@example.com",
            password_hash=hash_password(DEFAULT_PASSWORD),
            first_name=name.capitalize(),
            last_name="Tester",
            role=role.value,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def users(make_user) -> dict[str, User]:
    return {
        "analyst": make_user(Role.analyst, "alice"),
        "manager": make_user(Role.manager, "mark"),
        "committee": make_user(Role.committee_member, "carol"),
        "finance": make_user(Role.finance, "fiona"),
        "admin": make_user(Role.admin, "root"),
    }


def _auth_headers(user: User) -> dict[str, str]:
    return {settings.dev_actor_header: json.dumps({"user_id": user.id})}


def _ctx_for(user: User) -> RequestContext:
    return RequestContext(actor=actor_from_user(user), request_id="test-request")


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    return _auth_headers


@pytest.fixture()
def ctx_for() -> Callable[[User], RequestContext]:
    return _ctx_for


@pytest.fixture()
def default_password() -> str:
    return DEFAULT_PASSWORD


@pytest.fixture()
def make_investment(db_session: Session, users) -> Callable[..., InvestmentRequest]:
    def _make(requester: User | None = None, *, amount: str = "1500000", risk_level: str = "medium", submit: bool = False):
        data = InvestmentCreate(
            target_company="Acme Holdings",
            investment_type="equity",
            amount=Decimal(amount),
            expected_return=Decimal("12.5"),
            risk_level=risk_level,
            description="Growth equity position",
            submit=submit,
        )
        return create_investment(db_session, ctx=_ctx_for(requester or users["analyst"]), data=data)

    return _make
