from __future__ import annotations

from sqlalchemy import select

from investment_portal.core.config import settings
from investment_portal.core.db.models import AuditEvent
from investment_portal.shared.enums import Env, Role


def _register_body(**overrides):
    body = {
        "username": "newbie",
        "email": "newbie@example.com",
        "password": "long-enough-pw",
        "first_name": "New",
        "last_name": "Analyst",
    }
    body.update(overrides)
    return body


def test_login_sets_session_cookie_and_me_works(client, users, default_password):
    r = client.post("/api/auth/login", json={"username": "alice", "password": default_password})
    assert r.status_code == 200
    assert r.json()["username"] == "alice"
    assert settings.session_cookie_name in client.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["role"] == Role.analyst.value


def test_login_with_wrong_password(client, users):
    r = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
    assert r.status_code == 401


def test_inactive_user_cannot_login(client, make_user, default_password):
    make_user(Role.analyst, "ghost", is_active=False)

    r = client.post("/api/auth/login", json={"username": "ghost", "password": default_password})
    assert r.status_code == 401


def test_logout_revokes_the_session(client, users, default_password):
    client.post("/api/auth/login", json={"username": "alice", "password": default_password})
    token = client.cookies.get(settings.session_cookie_name)

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/me").status_code == 401

    client.cookies.set(settings.session_cookie_name, token)
    assert client.get("/api/auth/me").status_code == 401


def test_tampered_cookie_is_rejected(client, users):
    client.cookies.set(settings.session_cookie_name, "not-a-jwt")
    assert client.get("/api/auth/me").status_code == 401


def test_self_registration_creates_analyst_and_logs_in(client, db_session):
    r = client.post("/api/auth/register", json=_register_body())
    assert r.status_code == 201
    assert r.json()["role"] == "analyst"
    assert client.get("/api/auth/me").json()["username"] == "newbie"

    event = db_session.execute(select(AuditEvent).where(AuditEvent.action == "auth.user.register")).scalar_one()
    assert "password_hash" not in (event.after or {})


def test_self_registration_cannot_pick_elevated_role(client):
    r = client.post("/api/auth/register", json=_register_body(role="finance"))
    assert r.status_code == 403


def test_admin_can_register_elevated_role(client, users, auth_headers):
    r = client.post(
        "/api/auth/register",
        json=_register_body(username="fin2", email="fin2@example.com", role="finance"),
        headers=auth_headers(users["admin"]),
    )
    assert r.status_code == 201
    assert r.json()["role"] == "finance"


def test_duplicate_username_rejected(client, users):
    r = client.post("/api/auth/register", json=_register_body(username="alice"))
    assert r.status_code == 400


def test_dev_header_ignored_outside_dev(client, users, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "env", Env.prod)

    r = client.get("/api/auth/me", headers=auth_headers(users["analyst"]))
    assert r.status_code == 401
