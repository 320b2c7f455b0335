from __future__ import annotations

from investment_portal.shared.enums import Role


def _payload(**overrides):
    body = {
        "target_company": "Northwind Credit",
        "investment_type": "debt",
        "amount": "1500000",
        "expected_return": "9.5",
        "risk_level": "low",
        "description": "Senior secured facility",
    }
    body.update(overrides)
    return body


def test_requires_authentication(client):
    r = client.get("/api/investments")
    assert r.status_code == 401


def test_request_id_header_is_echoed(client, users, auth_headers):
    r = client.get("/api/investments", headers={**auth_headers(users["analyst"]), "X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "abc-123"


def test_create_and_fetch_investment(client, users, auth_headers):
    headers = auth_headers(users["analyst"])

    r = client.post("/api/investments", json=_payload(), headers=headers)
    assert r.status_code == 201
    body = r.json()
    assert body["request_id"].startswith("INV-")
    assert body["status"] == "draft"
    assert body["current_approval_cycle"] == 1

    r = client.get(f"/api/investments/{body['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["target_company"] == "Northwind Credit"


def test_create_rejects_inverted_return_range(client, users, auth_headers):
    r = client.post(
        "/api/investments",
        json=_payload(expected_return_min="12", expected_return_max="8"),
        headers=auth_headers(users["analyst"]),
    )
    assert r.status_code == 422


def test_analysts_only_list_their_own(client, users, make_user, auth_headers):
    other = make_user(Role.analyst, "bob")
    client.post("/api/investments", json=_payload(), headers=auth_headers(users["analyst"]))
    client.post("/api/investments", json=_payload(target_company="Other Co"), headers=auth_headers(other))

    r = client.get("/api/investments", headers=auth_headers(other))
    assert r.status_code == 200
    assert [i["target_company"] for i in r.json()["items"]] == ["Other Co"]

    r = client.get("/api/investments", headers=auth_headers(users["admin"]))
    assert len(r.json()["items"]) == 2


def test_approver_sees_requests_assigned_to_them(client, users, auth_headers):
    client.post("/api/investments", json=_payload(submit=True), headers=auth_headers(users["analyst"]))

    manager_view = client.get("/api/investments", headers=auth_headers(users["manager"])).json()["items"]
    finance_view = client.get("/api/investments", headers=auth_headers(users["finance"])).json()["items"]

    assert len(manager_view) == 1
    assert finance_view == []


def test_update_only_while_draft(client, users, auth_headers):
    headers = auth_headers(users["analyst"])
    created = client.post("/api/investments", json=_payload(), headers=headers).json()

    r = client.put(f"/api/investments/{created['id']}", json={"amount": "2000000"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["amount"] in ("2000000.00", "2000000")

    client.post(f"/api/investments/{created['id']}/submit", headers=headers)
    r = client.put(f"/api/investments/{created['id']}", json={"amount": "10"}, headers=headers)
    assert r.status_code == 400


def test_other_analyst_cannot_edit(client, users, make_user, auth_headers):
    created = client.post("/api/investments", json=_payload(), headers=auth_headers(users["analyst"])).json()
    intruder = make_user(Role.analyst, "eve")

    r = client.put(f"/api/investments/{created['id']}", json={"amount": "1"}, headers=auth_headers(intruder))
    assert r.status_code == 403


def test_full_approval_over_http(client, users, auth_headers):
    created = client.post(
        "/api/investments", json=_payload(submit=True), headers=auth_headers(users["analyst"])
    ).json()
    assert created["status"] == "pending"

    for role in ("manager", "committee", "finance"):
        r = client.post(
            "/api/approvals",
            json={"request_type": "investment", "request_id": created["id"], "action": "approve"},
            headers=auth_headers(users[role]),
        )
        assert r.status_code == 200, r.text

    assert r.json()["request"]["status"] == "approved"
    assert r.json()["next_stage_tasks"] == 0

    current = client.get(
        f"/api/approvals/investment/{created['id']}/current", headers=auth_headers(users["analyst"])
    ).json()
    assert [a["stage"] for a in current] == [1, 2, 3]


def test_analyst_cannot_approve(client, users, auth_headers):
    created = client.post(
        "/api/investments", json=_payload(submit=True), headers=auth_headers(users["analyst"])
    ).json()

    r = client.post(
        "/api/approvals",
        json={"request_type": "investment", "request_id": created["id"], "action": "approve"},
        headers=auth_headers(users["analyst"]),
    )
    assert r.status_code == 403


def test_wrong_stage_approver_gets_404(client, users, auth_headers):
    created = client.post(
        "/api/investments", json=_payload(submit=True), headers=auth_headers(users["analyst"])
    ).json()

    r = client.post(
        "/api/approvals",
        json={"request_type": "investment", "request_id": created["id"], "action": "approve"},
        headers=auth_headers(users["finance"]),
    )
    assert r.status_code == 404


def test_modify_after_changes_requested(client, users, auth_headers):
    analyst = auth_headers(users["analyst"])
    created = client.post("/api/investments", json=_payload(submit=True), headers=analyst).json()
    client.post(
        "/api/approvals",
        json={
            "request_type": "investment",
            "request_id": created["id"],
            "action": "changes_requested",
            "comments": "Need covenants",
        },
        headers=auth_headers(users["manager"]),
    )

    r = client.put(f"/api/investments/{created['id']}/modify", json={"description": "With covenants"}, headers=analyst)
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "draft"
    assert body["current_approval_cycle"] == 2

    history = client.get(f"/api/approvals/investment/{created['id']}/all", headers=analyst).json()
    assert [(a["status"], a["is_current_cycle"]) for a in history] == [("changes_requested", False)]


def test_delete_draft_then_404(client, users, auth_headers):
    headers = auth_headers(users["analyst"])
    created = client.post("/api/investments", json=_payload(), headers=headers).json()

    assert client.delete(f"/api/investments/{created['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/investments/{created['id']}", headers=headers).status_code == 404


def test_cash_request_listing_and_submit(client, users, auth_headers):
    headers = auth_headers(users["analyst"])
    r = client.post(
        "/api/cash-requests",
        json={"amount": "50000", "purpose": "Drawdown", "payment_timeline": "month"},
        headers=headers,
    )
    assert r.status_code == 201
    cash = r.json()
    assert cash["request_id"].startswith("CASH-")

    r = client.post(f"/api/cash-requests/{cash['id']}/submit", headers=headers)
    assert r.json()["status"] == "pending"

    pending = client.get("/api/cash-requests?status=pending&my=true", headers=headers).json()["items"]
    assert [c["id"] for c in pending] == [cash["id"]]


def test_cash_request_with_unknown_investment(client, users, auth_headers):
    r = client.post(
        "/api/cash-requests",
        json={"investment_id": 999, "amount": "10", "purpose": "Fees", "payment_timeline": "immediate"},
        headers=auth_headers(users["analyst"]),
    )
    assert r.status_code == 404


def test_cash_request_revised_after_changes_requested(client, users, auth_headers):
    analyst = auth_headers(users["analyst"])
    cash = client.post(
        "/api/cash-requests",
        json={"amount": "50000", "purpose": "Drawdown", "payment_timeline": "month", "submit": True},
        headers=analyst,
    ).json()
    client.post(
        "/api/approvals",
        json={
            "request_type": "cash_request",
            "request_id": cash["id"],
            "action": "changes_requested",
            "comments": "Split the drawdown",
        },
        headers=auth_headers(users["manager"]),
    )

    # Returned requests cannot be resubmitted as is.
    assert client.post(f"/api/cash-requests/{cash['id']}/submit", headers=analyst).status_code == 400

    r = client.put(f"/api/cash-requests/{cash['id']}/modify", json={"amount": "25000"}, headers=analyst)
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["status"], body["current_approval_stage"], body["current_approval_cycle"]) == ("draft", 0, 2)
    assert body["amount"] in ("25000", "25000.00")

    assert client.post(f"/api/cash-requests/{cash['id']}/submit", headers=analyst).json()["status"] == "pending"
    for role in ("manager", "finance"):
        r = client.post(
            "/api/approvals",
            json={"request_type": "cash_request", "request_id": cash["id"], "action": "approve"},
            headers=auth_headers(users[role]),
        )
        assert r.status_code == 200, r.text
    assert r.json()["request"]["status"] == "approved"

    history = client.get(f"/api/approvals/cash_request/{cash['id']}/all", headers=analyst).json()
    assert sorted((a["approval_cycle"], a["is_current_cycle"]) for a in history) == [(1, False), (2, True), (2, True)]


def test_cash_modify_rejected_while_draft_or_for_others(client, users, make_user, auth_headers):
    analyst = auth_headers(users["analyst"])
    cash = client.post(
        "/api/cash-requests",
        json={"amount": "50000", "purpose": "Drawdown", "payment_timeline": "month"},
        headers=analyst,
    ).json()

    assert client.put(f"/api/cash-requests/{cash['id']}/modify", json={}, headers=analyst).status_code == 400
    other = auth_headers(make_user(Role.analyst, "bob"))
    assert client.put(f"/api/cash-requests/{cash['id']}/modify", json={}, headers=other).status_code == 403
