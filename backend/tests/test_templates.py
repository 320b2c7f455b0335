from __future__ import annotations

from investment_portal.modules.templates.models import Template
from investment_portal.modules.templates.service import build_rationale_prompt
from investment_portal.services.llm_service import LLMServiceResult, get_llm_service_client
from investment_portal.shared.enums import Role

TEMPLATE_BODY = {
    "name": "IC memo",
    "type": "rationale",
    "investment_type": "equity",
    "template_data": {
        "sections": [
            {"name": "Thesis", "description": "Why now", "word_limit": 150},
            {"name": "Risks"},
        ]
    },
}


class FakeLLM:
    def __init__(self, result: LLMServiceResult):
        self.result = result
        self.calls: list[dict] = []

    def chat_completion(self, *, messages, model=None, context=None):
        self.calls.append({"messages": messages, "context": context})
        return self.result


def _create_template(client, headers, **overrides):
    r = client.post("/api/templates", json={**TEMPLATE_BODY, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_template_crud(client, users, auth_headers):
    headers = auth_headers(users["manager"])
    created = _create_template(client, headers)
    assert created["creator_id"] == users["manager"].id
    assert created["template_data"]["sections"][0]["word_limit"] == 150

    r = client.put(f"/api/templates/{created['id']}", json={"name": "IC memo v2"}, headers=headers)
    assert r.json()["name"] == "IC memo v2"
    assert r.json()["investment_type"] == "equity"

    listed = client.get("/api/templates?type=rationale", headers=headers).json()
    assert [t["name"] for t in listed] == ["IC memo v2"]
    assert client.get("/api/templates?type=investment", headers=headers).json() == []

    assert client.delete(f"/api/templates/{created['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/templates/{created['id']}", headers=headers).status_code == 404


def test_template_needs_sections(client, users, auth_headers):
    r = client.post(
        "/api/templates",
        json={**TEMPLATE_BODY, "template_data": {"sections": []}},
        headers=auth_headers(users["manager"]),
    )
    assert r.status_code == 422


def test_only_creator_or_admin_edits_template(client, users, auth_headers):
    created = _create_template(client, auth_headers(users["manager"]))

    r = client.put(f"/api/templates/{created['id']}", json={"name": "x"}, headers=auth_headers(users["analyst"]))
    assert r.status_code == 403

    r = client.put(f"/api/templates/{created['id']}", json={"is_active": False}, headers=auth_headers(users["admin"]))
    assert r.json()["is_active"] is False
    assert client.get("/api/templates", headers=auth_headers(users["admin"])).json() == []


def test_template_in_use_is_deactivated_not_deleted(client, db_session, users, auth_headers, make_investment):
    headers = auth_headers(users["analyst"])
    template = _create_template(client, headers)
    investment = make_investment()
    client.post(
        f"/api/investments/{investment.id}/rationales",
        json={"content": "Strong moat", "template_id": template["id"]},
        headers=headers,
    )

    assert client.delete(f"/api/templates/{template['id']}", headers=headers).status_code == 200

    db_session.expire_all()
    kept = db_session.get(Template, template["id"])
    assert kept is not None
    assert kept.is_active is False


def test_manual_rationale_lifecycle(client, users, make_user, auth_headers, make_investment):
    headers = auth_headers(users["analyst"])
    investment = make_investment()

    r = client.post(f"/api/investments/{investment.id}/rationales", json={"content": "Strong moat"}, headers=headers)
    assert r.status_code == 201
    rationale = r.json()
    assert rationale["type"] == "manual"

    other = make_user(Role.analyst, "bob")
    url = f"/api/investments/{investment.id}/rationales/{rationale['id']}"
    assert client.put(url, json={"content": "Hijack"}, headers=auth_headers(other)).status_code == 403

    r = client.put(url, json={"content": "Strong moat, sticky customers"}, headers=headers)
    assert r.json()["content"] == "Strong moat, sticky customers"

    assert client.delete(url, headers=headers).status_code == 200
    assert client.get(f"/api/investments/{investment.id}/rationales", headers=headers).json() == []


def test_rationale_under_wrong_investment_is_404(client, users, auth_headers, make_investment):
    headers = auth_headers(users["analyst"])
    first, second = make_investment(), make_investment()
    rationale = client.post(
        f"/api/investments/{first.id}/rationales", json={"content": "Thesis"}, headers=headers
    ).json()

    r = client.put(f"/api/investments/{second.id}/rationales/{rationale['id']}", json={"content": "x"}, headers=headers)
    assert r.status_code == 404


def test_blank_rationale_rejected(client, users, auth_headers, make_investment):
    investment = make_investment()

    r = client.post(
        f"/api/investments/{investment.id}/rationales", json={"content": "   "}, headers=auth_headers(users["analyst"])
    )
    assert r.status_code == 422


def test_generate_rationale_from_template(app, client, users, auth_headers, make_investment):
    llm = FakeLLM(LLMServiceResult(success=True, data={"response": "Thesis: ...\nRisks: ..."}))
    app.dependency_overrides[get_llm_service_client] = lambda: llm
    headers = auth_headers(users["analyst"])
    template = _create_template(client, headers)
    investment = make_investment()

    r = client.post(
        f"/api/investments/{investment.id}/rationales/generate", json={"template_id": template["id"]}, headers=headers
    )

    assert r.status_code == 201
    body = r.json()
    assert body["type"] == "ai_generated"
    assert body["template_id"] == template["id"]
    assert body["content"] == "Thesis: ...\nRisks: ..."
    prompt = llm.calls[0]["messages"][1]["content"]
    assert "Target company: Acme Holdings" in prompt
    assert "- Thesis (max 150 words): Why now" in prompt


def test_generate_rationale_failure_is_bad_gateway(app, client, users, auth_headers, make_investment):
    app.dependency_overrides[get_llm_service_client] = lambda: FakeLLM(
        LLMServiceResult(success=False, error="LLM service unavailable: refused")
    )
    headers = auth_headers(users["analyst"])
    template = _create_template(client, headers)
    investment = make_investment()

    r = client.post(
        f"/api/investments/{investment.id}/rationales/generate", json={"template_id": template["id"]}, headers=headers
    )
    assert r.status_code == 502


def test_prompt_uses_return_range_when_no_point_estimate(make_investment):
    investment = make_investment()
    investment.expected_return = None
    investment.expected_return_min = 8
    investment.expected_return_max = 11
    template = Template(name="t", type="rationale", template_data={"sections": [{"name": "Thesis"}]})

    messages = build_rationale_prompt(investment, template)

    assert "Expected return: 8% to 11%" in messages[1]["content"]
    assert messages[1]["content"].endswith("- Thesis")
