from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import update

from investment_portal.modules.dashboard.service import get_stats, recent_requests
from investment_portal.modules.requests import service as requests_service
from investment_portal.modules.requests.schemas import CashRequestCreate
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.tasks.service import mark_overdue_tasks
from investment_portal.modules.workflow.service import process_approval
from investment_portal.shared.enums import ApprovalAction, RequestType, Role
from investment_portal.shared.utils import utcnow


def test_analyst_stats_cover_only_own_requests(db_session, users, make_user, ctx_for, make_investment):
    make_investment(amount="500000", risk_level="low")
    make_investment(amount="1500000", risk_level="high", submit=True)
    make_investment(make_user(Role.analyst, "bob"), amount="20000000")

    stats = get_stats(db_session, ctx=ctx_for(users["analyst"]))

    inv = stats.investments
    assert inv.draft.count == 1
    assert inv.pending_by_role["manager"].count == 1
    assert inv.pending_by_role["manager"].value == Decimal("1500000")
    assert inv.pending_by_role["committee_member"].count == 0
    assert inv.total.count == 2
    assert inv.total.value == Decimal("2000000")
    assert stats.value_distribution["small"].count == 1
    assert stats.value_distribution["medium"].count == 1
    assert stats.value_distribution["extra_large"].count == 0
    assert stats.risk_profile["high"].count == 1
    assert stats.risk_profile["medium"].count == 0


def test_approver_stats_include_tasks_and_all_requests(db_session, users, make_user, ctx_for, make_investment):
    make_investment(submit=True)
    make_investment(make_user(Role.analyst, "bob"), amount="20000000", submit=True)

    stats = get_stats(db_session, ctx=ctx_for(users["manager"]))

    assert stats.pending_approvals == 2
    assert stats.investments.pending_by_role["manager"].count == 2
    assert stats.value_distribution["extra_large"].count == 1


def test_approved_investments_and_pending_cash(db_session, users, ctx_for, make_investment):
    investment = make_investment(submit=True)
    for role in ("manager", "committee", "finance"):
        process_approval(
            db_session,
            ctx=ctx_for(users[role]),
            request_type=RequestType.investment,
            request_id=investment.id,
            action=ApprovalAction.approve,
        )
    requests_service.create_cash_request(
        db_session,
        ctx=ctx_for(users["analyst"]),
        data=CashRequestCreate(amount=Decimal("1000"), purpose="Fees", payment_timeline="week", submit=True),
    )

    stats = get_stats(db_session, ctx=ctx_for(users["admin"]))

    assert stats.active_investments == 1
    assert stats.investments.approved.value == Decimal("1500000")
    assert stats.pending_cash_requests == 1
    assert stats.cash_requests.pending_by_role["manager"].count == 1


def test_sla_breaches_count_overdue_tasks(db_session, users, ctx_for, make_investment):
    make_investment(submit=True)
    db_session.execute(update(Task).values(due_date=utcnow() - dt.timedelta(hours=1)))
    db_session.commit()

    assert mark_overdue_tasks(db_session) == 1

    assert get_stats(db_session, ctx=ctx_for(users["admin"])).sla_breaches == 1
    # The task belongs to the manager, not the analyst.
    assert get_stats(db_session, ctx=ctx_for(users["analyst"])).sla_breaches == 0


def test_deleted_requests_are_ignored(db_session, users, ctx_for, make_investment):
    investment = make_investment()
    requests_service.soft_delete_investment(db_session, ctx=ctx_for(users["analyst"]), request_id=investment.id)

    stats = get_stats(db_session, ctx=ctx_for(users["analyst"]))

    assert stats.investments.total.count == 0


def test_recent_requests_merge_both_types(db_session, users, ctx_for, make_investment):
    make_investment()
    requests_service.create_cash_request(
        db_session,
        ctx=ctx_for(users["analyst"]),
        data=CashRequestCreate(amount=Decimal("1000"), purpose="Fees", payment_timeline="week"),
    )
    make_investment(amount="300000")

    rows = recent_requests(db_session, ctx=ctx_for(users["analyst"]), limit=2)

    assert len(rows) == 2
    assert {r.type for r in rows} <= {"investment", "cash_request"}
    assert all(r.requester.first_name == "Alice" for r in rows)
    investment_rows = [r for r in rows if r.type == "investment"]
    assert all(r.target_company == "Acme Holdings" for r in investment_rows)


def test_dashboard_endpoints(client, users, auth_headers, make_investment):
    make_investment(submit=True)
    headers = auth_headers(users["manager"])

    stats = client.get("/api/dashboard/stats", headers=headers)
    assert stats.status_code == 200
    assert stats.json()["pending_approvals"] == 1

    recent = client.get("/api/dashboard/recent-requests?limit=5", headers=headers)
    assert recent.status_code == 200
    assert recent.json()[0]["request_id"].startswith("INV-")
    assert client.get("/api/dashboard/recent-requests?limit=0", headers=headers).status_code == 422
