from __future__ import annotations

import datetime as dt

from investment_portal.modules.notifications.service import notify
from investment_portal.modules.tasks.models import Task
from investment_portal.modules.tasks.service import mark_overdue_tasks
from investment_portal.shared.enums import NotificationType, TaskStatus
from investment_portal.shared.utils import utcnow


def test_submitted_request_shows_up_in_approver_tasks(client, users, auth_headers, make_investment):
    investment = make_investment(submit=True)

    tasks = client.get("/api/tasks", headers=auth_headers(users["manager"])).json()

    assert len(tasks) == 1
    assert tasks[0]["request_id"] == investment.id
    assert tasks[0]["task_type"] == "approval"
    assert tasks[0]["status"] == "pending"
    assert client.get("/api/tasks", headers=auth_headers(users["finance"])).json() == []


def test_task_status_filter_and_update(client, users, auth_headers, make_investment):
    make_investment(submit=True)
    headers = auth_headers(users["manager"])
    task = client.get("/api/tasks?status=pending", headers=headers).json()[0]

    r = client.put(f"/api/tasks/{task['id']}", json={"status": "completed", "priority": "high"}, headers=headers)

    assert r.status_code == 200
    assert r.json()["completed_at"] is not None
    assert r.json()["priority"] == "high"
    assert client.get("/api/tasks?status=pending", headers=headers).json() == []


def test_cannot_update_someone_elses_task(client, users, auth_headers, make_investment):
    make_investment(submit=True)
    task = client.get("/api/tasks", headers=auth_headers(users["manager"])).json()[0]

    r = client.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=auth_headers(users["finance"]))
    assert r.status_code == 403


def test_mark_overdue_only_touches_pending_past_due(db_session, users):
    now = utcnow()

    def _task(status: TaskStatus, due: dt.datetime | None) -> Task:
        t = Task(
            assignee_id=users["manager"].id,
            request_type="investment",
            request_id=1,
            task_type="approval",
            title="Review",
            status=status.value,
            due_date=due,
        )
        db_session.add(t)
        return t

    late = _task(TaskStatus.pending, now - dt.timedelta(hours=2))
    on_time = _task(TaskStatus.pending, now + dt.timedelta(hours=2))
    done = _task(TaskStatus.completed, now - dt.timedelta(hours=2))
    undated = _task(TaskStatus.pending, None)
    db_session.commit()

    assert mark_overdue_tasks(db_session, now=now) == 1

    db_session.expire_all()
    assert late.status == TaskStatus.overdue.value
    assert on_time.status == TaskStatus.pending.value
    assert done.status == TaskStatus.completed.value
    assert undated.status == TaskStatus.pending.value


def test_notifications_list_read_and_delete(client, db_session, users, auth_headers):
    n = notify(
        db_session,
        user_id=users["analyst"].id,
        title="Heads up",
        message="Something happened",
        type=NotificationType.status_update,
    )
    db_session.commit()
    headers = auth_headers(users["analyst"])

    assert [x["id"] for x in client.get("/api/notifications?unread=true", headers=headers).json()] == [n.id]

    r = client.put(f"/api/notifications/{n.id}/read", headers=headers)
    assert r.json()["is_read"] is True
    assert client.get("/api/notifications?unread=true", headers=headers).json() == []

    assert client.delete(f"/api/notifications/{n.id}", headers=headers).status_code == 204
    assert client.get("/api/notifications", headers=headers).json() == []


def test_other_users_notifications_look_missing(client, db_session, users, auth_headers):
    n = notify(
        db_session,
        user_id=users["analyst"].id,
        title="Private",
        message="Only for alice",
        type=NotificationType.status_update,
    )
    db_session.commit()

    r = client.put(f"/api/notifications/{n.id}/read", headers=auth_headers(users["manager"]))
    assert r.status_code == 404
    assert client.delete(f"/api/notifications/{n.id}", headers=auth_headers(users["manager"])).status_code == 404


def test_approval_notifies_requester(client, users, auth_headers, make_investment):
    investment = make_investment(submit=True)
    client.post(
        "/api/approvals",
        json={"request_type": "investment", "request_id": investment.id, "action": "approve"},
        headers=auth_headers(users["manager"]),
    )

    notes = client.get("/api/notifications", headers=auth_headers(users["analyst"])).json()
    assert [n["type"] for n in notes] == ["status_update"]
    assert notes[0]["related_id"] == investment.id
