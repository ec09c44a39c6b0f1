from datetime import date

from agency_api.extensions import db
from agency_api.models.task import Task

from helpers import make_client_project


def _task(staff):
    _, p = make_client_project(staff)
    t = Task(project_id=p.id, title="Landing page", priority="medium", status="in_progress",
             assigned_to_id=staff["employee"].id, start_date=date(2024, 1, 2), due_date=date(2024, 1, 31))
    db.session.add(t)
    db.session.commit()
    return t


def _submit(client, headers, task, **over):
    body = {"task_id": task.id, "title": "First cut", "description": "Hero and footer done", "time_spent": 6,
            "attachments": ["https://files.example/hero.png"]}
    body.update(over)
    return client.post("/api/v1/work-submissions", json=body, headers=headers("employee"))


def test_submit_derives_project_and_coordinator(client, headers, staff):
    task = _task(staff)
    r = _submit(client, headers, task)
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["status"] == "pending_review"
    assert data["project_id"] == task.project_id
    assert data["coordinator_id"] == staff["project_coordinator"].id
    assert data["employee_id"] == staff["employee"].id
    assert data["revision_count"] == 0

    count = client.get("/api/v1/notifications/unread-count", headers=headers("project_coordinator"))
    assert count.get_json()["data"]["count"] == 1


def test_submit_validation(client, headers, staff):
    task = _task(staff)
    r = _submit(client, headers, task, time_spent=0, title="")
    errors = r.get_json()["error"]["errors"]
    assert r.status_code == 422
    assert errors["time_spent"] == "Time spent must be greater than 0"
    assert errors["title"] == "Title is required"


def test_rejection_needs_reason(client, headers, staff):
    sid = _submit(client, headers, _task(staff)).get_json()["data"]["id"]
    r = client.post(f"/api/v1/work-submissions/{sid}/review", json={"status": "rejected"},
                    headers=headers("project_coordinator"))
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["rejection_reason"] == "Rejection reason is required"


def test_revision_loop(client, headers, staff):
    sid = _submit(client, headers, _task(staff)).get_json()["data"]["id"]
    coord, emp = headers("project_coordinator"), headers("employee")

    r = client.post(f"/api/v1/work-submissions/{sid}/review",
                    json={"status": "needs_revision", "feedback": "Tighten the copy"}, headers=coord)
    data = r.get_json()["data"]
    assert data["status"] == "needs_revision"
    assert data["reviewer_role"] == "project_coordinator"

    r = client.post(f"/api/v1/work-submissions/{sid}/resubmit", json={"time_spent": 8}, headers=emp)
    data = r.get_json()["data"]
    assert data["status"] == "pending_review"
    assert data["revision_count"] == 1
    assert data["time_spent"] == 8

    r = client.post(f"/api/v1/work-submissions/{sid}/review", json={"status": "approved"}, headers=coord)
    assert r.get_json()["data"]["status"] == "approved"

    assert client.post(f"/api/v1/work-submissions/{sid}/resubmit", json={}, headers=emp).status_code == 409
    assert client.post(f"/api/v1/work-submissions/{sid}/review", json={"status": "rejected",
                                                                       "rejection_reason": "x"},
                       headers=coord).status_code == 409

    stats = client.get("/api/v1/work-submissions/stats", headers=coord).get_json()["data"]
    assert stats["approval_rate"] == 100


def test_employee_cannot_review(client, headers, staff):
    sid = _submit(client, headers, _task(staff)).get_json()["data"]["id"]
    r = client.post(f"/api/v1/work-submissions/{sid}/review", json={"status": "approved"},
                    headers=headers("employee"))
    assert r.status_code == 403


def test_employee_list_is_scoped(client, headers, staff):
    task = _task(staff)
    _submit(client, headers, task)
    client.post("/api/v1/work-submissions", json={"task_id": task.id, "title": "Other", "description": "d",
                                                  "time_spent": 1, "employee_id": staff["hr"].id},
                headers=headers("project_coordinator"))
    assert client.get("/api/v1/work-submissions", headers=headers("employee")).get_json()["meta"]["total"] == 1
    assert client.get("/api/v1/work-submissions", headers=headers("project_coordinator")).get_json()["meta"]["total"] == 2
