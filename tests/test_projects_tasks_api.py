from helpers import make_client_project


def _project_body(staff, **over):
    body = {"name": "Brand refresh", "client_name": "Globex", "category": "Branding",
            "start_date": "2024-01-01", "end_date": "2024-04-30",
            "coordinator_id": staff["project_coordinator"].id, "budget": 12000}
    body.update(over)
    return body


def test_project_validation(client, headers, staff):
    r = client.post("/api/v1/projects", json={}, headers=headers("general_manager"))
    assert r.status_code == 422
    errors = r.get_json()["error"]["errors"]
    assert errors["name"] == "Project name is required"
    assert errors["client_name"] == "Client is required"
    assert errors["coordinator_id"] == "Project coordinator is required"

    r = client.post("/api/v1/projects", json=_project_body(staff, end_date="2023-12-31"),
                    headers=headers("general_manager"))
    assert r.get_json()["error"]["errors"]["end_date"] == "End date cannot be before start date"


def test_project_status_flow(client, headers, staff):
    coord = headers("project_coordinator")
    r = client.post("/api/v1/projects", json=_project_body(staff), headers=coord)
    assert r.status_code == 201
    pid = r.get_json()["data"]["id"]
    assert r.get_json()["data"]["status"] == "planning"

    assert client.put(f"/api/v1/projects/{pid}", json={"status": "completed"}, headers=coord).status_code == 422
    r = client.patch(f"/api/v1/projects/{pid}/status", json={"status": "completed"}, headers=coord)
    assert r.status_code == 409
    r = client.patch(f"/api/v1/projects/{pid}/status", json={"status": "in_progress"}, headers=coord)
    assert r.get_json()["data"]["status"] == "in_progress"

    stats = client.get("/api/v1/projects/stats", headers=coord).get_json()["data"]
    assert stats["by_status"]["in_progress"] == 1

    # employees cannot manage projects
    assert client.post("/api/v1/projects", json=_project_body(staff), headers=headers("employee")).status_code == 403


def _task_body(project, staff, **over):
    body = {"title": "Landing page", "project_id": project.id, "assigned_to_id": staff["employee"].id,
            "priority": "high", "due_date": "2024-02-15", "estimated_hours": 12}
    body.update(over)
    return body


def test_task_validation(client, headers, staff):
    _, p = make_client_project(staff)
    coord = headers("project_coordinator")
    r = client.post("/api/v1/tasks", json=_task_body(p, staff, estimated_hours=0), headers=coord)
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["estimated_hours"] == "Estimated hours must be greater than 0"

    r = client.post("/api/v1/tasks", json=_task_body(p, staff, priority="urgent"), headers=coord)
    assert "priority" in r.get_json()["error"]["errors"]

    r = client.post("/api/v1/tasks", json=_task_body(p, staff, task_type="sub"), headers=coord)
    assert r.get_json()["error"]["errors"]["parent_task_id"] == "Parent task is required for sub tasks"


def test_task_assignment_and_progress(client, headers, staff):
    _, p = make_client_project(staff)
    coord, emp = headers("project_coordinator"), headers("employee")
    r = client.post("/api/v1/tasks", json=_task_body(p, staff), headers=coord)
    assert r.status_code == 201
    tid = r.get_json()["data"]["id"]

    # assignee is notified and sees it under /mine
    assert client.get("/api/v1/notifications/unread-count", headers=emp).get_json()["data"]["count"] == 1
    mine = client.get("/api/v1/tasks/mine", headers=emp).get_json()
    assert [t["id"] for t in mine["data"]] == [tid]

    # estimated hours may drop to 0 on edit
    assert client.put(f"/api/v1/tasks/{tid}", json={"estimated_hours": 0}, headers=coord).status_code == 200

    r = client.patch(f"/api/v1/tasks/{tid}/status", json={"status": "completed"}, headers=emp)
    assert r.status_code == 409
    client.patch(f"/api/v1/tasks/{tid}/status", json={"status": "in_progress"}, headers=emp)
    r = client.patch(f"/api/v1/tasks/{tid}/status", json={"status": "completed"}, headers=emp)
    data = r.get_json()["data"]
    assert data["status"] == "completed"
    assert data["completed_at"]
    assert data["is_overdue"] is False

    r = client.patch(f"/api/v1/tasks/{tid}/status", json={"status": "pending"}, headers=emp)
    assert r.status_code == 409

    stats = client.get(f"/api/v1/tasks/stats?project_id={p.id}", headers=coord).get_json()["data"]
    assert stats["total"] == 1
    assert stats["completion_rate"] == 100


def test_subtasks_and_overdue(client, headers, staff):
    _, p = make_client_project(staff)
    coord = headers("project_coordinator")
    parent = client.post("/api/v1/tasks", json=_task_body(p, staff), headers=coord).get_json()["data"]
    r = client.post("/api/v1/tasks", json=_task_body(p, staff, title="Hero copy", task_type="sub",
                                                     parent_task_id=parent["id"]), headers=coord)
    assert r.status_code == 201
    sub = r.get_json()["data"]

    # sub tasks cannot parent other sub tasks
    r = client.post("/api/v1/tasks", json=_task_body(p, staff, task_type="sub", parent_task_id=sub["id"]),
                    headers=coord)
    assert r.get_json()["error"]["errors"]["parent_task_id"] == "Parent task must be an existing main task"

    detail = client.get(f"/api/v1/tasks/{parent['id']}", headers=coord).get_json()["data"]
    assert [s["id"] for s in detail["subtasks"]] == [sub["id"]]

    # due 2024-02-15 is in the past
    overdue = client.get("/api/v1/tasks/overdue", headers=coord).get_json()
    assert overdue["meta"]["total"] == 2

    assert client.delete(f"/api/v1/tasks/{parent['id']}", headers=coord).status_code == 200
    assert client.get(f"/api/v1/tasks/{sub['id']}", headers=coord).status_code == 404


def test_only_assignee_or_manager_moves_task(client, headers, staff):
    _, p = make_client_project(staff)
    tid = client.post("/api/v1/tasks", json=_task_body(p, staff, assigned_to_id=staff["hr"].id),
                      headers=headers("project_coordinator")).get_json()["data"]["id"]
    r = client.patch(f"/api/v1/tasks/{tid}/status", json={"status": "in_progress"}, headers=headers("employee"))
    assert r.status_code == 403
