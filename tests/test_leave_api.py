from agency_api.models.leave import LeaveApprovalAction


def _apply(client, headers, **over):
    body = {"leave_type": "Annual Leave", "start_date": "2024-03-04", "end_date": "2024-03-06",
            "reason": "Family trip"}
    body.update(over)
    return client.post("/api/v1/leave/requests", json=body, headers=headers("employee"))


def test_end_before_start_is_rejected(client, headers, categories):
    r = _apply(client, headers, start_date="2024-01-10", end_date="2024-01-05")
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["end_date"] == "End date must be after start date"


def test_required_fields(client, headers):
    r = client.post("/api/v1/leave/requests", json={}, headers=headers("employee"))
    assert r.status_code == 422
    errors = r.get_json()["error"]["errors"]
    assert errors["leave_type"] == "Leave type is required"
    assert errors["start_date"] == "Start date is required"
    assert errors["end_date"] == "End date is required"
    assert errors["reason"] == "Reason is required"


def test_non_text_fields_are_rejected(client, headers, staff, categories):
    r = _apply(client, headers, leave_type=5, reason=["trip"])
    assert r.status_code == 422
    errors = r.get_json()["error"]["errors"]
    assert errors["leave_type"] == "Leave type must be text"
    assert errors["reason"] == "Reason must be text"


def test_apply_counts_inclusive_days(client, headers, staff, categories):
    r = _apply(client, headers)
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["total_days"] == 3
    assert data["status"] == "pending"
    assert data["employee_id"] == staff["employee"].id


def test_category_limits(client, headers, categories):
    r = _apply(client, headers, leave_type="Personal Leave", start_date="2024-03-01", end_date="2024-03-10")
    assert r.status_code == 422
    assert "at most 5" in r.get_json()["error"]["errors"]["end_date"]

    r = _apply(client, headers, leave_type="Sabbatical")
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["leave_type"] == "Unknown leave type"


def test_hr_cannot_approve_before_coordinator(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/leave/requests/{rid}/hr-decision", json={"approved": True}, headers=headers("hr"))
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "ILLEGAL_TRANSITION"
    assert client.get(f"/api/v1/leave/requests/{rid}",
                      headers=headers("hr")).get_json()["data"]["status"] == "pending"


def test_two_step_approval(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]

    r = client.post(f"/api/v1/leave/requests/{rid}/coordinator-decision",
                    json={"approved": True, "comments": "Covered"}, headers=headers("project_coordinator"))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "coordinator_approved"
    assert data["coordinator_approval"]["approved"] is True
    assert data["hr_approval"] is None

    r = client.post(f"/api/v1/leave/requests/{rid}/hr-decision", json={"approved": True}, headers=headers("hr"))
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "hr_approved"

    detail = client.get(f"/api/v1/leave/requests/{rid}", headers=headers("employee")).get_json()["data"]
    assert [h["action"] for h in detail["history"]] == ["applied", "coordinator_approved", "hr_approved"]

    # final states are closed
    r = client.post(f"/api/v1/leave/requests/{rid}/cancel", headers=headers("employee"))
    assert r.status_code == 409
    r = client.put(f"/api/v1/leave/requests/{rid}", json={"reason": "changed"}, headers=headers("employee"))
    assert r.status_code == 409

    # owner got notified at each step
    count = client.get("/api/v1/notifications/unread-count", headers=headers("employee")).get_json()["data"]
    assert count["count"] == 2


def test_rejection_needs_comments(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/leave/requests/{rid}/coordinator-decision", json={"approved": False},
                    headers=headers("project_coordinator"))
    assert r.status_code == 422
    assert "comments" in r.get_json()["error"]["errors"]

    r = client.post(f"/api/v1/leave/requests/{rid}/coordinator-decision",
                    json={"approved": False, "comments": "Deadline week"}, headers=headers("project_coordinator"))
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "rejected"


def test_decisions_are_role_gated(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/leave/requests/{rid}/coordinator-decision", json={"approved": True},
                    headers=headers("employee"))
    assert r.status_code == 403


def test_owner_edits_and_cancels(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]
    r = client.put(f"/api/v1/leave/requests/{rid}", json={"end_date": "2024-03-08"}, headers=headers("employee"))
    assert r.status_code == 200
    assert r.get_json()["data"]["total_days"] == 5

    r = client.post(f"/api/v1/leave/requests/{rid}/cancel", json={"reason": "Plans changed"},
                    headers=headers("employee"))
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "cancelled"


def test_employee_sees_only_own_requests(client, headers, staff, categories):
    _apply(client, headers)
    hr_body = {"leave_type": "Sick Leave", "start_date": "2024-04-01", "end_date": "2024-04-01",
               "reason": "Flu", "employee_id": staff["hr"].id}
    assert client.post("/api/v1/leave/requests", json=hr_body, headers=headers("hr")).status_code == 201

    mine = client.get("/api/v1/leave/requests", headers=headers("employee")).get_json()
    assert mine["meta"]["total"] == 1
    everyone = client.get("/api/v1/leave/requests", headers=headers("hr")).get_json()
    assert everyone["meta"]["total"] == 2


def test_delete_removes_history(client, headers, categories):
    rid = _apply(client, headers).get_json()["data"]["id"]
    assert client.delete(f"/api/v1/leave/requests/{rid}", headers=headers("hr")).status_code == 200
    assert LeaveApprovalAction.query.count() == 0
