import io

from agency_api.models.attendance import AttendanceRecord

HEADER = "employeeId,date,checkIn,checkOut,notes,location"


def test_create_derives_hours_and_status(client, headers, staff):
    body = {"employee_id": staff["employee"].id, "date": "2024-01-15", "check_in": "09:30", "check_out": "18:00"}
    r = client.post("/api/v1/attendance", json=body, headers=headers("hr"))
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["hours_worked"] == 8.5
    assert data["status"] == "late"
    assert data["location"] == "Office"

    # one record per employee per day
    r = client.post("/api/v1/attendance", json=body, headers=headers("hr"))
    assert r.status_code == 422


def test_time_validation(client, headers, staff):
    base = {"employee_id": staff["employee"].id, "date": "2024-01-15"}
    r = client.post("/api/v1/attendance", json=base, headers=headers("hr"))
    assert r.get_json()["error"]["errors"]["check_in"] == "At least check-in or check-out time is required"

    r = client.post("/api/v1/attendance", json=dict(base, check_in="17:00", check_out="09:00"),
                    headers=headers("hr"))
    assert r.get_json()["error"]["errors"]["check_out"] == "Check-out time must be after check-in time"


def test_explicit_status(client, headers, staff):
    base = {"employee_id": staff["employee"].id, "date": "2024-01-16"}
    r = client.post("/api/v1/attendance", json=dict(base, status="present"), headers=headers("hr"))
    assert r.status_code == 422

    r = client.post("/api/v1/attendance", json=dict(base, status="remote"), headers=headers("hr"))
    assert r.status_code == 201
    assert r.get_json()["data"]["status"] == "remote"


def test_employee_clocks_only_themselves(client, headers, staff):
    body = {"employee_id": staff["hr"].id, "date": "2024-01-17", "check_in": "09:00"}
    r = client.post("/api/v1/attendance", json=body, headers=headers("employee"))
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["employee_id"] == staff["employee"].id
    # only one time -> no hours
    assert data["status"] == "absent"


def test_update_recomputes(client, headers, staff):
    body = {"employee_id": staff["employee"].id, "date": "2024-01-18", "check_in": "09:00"}
    rid = client.post("/api/v1/attendance", json=body, headers=headers("hr")).get_json()["data"]["id"]
    r = client.put(f"/api/v1/attendance/{rid}", json={"check_out": "13:30"}, headers=headers("hr"))
    data = r.get_json()["data"]
    assert data["hours_worked"] == 4.5
    assert data["status"] == "half_day"


def test_csv_import_reports_row_errors(client, headers, staff):
    emp = staff["employee"]
    text = "\n".join([
        HEADER,
        f"{emp.id},2024-01-15,09:00,17:30,,Office",
        "",
        ",2024-01-16,09:00,17:00,,",
        "9999,2024-01-16,09:00,17:00,,",
        f"{emp.code},2024-01-16,09:15,17:45,Client visit,Remote desk",
        f"{emp.id},2024-01-15,09:00,17:00,,",
    ])
    r = client.post("/api/v1/attendance/import", json={"csv": text}, headers=headers("hr"))
    assert r.status_code == 200
    out = r.get_json()["data"]
    assert out["success"] == 2
    assert out["errors"] == [
        "Row 3: Missing required fields",
        "Row 4: Employee not found",
        "Row 6: Attendance already recorded for this date",
    ]
    rows = AttendanceRecord.query.filter_by(employee_id=emp.id).order_by(AttendanceRecord.date).all()
    assert [r.source for r in rows] == ["import", "import"]
    assert rows[1].location == "Remote desk"


def test_csv_import_file_upload(client, headers, staff):
    emp = staff["employee"]
    payload = f"{HEADER}\n{emp.id},2024-02-01,09:00,17:00,,\n".encode()
    r = client.post("/api/v1/attendance/import", data={"file": (io.BytesIO(payload), "attendance.csv")},
                    content_type="multipart/form-data", headers=headers("hr"))
    assert r.status_code == 200
    assert r.get_json()["data"] == {"success": 1, "errors": []}


def test_csv_import_is_hr_only(client, headers, staff):
    r = client.post("/api/v1/attendance/import", json={"csv": HEADER}, headers=headers("employee"))
    assert r.status_code == 403


def test_stats(client, headers, staff):
    for emp, ci in ((staff["employee"], "09:00"), (staff["hr"], "10:00")):
        client.post("/api/v1/attendance", json={"employee_id": emp.id, "date": "2024-01-15",
                                                "check_in": ci, "check_out": "18:00"}, headers=headers("hr"))
    stats = client.get("/api/v1/attendance/stats?date=2024-01-15", headers=headers("hr")).get_json()["data"]
    assert stats["total_records"] == 2
    assert stats["by_status"]["present"] == 1
    assert stats["by_status"]["late"] == 1
    # 2 of 5 active employees attended
    assert stats["attendance_rate"] == 40
    assert stats["average_hours"] == 8.5


def test_notes_only_update_keeps_status(client, headers, staff):
    body = {"employee_id": staff["employee"].id, "date": "2024-01-19", "status": "remote"}
    rid = client.post("/api/v1/attendance", json=body, headers=headers("hr")).get_json()["data"]["id"]
    r = client.put(f"/api/v1/attendance/{rid}", json={"notes": "worked from home"}, headers=headers("hr"))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "remote"
    assert data["notes"] == "worked from home"
