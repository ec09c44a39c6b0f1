def _broadcast(client, headers, **over):
    body = {"title": "Office closed Friday", "message": "Public holiday", "type": "info", "category": "general"}
    body.update(over)
    return client.post("/api/v1/notifications", json=body, headers=headers("general_manager"))


def test_sender_role_required_with_sender_name(client, headers):
    r = _broadcast(client, headers, sender_name="Front desk")
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["sender_role"] == \
        "Sender role is required when sender name is provided"

    r = _broadcast(client, headers, sender_name="Front desk", sender_role="hr")
    assert r.status_code == 201
    assert r.get_json()["data"]["sender_name"] == "Front desk"


def test_broadcast_read_tracking_is_per_user(client, headers):
    nid = _broadcast(client, headers).get_json()["data"]["id"]
    emp, hr = headers("employee"), headers("hr")

    assert client.get("/api/v1/notifications/unread-count", headers=emp).get_json()["data"]["count"] == 1
    r = client.post(f"/api/v1/notifications/{nid}/read", headers=emp)
    assert r.get_json()["data"]["is_read"] is True
    assert client.get("/api/v1/notifications/unread-count", headers=emp).get_json()["data"]["count"] == 0

    # still unread for everyone else
    assert client.get("/api/v1/notifications/unread-count", headers=hr).get_json()["data"]["count"] == 1
    unread = client.get("/api/v1/notifications?unread=true", headers=hr).get_json()
    assert [n["id"] for n in unread["data"]] == [nid]


def test_direct_notifications_are_private(client, headers, staff):
    hr_user = staff["hr"].user_id
    nid = _broadcast(client, headers, recipient_user_id=hr_user).get_json()["data"]["id"]
    assert client.get("/api/v1/notifications", headers=headers("employee")).get_json()["meta"]["total"] == 0
    assert client.post(f"/api/v1/notifications/{nid}/read", headers=headers("employee")).status_code == 404
    assert client.get("/api/v1/notifications", headers=headers("hr")).get_json()["meta"]["total"] == 1


def test_read_all_and_delete(client, headers):
    _broadcast(client, headers)
    nid = _broadcast(client, headers, title="Second").get_json()["data"]["id"]
    emp = headers("employee")
    assert client.post("/api/v1/notifications/read-all", headers=emp).get_json()["data"]["marked"] == 2

    # a broadcast is removed only by its sender or an admin
    assert client.delete(f"/api/v1/notifications/{nid}", headers=emp).status_code == 403
    assert client.delete(f"/api/v1/notifications/{nid}", headers=headers("general_manager")).status_code == 200


def test_employees_cannot_send(client, headers):
    r = client.post("/api/v1/notifications", json={"title": "t", "message": "m"}, headers=headers("employee"))
    assert r.status_code == 403
