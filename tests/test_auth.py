import pytest

from agency_api.common.errors import AuthError
from agency_api.models.state import PersistedState
from agency_api.services.auth_service import (
    CURRENT_USER_KEY, DEMO_USERS, AuthService, auth_service, ensure_demo_users, map_role,
)

from conftest import EMAILS


def test_map_role():
    assert map_role("OPERATION_ADMIN") == "admin"
    assert map_role("hr") == "hr"
    assert map_role("something_else") == "employee"
    assert map_role(None) == "employee"


@pytest.mark.parametrize("demo", DEMO_USERS, ids=lambda d: d["role"])
def test_login_each_demo_user(client, staff, demo):
    r = client.post("/api/v1/auth/login", json={"email": demo["email"], "password": "demo123"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["access"] and data["refresh"]
    assert data["user"]["role"] == demo["role"]
    assert data["user"]["employee_id"] == staff[demo["role"]].id


@pytest.mark.parametrize("demo", DEMO_USERS, ids=lambda d: d["role"])
def test_wrong_password_rejected(client, staff, demo):
    r = client.post("/api/v1/auth/login", json={"email": demo["email"], "password": "nope"})
    assert r.status_code == 401
    err = r.get_json()["error"]
    assert err["code"] == "AUTH_FAILED"
    assert err["message"] == "Invalid credentials. Please check your email and password."


def test_login_with_empty_body(client, staff):
    r = client.post("/api/v1/auth/login", data="not json")
    assert r.status_code == 401


def test_me_and_refresh(client, staff):
    r = client.post("/api/v1/auth/login", json={"email": EMAILS["hr"], "password": "demo123"})
    tokens = r.get_json()["data"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access']}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["email"] == EMAILS["hr"]

    ref = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh']}"})
    assert ref.status_code == 200
    assert ref.get_json()["data"]["access"]


def test_missing_token_is_401(client, staff):
    assert client.get("/api/v1/projects").status_code == 401


def test_wrong_role_is_403(client, headers):
    r = client.get("/api/v1/users", headers=headers("employee"))
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "FORBIDDEN"
    # admin passes every role gate
    assert client.get("/api/v1/users", headers=headers("admin")).status_code == 200


def test_service_login_persists_current_user(app, staff):
    user = auth_service.login(EMAILS["general_manager"], "demo123")
    assert user["role"] == "general_manager"
    assert user["first_name"] == "General"

    row = PersistedState.query.get(CURRENT_USER_KEY)
    assert row.value["email"] == EMAILS["general_manager"]

    # a fresh service instance restores the session from the store
    other = AuthService()
    assert other.get_current_user()["email"] == EMAILS["general_manager"]
    assert other.is_authenticated()
    assert other.has_role(["general_manager", "admin"])
    assert not other.has_role(["hr"])


def test_service_wrong_password_leaves_no_session(app, staff):
    with pytest.raises(AuthError):
        auth_service.login(EMAILS["admin"], "wrong")
    assert auth_service.get_current_user() is None
    assert PersistedState.query.get(CURRENT_USER_KEY) is None


def test_service_logout_clears_store(app, staff):
    auth_service.login(EMAILS["employee"], "demo123")
    auth_service.logout()
    assert auth_service.user is None
    assert PersistedState.query.get(CURRENT_USER_KEY) is None
    assert not AuthService().is_authenticated()


def test_logout_endpoint_drops_callers_session(client, app, staff, headers):
    auth_service.login(EMAILS["hr"], "demo123")
    r = client.post("/api/v1/auth/logout", headers=headers("hr"))
    assert r.status_code == 200
    assert PersistedState.query.get(CURRENT_USER_KEY) is None


def test_ensure_demo_users_is_idempotent(app, staff):
    again = ensure_demo_users()
    assert len(again) == 5
    assert not any(created for _, created in again)


def test_service_rejects_anything_but_the_demo_password(app, staff):
    for demo in DEMO_USERS:
        for attempt in ("", "Demo123", "demo1234", " demo123"):
            with pytest.raises(AuthError):
                auth_service.login(demo["email"], attempt)
    assert auth_service.get_current_user() is None
