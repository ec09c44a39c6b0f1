import os

import pytest

from agency_api import create_app
from agency_api.extensions import db
from agency_api.services.auth_service import auth_service
from agency_api.services.demo_seed import ensure_categories, ensure_employee_profiles

EMAILS = {
    "admin": "admin@agency.com",
    "general_manager": "gm@agency.com",
    "project_coordinator": "coordinator@agency.com",
    "employee": "employee@agency.com",
    "hr": "hr@agency.com",
}


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    auth_service.user = None
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    auth_service.user = None


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def staff(app):
    """Demo users plus their employee rows, keyed by role."""
    return ensure_employee_profiles()


@pytest.fixture(scope="function")
def categories(app):
    return ensure_categories()


@pytest.fixture(scope="function")
def headers(client, staff):
    """headers("hr") -> Authorization header for that demo user."""
    cache = {}

    def _headers(role):
        if role not in cache:
            r = client.post("/api/v1/auth/login", json={"email": EMAILS[role], "password": "demo123"})
            assert r.status_code == 200, r.get_json()
            cache[role] = {"Authorization": f"Bearer {r.get_json()['data']['access']}"}
        return cache[role]

    return _headers
