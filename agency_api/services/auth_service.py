# agency_api/services/auth_service.py
"""
Demo auth layer.

Five fixed demo users share one password (``DEMO_PASSWORD``, default
``demo123``). The signed-in user is cached on the singleton and persisted as a
JSON document under the ``currentUser`` key so CLI sessions survive restarts.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from flask import current_app

from agency_api.common.errors import AuthError
from agency_api.extensions import db
from agency_api.models.state import PersistedState
from agency_api.models.user import ROLES, User

log = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"
DEFAULT_DEMO_PASSWORD = "demo123"

DEMO_USERS = (
    {"email": "admin@agency.com", "first_name": "Admin", "last_name": "User", "role": "admin"},
    {"email": "gm@agency.com", "first_name": "General", "last_name": "Manager", "role": "general_manager"},
    {"email": "coordinator@agency.com", "first_name": "Project", "last_name": "Coordinator",
     "role": "project_coordinator"},
    {"email": "employee@agency.com", "first_name": "John", "last_name": "Employee", "role": "employee"},
    {"email": "hr@agency.com", "first_name": "HR", "last_name": "Manager", "role": "hr"},
)

_ROLE_MAP = {r: r for r in ROLES}
_ROLE_MAP["OPERATION_ADMIN"] = "admin"


def map_role(backend_role: Optional[str]) -> str:
    return _ROLE_MAP.get(backend_role or "", "employee")


def demo_password() -> str:
    return current_app.config.get("DEMO_PASSWORD") or DEFAULT_DEMO_PASSWORD


def _session_user(u: User) -> dict:
    first, _, last = (u.full_name or "").partition(" ")
    return {
        "id": u.id,
        "email": u.email,
        "first_name": first,
        "last_name": last,
        "role": map_role(u.role),
        "is_active": (u.status or "active") == "active",
        "avatar": u.avatar,
    }


class AuthService:
    _instance: Optional["AuthService"] = None

    def __init__(self):
        self.user: Optional[dict] = None

    @classmethod
    def get_instance(cls) -> "AuthService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # ---------- credentials ----------

    def authenticate(self, email: str, password: str) -> User:
        email = (email or "").strip().lower()
        u = User.query.filter(db.func.lower(User.email) == email).first() if email else None
        if not u or not password or not u.check_password(password):
            log.info("login rejected for %s", email or "<blank>")
            raise AuthError("Invalid credentials. Please check your email and password.")
        if (u.status or "active") != "active":
            raise AuthError("Account is not active")
        return u

    # ---------- session ----------

    def login(self, email: str, password: str) -> dict:
        u = self.authenticate(email, password)
        user = _session_user(u)
        self.user = user

        row = PersistedState.query.get(CURRENT_USER_KEY)
        if row is None:
            row = PersistedState(key=CURRENT_USER_KEY)
            db.session.add(row)
        row.value = user
        db.session.commit()
        log.info("user %s signed in as %s", user["email"], user["role"])
        return user

    def logout(self) -> None:
        self.user = None
        row = PersistedState.query.get(CURRENT_USER_KEY)
        if row is not None:
            db.session.delete(row)
            db.session.commit()

    def get_current_user(self) -> Optional[dict]:
        if self.user is None:
            row = PersistedState.query.get(CURRENT_USER_KEY)
            if row is not None and row.value:
                self.user = dict(row.value)
        return self.user

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    def has_role(self, roles: Iterable[str]) -> bool:
        user = self.get_current_user()
        return bool(user) and user.get("role") in set(roles)


auth_service = AuthService.get_instance()


def ensure_demo_users(password: Optional[str] = None):
    """Create (or re-password) the five demo users; returns [(user, created)]."""
    password = password or demo_password()
    out = []
    for d in DEMO_USERS:
        u = User.query.filter_by(email=d["email"]).first()
        created = False
        if not u:
            u = User(email=d["email"], full_name=f"{d['first_name']} {d['last_name']}", role=d["role"],
                     status="active")
            db.session.add(u)
            created = True
        u.set_password(password)
        out.append((u, created))
    db.session.commit()
    return out
