# agency_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Optional, Set

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from agency_api.common.http import fail
from agency_api.models.user import User


# ---------- helpers ----------

def _roles_from_claims() -> Set[str]:
    claims = get_jwt() or {}
    return set(claims.get("roles") or [])


def current_user_id() -> Optional[int]:
    uid = get_jwt_identity()
    try:
        return int(uid) if uid is not None else None
    except (TypeError, ValueError):
        return None


def current_user() -> Optional[User]:
    uid = current_user_id()
    return User.query.get(uid) if uid is not None else None


def current_roles() -> Set[str]:
    """
    Roles of the caller: JWT claims first, DB fallback for tokens
    issued without a 'roles' claim.
    """
    roles = _roles_from_claims()
    if roles:
        return roles
    user = current_user()
    return {user.role} if user else set()


def has_any_role(*codes: str, allow_admin: bool = True) -> bool:
    roles = current_roles()
    if allow_admin and "admin" in roles:
        return True
    return any(r in roles for r in codes)


# ---------- decorators ----------

def requires_roles(*codes: str, allow_admin: bool = True):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    - Uses roles in JWT if present; falls back to DB.
    - 'admin' passes unless allow_admin=False (GM sign-off on money).
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            if current_user_id() is None:
                return fail("Unauthorized", status=401)

            roles = current_roles()
            if not roles:
                return fail("Unauthorized", status=401)

            if allow_admin and "admin" in roles:
                return fn(*args, **kwargs)

            if not any(r in roles for r in codes):
                return fail("Forbidden", status=403, code="FORBIDDEN")

            return fn(*args, **kwargs)
        return inner
    return outer
