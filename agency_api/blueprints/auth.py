# agency_api/blueprints/auth.py
from flask import Blueprint, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt_identity
)

from agency_api.common.http import ok, fail
from agency_api.models.user import User
from agency_api.services.auth_service import auth_service, map_role

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")

def _claims(u: User):
    return {"roles": [map_role(u.role)], "email": u.email, "name": u.full_name}

@bp.post("/login")
def login():
    data = request.get_json(silent=True, force=True)
    if not isinstance(data, dict):
        data = {}
    # raises AuthError -> 401
    u = auth_service.authenticate(data.get("email"), data.get("password"))

    access  = create_access_token(identity=str(u.id), additional_claims=_claims(u))
    refresh = create_refresh_token(identity=str(u.id), additional_claims={"roles": [map_role(u.role)]})
    return ok({"access": access, "refresh": refresh, "user": u.to_public()})

@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = get_jwt_identity()
    u = User.query.get(int(uid)) if uid else None
    if not u:
        return fail("User not found", 404)
    new_access = create_access_token(identity=str(u.id), additional_claims=_claims(u))
    return ok({"access": new_access})

@bp.get("/me")
@jwt_required()
def me():
    uid = get_jwt_identity()
    u = User.query.get(int(uid)) if uid else None
    if not u:
        return fail("User not found", 404)
    return ok(u.to_public())

@bp.post("/logout")
@jwt_required()
def logout():
    # tokens are stateless; drop the persisted session if it belongs to the caller
    current = auth_service.get_current_user()
    if current and str(current.get("id")) == str(get_jwt_identity()):
        auth_service.logout()
    return ok({"logged_out": True})
