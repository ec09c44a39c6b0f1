# agency_api/blueprints/users.py
from flask import Blueprint, request
from sqlalchemy import or_

from agency_api.common.auth import requires_roles
from agency_api.common.http import ok
from agency_api.common.paging import paginate, text_q
from agency_api.models.user import User

bp = Blueprint("users", __name__, url_prefix="/api/v1/users")

@bp.get("")
@requires_roles("hr")
def list_users():
    qry = User.query
    role = request.args.get("role")
    if role:
        qry = qry.filter(User.role == role)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(User.email.ilike(like), User.full_name.ilike(like)))
    items, meta = paginate(qry, {"id": User.id, "email": User.email, "name": User.full_name,
                                 "role": User.role}, User.id.asc())
    return ok([u.to_public() for u in items], **meta)
