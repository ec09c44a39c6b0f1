# agency_api/blueprints/clients.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from agency_api.common.auth import requires_roles
from agency_api.common.errors import NotFound
from agency_api.common.http import ok
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text
from agency_api.extensions import db
from agency_api.models.client import Client

bp = Blueprint("clients", __name__, url_prefix="/api/v1/clients")

_FIELDS = ("name", "email", "phone", "company", "address")


# ---------- row shape ----------
def _row(x: Client):
    return {
        "id": x.id,
        "name": x.name,
        "email": x.email,
        "phone": x.phone,
        "company": x.company,
        "address": x.address,
        "is_active": x.is_active,
        "created_at": x.created_at.isoformat() if x.created_at else None,
        "updated_at": x.updated_at.isoformat() if x.updated_at else None,
    }


def _validate(d, creating=True):
    errs = FormErrors()
    if creating or "name" in d:
        errs.text(d, "name", "Client name is required")
    if creating or "email" in d:
        errs.email(d)
    errs.raise_if_any()


def _get(client_id: int) -> Client:
    x = Client.query.get(client_id)
    if not x or not x.is_active:
        raise NotFound("Client")
    return x


# ---------- routes ----------
@bp.get("")
@jwt_required()
def list_clients():
    qry = Client.query
    if (request.args.get("include_inactive") or "").lower() not in ("1", "true", "yes"):
        qry = qry.filter(Client.is_active.is_(True))
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(Client.name.ilike(like), Client.email.ilike(like), Client.company.ilike(like)))
    items, meta = paginate(qry, {"id": Client.id, "name": Client.name, "created_at": Client.created_at},
                           Client.name.asc())
    return ok([_row(x) for x in items], **meta)


@bp.get("/<int:client_id>")
@jwt_required()
def get_client(client_id: int):
    return ok(_row(_get(client_id)))


@bp.post("")
@requires_roles("general_manager", "project_coordinator")
def create_client():
    d = request.get_json(silent=True, force=True) or {}
    _validate(d, creating=True)
    x = Client(**{k: clean_text(d.get(k)) for k in _FIELDS})
    x.email = x.email.lower()
    db.session.add(x)
    db.session.commit()
    return ok(_row(x), status=201)


@bp.put("/<int:client_id>")
@requires_roles("general_manager", "project_coordinator")
def update_client(client_id: int):
    x = _get(client_id)
    d = request.get_json(silent=True, force=True) or {}
    _validate(d, creating=False)
    for k in _FIELDS:
        if k in d:
            setattr(x, k, clean_text(d.get(k)))
    db.session.commit()
    return ok(_row(x))


@bp.delete("/<int:client_id>")
@requires_roles("general_manager")
def delete_client(client_id: int):
    # soft delete; invoices and payments keep pointing at the row
    x = _get(client_id)
    x.is_active = False
    db.session.commit()
    return ok({"id": x.id, "deleted": True})
