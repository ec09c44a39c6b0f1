# agency_api/blueprints/categories.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from agency_api.common.auth import requires_roles
from agency_api.common.errors import NotFound, ValidationError
from agency_api.common.http import ok
from agency_api.common.validation import FormErrors, clean_text, is_blank
from agency_api.extensions import db
from agency_api.models.category import CATEGORY_TYPES, Category
from agency_api.models.finance import TXN_TYPES

bp = Blueprint("categories", __name__, url_prefix="/api/v1/categories")

_MANAGERS = ("general_manager", "hr")


def _row(c: Category):
    data = {
        "id": c.id,
        "type": c.type,
        "name": c.name,
        "description": c.description,
        "color": c.color,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }
    if c.type == "leave":
        data.update(max_days=c.max_days, requires_approval=c.requires_approval)
    if c.type == "finance":
        data.update(txn_type=c.txn_type, subcategories=c.subcategories or [])
    return data


def _name_taken(ctype, name, exclude_id=None) -> bool:
    qry = Category.query.filter(Category.type == ctype, func.lower(Category.name) == name.lower())
    if exclude_id:
        qry = qry.filter(Category.id != exclude_id)
    return qry.first() is not None


def validate_category(d, c: Category | None = None):
    creating = c is None
    errs = FormErrors()
    ctype = d.get("type") if creating else c.type
    if creating:
        errs.choice(d, "type", CATEGORY_TYPES, required=True)
    if creating or "name" in d:
        if errs.text(d, "name", "Category name is required") and ctype in CATEGORY_TYPES \
                and _name_taken(ctype, d["name"].strip(), c.id if c else None):
            errs.add("name", f"A {ctype} category named '{d['name'].strip()}' already exists")
    if ctype == "leave" and d.get("max_days") not in (None, ""):
        try:
            if int(d["max_days"]) <= 0:
                raise ValueError
        except (TypeError, ValueError):
            errs.add("max_days", "Max days must be a whole number greater than 0")
    if ctype == "finance":
        errs.choice(d, "txn_type", TXN_TYPES)
        subs = d.get("subcategories")
        if subs is not None and (not isinstance(subs, list) or any(is_blank(s) for s in subs)):
            errs.add("subcategories", "Subcategories must be a list of names")
    errs.raise_if_any()


def _apply(c: Category, d):
    if "name" in d:
        c.name = d["name"].strip()
    for k in ("description", "color"):
        if k in d:
            setattr(c, k, clean_text(d.get(k)))
    if "is_active" in d:
        c.is_active = bool(d["is_active"])
    if c.type == "leave":
        if "max_days" in d:
            c.max_days = int(d["max_days"]) if d.get("max_days") not in (None, "") else None
        if "requires_approval" in d:
            c.requires_approval = bool(d["requires_approval"])
        elif c.requires_approval is None:
            c.requires_approval = True
    if c.type == "finance":
        if "txn_type" in d:
            c.txn_type = d.get("txn_type") or None
        if "subcategories" in d:
            c.subcategories = [s.strip() for s in (d.get("subcategories") or [])]


def _get(cat_id: int) -> Category:
    c = Category.query.get(cat_id)
    if not c:
        raise NotFound("Category")
    return c


@bp.get("")
@jwt_required()
def list_categories():
    qry = Category.query
    ctype = request.args.get("type")
    if ctype:
        qry = qry.filter(Category.type == ctype)
    if (request.args.get("include_inactive") or "").lower() not in ("1", "true", "yes"):
        qry = qry.filter(Category.is_active.is_(True))
    items = qry.order_by(Category.type.asc(), Category.name.asc()).all()
    return ok([_row(c) for c in items], total=len(items))


@bp.get("/all")
@jwt_required()
def all_categories():
    grouped = {t: [] for t in CATEGORY_TYPES}
    for c in Category.query.filter_by(is_active=True).order_by(Category.name.asc()).all():
        grouped.setdefault(c.type, []).append(_row(c))
    return ok(grouped)


@bp.get("/<int:cat_id>")
@jwt_required()
def get_category(cat_id: int):
    return ok(_row(_get(cat_id)))


@bp.post("")
@requires_roles(*_MANAGERS)
def create_category():
    d = request.get_json(silent=True, force=True) or {}
    validate_category(d)
    c = Category(type=d["type"])
    _apply(c, d)
    db.session.add(c)
    db.session.commit()
    return ok(_row(c), status=201)


@bp.post("/bulk")
@requires_roles(*_MANAGERS)
def bulk_create():
    """Body: {"type": "task", "items": [{"name": ...}, ...]}; all-or-nothing."""
    d = request.get_json(silent=True, force=True) or {}
    items = d.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError({"items": "At least one category is required"})
    created, seen, errors = [], set(), {}
    for n, it in enumerate(items, start=1):
        it = dict(it) if isinstance(it, dict) else {"name": it}
        it.setdefault("type", d.get("type"))
        try:
            validate_category(it)
        except ValidationError as e:
            errors[f"item_{n}"] = e.errors
            continue
        key = (it["type"], it["name"].strip().lower())
        if key in seen:
            errors[f"item_{n}"] = {"name": "Duplicate name in request"}
            continue
        seen.add(key)
        c = Category(type=it["type"])
        _apply(c, it)
        created.append(c)
    if errors:
        raise ValidationError(errors)
    db.session.add_all(created)
    db.session.commit()
    return ok([_row(c) for c in created], status=201)


@bp.put("/<int:cat_id>")
@requires_roles(*_MANAGERS)
def update_category(cat_id: int):
    c = _get(cat_id)
    d = request.get_json(silent=True, force=True) or {}
    validate_category(d, c)
    _apply(c, d)
    db.session.commit()
    return ok(_row(c))


@bp.delete("/<int:cat_id>")
@requires_roles(*_MANAGERS)
def delete_category(cat_id: int):
    # soft delete; existing records keep the name they were saved with
    c = _get(cat_id)
    c.is_active = False
    db.session.commit()
    return ok({"id": c.id, "deleted": True})
