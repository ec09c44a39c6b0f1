# agency_api/blueprints/employees.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from agency_api.common.auth import requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound
from agency_api.common.http import ok
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text
from agency_api.extensions import db
from agency_api.models.employee import Employee

bp = Blueprint("employees", __name__, url_prefix="/api/v1/employees")


def _row(e: Employee):
    return {
        "id": e.id,
        "code": e.code,
        "user_id": e.user_id,
        "email": e.email,
        "first_name": e.first_name,
        "last_name": e.last_name,
        "name": e.full_name,
        "phone": e.phone,
        "job_role": e.job_role,
        "department": e.department,
        "join_date": iso(e.join_date),
        "status": e.status,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def _validate(d, creating=True):
    errs = FormErrors()
    if creating or "first_name" in d:
        errs.required(d, "first_name", "First name is required")
    if creating or "last_name" in d:
        errs.required(d, "last_name", "Last name is required")
    if creating or "email" in d:
        errs.email(d)
    if creating or "job_role" in d:
        errs.required(d, "job_role", "Job role is required")
    if creating or "department" in d:
        errs.required(d, "department", "Department is required")
    join = None
    if creating or "join_date" in d:
        join = errs.date(d, "join_date", "Join date is required")
    errs.raise_if_any()
    return join


def _apply(e: Employee, d, join):
    for k in ("first_name", "last_name", "phone", "job_role", "department", "status", "user_id"):
        if k in d:
            v = d.get(k)
            setattr(e, k, v.strip() if isinstance(v, str) else v)
    if "email" in d:
        e.email = d["email"].strip().lower()
    if join is not None:
        e.join_date = join


@bp.get("")
@jwt_required()
def list_employees():
    qry = Employee.query
    for f in ("department", "job_role", "status"):
        v = request.args.get(f)
        if v:
            qry = qry.filter(getattr(Employee, f) == v)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(Employee.first_name.ilike(like), Employee.last_name.ilike(like),
                             Employee.email.ilike(like), Employee.code.ilike(like)))
    items, meta = paginate(qry, {
        "id": Employee.id, "first_name": Employee.first_name, "last_name": Employee.last_name,
        "join_date": Employee.join_date, "department": Employee.department,
    }, Employee.first_name.asc())
    return ok([_row(e) for e in items], **meta)


@bp.get("/<int:emp_id>")
@jwt_required()
def get_employee(emp_id: int):
    e = Employee.query.get(emp_id)
    if not e:
        raise NotFound("Employee")
    return ok(_row(e))


@bp.post("")
@requires_roles("hr")
def create_employee():
    d = request.get_json(silent=True, force=True) or {}
    join = _validate(d, creating=True)
    code = clean_text(d.get("code")) or ""
    if not code:
        last = db.session.query(db.func.max(Employee.id)).scalar() or 0
        code = f"EMP-{last + 1:04d}"
    e = Employee(code=code)
    _apply(e, d, join)
    db.session.add(e)
    db.session.commit()
    return ok(_row(e), status=201)


@bp.put("/<int:emp_id>")
@requires_roles("hr")
def update_employee(emp_id: int):
    e = Employee.query.get(emp_id)
    if not e:
        raise NotFound("Employee")
    d = request.get_json(silent=True, force=True) or {}
    join = _validate(d, creating=False)
    _apply(e, d, join)
    db.session.commit()
    return ok(_row(e))
