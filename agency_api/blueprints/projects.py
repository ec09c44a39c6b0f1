# agency_api/blueprints/projects.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func, or_

from agency_api.common.auth import current_user_id, requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text, to_number
from agency_api.extensions import db
from agency_api.models.client import Client
from agency_api.models.employee import Employee
from agency_api.models.project import Project
from agency_api.models.task import Task
from agency_api.status import ProjectStatus, TaskStatus, status_label, transition

bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


def _row(p: Project):
    total = p.tasks.count()
    done = p.tasks.filter(Task.status == TaskStatus.COMPLETED.value).count()
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "client_id": p.client_id,
        "client_name": p.client_name,
        "category": p.category,
        "status": p.status,
        "status_label": status_label("project", p.status),
        "start_date": iso(p.start_date),
        "end_date": iso(p.end_date),
        "budget": float(p.budget) if p.budget is not None else None,
        "coordinator_id": p.coordinator_id,
        "coordinator_name": p.coordinator.full_name if p.coordinator else None,
        "task_count": total,
        "completed_task_count": done,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _validate(d, p: Project | None = None):
    creating = p is None
    errs = FormErrors()
    if creating or "name" in d:
        errs.text(d, "name", "Project name is required")
    if creating and not d.get("client_id"):
        errs.text(d, "client_name", "Client is required")
    if creating or "category" in d:
        errs.required(d, "category", "Category is required")

    start = errs.date(d, "start_date", "Start date is required", required=creating or "start_date" in d)
    end = errs.date(d, "end_date", "End date is required", required=creating or "end_date" in d)
    errs.date_order(start or (p.start_date if p else None), end or (p.end_date if p else None),
                    "end_date", "End date cannot be before start date")

    if creating or "coordinator_id" in d:
        cid = d.get("coordinator_id")
        if not cid:
            errs.add("coordinator_id", "Project coordinator is required")
        elif not Employee.query.get(cid):
            errs.add("coordinator_id", "Unknown coordinator")
    if d.get("client_id") and not Client.query.get(d.get("client_id")):
        errs.add("client_id", "Unknown client")
    if "budget" in d and d.get("budget") not in (None, ""):
        errs.non_negative(d, "budget", "Budget cannot be negative")
    errs.raise_if_any()
    return start, end


def _apply(p: Project, d, start, end):
    for k in ("name", "description", "category"):
        if k in d:
            setattr(p, k, clean_text(d.get(k)))
    if "client_id" in d:
        p.client_id = d.get("client_id") or None
        c = Client.query.get(p.client_id) if p.client_id else None
        if c and not d.get("client_name"):
            p.client_name = c.name
    if d.get("client_name"):
        p.client_name = clean_text(d["client_name"])
    if "coordinator_id" in d:
        p.coordinator_id = d.get("coordinator_id")
    if "budget" in d:
        p.budget = to_number(d.get("budget"))
    if start is not None:
        p.start_date = start
    if end is not None:
        p.end_date = end


def _get(project_id: int) -> Project:
    p = Project.query.get(project_id)
    if not p:
        raise NotFound("Project")
    return p


@bp.get("")
@jwt_required()
def list_projects():
    qry = Project.query
    status = request.args.get("status")
    if status:
        qry = qry.filter(Project.status == status)
    category = request.args.get("category")
    if category:
        qry = qry.filter(Project.category == category)
    coordinator_id = request.args.get("coordinator_id", type=int)
    if coordinator_id:
        qry = qry.filter(Project.coordinator_id == coordinator_id)
    client_id = request.args.get("client_id", type=int)
    if client_id:
        qry = qry.filter(Project.client_id == client_id)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(Project.name.ilike(like), Project.client_name.ilike(like),
                             Project.description.ilike(like)))
    items, meta = paginate(qry, {
        "id": Project.id, "name": Project.name, "start_date": Project.start_date,
        "end_date": Project.end_date, "status": Project.status, "created_at": Project.created_at,
    }, Project.created_at.desc())
    return ok([_row(p) for p in items], **meta)


@bp.get("/stats")
@jwt_required()
def project_stats():
    counts = dict(db.session.query(Project.status, func.count(Project.id)).group_by(Project.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in ProjectStatus}
    return ok({"total": sum(by_status.values()), "by_status": by_status})


@bp.get("/<int:project_id>")
@jwt_required()
def get_project(project_id: int):
    return ok(_row(_get(project_id)))


@bp.post("")
@requires_roles("general_manager", "project_coordinator")
def create_project():
    d = request.get_json(silent=True, force=True) or {}
    start, end = _validate(d)
    p = Project(status=ProjectStatus.PLANNING.value, created_by_user_id=current_user_id())
    _apply(p, d, start, end)
    db.session.add(p)
    db.session.commit()
    return ok(_row(p), status=201)


@bp.put("/<int:project_id>")
@requires_roles("general_manager", "project_coordinator")
def update_project(project_id: int):
    p = _get(project_id)
    d = request.get_json(silent=True, force=True) or {}
    if "status" in d:
        return fail("Use PATCH /projects/<id>/status to change status", 422)
    start, end = _validate(d, p)
    _apply(p, d, start, end)
    db.session.commit()
    return ok(_row(p))


@bp.patch("/<int:project_id>/status")
@requires_roles("general_manager", "project_coordinator")
def change_project_status(project_id: int):
    p = _get(project_id)
    d = request.get_json(silent=True, force=True) or {}
    p.status = transition("project", p.status, d.get("status") or "")
    db.session.commit()
    return ok(_row(p))


@bp.delete("/<int:project_id>")
@requires_roles("general_manager")
def delete_project(project_id: int):
    p = _get(project_id)
    db.session.delete(p)
    db.session.commit()
    return ok({"id": project_id, "deleted": True})
