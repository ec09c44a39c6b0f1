# agency_api/blueprints/tasks.py
from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func, or_

from agency_api.common.auth import current_user, current_user_id, has_any_role, requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text, to_number
from agency_api.extensions import db
from agency_api.models.employee import Employee
from agency_api.models.project import Project
from agency_api.models.task import PRIORITIES, TASK_TYPES, Task
from agency_api.services.calculators import rate
from agency_api.services.notifier import notify
from agency_api.status import TaskStatus, status_label, transition

log = logging.getLogger(__name__)

bp = Blueprint("tasks", __name__, url_prefix="/api/v1/tasks")

_MANAGERS = ("project_coordinator", "general_manager")


def _row(t: Task):
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "project_id": t.project_id,
        "project_name": t.project.name if t.project else None,
        "category": t.category,
        "priority": t.priority,
        "status": t.status,
        "status_label": status_label("task", t.status),
        "start_date": iso(t.start_date),
        "due_date": iso(t.due_date),
        "is_overdue": _is_overdue(t),
        "assigned_to_id": t.assigned_to_id,
        "assigned_to_name": t.assignee.full_name if t.assignee else None,
        "task_type": t.task_type,
        "parent_task_id": t.parent_task_id,
        "subtask_count": len(t.subtasks),
        "estimated_hours": float(t.estimated_hours) if t.estimated_hours is not None else None,
        "actual_hours": float(t.actual_hours) if t.actual_hours is not None else None,
        "notes": t.notes,
        "completed_at": t.completed_at.isoformat() if t.completed_at else None,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }


def _is_overdue(t: Task, today: date | None = None) -> bool:
    today = today or date.today()
    return bool(t.due_date) and t.due_date < today and t.status != TaskStatus.COMPLETED.value


def _validate(d, t: Task | None = None):
    creating = t is None
    errs = FormErrors()
    if creating or "title" in d:
        errs.text(d, "title", "Task title is required")
    if creating or "project_id" in d:
        if errs.required(d, "project_id", "Project is required") and not Project.query.get(d["project_id"]):
            errs.add("project_id", "Unknown project")
    if creating or "assigned_to_id" in d:
        if errs.required(d, "assigned_to_id", "Assigned to is required") \
                and not Employee.query.get(d["assigned_to_id"]):
            errs.add("assigned_to_id", "Unknown employee")
    if creating or "priority" in d:
        errs.choice(d, "priority", PRIORITIES, required=True)
    errs.choice(d, "task_type", TASK_TYPES)

    task_type = d.get("task_type") or (t.task_type if t else "main")
    if task_type == "sub":
        parent_id = d.get("parent_task_id", t.parent_task_id if t else None)
        parent = Task.query.get(parent_id) if parent_id else None
        if not parent_id:
            errs.add("parent_task_id", "Parent task is required for sub tasks")
        elif not parent or parent.task_type != "main":
            errs.add("parent_task_id", "Parent task must be an existing main task")
        elif t is not None and parent.id == t.id:
            errs.add("parent_task_id", "A task cannot be its own parent")

    start = errs.date(d, "start_date", required=False)
    due = errs.date(d, "due_date", "Due date is required", required=creating or "due_date" in d)
    errs.date_order(start or (t.start_date if t else None), due or (t.due_date if t else None),
                    "due_date", "Due date cannot be before start date")

    if creating:
        errs.positive(d, "estimated_hours", "Estimated hours must be greater than 0", required=False)
    else:
        errs.non_negative(d, "estimated_hours", "Estimated hours cannot be negative")
    errs.non_negative(d, "actual_hours", "Actual hours cannot be negative")
    errs.raise_if_any()
    return start, due


def _apply(t: Task, d, start, due):
    for k in ("title", "description", "category", "notes"):
        if k in d:
            setattr(t, k, clean_text(d.get(k)))
    for k in ("project_id", "assigned_to_id", "priority", "task_type"):
        if d.get(k):
            setattr(t, k, d[k])
    if t.task_type == "sub":
        if "parent_task_id" in d:
            t.parent_task_id = d["parent_task_id"]
    else:
        t.parent_task_id = None
    for k in ("estimated_hours", "actual_hours"):
        if k in d:
            setattr(t, k, to_number(d.get(k)))
    if start is not None:
        t.start_date = start
    if due is not None:
        t.due_date = due


def _get(task_id: int) -> Task:
    t = Task.query.get(task_id)
    if not t:
        raise NotFound("Task")
    return t


def _filtered():
    qry = Task.query
    for arg, col in (("project_id", Task.project_id), ("assigned_to_id", Task.assigned_to_id),
                     ("parent_task_id", Task.parent_task_id)):
        v = request.args.get(arg, type=int)
        if v:
            qry = qry.filter(col == v)
    for arg, col in (("status", Task.status), ("priority", Task.priority), ("task_type", Task.task_type),
                     ("category", Task.category)):
        v = request.args.get(arg)
        if v:
            qry = qry.filter(col == v)
    if (request.args.get("overdue") or "").lower() in ("1", "true", "yes"):
        qry = qry.filter(Task.due_date < date.today(), Task.status != TaskStatus.COMPLETED.value)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(Task.title.ilike(like), Task.description.ilike(like)))
    return qry


_SORT = {"id": Task.id, "title": Task.title, "due_date": Task.due_date, "priority": Task.priority,
         "status": Task.status, "created_at": Task.created_at}


@bp.get("")
@jwt_required()
def list_tasks():
    items, meta = paginate(_filtered(), _SORT, Task.due_date.asc())
    return ok([_row(t) for t in items], **meta)


@bp.get("/mine")
@jwt_required()
def my_tasks():
    u = current_user()
    emp_id = u.employee_id if u else None
    if not emp_id:
        return ok([], page=1, size=0, total=0)
    items, meta = paginate(_filtered().filter(Task.assigned_to_id == emp_id), _SORT, Task.due_date.asc())
    return ok([_row(t) for t in items], **meta)


@bp.get("/overdue")
@jwt_required()
def overdue_tasks():
    qry = _filtered().filter(Task.due_date < date.today(), Task.status != TaskStatus.COMPLETED.value)
    items, meta = paginate(qry, _SORT, Task.due_date.asc())
    return ok([_row(t) for t in items], **meta)


@bp.get("/stats")
@jwt_required()
def task_stats():
    qry = _filtered()
    counts = dict(qry.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in TaskStatus}
    total = sum(by_status.values())
    overdue = qry.filter(Task.due_date < date.today(), Task.status != TaskStatus.COMPLETED.value).count()
    pri = dict(qry.with_entities(Task.priority, func.count(Task.id)).group_by(Task.priority).all())
    return ok({
        "total": total,
        "by_status": by_status,
        "by_priority": {p: pri.get(p, 0) for p in PRIORITIES},
        "overdue": overdue,
        "completion_rate": rate(by_status[TaskStatus.COMPLETED.value], total),
    })


@bp.get("/<int:task_id>")
@jwt_required()
def get_task(task_id: int):
    t = _get(task_id)
    data = _row(t)
    data["subtasks"] = [_row(s) for s in t.subtasks]
    return ok(data)


@bp.get("/<int:task_id>/subtasks")
@jwt_required()
def list_subtasks(task_id: int):
    t = _get(task_id)
    return ok([_row(s) for s in t.subtasks])


@bp.post("")
@requires_roles(*_MANAGERS)
def create_task():
    d = request.get_json(silent=True, force=True) or {}
    start, due = _validate(d)
    t = Task(status=TaskStatus.PENDING.value, task_type="main", created_by_user_id=current_user_id())
    _apply(t, d, start, due)
    db.session.add(t)
    db.session.flush()
    if t.assignee and t.assignee.user_id:
        notify(t.assignee.user_id, "New task assigned", f"You have been assigned '{t.title}'",
               category="task", priority=t.priority, sender=current_user(), action_url=f"/tasks/{t.id}")
    db.session.commit()
    return ok(_row(t), status=201)


@bp.put("/<int:task_id>")
@requires_roles(*_MANAGERS)
def update_task(task_id: int):
    t = _get(task_id)
    d = request.get_json(silent=True, force=True) or {}
    if "status" in d:
        return fail("Use PATCH /tasks/<id>/status to change status", 422)
    start, due = _validate(d, t)
    _apply(t, d, start, due)
    db.session.commit()
    return ok(_row(t))


@bp.patch("/<int:task_id>/status")
@jwt_required()
def change_task_status(task_id: int):
    t = _get(task_id)
    u = current_user()
    is_assignee = bool(u and t.assigned_to_id and u.employee_id == t.assigned_to_id)
    if not (is_assignee or has_any_role(*_MANAGERS)):
        return fail("Forbidden", status=403, code="FORBIDDEN")

    d = request.get_json(silent=True, force=True) or {}
    t.status = transition("task", t.status, d.get("status") or "")
    if t.status == TaskStatus.COMPLETED.value:
        t.completed_at = datetime.utcnow()
    else:
        t.completed_at = None
    db.session.commit()
    log.info("task %s -> %s", t.id, t.status)
    return ok(_row(t))


@bp.delete("/<int:task_id>")
@requires_roles(*_MANAGERS)
def delete_task(task_id: int):
    t = _get(task_id)
    db.session.delete(t)
    db.session.commit()
    return ok({"id": task_id, "deleted": True})
