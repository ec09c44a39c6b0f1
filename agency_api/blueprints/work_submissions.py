# agency_api/blueprints/work_submissions.py
"""
Work submitted against a task and the coordinator review loop:
pending_review -> approved | needs_revision | rejected, and
needs_revision -> pending_review on resubmission.
"""
from __future__ import annotations

import logging
from datetime import datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func, or_

from agency_api.common.auth import current_roles, current_user, has_any_role, requires_roles
from agency_api.common.errors import NotFound, ValidationError
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text, is_blank, to_number
from agency_api.extensions import db
from agency_api.models.task import Task
from agency_api.models.work_submission import WorkSubmission
from agency_api.services.calculators import rate
from agency_api.services.notifier import notify
from agency_api.status import WorkSubmissionStatus, status_label, transition

log = logging.getLogger(__name__)

bp = Blueprint("work_submissions", __name__, url_prefix="/api/v1/work-submissions")

_REVIEWERS = ("project_coordinator", "general_manager")
_REVIEW_OUTCOMES = (
    WorkSubmissionStatus.APPROVED.value,
    WorkSubmissionStatus.NEEDS_REVISION.value,
    WorkSubmissionStatus.REJECTED.value,
)


def _row(w: WorkSubmission):
    return {
        "id": w.id,
        "task_id": w.task_id,
        "task_title": w.task.title if w.task else None,
        "project_id": w.project_id,
        "project_name": w.project.name if w.project else None,
        "employee_id": w.employee_id,
        "employee_name": w.employee.full_name if w.employee else None,
        "coordinator_id": w.coordinator_id,
        "title": w.title,
        "description": w.description,
        "time_spent": float(w.time_spent) if w.time_spent is not None else None,
        "attachments": w.attachments or [],
        "status": w.status,
        "status_label": status_label("work_submission", w.status),
        "submission_date": w.submission_date.isoformat() if w.submission_date else None,
        "revision_count": w.revision_count,
        "review_date": w.review_date.isoformat() if w.review_date else None,
        "reviewed_by": w.reviewed_by_user_id,
        "reviewer_role": w.reviewer_role,
        "feedback": w.feedback,
        "rejection_reason": w.rejection_reason,
    }


def _validate(d, creating=True):
    errs = FormErrors()
    if creating:
        if errs.required(d, "task_id", "Task is required") and not Task.query.get(d["task_id"]):
            errs.add("task_id", "Unknown task")
    if creating or "title" in d:
        errs.text(d, "title", "Title is required")
    if creating or "description" in d:
        errs.text(d, "description", "Description is required")
    if creating or "time_spent" in d:
        errs.positive(d, "time_spent", "Time spent must be greater than 0")
    if "attachments" in d and not isinstance(d.get("attachments"), list):
        errs.add("attachments", "Attachments must be a list")
    errs.raise_if_any()


def _get(sub_id: int) -> WorkSubmission:
    w = WorkSubmission.query.get(sub_id)
    if not w:
        raise NotFound("Work submission")
    return w


def _is_submitter(w: WorkSubmission) -> bool:
    u = current_user()
    return bool(u) and u.employee_id == w.employee_id


_SORT = {"id": WorkSubmission.id, "submission_date": WorkSubmission.submission_date,
         "status": WorkSubmission.status, "time_spent": WorkSubmission.time_spent}


def _filtered():
    qry = WorkSubmission.query
    for arg, col in (("employee_id", WorkSubmission.employee_id), ("project_id", WorkSubmission.project_id),
                     ("coordinator_id", WorkSubmission.coordinator_id), ("task_id", WorkSubmission.task_id)):
        v = request.args.get(arg, type=int)
        if v:
            qry = qry.filter(col == v)
    status = request.args.get("status")
    if status:
        qry = qry.filter(WorkSubmission.status == status)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(WorkSubmission.title.ilike(like), WorkSubmission.description.ilike(like)))
    return qry


@bp.get("")
@jwt_required()
def list_submissions():
    qry = _filtered()
    # employees only see their own work
    if current_roles() <= {"employee"}:
        u = current_user()
        qry = qry.filter(WorkSubmission.employee_id == (u.employee_id if u else None))
    items, meta = paginate(qry, _SORT, WorkSubmission.submission_date.desc())
    return ok([_row(w) for w in items], **meta)


@bp.get("/pending")
@requires_roles(*_REVIEWERS)
def pending_submissions():
    qry = _filtered().filter(WorkSubmission.status == WorkSubmissionStatus.PENDING_REVIEW.value)
    items, meta = paginate(qry, _SORT, WorkSubmission.submission_date.asc())
    return ok([_row(w) for w in items], **meta)


@bp.get("/stats")
@jwt_required()
def submission_stats():
    qry = _filtered()
    counts = dict(qry.with_entities(WorkSubmission.status, func.count(WorkSubmission.id))
                  .group_by(WorkSubmission.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in WorkSubmissionStatus}
    total = sum(by_status.values())
    hours = qry.with_entities(func.coalesce(func.sum(WorkSubmission.time_spent), 0)).scalar() or 0
    return ok({
        "total": total,
        "by_status": by_status,
        "total_time_spent": float(hours),
        "approval_rate": rate(by_status[WorkSubmissionStatus.APPROVED.value], total),
    })


@bp.get("/<int:sub_id>")
@jwt_required()
def get_submission(sub_id: int):
    return ok(_row(_get(sub_id)))


@bp.post("")
@jwt_required()
def create_submission():
    d = request.get_json(silent=True, force=True) or {}
    _validate(d)
    u = current_user()
    task = Task.query.get(d["task_id"])
    employee_id = d.get("employee_id") if has_any_role(*_REVIEWERS) else None
    employee_id = employee_id or (u.employee_id if u else None) or task.assigned_to_id
    if not employee_id:
        raise ValidationError({"employee_id": "Employee is required"})

    w = WorkSubmission(
        task_id=task.id,
        project_id=task.project_id,
        coordinator_id=task.project.coordinator_id if task.project else None,
        employee_id=employee_id,
        title=d["title"].strip(),
        description=d["description"].strip(),
        time_spent=to_number(d["time_spent"]),
        attachments=d.get("attachments") or [],
        status=WorkSubmissionStatus.PENDING_REVIEW.value,
    )
    db.session.add(w)
    db.session.flush()
    coord = task.project.coordinator if task.project else None
    if coord and coord.user_id:
        notify(coord.user_id, "Work submitted for review", f"'{w.title}' on task '{task.title}'",
               category="task", sender=u, action_url=f"/work-submissions/{w.id}")
    db.session.commit()
    return ok(_row(w), status=201)


@bp.put("/<int:sub_id>")
@jwt_required()
def update_submission(sub_id: int):
    w = _get(sub_id)
    if not (_is_submitter(w) or has_any_role(*_REVIEWERS)):
        return fail("Forbidden", status=403, code="FORBIDDEN")
    if w.status not in (WorkSubmissionStatus.PENDING_REVIEW.value, WorkSubmissionStatus.NEEDS_REVISION.value):
        return fail(f"Cannot edit a submission in '{w.status}' status", 409)
    d = request.get_json(silent=True, force=True) or {}
    _validate(d, creating=False)
    for k in ("title", "description"):
        if k in d:
            setattr(w, k, d[k].strip())
    if "time_spent" in d:
        w.time_spent = to_number(d["time_spent"])
    if "attachments" in d:
        w.attachments = d["attachments"]
    db.session.commit()
    return ok(_row(w))


@bp.post("/<int:sub_id>/review")
@requires_roles(*_REVIEWERS)
def review_submission(sub_id: int):
    w = _get(sub_id)
    d = request.get_json(silent=True, force=True) or {}
    target = d.get("status")
    errs = FormErrors()
    if target not in _REVIEW_OUTCOMES:
        errs.add("status", f"status must be one of {', '.join(_REVIEW_OUTCOMES)}")
    if target == WorkSubmissionStatus.REJECTED.value and is_blank(d.get("rejection_reason")):
        errs.add("rejection_reason", "Rejection reason is required")
    errs.raise_if_any()

    w.status = transition("work_submission", w.status, target)
    u = current_user()
    w.review_date = datetime.utcnow()
    w.reviewed_by_user_id = u.id if u else None
    w.reviewer_role = u.role if u else None
    w.feedback = clean_text(d.get("feedback"))
    w.rejection_reason = clean_text(d.get("rejection_reason"))

    if w.employee and w.employee.user_id:
        kind = {"approved": "success", "needs_revision": "warning", "rejected": "error"}[target]
        notify(w.employee.user_id, f"Submission {status_label('work_submission', target).lower()}",
               w.feedback or w.rejection_reason or f"'{w.title}' was reviewed",
               type=kind, category="task", sender=u, action_url=f"/work-submissions/{w.id}")
    db.session.commit()
    log.info("work submission %s reviewed -> %s", w.id, w.status)
    return ok(_row(w))


@bp.post("/<int:sub_id>/resubmit")
@jwt_required()
def resubmit(sub_id: int):
    w = _get(sub_id)
    if not _is_submitter(w):
        return fail("Only the submitter can resubmit", status=403, code="FORBIDDEN")
    d = request.get_json(silent=True, force=True) or {}
    _validate(d, creating=False)
    w.status = transition("work_submission", w.status, WorkSubmissionStatus.PENDING_REVIEW)
    for k in ("title", "description"):
        if k in d:
            setattr(w, k, d[k].strip())
    if "time_spent" in d:
        w.time_spent = to_number(d["time_spent"])
    if "attachments" in d:
        w.attachments = d["attachments"]
    w.revision_count = (w.revision_count or 0) + 1
    w.submission_date = datetime.utcnow()
    db.session.commit()
    return ok(_row(w))


@bp.delete("/<int:sub_id>")
@jwt_required()
def delete_submission(sub_id: int):
    w = _get(sub_id)
    if not (has_any_role(*_REVIEWERS) or (_is_submitter(w)
                                          and w.status == WorkSubmissionStatus.PENDING_REVIEW.value)):
        return fail("Forbidden", status=403, code="FORBIDDEN")
    db.session.delete(w)
    db.session.commit()
    return ok({"id": sub_id, "deleted": True})
