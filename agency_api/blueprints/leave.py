# agency_api/blueprints/leave.py
from datetime import datetime
from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from agency_api.extensions import db
from agency_api.common.auth import current_roles, current_user, has_any_role, requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound, ValidationError
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate
from agency_api.common.validation import FormErrors, clean_text, is_blank
from agency_api.models.category import Category
from agency_api.models.employee import Employee
from agency_api.models.leave import LeaveRequest, LeaveApprovalAction
from agency_api.services.calculators import calculate_total_days
from agency_api.services.notifier import notify
from agency_api.status import LeaveStatus, status_label, transition

bp = Blueprint("leave", __name__, url_prefix="/api/v1/leave")

_EDITABLE = (LeaveStatus.PENDING.value, LeaveStatus.COORDINATOR_APPROVED.value)

def _uid():
    u = current_user()
    return u.id if u else None

def _row(lr: LeaveRequest):
    return {
        "id": lr.id,
        "employee_id": lr.employee_id,
        "employee_name": lr.employee.full_name if lr.employee else None,
        "leave_type": lr.leave_type,
        "start_date": iso(lr.start_date),
        "end_date": iso(lr.end_date),
        "total_days": lr.total_days,
        "reason": lr.reason,
        "status": lr.status,
        "status_label": status_label("leave", lr.status),
        "coordinator_approval": None if lr.coordinator_approved is None else {
            "approved": lr.coordinator_approved,
            "by": lr.coordinator_by_user_id,
            "at": lr.coordinator_at.isoformat() if lr.coordinator_at else None,
            "comments": lr.coordinator_comments,
        },
        "hr_approval": None if lr.hr_approved is None else {
            "approved": lr.hr_approved,
            "by": lr.hr_by_user_id,
            "at": lr.hr_at.isoformat() if lr.hr_at else None,
            "comments": lr.hr_comments,
        },
        "created_at": lr.created_at.isoformat() if lr.created_at else None,
        "updated_at": lr.updated_at.isoformat() if lr.updated_at else None,
    }

def _audit(lr: LeaveRequest, action: str, comment=None):
    lr.actions.append(LeaveApprovalAction(action=action, comment=comment, acted_by_user_id=_uid()))

def _leave_categories():
    return (Category.query.filter_by(type="leave", is_active=True)
            .order_by(Category.name.asc()).all())

def validate_leave(d, lr: LeaveRequest = None):
    """Field checks for a leave request; returns (start, end, total_days)."""
    creating = lr is None
    errs = FormErrors()
    if creating or "leave_type" in d:
        errs.text(d, "leave_type", "Leave type is required")
    start = errs.date(d, "start_date", "Start date is required", required=creating or "start_date" in d)
    end = errs.date(d, "end_date", "End date is required", required=creating or "end_date" in d)
    if creating or "reason" in d:
        errs.text(d, "reason", "Reason is required")

    start = start or (lr.start_date if lr else None)
    end = end or (lr.end_date if lr else None)
    errs.date_order(start, end, "end_date", "End date must be after start date")
    total = calculate_total_days(start, end) if start and end and end >= start else None

    leave_type = d.get("leave_type") or (lr.leave_type if lr else None)
    cats = {c.name: c for c in _leave_categories()}
    if isinstance(leave_type, str) and cats:
        cat = cats.get(leave_type)
        if cat is None:
            errs.add("leave_type", "Unknown leave type")
        elif cat.max_days and total and total > cat.max_days:
            errs.add("end_date", f"{cat.name} allows at most {cat.max_days} day(s)")
    errs.raise_if_any()
    return start, end, total

def _get(rid) -> LeaveRequest:
    lr = LeaveRequest.query.get(rid)
    if not lr:
        raise NotFound("Leave request")
    return lr

def _is_owner(lr: LeaveRequest) -> bool:
    u = current_user()
    return bool(u) and u.employee_id == lr.employee_id

def _notify_owner(lr: LeaveRequest, title, message, kind="info"):
    if lr.employee and lr.employee.user_id:
        notify(lr.employee.user_id, title, message, type=kind, category="general", sender=current_user(),
               action_url=f"/leave/{lr.id}")

# ---------- Categories ----------
@bp.get("/categories")
@jwt_required()
def list_leave_categories():
    return ok([{
        "id": c.id, "name": c.name, "description": c.description, "color": c.color,
        "max_days": c.max_days, "requires_approval": c.requires_approval,
    } for c in _leave_categories()])

# ---------- Requests ----------
@bp.get("/requests")
@jwt_required()
def list_requests():
    qry = LeaveRequest.query
    emp_id = request.args.get("employee_id", type=int)
    if emp_id:
        qry = qry.filter(LeaveRequest.employee_id == emp_id)
    for arg, col in (("status", LeaveRequest.status), ("leave_type", LeaveRequest.leave_type)):
        v = request.args.get(arg)
        if v:
            qry = qry.filter(col == v)
    if current_roles() <= {"employee"}:
        u = current_user()
        qry = qry.filter(LeaveRequest.employee_id == (u.employee_id if u else None))
    items, meta = paginate(qry, {"start_date": LeaveRequest.start_date, "created_at": LeaveRequest.created_at,
                                 "status": LeaveRequest.status}, LeaveRequest.created_at.desc())
    return ok([_row(lr) for lr in items], **meta)

@bp.get("/requests/<int:rid>")
@jwt_required()
def get_request(rid):
    lr = _get(rid)
    data = _row(lr)
    data["history"] = [{
        "action": a.action, "comment": a.comment, "by": a.acted_by_user_id,
        "at": a.acted_at.isoformat() if a.acted_at else None,
    } for a in lr.actions]
    return ok(data)

@bp.get("/stats")
@jwt_required()
def leave_stats():
    counts = dict(db.session.query(LeaveRequest.status, func.count(LeaveRequest.id))
                  .group_by(LeaveRequest.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in LeaveStatus}
    return ok({"total": sum(by_status.values()), "by_status": by_status})

@bp.post("/requests")
@jwt_required()
def apply_leave():
    d = request.get_json(silent=True, force=True) or {}
    u = current_user()
    emp_id = d.get("employee_id") if has_any_role("hr") else None
    emp_id = emp_id or (u.employee_id if u else None)
    if not emp_id or not Employee.query.get(emp_id):
        raise ValidationError({"employee_id": "Employee is required"})

    start, end, total = validate_leave(d)
    lr = LeaveRequest(
        employee_id=emp_id,
        leave_type=d["leave_type"].strip(),
        start_date=start,
        end_date=end,
        total_days=total,
        reason=d["reason"].strip(),
        status=LeaveStatus.PENDING.value,
        applied_by_user_id=u.id if u else None,
    )
    db.session.add(lr)
    db.session.flush()
    _audit(lr, "applied")
    db.session.commit()
    return ok(_row(lr), status=201)

@bp.put("/requests/<int:rid>")
@jwt_required()
def update_request(rid):
    lr = _get(rid)
    if not (_is_owner(lr) or has_any_role("hr")):
        return fail("Forbidden", 403, code="FORBIDDEN")
    if lr.status not in _EDITABLE:
        return fail(f"Cannot edit request in '{lr.status}' status", 409)
    d = request.get_json(silent=True, force=True) or {}
    start, end, total = validate_leave(d, lr)
    if d.get("leave_type"):
        lr.leave_type = d["leave_type"].strip()
    if d.get("reason"):
        lr.reason = d["reason"].strip()
    lr.start_date, lr.end_date, lr.total_days = start, end, total
    _audit(lr, "updated")
    db.session.commit()
    return ok(_row(lr))

def _decision(d):
    approved = d.get("approved")
    if not isinstance(approved, bool):
        raise ValidationError({"approved": "approved must be true or false"})
    comments = clean_text(d.get("comments"))
    if not approved and is_blank(comments):
        raise ValidationError({"comments": "A reason is required when rejecting"})
    return approved, comments

@bp.post("/requests/<int:rid>/coordinator-decision")
@requires_roles("project_coordinator")
def coordinator_decision(rid):
    lr = _get(rid)
    approved, comments = _decision(request.get_json(silent=True, force=True) or {})
    target = LeaveStatus.COORDINATOR_APPROVED if approved else LeaveStatus.REJECTED
    lr.status = transition("leave", lr.status, target)
    lr.coordinator_approved = approved
    lr.coordinator_by_user_id = _uid()
    lr.coordinator_at = datetime.utcnow()
    lr.coordinator_comments = comments
    _audit(lr, lr.status, comments)
    _notify_owner(lr, "Leave request " + ("approved by coordinator" if approved else "rejected"),
                  comments or f"{lr.leave_type}: {iso(lr.start_date)} to {iso(lr.end_date)}",
                  "info" if approved else "error")
    db.session.commit()
    return ok(_row(lr))

@bp.post("/requests/<int:rid>/hr-decision")
@requires_roles("hr")
def hr_decision(rid):
    lr = _get(rid)
    approved, comments = _decision(request.get_json(silent=True, force=True) or {})
    target = LeaveStatus.HR_APPROVED if approved else LeaveStatus.REJECTED
    # HR signs off only after the coordinator
    if lr.status == LeaveStatus.PENDING.value:
        return fail("Coordinator approval is required before HR approval", 409, code="ILLEGAL_TRANSITION")
    lr.status = transition("leave", lr.status, target)
    lr.hr_approved = approved
    lr.hr_by_user_id = _uid()
    lr.hr_at = datetime.utcnow()
    lr.hr_comments = comments
    _audit(lr, lr.status, comments)
    _notify_owner(lr, "Leave request " + ("approved" if approved else "rejected by HR"),
                  comments or f"{lr.leave_type}: {iso(lr.start_date)} to {iso(lr.end_date)}",
                  "success" if approved else "error")
    db.session.commit()
    return ok(_row(lr))

@bp.post("/requests/<int:rid>/cancel")
@jwt_required()
def cancel_request(rid):
    lr = _get(rid)
    if not (_is_owner(lr) or has_any_role("hr")):
        return fail("Forbidden", 403, code="FORBIDDEN")
    d = request.get_json(silent=True) or {}
    lr.status = transition("leave", lr.status, LeaveStatus.CANCELLED)
    _audit(lr, "cancelled", clean_text(d.get("reason")))
    db.session.commit()
    return ok(_row(lr))

@bp.delete("/requests/<int:rid>")
@requires_roles("hr")
def delete_request(rid):
    lr = _get(rid)
    db.session.delete(lr)
    db.session.commit()
    return ok({"id": rid, "deleted": True})
