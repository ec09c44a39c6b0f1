# agency_api/blueprints/dashboard.py
from datetime import date, datetime

from flask import Blueprint
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from agency_api.common.auth import current_roles, current_user
from agency_api.common.http import ok
from agency_api.extensions import db
from agency_api.models.attendance import AttendanceRecord
from agency_api.models.employee import Employee
from agency_api.models.finance import ClientPayment, FinancialTransaction, PettyCash, SalaryRecord
from agency_api.models.invoice import Invoice
from agency_api.models.leave import LeaveRequest
from agency_api.models.project import Project
from agency_api.models.task import Task
from agency_api.models.work_submission import WorkSubmission
from agency_api.services.calculators import rate
from agency_api.models.notification import Notification, NotificationRead
from agency_api.status import (
    InvoiceStatus, LeaveStatus, ProjectStatus, TaskStatus, TransactionStatus, WorkSubmissionStatus,
)

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


def _count_by(model, col=None, *filters):
    col = col if col is not None else model.status
    qry = db.session.query(col, func.count(model.id))
    if filters:
        qry = qry.filter(*filters)
    return dict(qry.group_by(col).all())


def _tasks_block(*filters):
    counts = _count_by(Task, Task.status, *filters)
    total = sum(counts.values())
    overdue = Task.query.filter(*filters).filter(Task.due_date < date.today(),
                                                  Task.status != TaskStatus.COMPLETED.value).count()
    return {
        "total": total,
        "by_status": {s.value: counts.get(s.value, 0) for s in TaskStatus},
        "overdue": overdue,
        "completion_rate": rate(counts.get(TaskStatus.COMPLETED.value, 0), total),
    }


def _projects_block(*filters):
    counts = _count_by(Project, Project.status, *filters)
    return {"total": sum(counts.values()),
            "by_status": {s.value: counts.get(s.value, 0) for s in ProjectStatus}}


def _finance_block():
    waiting = {}
    for m in (FinancialTransaction, ClientPayment, SalaryRecord, PettyCash):
        for status, n in _count_by(m).items():
            waiting[status] = waiting.get(status, 0) + n
    inv = _count_by(Invoice)
    return {
        "awaiting_gm": waiting.get(TransactionStatus.PENDING.value, 0),
        "awaiting_admin": waiting.get(TransactionStatus.GM_APPROVED.value, 0),
        "overdue_invoices": inv.get(InvoiceStatus.OVERDUE.value, 0),
        "open_invoices": sum(inv.get(s.value, 0) for s in (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID)),
    }


def _people_block():
    today = date.today()
    headcount = Employee.query.filter_by(status="active").count()
    today_counts = _count_by(AttendanceRecord, AttendanceRecord.status, AttendanceRecord.date == today)
    attended = sum(today_counts.get(s, 0) for s in ("present", "late", "half_day", "remote"))
    leave = _count_by(LeaveRequest)
    return {
        "headcount": headcount,
        "attendance_today": today_counts,
        "attendance_rate_today": rate(attended, headcount),
        "leave_awaiting_coordinator": leave.get(LeaveStatus.PENDING.value, 0),
        "leave_awaiting_hr": leave.get(LeaveStatus.COORDINATOR_APPROVED.value, 0),
    }


@bp.get("")
@jwt_required()
def get_dashboard():
    u = current_user()
    roles = current_roles()
    emp_id = u.employee_id if u else None
    uid = u.id if u else None

    read_sub = db.select(NotificationRead.notification_id).where(NotificationRead.user_id == uid)
    unread = Notification.query.filter(
        (Notification.recipient_user_id == uid) | (Notification.recipient_user_id.is_(None)),
        Notification.id.notin_(read_sub),
    ).count()
    data = {
        "generated_at": datetime.utcnow().isoformat(),
        "user": u.to_public() if u else None,
        "unread_notifications": unread,
    }

    if roles & {"admin", "general_manager"}:
        data["projects"] = _projects_block()
        data["tasks"] = _tasks_block()
        data["finance"] = _finance_block()
        data["people"] = _people_block()
    if "project_coordinator" in roles:
        mine = Project.coordinator_id == emp_id
        data["projects"] = _projects_block(mine)
        project_ids = db.select(Project.id).where(mine)
        data["tasks"] = _tasks_block(Task.project_id.in_(project_ids))
        data["reviews_pending"] = WorkSubmission.query.filter(
            WorkSubmission.coordinator_id == emp_id,
            WorkSubmission.status == WorkSubmissionStatus.PENDING_REVIEW.value).count()
        data["leave_awaiting_coordinator"] = LeaveRequest.query.filter_by(
            status=LeaveStatus.PENDING.value).count()
    if "hr" in roles:
        data["people"] = _people_block()
    if "employee" in roles:
        data["tasks"] = _tasks_block(Task.assigned_to_id == emp_id)
        subs = _count_by(WorkSubmission, WorkSubmission.status, WorkSubmission.employee_id == emp_id)
        data["submissions"] = {s.value: subs.get(s.value, 0) for s in WorkSubmissionStatus}
        data["my_leave"] = _count_by(LeaveRequest, LeaveRequest.status, LeaveRequest.employee_id == emp_id)
    return ok(data)
