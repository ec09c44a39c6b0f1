# agency_api/blueprints/attendance.py
from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from agency_api.common.auth import current_roles, current_user, requires_roles
from agency_api.common.dates import hhmm, iso, parse_date, parse_time
from agency_api.common.errors import NotFound, ValidationError
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate
from agency_api.common.validation import FormErrors, is_blank
from agency_api.extensions import db
from agency_api.models.attendance import AttendanceRecord
from agency_api.models.employee import Employee
from agency_api.services.calculators import attendance_hours_and_status, rate
from agency_api.status import AttendanceStatus, status_label

log = logging.getLogger(__name__)

bp = Blueprint("attendance", __name__, url_prefix="/api/v1/attendance")

_MANAGERS = ("hr", "general_manager", "project_coordinator")
# statuses a user may set by hand; everything else is derived from the times
_EXPLICIT = (AttendanceStatus.REMOTE.value, AttendanceStatus.ON_LEAVE.value)
CSV_COLUMNS = ("employeeId", "date", "checkIn", "checkOut", "notes", "location")
DEFAULT_LOCATION = "Office"


def _row(r: AttendanceRecord):
    return {
        "id": r.id,
        "employee_id": r.employee_id,
        "employee_name": r.employee.full_name if r.employee else None,
        "date": iso(r.date),
        "check_in": hhmm(r.check_in),
        "check_out": hhmm(r.check_out),
        "hours_worked": round(float(r.hours_worked or 0), 2),
        "status": r.status,
        "status_label": status_label("attendance", r.status),
        "notes": r.notes,
        "location": r.location,
        "source": r.source,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


def _resolve_employee(ref) -> Optional[Employee]:
    if ref in (None, ""):
        return None
    s = str(ref).strip()
    if s.isdigit():
        emp = Employee.query.get(int(s))
        if emp:
            return emp
    return Employee.query.filter_by(code=s).first()


def _derive(r: AttendanceRecord, explicit_status: Optional[str] = None):
    hours, status = attendance_hours_and_status(
        r.check_in, r.check_out, current_app.config.get("STANDARD_CHECK_IN"))
    r.hours_worked = round(hours, 2)
    r.status = explicit_status or status


def _validate(d, creating=True) -> Dict[str, Any]:
    """Returns cleaned values: employee, date, check_in, check_out, status."""
    errs = FormErrors()
    out: Dict[str, Any] = {}
    if creating:
        if errs.required(d, "employee_id", "Employee is required"):
            out["employee"] = _resolve_employee(d["employee_id"])
            if out["employee"] is None:
                errs.add("employee_id", "Employee not found")
        out["date"] = errs.date(d, "date", "Date is required")

    explicit = d.get("status")
    if not is_blank(explicit) and explicit not in _EXPLICIT:
        errs.add("status", f"status can only be set to {' or '.join(_EXPLICIT)}")
        explicit = None
    out["status"] = explicit or None

    for k in ("check_in", "check_out"):
        if k in d:
            out[k] = parse_time(d.get(k))
            if out[k] is None and not is_blank(d.get(k)):
                errs.add(k, "Invalid time (use HH:MM)")
    if creating and not out.get("status") and is_blank(d.get("check_in")) and is_blank(d.get("check_out")):
        errs.add("check_in", "At least check-in or check-out time is required")
    ci, co = out.get("check_in"), out.get("check_out")
    if ci and co and co <= ci:
        errs.add("check_out", "Check-out time must be after check-in time")
    errs.raise_if_any()
    return out


def _create(employee: Employee, day, check_in, check_out, notes=None, location=None,
            explicit_status=None, source="manual") -> AttendanceRecord:
    if AttendanceRecord.query.filter_by(employee_id=employee.id, date=day).first():
        raise ValidationError({"date": "Attendance already recorded for this date"})
    r = AttendanceRecord(
        employee_id=employee.id,
        date=day,
        check_in=check_in,
        check_out=check_out,
        notes=notes or None,
        location=location or DEFAULT_LOCATION,
        source=source,
    )
    _derive(r, explicit_status)
    db.session.add(r)
    return r


def _get(rec_id: int) -> AttendanceRecord:
    r = AttendanceRecord.query.get(rec_id)
    if not r:
        raise NotFound("Attendance record")
    return r


def _filtered():
    qry = AttendanceRecord.query
    emp_id = request.args.get("employee_id", type=int)
    if emp_id:
        qry = qry.filter(AttendanceRecord.employee_id == emp_id)
    status = request.args.get("status")
    if status:
        qry = qry.filter(AttendanceRecord.status == status)
    on = parse_date(request.args.get("date"))
    if on:
        qry = qry.filter(AttendanceRecord.date == on)
    frm, to = parse_date(request.args.get("from")), parse_date(request.args.get("to"))
    if frm:
        qry = qry.filter(AttendanceRecord.date >= frm)
    if to:
        qry = qry.filter(AttendanceRecord.date <= to)
    return qry


# ---------- records ----------
@bp.get("")
@jwt_required()
def list_records():
    qry = _filtered()
    if not (current_roles() & set(_MANAGERS + ("admin",))):
        u = current_user()
        qry = qry.filter(AttendanceRecord.employee_id == (u.employee_id if u else None))
    items, meta = paginate(qry, {"date": AttendanceRecord.date, "status": AttendanceRecord.status,
                                 "hours_worked": AttendanceRecord.hours_worked},
                           AttendanceRecord.date.desc())
    return ok([_row(r) for r in items], **meta)


@bp.get("/stats")
@jwt_required()
def attendance_stats():
    qry = _filtered()
    counts = dict(qry.with_entities(AttendanceRecord.status, func.count(AttendanceRecord.id))
                  .group_by(AttendanceRecord.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in AttendanceStatus}
    records = sum(by_status.values())
    hours = qry.with_entities(func.coalesce(func.sum(AttendanceRecord.hours_worked), 0)).scalar() or 0
    headcount = Employee.query.filter_by(status="active").count()
    attended = sum(by_status[s] for s in ("present", "late", "half_day", "remote"))
    return ok({
        "total_employees": headcount,
        "total_records": records,
        "by_status": by_status,
        "attendance_rate": rate(attended, headcount),
        "average_hours": round(float(hours) / records, 2) if records else 0,
    })


@bp.get("/<int:rec_id>")
@jwt_required()
def get_record(rec_id: int):
    return ok(_row(_get(rec_id)))


@bp.post("")
@jwt_required()
def create_record():
    d = request.get_json(silent=True, force=True) or {}
    u = current_user()
    # employees may only clock themselves
    if not (current_roles() & set(_MANAGERS + ("admin",))):
        d["employee_id"] = u.employee_id if u else None
    v = _validate(d, creating=True)
    r = _create(v["employee"], v["date"], v.get("check_in"), v.get("check_out"),
                notes=d.get("notes"), location=d.get("location"), explicit_status=v["status"])
    db.session.commit()
    return ok(_row(r), status=201)


@bp.put("/<int:rec_id>")
@requires_roles(*_MANAGERS)
def update_record(rec_id: int):
    r = _get(rec_id)
    d = request.get_json(silent=True, force=True) or {}
    v = _validate(d, creating=False)
    ci = v.get("check_in", r.check_in)
    co = v.get("check_out", r.check_out)
    if ci and co and co <= ci:
        raise ValidationError({"check_out": "Check-out time must be after check-in time"})
    r.check_in, r.check_out = ci, co
    for k in ("notes", "location"):
        if k in d:
            setattr(r, k, d.get(k) or None)
    # notes/location edits keep the stored status and hours
    if "check_in" in d or "check_out" in d or v["status"]:
        _derive(r, v["status"])
    db.session.commit()
    return ok(_row(r))


@bp.delete("/<int:rec_id>")
@requires_roles(*_MANAGERS)
def delete_record(rec_id: int):
    r = _get(rec_id)
    db.session.delete(r)
    db.session.commit()
    return ok({"id": rec_id, "deleted": True})


# ---------- CSV import ----------
def _read_csv_text() -> Optional[str]:
    f = request.files.get("file")
    if f:
        return f.read().decode("utf-8-sig", errors="ignore")
    d = request.get_json(silent=True) or {}
    return d.get("csv")


def import_rows(text: str) -> Dict[str, Any]:
    """
    Header row first (row 1); blank lines skipped. Each data row is saved in
    its own savepoint so one bad row never drops the others.
    """
    lines = [ln for ln in (text or "").splitlines() if ln.strip()]
    if not lines:
        return {"success": 0, "errors": ["CSV is empty"]}

    reader = csv.DictReader(io.StringIO("\n".join(lines)), skipinitialspace=True)
    header = [h.strip() for h in (reader.fieldnames or [])]
    reader.fieldnames = header
    missing = [c for c in ("employeeId", "date") if c not in header]
    if missing:
        return {"success": 0, "errors": [f"Missing column(s): {', '.join(missing)}"]}

    success = 0
    errors: List[str] = []
    for i, raw in enumerate(reader):
        row_no = i + 2
        row = {k: (v or "").strip() for k, v in raw.items() if k}
        if not row.get("employeeId") or not row.get("date"):
            errors.append(f"Row {row_no}: Missing required fields")
            continue
        emp = _resolve_employee(row["employeeId"])
        if emp is None:
            errors.append(f"Row {row_no}: Employee not found")
            continue
        day = parse_date(row["date"])
        if day is None:
            errors.append(f"Row {row_no}: Invalid date '{row['date']}'")
            continue
        ci, co = parse_time(row.get("checkIn")), parse_time(row.get("checkOut"))
        if (row.get("checkIn") and ci is None) or (row.get("checkOut") and co is None):
            errors.append(f"Row {row_no}: Invalid time")
            continue
        if ci and co and co <= ci:
            errors.append(f"Row {row_no}: Check-out time must be after check-in time")
            continue
        try:
            with db.session.begin_nested():
                _create(emp, day, ci, co, notes=row.get("notes"), location=row.get("location"),
                        source="import")
        except ValidationError as e:
            errors.append(f"Row {row_no}: {next(iter(e.errors.values()))}")
            continue
        success += 1

    db.session.commit()
    log.info("attendance import: %d created, %d errors", success, len(errors))
    return {"success": success, "errors": errors}


@bp.post("/import")
@requires_roles("hr")
def import_csv():
    text = _read_csv_text()
    if not text:
        return fail("Provide a CSV file (field 'file') or JSON {\"csv\": \"...\"}", 422)
    return ok(import_rows(text))


@bp.get("/import/template")
@jwt_required()
def import_template():
    return ok({"columns": list(CSV_COLUMNS),
               "example": "employeeId,date,checkIn,checkOut,notes,location\n1,2024-01-15,09:00,17:30,,Office"})
