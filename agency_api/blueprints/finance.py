# agency_api/blueprints/finance.py
"""
Money records and their two-step sign-off.

Four resources share one route set (list/create/get/update/delete plus
approve-gm, approve-admin and reject):

    /api/v1/finance/transactions
    /api/v1/finance/client-payments
    /api/v1/finance/salary-records
    /api/v1/finance/petty-cash

GM approval is strict: only a general_manager may give it, admin included.
"""
from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import extract, func, or_

from agency_api.common.auth import current_roles, current_user, current_user_id, has_any_role, requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text, to_number
from agency_api.extensions import db
from agency_api.models.category import Category
from agency_api.models.client import Client
from agency_api.models.employee import Employee
from agency_api.models.finance import (
    PAYMENT_METHODS, REFERENCE_TYPES, TXN_TYPES,
    ClientPayment, FinancialTransaction, PettyCash, SalaryRecord,
)
from agency_api.models.invoice import Invoice
from agency_api.models.project import Project
from agency_api.services import approvals
from agency_api.services.calculators import calculate_net_salary, growth
from agency_api.status import TransactionStatus, status_color, status_label

log = logging.getLogger(__name__)

bp = Blueprint("finance", __name__, url_prefix="/api/v1/finance")

# reference types written by approvals.post_to_ledger
_LEDGER_SOURCES = ("client_payment", "salary", "petty_cash")


def _money(v):
    return round(float(v or 0), 2)


def _status_fields(x):
    data = x.approval_fields()
    data["status_label"] = status_label("transaction", x.status)
    data["status_color"] = status_color("transaction", x.status)
    return data


# ---------- transactions ----------
def _txn_row(t: FinancialTransaction):
    return {
        "id": t.id, "type": t.txn_type, "category": t.category, "subcategory": t.subcategory,
        "amount": _money(t.amount), "description": t.description, "date": iso(t.transaction_date),
        "payment_method": t.payment_method, "reference_type": t.reference_type,
        "reference_id": t.reference_id, "notes": t.notes, **_status_fields(t),
    }


def _txn_validate(d, creating):
    errs = FormErrors()
    if creating or "type" in d:
        errs.choice(d, "type", TXN_TYPES, required=True)
    if creating or "category" in d:
        errs.required(d, "category", "Category is required")
    if creating or "amount" in d:
        errs.positive(d, "amount", "Amount must be greater than 0")
    if creating or "description" in d:
        errs.text(d, "description", "Description is required")
    out = {"date": errs.date(d, "date", "Date is required", required=creating or "date" in d)}
    errs.choice(d, "payment_method", PAYMENT_METHODS)
    errs.choice(d, "reference_type", REFERENCE_TYPES)
    errs.raise_if_any()
    return out


def _txn_apply(t: FinancialTransaction, d, v):
    if d.get("type"):
        t.txn_type = d["type"]
    for k in ("category", "subcategory", "description", "notes", "payment_method", "reference_type"):
        if k in d:
            setattr(t, k, clean_text(d.get(k)))
    if "reference_id" in d:
        t.reference_id = d.get("reference_id")
    if "amount" in d:
        t.amount = to_number(d["amount"])
    if v["date"]:
        t.transaction_date = v["date"]


# ---------- client payments ----------
def _cp_row(p: ClientPayment):
    return {
        "id": p.id, "client_id": p.client_id, "client_name": p.client.name if p.client else None,
        "project_id": p.project_id, "project_name": p.project.name if p.project else None,
        "invoice_id": p.invoice_id,
        "invoice_number": p.invoice.invoice_number if p.invoice else None,
        "amount": _money(p.amount), "payment_date": iso(p.payment_date),
        "payment_method": p.payment_method, "reference_number": p.reference_number,
        "notes": p.notes, **_status_fields(p),
    }


def _cp_validate(d, creating):
    errs = FormErrors()
    if creating or "client_id" in d:
        if errs.required(d, "client_id", "Client is required") and not Client.query.get(d["client_id"]):
            errs.add("client_id", "Unknown client")
    if creating or "project_id" in d:
        if errs.required(d, "project_id", "Project is required") and not Project.query.get(d["project_id"]):
            errs.add("project_id", "Unknown project")
    if creating or "amount" in d:
        errs.positive(d, "amount", "Amount must be greater than 0")
    out = {"date": errs.date(d, "payment_date", "Payment date is required",
                             required=creating or "payment_date" in d)}
    if creating or "payment_method" in d:
        if errs.required(d, "payment_method", "Payment method is required"):
            errs.choice(d, "payment_method", PAYMENT_METHODS)
    if d.get("invoice_id"):
        inv = Invoice.query.get(d["invoice_id"])
        if not inv:
            errs.add("invoice_id", "Unknown invoice")
        elif d.get("client_id") and inv.client_id != int(d["client_id"]):
            errs.add("invoice_id", "Invoice belongs to another client")
    errs.raise_if_any()
    return out


def _cp_apply(p: ClientPayment, d, v):
    for k in ("client_id", "project_id", "payment_method"):
        if d.get(k):
            setattr(p, k, d[k])
    if "invoice_id" in d:
        p.invoice_id = d.get("invoice_id") or None
    for k in ("reference_number", "notes"):
        if k in d:
            setattr(p, k, clean_text(d.get(k)))
    if "amount" in d:
        p.amount = to_number(d["amount"])
    if v["date"]:
        p.payment_date = v["date"]


# ---------- salary records ----------
_SALARY_PARTS = (
    ("overtime", "Overtime cannot be negative"),
    ("bonuses", "Bonuses cannot be negative"),
    ("allowances", "Allowances cannot be negative"),
    ("deductions", "Deductions cannot be negative"),
)


def _salary_row(s: SalaryRecord):
    return {
        "id": s.id, "employee_id": s.employee_id,
        "employee_name": s.employee.full_name if s.employee else None,
        "pay_period": s.pay_period, "base_salary": _money(s.base_salary),
        "overtime": _money(s.overtime), "bonuses": _money(s.bonuses),
        "allowances": _money(s.allowances), "deductions": _money(s.deductions),
        "net_salary": _money(s.net_salary), "payment_date": iso(s.payment_date),
        "notes": s.notes, **_status_fields(s),
    }


def _salary_validate(d, creating):
    errs = FormErrors()
    if creating or "employee_id" in d:
        if errs.required(d, "employee_id", "Employee is required") and not Employee.query.get(d["employee_id"]):
            errs.add("employee_id", "Unknown employee")
    if creating or "pay_period" in d:
        errs.required(d, "pay_period", "Pay period is required")
    # 0 is a valid base salary
    if creating or "base_salary" in d:
        errs.non_negative(d, "base_salary", "Base salary must be 0 or greater", required=True)
    for field, msg in _SALARY_PARTS:
        errs.non_negative(d, field, msg)
    out = {"date": errs.date(d, "payment_date", "Payment date is required",
                             required=creating or "payment_date" in d)}
    errs.raise_if_any()
    return out


def _salary_apply(s: SalaryRecord, d, v):
    if d.get("employee_id"):
        s.employee_id = d["employee_id"]
    for k in ("pay_period", "notes"):
        if k in d:
            setattr(s, k, clean_text(d.get(k)))
    for k in ("base_salary",) + tuple(f for f, _ in _SALARY_PARTS):
        if k in d:
            setattr(s, k, to_number(d.get(k)) or 0)
    if v["date"]:
        s.payment_date = v["date"]
    s.net_salary = calculate_net_salary(s.base_salary, s.overtime, s.bonuses, s.allowances, s.deductions)


# ---------- petty cash ----------
def _petty_row(p: PettyCash):
    return {
        "id": p.id, "employee_id": p.employee_id,
        "employee_name": p.employee.full_name if p.employee else None,
        "category": p.category, "amount": _money(p.amount), "description": p.description,
        "date": iso(p.expense_date), "receipt_url": p.receipt_url, **_status_fields(p),
    }


def _petty_validate(d, creating):
    errs = FormErrors()
    if creating or "employee_id" in d:
        if errs.required(d, "employee_id", "Employee is required") and not Employee.query.get(d["employee_id"]):
            errs.add("employee_id", "Unknown employee")
    if creating or "category" in d:
        errs.required(d, "category", "Category is required")
    if creating or "description" in d:
        errs.text(d, "description", "Description is required")
    if creating or "amount" in d:
        errs.positive(d, "amount", "Amount must be greater than 0")
    out = {"date": errs.date(d, "date", "Date is required", required=creating or "date" in d)}
    errs.raise_if_any()
    return out


def _petty_apply(p: PettyCash, d, v):
    if d.get("employee_id"):
        p.employee_id = d["employee_id"]
    for k in ("category", "description", "receipt_url"):
        if k in d:
            setattr(p, k, clean_text(d.get(k)))
    if "amount" in d:
        p.amount = to_number(d["amount"])
    if v["date"]:
        p.expense_date = v["date"]


def _petty_prepare(d):
    # employees file their own expenses
    if not has_any_role("general_manager", "hr"):
        u = current_user()
        d["employee_id"] = u.employee_id if u else None
    return d


# ---------- shared route set ----------
RESOURCES = {
    "transactions": dict(model=FinancialTransaction, label="Transaction", row=_txn_row,
                         validate=_txn_validate, apply=_txn_apply, date_col="transaction_date",
                         creators=("general_manager",), amount=lambda x: x.amount,
                         describe=lambda x: x.description),
    "client-payments": dict(model=ClientPayment, label="Client payment", row=_cp_row,
                            validate=_cp_validate, apply=_cp_apply, date_col="payment_date",
                            creators=("general_manager",), amount=lambda x: x.amount,
                            describe=lambda x: f"Payment from {x.client.name if x.client else x.client_id}"),
    "salary-records": dict(model=SalaryRecord, label="Salary record", row=_salary_row,
                           validate=_salary_validate, apply=_salary_apply, date_col="payment_date",
                           creators=("general_manager", "hr"), amount=lambda x: x.net_salary,
                           describe=lambda x: f"Salary {x.pay_period}"),
    "petty-cash": dict(model=PettyCash, label="Petty cash entry", row=_petty_row,
                       validate=_petty_validate, apply=_petty_apply, date_col="expense_date",
                       creators=None, prepare=_petty_prepare, amount=lambda x: x.amount,
                       describe=lambda x: x.description),
}


def _register(name, cfg):
    model, row = cfg["model"], cfg["row"]
    endpoint = name.replace("-", "_")

    def _get(item_id):
        x = model.query.get(item_id)
        if not x:
            raise NotFound(cfg["label"])
        return x

    @jwt_required()
    def list_items():
        qry = model.query
        status = request.args.get("status")
        if status:
            qry = qry.filter(model.status == status)
        for arg in ("employee_id", "client_id", "project_id", "invoice_id"):
            v = request.args.get(arg, type=int)
            if v and hasattr(model, arg):
                qry = qry.filter(getattr(model, arg) == v)
        if model is FinancialTransaction:
            for arg, col in (("type", model.txn_type), ("category", model.category),
                             ("reference_type", model.reference_type)):
                v = request.args.get(arg)
                if v:
                    qry = qry.filter(col == v)
            s = text_q()
            if s:
                qry = qry.filter(model.description.ilike(f"%{s}%"))
        if model is PettyCash and current_roles() <= {"employee"}:
            u = current_user()
            qry = qry.filter(model.employee_id == (u.employee_id if u else None))
        date_col = getattr(model, cfg["date_col"])
        items, meta = paginate(qry, {"id": model.id, "date": date_col, "status": model.status,
                                     "created_at": model.created_at}, date_col.desc())
        return ok([row(x) for x in items], **meta)

    @jwt_required()
    def get_item(item_id):
        return ok(row(_get(item_id)))

    @jwt_required()
    def create_item():
        if cfg["creators"] and not has_any_role(*cfg["creators"]):
            return fail("Forbidden", status=403, code="FORBIDDEN")
        d = request.get_json(silent=True, force=True) or {}
        if cfg.get("prepare"):
            d = cfg["prepare"](d)
        v = cfg["validate"](d, True)
        x = model(status=TransactionStatus.PENDING.value, created_by_user_id=current_user_id())
        cfg["apply"](x, d, v)
        db.session.add(x)
        db.session.commit()
        return ok(row(x), status=201)

    @jwt_required()
    def update_item(item_id):
        x = _get(item_id)
        if not (has_any_role(*(cfg["creators"] or ())) or x.created_by_user_id == current_user_id()):
            return fail("Forbidden", status=403, code="FORBIDDEN")
        if x.status != TransactionStatus.PENDING.value:
            return fail(f"Cannot edit a record in '{x.status}' status", 409)
        d = request.get_json(silent=True, force=True) or {}
        if "status" in d:
            return fail("Use the approval actions to change status", 422)
        if cfg.get("prepare"):
            d = cfg["prepare"](d)
        v = cfg["validate"](d, False)
        cfg["apply"](x, d, v)
        db.session.commit()
        return ok(row(x))

    @requires_roles("general_manager")
    def delete_item(item_id):
        x = _get(item_id)
        if x.status == TransactionStatus.ADMIN_APPROVED.value:
            return fail("Approved records cannot be deleted", 409)
        db.session.delete(x)
        db.session.commit()
        return ok({"id": item_id, "deleted": True})

    @requires_roles("general_manager", allow_admin=False)
    def approve_gm(item_id):
        x = _get(item_id)
        approvals.approve_gm(x, current_user_id())
        db.session.commit()
        log.info("%s %s approved by GM", name, x.id)
        return ok(row(x))

    @requires_roles("admin")
    def approve_admin(item_id):
        x = _get(item_id)
        ledger = approvals.approve_admin(x, current_user_id())
        db.session.commit()
        data = row(x)
        if ledger is not None:
            data["ledger_transaction_id"] = ledger.id
        return ok(data)

    @requires_roles("general_manager")
    def reject_item(item_id):
        x = _get(item_id)
        d = request.get_json(silent=True, force=True) or {}
        approvals.reject(x, current_user_id(), d.get("rejection_reason") or d.get("reason"))
        db.session.commit()
        return ok(row(x))

    base = f"/{name}"
    bp.add_url_rule(base, f"list_{endpoint}", list_items, methods=["GET"])
    bp.add_url_rule(base, f"create_{endpoint}", create_item, methods=["POST"])
    bp.add_url_rule(f"{base}/<int:item_id>", f"get_{endpoint}", get_item, methods=["GET"])
    bp.add_url_rule(f"{base}/<int:item_id>", f"update_{endpoint}", update_item, methods=["PUT"])
    bp.add_url_rule(f"{base}/<int:item_id>", f"delete_{endpoint}", delete_item, methods=["DELETE"])
    bp.add_url_rule(f"{base}/<int:item_id>/approve-gm", f"approve_gm_{endpoint}", approve_gm, methods=["POST"])
    bp.add_url_rule(f"{base}/<int:item_id>/approve-admin", f"approve_admin_{endpoint}", approve_admin,
                    methods=["POST"])
    bp.add_url_rule(f"{base}/<int:item_id>/reject", f"reject_{endpoint}", reject_item, methods=["POST"])


for _name, _cfg in RESOURCES.items():
    _register(_name, _cfg)


# ---------- overview ----------
def _approved_totals(year=None, month=None):
    qry = FinancialTransaction.query.filter(FinancialTransaction.status == TransactionStatus.ADMIN_APPROVED.value)
    if year:
        qry = qry.filter(extract("year", FinancialTransaction.transaction_date) == year,
                         extract("month", FinancialTransaction.transaction_date) == month)
    sums = dict(qry.with_entities(FinancialTransaction.txn_type, func.sum(FinancialTransaction.amount))
                .group_by(FinancialTransaction.txn_type).all())
    income = _money(sums.get("income"))
    expenses = abs(_money(sums.get("expense")))
    return income, expenses, round(income - expenses, 2)


@bp.get("/stats")
@requires_roles("general_manager", "hr")
def finance_stats():
    today = date.today()
    prev_year, prev_month = (today.year, today.month - 1) if today.month > 1 else (today.year - 1, 12)
    income, expenses, profit = _approved_totals()
    m_income, m_expenses, m_profit = _approved_totals(today.year, today.month)
    p_income, p_expenses, p_profit = _approved_totals(prev_year, prev_month)

    counts = {s.value: 0 for s in TransactionStatus}
    for cfg in RESOURCES.values():
        m = cfg["model"]
        qry = db.session.query(m.status, func.count(m.id))
        if m is FinancialTransaction:
            # ledger rows mirror a source record counted under its own model
            qry = qry.filter(or_(FinancialTransaction.reference_id.is_(None),
                                 func.coalesce(FinancialTransaction.reference_type, "").notin_(_LEDGER_SOURCES)))
        for status, n in qry.group_by(m.status).all():
            counts[status] = counts.get(status, 0) + n
    return ok({
        "total_income": income,
        "total_expenses": expenses,
        "net_profit": profit,
        "pending_approvals": counts[TransactionStatus.PENDING.value],
        "gm_approved": counts[TransactionStatus.GM_APPROVED.value],
        "admin_approved": counts[TransactionStatus.ADMIN_APPROVED.value],
        "rejected": counts[TransactionStatus.REJECTED.value],
        "monthly_income": m_income,
        "monthly_expenses": m_expenses,
        "monthly_profit": m_profit,
        "income_growth": growth(m_income, p_income),
        "expense_growth": growth(m_expenses, p_expenses),
        "profit_growth": growth(m_profit, p_profit),
    })


@bp.get("/approval-requests")
@requires_roles("general_manager")
def approval_requests():
    waiting = (TransactionStatus.PENDING.value, TransactionStatus.GM_APPROVED.value)
    out = []
    for name, cfg in RESOURCES.items():
        m = cfg["model"]
        for x in m.query.filter(m.status.in_(waiting)).all():
            out.append({
                "id": f"{name}-{x.id}",
                "resource": name,
                "record_id": x.id,
                "amount": _money(cfg["amount"](x)),
                "description": cfg["describe"](x),
                "status": x.status,
                "status_label": status_label("transaction", x.status),
                "next_step": "gm" if x.status == TransactionStatus.PENDING.value else "admin",
                "requested_by": x.created_by_user_id,
                "requested_at": x.created_at.isoformat() if x.created_at else None,
            })
    out.sort(key=lambda r: r["requested_at"] or "")
    return ok(out, total=len(out))


@bp.get("/categories")
@jwt_required()
def finance_categories():
    qry = Category.query.filter_by(type="finance", is_active=True)
    txn_type = request.args.get("type")
    if txn_type:
        qry = qry.filter(Category.txn_type == txn_type)
    return ok([{
        "id": c.id, "name": c.name, "type": c.txn_type, "description": c.description,
        "subcategories": c.subcategories or [], "color": c.color,
    } for c in qry.order_by(Category.name.asc()).all()])
