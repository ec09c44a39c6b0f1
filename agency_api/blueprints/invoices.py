# agency_api/blueprints/invoices.py
from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required
from sqlalchemy import extract, func, or_

from agency_api.common.auth import current_user_id, requires_roles
from agency_api.common.dates import iso
from agency_api.common.errors import NotFound
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate, text_q
from agency_api.common.validation import FormErrors, clean_text, is_blank, to_number
from agency_api.extensions import db
from agency_api.models.client import Client
from agency_api.models.finance import PAYMENT_METHODS
from agency_api.models.invoice import Invoice
from agency_api.models.project import Project
from agency_api.services import invoicing
from agency_api.services.calculators import rate
from agency_api.status import InvoiceStatus, status_label, transition

log = logging.getLogger(__name__)

bp = Blueprint("invoices", __name__, url_prefix="/api/v1/invoices")

_BILLING = ("general_manager",)
_EDITABLE = (InvoiceStatus.DRAFT.value, InvoiceStatus.PENDING.value)


def _money(v):
    return round(float(v or 0), 2)


def _row(inv: Invoice, with_items=True):
    data = {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "client_id": inv.client_id,
        "client_name": inv.client.name if inv.client else None,
        "project_id": inv.project_id,
        "project_name": inv.project.name if inv.project else None,
        "date_issued": iso(inv.date_issued),
        "due_date": iso(inv.due_date),
        "status": inv.status,
        "status_label": status_label("invoice", inv.status),
        "currency": inv.currency,
        "subtotal": _money(inv.subtotal),
        "tax_rate": float(inv.tax_rate or 0),
        "tax_amount": _money(inv.tax_amount),
        "total_amount": _money(inv.total_amount),
        "paid_amount": _money(inv.paid_amount),
        "balance_due": _money(inv.balance_due),
        "notes": inv.notes,
        "terms": inv.terms,
        "paid_at": inv.paid_at.isoformat() if inv.paid_at else None,
        "overdue_at": inv.overdue_at.isoformat() if inv.overdue_at else None,
        "created_at": inv.created_at.isoformat() if inv.created_at else None,
    }
    if with_items:
        data["items"] = [{
            "id": i.id, "description": i.description, "quantity": float(i.quantity),
            "unit_price": _money(i.unit_price), "total": _money(i.total),
        } for i in inv.items]
        data["payments"] = [{
            "id": p.id, "amount": _money(p.amount), "payment_date": iso(p.payment_date),
            "payment_method": p.payment_method, "reference": p.reference,
            "client_payment_id": p.client_payment_id,
        } for p in inv.payments]
    return data


def validate_invoice(d, inv: Invoice | None = None):
    """Returns (date_issued, due_date); item errors come back as 'Item N: ...' under 'items'."""
    creating = inv is None
    errs = FormErrors()
    if creating or "client_id" in d:
        if errs.required(d, "client_id", "Client is required") and not Client.query.get(d["client_id"]):
            errs.add("client_id", "Unknown client")
    if creating or "project_id" in d:
        if errs.required(d, "project_id", "Project is required") and not Project.query.get(d["project_id"]):
            errs.add("project_id", "Unknown project")
    issued = errs.date(d, "date_issued", "Issue date is required", required=creating or "date_issued" in d)
    due = errs.date(d, "due_date", "Due date is required", required=creating or "due_date" in d)
    errs.date_order(issued or (inv.date_issued if inv else None), due or (inv.due_date if inv else None),
                    "due_date", "Due date must be after issue date", strict=True)
    errs.non_negative(d, "tax_rate", "Tax rate cannot be negative")

    if creating or "items" in d:
        items = d.get("items")
        if not isinstance(items, list) or not items:
            errs.add("items", "At least one item is required")
        else:
            item_errors = []
            for n, it in enumerate(items, start=1):
                it = it if isinstance(it, dict) else {}
                if is_blank(it.get("description")):
                    item_errors.append(f"Item {n}: Description is required")
                q = to_number(it.get("quantity"))
                if q is None or q <= 0:
                    item_errors.append(f"Item {n}: Quantity must be greater than 0")
                p = to_number(it.get("unit_price"))
                if p is None or p < 0:
                    item_errors.append(f"Item {n}: Unit price cannot be negative")
            if item_errors:
                errs.add("items", item_errors)
    errs.raise_if_any()
    return issued, due


def _apply(inv: Invoice, d, issued, due):
    for k in ("client_id", "project_id"):
        if d.get(k):
            setattr(inv, k, d[k])
    for k in ("notes", "terms"):
        if k in d:
            setattr(inv, k, clean_text(d.get(k)))
    if d.get("currency"):
        inv.currency = str(d["currency"]).upper()[:3]
    if "tax_rate" in d:
        inv.tax_rate = to_number(d.get("tax_rate")) or 0
    if issued is not None:
        inv.date_issued = issued
    if due is not None:
        inv.due_date = due
    if "items" in d:
        invoicing.set_items(inv, d["items"])
    else:
        invoicing.recalc(inv)


def _get(inv_id: int) -> Invoice:
    inv = Invoice.query.get(inv_id)
    if not inv:
        raise NotFound("Invoice")
    return inv


_SORT = {"id": Invoice.id, "invoice_number": Invoice.invoice_number, "date_issued": Invoice.date_issued,
         "due_date": Invoice.due_date, "total_amount": Invoice.total_amount, "status": Invoice.status}


def _filtered():
    qry = Invoice.query.outerjoin(Client, Invoice.client_id == Client.id)
    for arg, col in (("client_id", Invoice.client_id), ("project_id", Invoice.project_id)):
        v = request.args.get(arg, type=int)
        if v:
            qry = qry.filter(col == v)
    status = request.args.get("status")
    if status:
        qry = qry.filter(Invoice.status == status)
    s = text_q()
    if s:
        like = f"%{s}%"
        qry = qry.filter(or_(Invoice.invoice_number.ilike(like), Invoice.notes.ilike(like),
                             Client.name.ilike(like)))
    return qry


@bp.get("")
@jwt_required()
def list_invoices():
    items, meta = paginate(_filtered(), _SORT, Invoice.date_issued.desc())
    return ok([_row(i, with_items=False) for i in items], **meta)


@bp.get("/overdue")
@jwt_required()
def overdue_invoices():
    qry = _filtered().filter(Invoice.status == InvoiceStatus.OVERDUE.value)
    items, meta = paginate(qry, _SORT, Invoice.due_date.asc())
    return ok([_row(i, with_items=False) for i in items], **meta)


@bp.get("/stats")
@jwt_required()
def invoice_stats():
    counts = dict(db.session.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all())
    by_status = {s.value: counts.get(s.value, 0) for s in InvoiceStatus}
    billed = Invoice.query.filter(Invoice.status.notin_((InvoiceStatus.DRAFT.value,
                                                         InvoiceStatus.CANCELLED.value)))
    invoiced = float(billed.with_entities(func.coalesce(func.sum(Invoice.total_amount), 0)).scalar() or 0)
    collected = float(billed.with_entities(func.coalesce(func.sum(Invoice.paid_amount), 0)).scalar() or 0)
    overdue_amount = float(Invoice.query.filter(Invoice.status == InvoiceStatus.OVERDUE.value)
                           .with_entities(func.coalesce(func.sum(Invoice.total_amount - Invoice.paid_amount), 0))
                           .scalar() or 0)
    return ok({
        "total": sum(by_status.values()),
        "by_status": by_status,
        "total_invoiced": round(invoiced, 2),
        "total_paid": round(collected, 2),
        "outstanding": round(invoiced - collected, 2),
        "overdue_amount": round(overdue_amount, 2),
        "collection_rate": rate(collected, invoiced),
    })


@bp.get("/summary")
@jwt_required()
def monthly_summary():
    today = date.today()
    year = request.args.get("year", type=int) or today.year
    month = request.args.get("month", type=int) or today.month
    if not 1 <= month <= 12:
        return fail("month must be 1-12", 422)
    qry = Invoice.query.filter(extract("year", Invoice.date_issued) == year,
                               extract("month", Invoice.date_issued) == month,
                               Invoice.status != InvoiceStatus.CANCELLED.value)
    rows = qry.all()
    total = sum(float(i.total_amount or 0) for i in rows)
    paid = sum(float(i.paid_amount or 0) for i in rows)
    by_status = {}
    for i in rows:
        by_status[i.status] = by_status.get(i.status, 0) + 1
    return ok({
        "year": year, "month": month, "count": len(rows),
        "total_amount": round(total, 2), "paid_amount": round(paid, 2),
        "outstanding": round(total - paid, 2), "by_status": by_status,
    })


@bp.get("/<int:inv_id>")
@jwt_required()
def get_invoice(inv_id: int):
    return ok(_row(_get(inv_id)))


@bp.post("")
@requires_roles(*_BILLING)
def create_invoice():
    d = request.get_json(silent=True, force=True) or {}
    issued, due = validate_invoice(d)
    draft = bool(d.get("draft"))
    inv = Invoice(
        status=InvoiceStatus.DRAFT.value if draft else InvoiceStatus.PENDING.value,
        currency=current_app.config.get("DEFAULT_CURRENCY", "USD"),
        created_by_user_id=current_user_id(),
        paid_amount=0,
    )
    _apply(inv, d, issued, due)
    db.session.add(inv)
    db.session.flush()
    inv.invoice_number = invoicing.invoice_number(inv)
    db.session.commit()
    log.info("invoice %s created (%s)", inv.invoice_number, inv.status)
    return ok(_row(inv), status=201)


@bp.put("/<int:inv_id>")
@requires_roles(*_BILLING)
def update_invoice(inv_id: int):
    inv = _get(inv_id)
    if inv.status not in _EDITABLE or float(inv.paid_amount or 0) > 0:
        return fail(f"Cannot edit an invoice in '{inv.status}' status", 409)
    d = request.get_json(silent=True, force=True) or {}
    if "status" in d:
        return fail("Use the issue/payments/cancel actions to change status", 422)
    issued, due = validate_invoice(d, inv)
    _apply(inv, d, issued, due)
    db.session.commit()
    return ok(_row(inv))


@bp.post("/<int:inv_id>/issue")
@requires_roles(*_BILLING)
def issue_invoice(inv_id: int):
    inv = _get(inv_id)
    inv.status = transition("invoice", inv.status, InvoiceStatus.PENDING)
    db.session.commit()
    return ok(_row(inv))


@bp.post("/<int:inv_id>/payments")
@requires_roles(*_BILLING)
def add_payment(inv_id: int):
    inv = _get(inv_id)
    d = request.get_json(silent=True, force=True) or {}
    errs = FormErrors()
    errs.positive(d, "amount", "Amount must be greater than 0")
    paid_on = errs.date(d, "payment_date", required=False)
    errs.choice(d, "payment_method", PAYMENT_METHODS)
    errs.raise_if_any()

    invoicing.record_payment(inv, to_number(d["amount"]), payment_date=paid_on,
                             method=d.get("payment_method"), reference=d.get("reference"),
                             user_id=current_user_id())
    db.session.commit()
    return ok(_row(inv), status=201)


@bp.post("/<int:inv_id>/cancel")
@requires_roles(*_BILLING)
def cancel_invoice(inv_id: int):
    inv = _get(inv_id)
    inv.status = transition("invoice", inv.status, InvoiceStatus.CANCELLED)
    inv.cancelled_at = datetime.utcnow()
    db.session.commit()
    return ok(_row(inv))


@bp.post("/mark-overdue")
@requires_roles(*_BILLING)
def mark_overdue():
    rows = invoicing.mark_overdue()
    db.session.commit()
    return ok({"updated": len(rows), "ids": [i.id for i in rows]})


@bp.delete("/<int:inv_id>")
@requires_roles(*_BILLING)
def delete_invoice(inv_id: int):
    inv = _get(inv_id)
    if inv.status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.CANCELLED.value):
        return fail("Only draft or cancelled invoices can be deleted", 409)
    db.session.delete(inv)
    db.session.commit()
    return ok({"id": inv_id, "deleted": True})
