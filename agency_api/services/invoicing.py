# agency_api/services/invoicing.py
from __future__ import annotations

import logging
from datetime import date, datetime

from flask import current_app

from agency_api.models.invoice import Invoice, InvoiceItem, InvoicePayment
from agency_api.services.calculators import invoice_totals, line_total, payment_status
from agency_api.status import IllegalTransition, InvoiceStatus, transition

log = logging.getLogger(__name__)

# invoices that can still collect money or go overdue
OPEN_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIALLY_PAID.value, InvoiceStatus.OVERDUE.value)


def invoice_number(inv: Invoice) -> str:
    prefix = current_app.config.get("INVOICE_PREFIX", "INV")
    year = (inv.date_issued or date.today()).year
    return f"{prefix}-{year}-{inv.id:04d}"


def set_items(inv: Invoice, items):
    """Replace the invoice lines and recompute totals (tax_rate taken from the invoice)."""
    inv.items.clear()
    for pos, it in enumerate(items, start=1):
        inv.items.append(InvoiceItem(
            position=pos,
            description=str(it.get("description")).strip(),
            quantity=float(it.get("quantity")),
            unit_price=float(it.get("unit_price")),
            total=line_total(it.get("quantity"), it.get("unit_price")),
        ))
    recalc(inv)


def recalc(inv: Invoice):
    t = invoice_totals(
        [{"quantity": i.quantity, "unit_price": i.unit_price} for i in inv.items],
        inv.tax_rate or 0,
    )
    inv.subtotal = t["subtotal"]
    inv.tax_amount = t["tax_amount"]
    inv.total_amount = t["total_amount"]


def record_payment(inv: Invoice, amount, payment_date=None, method=None, reference=None,
                   client_payment_id=None, user_id=None) -> InvoicePayment:
    """
    Add a payment and move the invoice to paid / partially_paid.
    Draft, paid and cancelled invoices refuse payments (IllegalTransition).
    """
    paid = float(inv.paid_amount or 0) + float(amount)
    target = payment_status(paid, inv.total_amount)
    if inv.status not in OPEN_STATUSES:
        raise IllegalTransition("invoice", inv.status, target)
    # a further partial payment keeps the invoice where it is
    if target != inv.status:
        inv.status = transition("invoice", inv.status, target)
    inv.paid_amount = paid
    if inv.status == InvoiceStatus.PAID.value:
        inv.paid_at = datetime.utcnow()

    p = InvoicePayment(
        amount=float(amount),
        payment_date=payment_date or date.today(),
        payment_method=method,
        reference=reference,
        client_payment_id=client_payment_id,
        recorded_by_user_id=user_id,
    )
    inv.payments.append(p)
    return p


def mark_overdue(today: date | None = None) -> list[Invoice]:
    """Past-due pending/partially-paid invoices -> overdue. Caller commits."""
    today = today or date.today()
    rows = (Invoice.query
            .filter(Invoice.status.in_((InvoiceStatus.PENDING.value, InvoiceStatus.PARTIALLY_PAID.value)))
            .filter(Invoice.due_date < today)
            .all())
    now = datetime.utcnow()
    for inv in rows:
        inv.status = transition("invoice", inv.status, InvoiceStatus.OVERDUE)
        inv.overdue_at = now
    if rows:
        log.info("marked %d invoice(s) overdue", len(rows))
    return rows
