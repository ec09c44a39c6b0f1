# agency_api/services/approvals.py
"""
GM -> Admin sign-off for money records (transactions, client payments,
salary records, petty cash).

Admin approval of anything other than a plain transaction posts an
``admin_approved`` ledger row pointing back at the source record, so the
finance stats only ever need to read ``financial_transactions``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime

from agency_api.common.errors import ValidationError
from agency_api.common.validation import is_blank
from agency_api.extensions import db
from agency_api.models.finance import ClientPayment, FinancialTransaction, PettyCash, SalaryRecord
from agency_api.services import invoicing
from agency_api.status import TransactionStatus, transition

log = logging.getLogger(__name__)


def approve_gm(obj, user_id):
    obj.status = transition("transaction", obj.status, TransactionStatus.GM_APPROVED)
    obj.gm_approved_by_user_id = user_id
    obj.gm_approved_at = datetime.utcnow()
    return obj


def approve_admin(obj, user_id):
    obj.status = transition("transaction", obj.status, TransactionStatus.ADMIN_APPROVED)
    obj.approved_by_user_id = user_id
    obj.approved_at = datetime.utcnow()
    ledger = post_to_ledger(obj)
    if isinstance(obj, ClientPayment) and obj.invoice is not None:
        invoicing.record_payment(
            obj.invoice, obj.amount,
            payment_date=obj.payment_date,
            method=obj.payment_method,
            reference=obj.reference_number,
            client_payment_id=obj.id,
            user_id=user_id,
        )
    return ledger


def reject(obj, user_id, reason):
    if is_blank(reason):
        raise ValidationError({"rejection_reason": "Rejection reason is required"})
    if not isinstance(reason, str):
        raise ValidationError({"rejection_reason": "Rejection reason must be text"})
    obj.status = transition("transaction", obj.status, TransactionStatus.REJECTED)
    obj.rejected_by_user_id = user_id
    obj.rejected_at = datetime.utcnow()
    obj.rejection_reason = reason.strip()
    return obj


def _ledger_fields(obj):
    if isinstance(obj, ClientPayment):
        name = obj.client.name if obj.client else f"client #{obj.client_id}"
        return dict(txn_type="income", category="Client Payment", amount=obj.amount,
                    description=f"Payment from {name}", transaction_date=obj.payment_date,
                    payment_method=obj.payment_method, reference_type="client_payment")
    if isinstance(obj, SalaryRecord):
        name = obj.employee.full_name if obj.employee else f"employee #{obj.employee_id}"
        return dict(txn_type="expense", category="Salary", amount=obj.net_salary,
                    description=f"Salary {obj.pay_period} - {name}",
                    transaction_date=obj.payment_date or date.today(),
                    payment_method="bank_transfer", reference_type="salary")
    if isinstance(obj, PettyCash):
        return dict(txn_type="expense", category=obj.category, amount=obj.amount,
                    description=obj.description, transaction_date=obj.expense_date,
                    payment_method="cash", reference_type="petty_cash")
    return None


def post_to_ledger(obj):
    """Ledger row for an admin-approved source record; None for plain transactions."""
    fields = _ledger_fields(obj)
    if fields is None:
        return None
    txn = FinancialTransaction(
        reference_id=obj.id,
        status=TransactionStatus.ADMIN_APPROVED.value,
        gm_approved_by_user_id=obj.gm_approved_by_user_id,
        gm_approved_at=obj.gm_approved_at,
        approved_by_user_id=obj.approved_by_user_id,
        approved_at=obj.approved_at,
        created_by_user_id=obj.created_by_user_id,
        **fields,
    )
    db.session.add(txn)
    log.info("posted %s #%s to ledger", fields["reference_type"], obj.id)
    return txn
