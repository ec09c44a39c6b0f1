# agency_api/services/calculators.py
"""
Pure arithmetic shared by the blueprints: leave days, net salary, invoice
totals, attendance hours/status and the percentage figures on the stats
endpoints. No DB access here.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time as _time
from typing import Iterable, Optional, Tuple

from agency_api.common.dates import parse_date, parse_time
from agency_api.status import AttendanceStatus, InvoiceStatus

STANDARD_CHECK_IN = _time(9, 0)
FULL_DAY_HOURS = 8
HALF_DAY_HOURS = 4


def _num(v) -> float:
    if v is None or v == "":
        return 0.0
    return float(v)


# ---------- leave ----------

def calculate_total_days(start, end) -> int:
    """
    Inclusive calendar days between two dates: ceil(diff in days) + 1.
    No weekend/holiday exclusion; '2024-01-01'..'2024-01-03' -> 3.
    """
    s, e = parse_date(start), parse_date(end)
    if s is None or e is None:
        raise ValueError("start and end must be dates")
    seconds = (datetime.combine(e, _time()) - datetime.combine(s, _time())).total_seconds()
    return int(math.ceil(seconds / 86400)) + 1


# ---------- salary ----------

def calculate_net_salary(base=0, overtime=0, bonuses=0, allowances=0, deductions=0) -> float:
    return _num(base) + _num(overtime) + _num(bonuses) + _num(allowances) - _num(deductions)


# ---------- invoices ----------

def line_total(quantity, unit_price) -> float:
    return _num(quantity) * _num(unit_price)


def invoice_totals(items: Iterable[dict], tax_rate=0) -> dict:
    """items: [{"quantity":..,"unit_price":..}, ...] -> subtotal/tax_amount/total_amount."""
    subtotal = sum(line_total(i.get("quantity"), i.get("unit_price")) for i in items)
    tax_amount = subtotal * _num(tax_rate) / 100
    return {
        "subtotal": subtotal,
        "tax_amount": tax_amount,
        "total_amount": subtotal + tax_amount,
    }


def payment_status(paid_amount, total_amount) -> Optional[str]:
    """Status an invoice moves to after a payment, or None when nothing was paid."""
    paid, total = _num(paid_amount), _num(total_amount)
    if paid >= total:
        return InvoiceStatus.PAID.value
    if paid > 0:
        return InvoiceStatus.PARTIALLY_PAID.value
    return None


# ---------- attendance ----------

def attendance_hours_and_status(check_in, check_out, standard_check_in=None) -> Tuple[float, str]:
    """
    (hours, status) for a day. Both times required for any hours; otherwise
    the day counts as absent. Late only applies to full days.
    """
    ci, co = parse_time(check_in), parse_time(check_out)
    if ci is None or co is None:
        return 0.0, AttendanceStatus.ABSENT.value

    std = parse_time(standard_check_in) or STANDARD_CHECK_IN
    day = date(2000, 1, 1)
    hours = (datetime.combine(day, co) - datetime.combine(day, ci)).total_seconds() / 3600

    if hours >= FULL_DAY_HOURS:
        status = AttendanceStatus.LATE if ci > std else AttendanceStatus.PRESENT
    elif hours >= HALF_DAY_HOURS:
        status = AttendanceStatus.HALF_DAY
    else:
        status = AttendanceStatus.PRESENT
    return hours, status.value


# ---------- stats ----------

def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def rate(part, whole) -> int:
    whole = _num(whole)
    if whole == 0:
        return 0
    return _round_half_up(_num(part) / whole * 100)


def growth(current, previous) -> int:
    """Month-over-month % change; 0 when there is no previous figure."""
    previous = _num(previous)
    if previous == 0:
        return 0
    return _round_half_up((_num(current) - previous) / abs(previous) * 100)
