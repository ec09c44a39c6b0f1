from datetime import date

import pytest

from agency_api.services.calculators import (
    attendance_hours_and_status, calculate_net_salary, calculate_total_days,
    growth, invoice_totals, payment_status, rate,
)


def test_total_days_is_inclusive():
    assert calculate_total_days("2024-01-01", "2024-01-03") == 3
    assert calculate_total_days(date(2024, 1, 1), date(2024, 1, 1)) == 1
    # no weekend exclusion
    assert calculate_total_days("2024-01-05", "2024-01-08") == 4


def test_total_days_rejects_garbage():
    with pytest.raises(ValueError):
        calculate_total_days("not a date", "2024-01-03")


def test_net_salary():
    assert calculate_net_salary(1000, 200, 100, 50, 150) == 1200
    assert calculate_net_salary(base=7500, overtime=500, bonuses=1000, deductions=800, allowances=0) == 8200
    assert calculate_net_salary(0) == 0
    assert calculate_net_salary(base=2500, deductions=None) == 2500


def test_invoice_totals():
    t = invoice_totals([{"quantity": 2, "unit_price": 100}, {"quantity": 1, "unit_price": 50}], 10)
    assert t == {"subtotal": 250, "tax_amount": 25, "total_amount": 275}
    assert invoice_totals([], 0)["total_amount"] == 0


def test_payment_status():
    assert payment_status(275, 275) == "paid"
    assert payment_status(300, 275) == "paid"
    assert payment_status(100, 275) == "partially_paid"
    assert payment_status(0, 275) is None


@pytest.mark.parametrize("check_in,check_out,hours,status", [
    ("09:00", "17:30", 8.5, "present"),
    ("09:30", "18:00", 8.5, "late"),
    ("09:00", "14:00", 5.0, "half_day"),
    ("09:00", "11:00", 2.0, "present"),
])
def test_attendance_hours_and_status(check_in, check_out, hours, status):
    assert attendance_hours_and_status(check_in, check_out) == (hours, status)


def test_attendance_needs_both_times():
    assert attendance_hours_and_status("09:00", None) == (0.0, "absent")
    assert attendance_hours_and_status(None, None) == (0.0, "absent")


def test_attendance_custom_standard_check_in():
    assert attendance_hours_and_status("09:30", "18:00", "10:00")[1] == "present"


def test_rate_rounds_half_up():
    assert rate(1, 3) == 33
    assert rate(5, 8) == 63
    assert rate(1, 8) == 13
    assert rate(3, 0) == 0


def test_growth():
    assert growth(150, 100) == 50
    assert growth(50, 100) == -50
    assert growth(80, 0) == 0
    assert growth(-50, -100) == 50
