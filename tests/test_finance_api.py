from agency_api.models.finance import FinancialTransaction

from helpers import invoice_body, make_client_project

TXN = {"type": "expense", "category": "Office Supplies", "amount": 120.5,
       "description": "Printer paper", "date": "2024-02-10", "payment_method": "cash"}


def _create_txn(client, headers, **over):
    body = dict(TXN, **over)
    return client.post("/api/v1/finance/transactions", json=body, headers=headers("general_manager"))


def test_amount_must_be_positive(client, headers):
    for bad in (0, -5, "abc", None):
        r = _create_txn(client, headers, amount=bad)
        assert r.status_code == 422
        assert r.get_json()["error"]["errors"]["amount"] == "Amount must be greater than 0"


def test_transaction_required_fields(client, headers):
    r = client.post("/api/v1/finance/transactions", json={}, headers=headers("general_manager"))
    errors = r.get_json()["error"]["errors"]
    assert r.status_code == 422
    assert set(errors) >= {"type", "category", "amount", "description", "date"}
    assert errors["date"] == "Date is required"


def test_admin_cannot_skip_gm(client, headers):
    tid = _create_txn(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/finance/transactions/{tid}/approve-admin", headers=headers("admin"))
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "ILLEGAL_TRANSITION"


def test_admin_cannot_give_gm_approval(client, headers):
    tid = _create_txn(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/finance/transactions/{tid}/approve-gm", headers=headers("admin"))
    assert r.status_code == 403


def test_two_step_approval(client, headers, staff):
    tid = _create_txn(client, headers).get_json()["data"]["id"]

    r = client.post(f"/api/v1/finance/transactions/{tid}/approve-gm", headers=headers("general_manager"))
    data = r.get_json()["data"]
    assert r.status_code == 200
    assert data["status"] == "gm_approved"
    assert data["status_label"] == "GM Approved"
    assert data["gm_approved_at"]

    r = client.post(f"/api/v1/finance/transactions/{tid}/approve-admin", headers=headers("admin"))
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "admin_approved"

    # terminal: no second sign-off, no edits, no reject
    assert client.post(f"/api/v1/finance/transactions/{tid}/approve-admin",
                       headers=headers("admin")).status_code == 409
    assert client.put(f"/api/v1/finance/transactions/{tid}", json={"amount": 1},
                      headers=headers("general_manager")).status_code == 409
    assert client.post(f"/api/v1/finance/transactions/{tid}/reject", json={"rejection_reason": "late"},
                       headers=headers("general_manager")).status_code == 409

    stats = client.get("/api/v1/finance/stats", headers=headers("general_manager")).get_json()["data"]
    assert stats["total_expenses"] == 120.5
    assert stats["net_profit"] == -120.5
    assert stats["admin_approved"] == 1


def test_reject_requires_reason(client, headers):
    tid = _create_txn(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/finance/transactions/{tid}/reject", json={"rejection_reason": "  "},
                    headers=headers("general_manager"))
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["rejection_reason"] == "Rejection reason is required"

    r = client.post(f"/api/v1/finance/transactions/{tid}/reject", json={"reason": "Duplicate entry"},
                    headers=headers("general_manager"))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "rejected"
    assert data["rejection_reason"] == "Duplicate entry"


def test_rejection_reason_must_be_text(client, headers):
    tid = _create_txn(client, headers).get_json()["data"]["id"]
    r = client.post(f"/api/v1/finance/transactions/{tid}/reject", json={"rejection_reason": 5},
                    headers=headers("general_manager"))
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["rejection_reason"] == "Rejection reason must be text"


def test_status_cannot_be_set_directly(client, headers):
    tid = _create_txn(client, headers).get_json()["data"]["id"]
    r = client.put(f"/api/v1/finance/transactions/{tid}", json={"status": "admin_approved"},
                   headers=headers("general_manager"))
    assert r.status_code == 422


def test_salary_record_net_and_zero_base(client, headers, staff):
    body = {"employee_id": staff["employee"].id, "pay_period": "2024-01", "base_salary": 1000,
            "overtime": 200, "bonuses": 100, "allowances": 50, "deductions": 150, "payment_date": "2024-01-31"}
    r = client.post("/api/v1/finance/salary-records", json=body, headers=headers("hr"))
    assert r.status_code == 201
    assert r.get_json()["data"]["net_salary"] == 1200

    r = client.post("/api/v1/finance/salary-records", json=dict(body, base_salary=0, overtime=0, bonuses=0,
                                                                allowances=0, deductions=0),
                    headers=headers("hr"))
    assert r.status_code == 201
    assert r.get_json()["data"]["net_salary"] == 0

    r = client.post("/api/v1/finance/salary-records", json=dict(body, base_salary=None), headers=headers("hr"))
    assert r.status_code == 422
    assert r.get_json()["error"]["errors"]["base_salary"] == "Base salary must be 0 or greater"


def test_client_payment_messages(client, headers):
    r = client.post("/api/v1/finance/client-payments", json={}, headers=headers("general_manager"))
    errors = r.get_json()["error"]["errors"]
    assert errors == {
        "client_id": "Client is required",
        "project_id": "Project is required",
        "amount": "Amount must be greater than 0",
        "payment_date": "Payment date is required",
        "payment_method": "Payment method is required",
    }


def test_approved_client_payment_posts_ledger_and_pays_invoice(client, headers, staff):
    c, p = make_client_project(staff)
    inv = client.post("/api/v1/invoices", json=invoice_body(c, p), headers=headers("general_manager"))
    inv_id = inv.get_json()["data"]["id"]

    body = {"client_id": c.id, "project_id": p.id, "invoice_id": inv_id, "amount": 275,
            "payment_date": "2024-02-20", "payment_method": "bank_transfer", "reference_number": "TRX-1"}
    cp = client.post("/api/v1/finance/client-payments", json=body, headers=headers("general_manager"))
    assert cp.status_code == 201
    cp_id = cp.get_json()["data"]["id"]

    client.post(f"/api/v1/finance/client-payments/{cp_id}/approve-gm", headers=headers("general_manager"))
    r = client.post(f"/api/v1/finance/client-payments/{cp_id}/approve-admin", headers=headers("admin"))
    assert r.status_code == 200
    ledger_id = r.get_json()["data"]["ledger_transaction_id"]

    ledger = FinancialTransaction.query.get(ledger_id)
    assert ledger.txn_type == "income"
    assert ledger.reference_type == "client_payment"
    assert ledger.reference_id == cp_id
    assert ledger.status == "admin_approved"

    invoice = client.get(f"/api/v1/invoices/{inv_id}", headers=headers("general_manager")).get_json()["data"]
    assert invoice["status"] == "paid"
    assert invoice["balance_due"] == 0
    assert invoice["payments"][0]["client_payment_id"] == cp_id


def test_stats_count_approved_client_payment_once(client, headers, staff):
    c, p = make_client_project(staff)
    body = {"client_id": c.id, "project_id": p.id, "amount": 500,
            "payment_date": "2024-02-20", "payment_method": "bank_transfer"}
    cp_id = client.post("/api/v1/finance/client-payments", json=body,
                        headers=headers("general_manager")).get_json()["data"]["id"]
    client.post(f"/api/v1/finance/client-payments/{cp_id}/approve-gm", headers=headers("general_manager"))
    client.post(f"/api/v1/finance/client-payments/{cp_id}/approve-admin", headers=headers("admin"))

    stats = client.get("/api/v1/finance/stats", headers=headers("general_manager")).get_json()["data"]
    assert stats["admin_approved"] == 1
    assert stats["total_income"] == 500


def test_petty_cash_is_filed_for_self(client, headers, staff):
    body = {"employee_id": staff["hr"].id, "category": "Travel", "amount": 18,
            "description": "Taxi to client", "date": "2024-02-02"}
    r = client.post("/api/v1/finance/petty-cash", json=body, headers=headers("employee"))
    assert r.status_code == 201
    assert r.get_json()["data"]["employee_id"] == staff["employee"].id

    r = client.post("/api/v1/finance/petty-cash", json=dict(body, date=None), headers=headers("employee"))
    assert r.get_json()["error"]["errors"]["date"] == "Date is required"


def test_approval_requests_queue(client, headers, staff):
    _create_txn(client, headers)
    tid = _create_txn(client, headers, description="Toner").get_json()["data"]["id"]
    client.post(f"/api/v1/finance/transactions/{tid}/approve-gm", headers=headers("general_manager"))

    queue = client.get("/api/v1/finance/approval-requests", headers=headers("general_manager")).get_json()
    steps = sorted(r["next_step"] for r in queue["data"])
    assert steps == ["admin", "gm"]
    assert queue["meta"]["total"] == 2


def test_employee_cannot_create_transactions(client, headers):
    r = client.post("/api/v1/finance/transactions", json=TXN, headers=headers("employee"))
    assert r.status_code == 403
