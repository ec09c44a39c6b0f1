from datetime import datetime
from agency_api.extensions import db

PAYMENT_METHODS = ("bank_transfer", "credit_card", "cash", "check", "paypal", "other")
REFERENCE_TYPES = ("client_payment", "salary", "petty_cash", "other")
TXN_TYPES = ("income", "expense")

class ApprovalMixin:
    """Two-step money sign-off: GM first, then Admin; rejection keeps its reason."""
    status = db.Column(db.String(20), nullable=False, default="pending")  # pending|gm_approved|admin_approved|rejected

    gm_approved_by_user_id = db.Column(db.Integer)
    gm_approved_at = db.Column(db.DateTime)
    approved_by_user_id = db.Column(db.Integer)
    approved_at = db.Column(db.DateTime)
    rejected_by_user_id = db.Column(db.Integer)
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)

    created_by_user_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    def approval_fields(self):
        return {
            "status": self.status,
            "gm_approved_by": self.gm_approved_by_user_id,
            "gm_approved_at": self.gm_approved_at.isoformat() if self.gm_approved_at else None,
            "approved_by": self.approved_by_user_id,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejected_by": self.rejected_by_user_id,
            "rejected_at": self.rejected_at.isoformat() if self.rejected_at else None,
            "rejection_reason": self.rejection_reason,
            "created_by": self.created_by_user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class FinancialTransaction(ApprovalMixin, db.Model):
    __tablename__ = "financial_transactions"

    id = db.Column(db.Integer, primary_key=True)
    txn_type = db.Column(db.String(10), nullable=False)   # income|expense
    category = db.Column(db.String(100), nullable=False)
    subcategory = db.Column(db.String(100))
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=False)
    transaction_date = db.Column(db.Date, nullable=False, index=True)
    payment_method = db.Column(db.String(20))
    reference_type = db.Column(db.String(20))   # client_payment|salary|petty_cash|other
    reference_id = db.Column(db.Integer)
    notes = db.Column(db.Text)

class ClientPayment(ApprovalMixin, db.Model):
    __tablename__ = "client_payments"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    reference_number = db.Column(db.String(100))
    notes = db.Column(db.Text)

    client = db.relationship("Client")
    project = db.relationship("Project")
    invoice = db.relationship("Invoice")

class SalaryRecord(ApprovalMixin, db.Model):
    __tablename__ = "salary_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    pay_period = db.Column(db.String(20), nullable=False)   # e.g. 2024-01
    base_salary = db.Column(db.Numeric(12, 2), nullable=False)
    overtime = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    bonuses = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    allowances = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    deductions = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_salary = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date)
    notes = db.Column(db.Text)

    employee = db.relationship("Employee")

class PettyCash(ApprovalMixin, db.Model):
    __tablename__ = "petty_cash"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    receipt_url = db.Column(db.String(500))

    employee = db.relationship("Employee")
