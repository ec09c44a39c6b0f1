from datetime import datetime
from agency_api.extensions import db

class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type = db.Column(db.String(100), nullable=False)   # leave category name
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(24), nullable=False, default="pending")

    coordinator_approved = db.Column(db.Boolean)
    coordinator_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    coordinator_at = db.Column(db.DateTime)
    coordinator_comments = db.Column(db.Text)

    hr_approved = db.Column(db.Boolean)
    hr_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    hr_at = db.Column(db.DateTime)
    hr_comments = db.Column(db.Text)

    applied_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    employee = db.relationship("Employee", backref="leave_requests")
    coordinator_by = db.relationship("User", foreign_keys=[coordinator_by_user_id])
    hr_by = db.relationship("User", foreign_keys=[hr_by_user_id])
    actions = db.relationship("LeaveApprovalAction", backref="leave_request", cascade="all, delete-orphan",
                              order_by="LeaveApprovalAction.id")

class LeaveApprovalAction(db.Model):
    __tablename__ = "leave_approval_actions"
    id = db.Column(db.Integer, primary_key=True)
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)  # applied|updated|coordinator_approved|hr_approved|rejected|cancelled
    comment = db.Column(db.Text)
    acted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    acted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    acted_by = db.relationship("User")
