from datetime import datetime
from agency_api.extensions import db

class WorkSubmission(db.Model):
    __tablename__ = "work_submissions"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    coordinator_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    time_spent = db.Column(db.Numeric(6, 2), nullable=False)   # hours
    attachments = db.Column(db.JSON, default=list)
    status = db.Column(db.String(20), nullable=False, default="pending_review")
    submission_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    revision_count = db.Column(db.Integer, nullable=False, default=0)

    review_date = db.Column(db.DateTime)
    reviewed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    reviewer_role = db.Column(db.String(32))
    feedback = db.Column(db.Text)
    rejection_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    task = db.relationship("Task")
    project = db.relationship("Project")
    employee = db.relationship("Employee", foreign_keys=[employee_id])
    coordinator = db.relationship("Employee", foreign_keys=[coordinator_id])
    reviewed_by = db.relationship("User")
