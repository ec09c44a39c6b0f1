from datetime import datetime
from agency_api.extensions import db

PRIORITIES = ("low", "medium", "high")
TASK_TYPES = ("main", "sub")

class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100))
    priority = db.Column(db.String(10), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="pending")  # pending|in_progress|completed|rejected

    start_date = db.Column(db.Date)
    due_date = db.Column(db.Date, nullable=False)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), index=True)

    task_type = db.Column(db.String(10), nullable=False, default="main")
    parent_task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True)
    estimated_hours = db.Column(db.Numeric(6, 2))
    actual_hours = db.Column(db.Numeric(6, 2))
    notes = db.Column(db.Text)
    completed_at = db.Column(db.DateTime)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    project = db.relationship("Project", backref=db.backref("tasks", lazy="dynamic", cascade="all, delete-orphan"))
    assignee = db.relationship("Employee")
    parent = db.relationship("Task", remote_side=[id],
                             backref=db.backref("subtasks", cascade="all, delete-orphan"))
