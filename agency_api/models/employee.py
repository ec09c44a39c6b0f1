from datetime import datetime
from agency_api.extensions import db

class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    code  = db.Column(db.String(32), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name  = db.Column(db.String(80), nullable=False)
    phone      = db.Column(db.String(20), nullable=True)

    job_role   = db.Column(db.String(100), nullable=False)   # jobrole category name
    department = db.Column(db.String(100), nullable=False)   # department category name
    join_date  = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), default="active", nullable=False)  # active/inactive

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    user = db.relationship("User", lazy="joined")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
