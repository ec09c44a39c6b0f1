from datetime import datetime
from agency_api.extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("admin", "general_manager", "project_coordinator", "employee", "hr")

class User(db.Model):
    __tablename__ = "users"

    id           = db.Column(db.Integer, primary_key=True)
    email        = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash= db.Column(db.String(255), nullable=False)
    full_name    = db.Column(db.String(255), nullable=False)
    role         = db.Column(db.String(32), nullable=False, default="employee")
    avatar       = db.Column(db.String(255))
    status       = db.Column(db.String(20), default="active")
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    @property
    def employee_id(self):
        """Employee.id linked via Employee.user_id == self.id, or None."""
        from agency_api.models.employee import Employee  # late import to avoid circulars
        emp = Employee.query.filter_by(user_id=self.id).first()
        return emp.id if emp else None

    def to_public(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.full_name,
            "role": self.role,
            "avatar": self.avatar,
            "employee_id": self.employee_id,
        }
