from datetime import datetime
from agency_api.extensions import db

class AttendanceRecord(db.Model):
    __tablename__ = "attendance_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    check_in = db.Column(db.Time)
    check_out = db.Column(db.Time)
    hours_worked = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="present")
    notes = db.Column(db.Text)
    location = db.Column(db.String(120))
    source = db.Column(db.String(16), nullable=False, default="manual")  # manual|import

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
    )

    employee = db.relationship("Employee")
