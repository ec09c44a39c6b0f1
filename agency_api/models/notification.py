from datetime import datetime
from agency_api.extensions import db

NOTIFICATION_TYPES = ("info", "success", "warning", "error", "reminder")
NOTIFICATION_PRIORITIES = ("low", "medium", "high")
NOTIFICATION_CATEGORIES = ("system", "project", "task", "meeting", "payment", "general")

class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="info")
    priority = db.Column(db.String(8), nullable=False, default="medium")
    category = db.Column(db.String(16), nullable=False, default="general")
    action_url = db.Column(db.String(500))

    sender_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    sender_name = db.Column(db.String(200))
    sender_role = db.Column(db.String(32))
    # null recipient = broadcast to everyone
    recipient_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    reads = db.relationship("NotificationRead", backref="notification", cascade="all, delete-orphan")

class NotificationRead(db.Model):
    __tablename__ = "notification_reads"

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("notification_id", "user_id", name="uq_notification_read_user"),
    )
