from datetime import datetime
from agency_api.extensions import db

class PersistedState(db.Model):
    """Small key/value store for client-side session state (e.g. 'currentUser')."""
    __tablename__ = "persisted_state"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
