from datetime import datetime
from agency_api.extensions import db

CATEGORY_TYPES = ("project", "task", "leave", "payment", "finance", "jobrole", "department")

class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    color = db.Column(db.String(20))

    # leave
    max_days = db.Column(db.Integer)
    requires_approval = db.Column(db.Boolean)
    # finance
    txn_type = db.Column(db.String(10))          # income|expense
    subcategories = db.Column(db.JSON)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("type", "name", name="uq_category_type_name"),
    )
