# agency_api/blueprints/meta.py
from flask import Blueprint

from agency_api.common.http import ok
from agency_api.models.category import CATEGORY_TYPES
from agency_api.models.finance import PAYMENT_METHODS, REFERENCE_TYPES
from agency_api.models.notification import NOTIFICATION_CATEGORIES, NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES
from agency_api.models.task import PRIORITIES
from agency_api.models.user import ROLES
from agency_api.status import describe_statuses

bp = Blueprint("meta", __name__, url_prefix="/api/v1/meta")

@bp.get("/health")
def health():
    return ok({"status": "ok"})

@bp.get("/statuses")
def statuses():
    return ok(describe_statuses())

@bp.get("/enums")
def enums():
    return ok({
        "roles": list(ROLES),
        "task_priorities": list(PRIORITIES),
        "payment_methods": list(PAYMENT_METHODS),
        "reference_types": list(REFERENCE_TYPES),
        "category_types": list(CATEGORY_TYPES),
        "notification_types": list(NOTIFICATION_TYPES),
        "notification_priorities": list(NOTIFICATION_PRIORITIES),
        "notification_categories": list(NOTIFICATION_CATEGORIES),
    })
