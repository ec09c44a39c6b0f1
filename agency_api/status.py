# agency_api/status.py
"""
Status taxonomies for every dashboard entity.

Each progression taxonomy has a transition table; every status change in the
API goes through ``transition()`` so an illegal move (e.g. admin sign-off on a
payment the GM has not approved yet) fails with ``IllegalTransition`` instead
of being written.

Attendance statuses are categorical, not a progression: any value may be set.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional, Type


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    GM_APPROVED = "gm_approved"
    ADMIN_APPROVED = "admin_approved"
    REJECTED = "rejected"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    COORDINATOR_APPROVED = "coordinator_approved"
    HR_APPROVED = "hr_approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    HALF_DAY = "half_day"
    REMOTE = "remote"
    ON_LEAVE = "on_leave"


class WorkSubmissionStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    NEEDS_REVISION = "needs_revision"
    REJECTED = "rejected"


TAXONOMIES: Dict[str, Type[Enum]] = {
    "task": TaskStatus,
    "project": ProjectStatus,
    "invoice": InvoiceStatus,
    "transaction": TransactionStatus,
    "leave": LeaveStatus,
    "attendance": AttendanceStatus,
    "work_submission": WorkSubmissionStatus,
}


def _table(pairs) -> Dict[str, FrozenSet[str]]:
    return {src.value: frozenset(t.value for t in targets) for src, targets in pairs.items()}


TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "task": _table({
        TaskStatus.PENDING: (TaskStatus.IN_PROGRESS, TaskStatus.REJECTED),
        TaskStatus.IN_PROGRESS: (TaskStatus.COMPLETED, TaskStatus.REJECTED, TaskStatus.PENDING),
        TaskStatus.COMPLETED: (),
        TaskStatus.REJECTED: (),
    }),
    "project": _table({
        ProjectStatus.PLANNING: (ProjectStatus.IN_PROGRESS, ProjectStatus.ON_HOLD),
        ProjectStatus.IN_PROGRESS: (ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED),
        ProjectStatus.ON_HOLD: (ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED),
        ProjectStatus.COMPLETED: (),
    }),
    "invoice": _table({
        InvoiceStatus.DRAFT: (InvoiceStatus.PENDING, InvoiceStatus.CANCELLED),
        InvoiceStatus.PENDING: (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID,
                                InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED),
        InvoiceStatus.PARTIALLY_PAID: (InvoiceStatus.PAID, InvoiceStatus.OVERDUE,
                                       InvoiceStatus.CANCELLED),
        InvoiceStatus.OVERDUE: (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID,
                                InvoiceStatus.CANCELLED),
        InvoiceStatus.PAID: (),
        InvoiceStatus.CANCELLED: (),
    }),
    "transaction": _table({
        TransactionStatus.PENDING: (TransactionStatus.GM_APPROVED, TransactionStatus.REJECTED),
        TransactionStatus.GM_APPROVED: (TransactionStatus.ADMIN_APPROVED, TransactionStatus.REJECTED),
        TransactionStatus.ADMIN_APPROVED: (),
        TransactionStatus.REJECTED: (),
    }),
    "leave": _table({
        LeaveStatus.PENDING: (LeaveStatus.COORDINATOR_APPROVED, LeaveStatus.REJECTED,
                              LeaveStatus.CANCELLED),
        LeaveStatus.COORDINATOR_APPROVED: (LeaveStatus.HR_APPROVED, LeaveStatus.REJECTED,
                                           LeaveStatus.CANCELLED),
        LeaveStatus.HR_APPROVED: (),
        LeaveStatus.REJECTED: (),
        LeaveStatus.CANCELLED: (),
    }),
    "work_submission": _table({
        WorkSubmissionStatus.PENDING_REVIEW: (WorkSubmissionStatus.APPROVED,
                                              WorkSubmissionStatus.NEEDS_REVISION,
                                              WorkSubmissionStatus.REJECTED),
        WorkSubmissionStatus.NEEDS_REVISION: (WorkSubmissionStatus.PENDING_REVIEW,),
        WorkSubmissionStatus.APPROVED: (),
        WorkSubmissionStatus.REJECTED: (),
    }),
}

# Display labels where title-casing the tag is not enough
_LABEL_OVERRIDES = {
    ("transaction", "gm_approved"): "GM Approved",
    ("transaction", "admin_approved"): "Admin Approved",
    ("leave", "hr_approved"): "HR Approved",
}

# Tailwind text classes the dashboard renders statuses with
_COLORS: Dict[str, Dict[str, str]] = {
    "task": {"pending": "text-yellow-600", "in_progress": "text-blue-600",
             "completed": "text-green-600", "rejected": "text-red-600"},
    "project": {"planning": "text-purple-600", "in_progress": "text-blue-600",
                "on_hold": "text-yellow-600", "completed": "text-green-600"},
    "invoice": {"draft": "text-gray-600", "pending": "text-yellow-600", "paid": "text-green-600",
                "partially_paid": "text-blue-600", "overdue": "text-red-600",
                "cancelled": "text-gray-400"},
    "transaction": {"pending": "text-yellow-600", "gm_approved": "text-blue-600",
                    "admin_approved": "text-white", "rejected": "text-red-600"},
    "leave": {"pending": "text-yellow-600", "coordinator_approved": "text-blue-600",
              "hr_approved": "text-green-600", "rejected": "text-red-600",
              "cancelled": "text-gray-400"},
    "attendance": {"present": "text-green-600", "absent": "text-red-600", "late": "text-yellow-600",
                   "half_day": "text-orange-600", "remote": "text-blue-600",
                   "on_leave": "text-purple-600"},
    "work_submission": {"pending_review": "text-yellow-600", "approved": "text-white",
                        "needs_revision": "text-orange-600", "rejected": "text-red-600"},
}
_DEFAULT_COLOR = "text-gray-600"


class IllegalTransition(Exception):
    """A status change the transition table does not allow."""

    def __init__(self, kind: str, current: str, target: str):
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {kind} from '{current}' to '{target}'")


def _value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def is_valid(kind: str, status) -> bool:
    enum_cls = TAXONOMIES[kind]
    return _value(status) in {m.value for m in enum_cls}


def allowed_targets(kind: str, current) -> FrozenSet[str]:
    table = TRANSITIONS.get(kind)
    if table is None:
        return frozenset(m.value for m in TAXONOMIES[kind])
    return table.get(_value(current), frozenset())


def can_transition(kind: str, current, target) -> bool:
    if not is_valid(kind, target):
        return False
    return _value(target) in allowed_targets(kind, current)


def transition(kind: str, current, target) -> str:
    """Return ``target`` as a plain string if the move is legal, else raise."""
    cur, tgt = _value(current), _value(target)
    if not can_transition(kind, cur, tgt):
        raise IllegalTransition(kind, cur, tgt)
    return tgt


def is_terminal(kind: str, status) -> bool:
    table = TRANSITIONS.get(kind)
    return table is not None and not table.get(_value(status))


def status_label(kind: str, status: Optional[str]) -> str:
    if status is None or not is_valid(kind, status):
        return "Unknown"
    value = _value(status)
    override = _LABEL_OVERRIDES.get((kind, value))
    if override:
        return override
    return value.replace("_", " ").title()


def status_color(kind: str, status: Optional[str]) -> str:
    if status is None:
        return _DEFAULT_COLOR
    return _COLORS.get(kind, {}).get(_value(status), _DEFAULT_COLOR)


def describe_statuses() -> dict:
    out = {}
    for kind, enum_cls in TAXONOMIES.items():
        table = TRANSITIONS.get(kind)
        out[kind] = {
            "progression": table is not None,
            "statuses": [
                {
                    "value": m.value,
                    "label": status_label(kind, m.value),
                    "color": status_color(kind, m.value),
                    "next": sorted(table.get(m.value, ())) if table is not None else [],
                    "terminal": is_terminal(kind, m.value),
                }
                for m in enum_cls
            ],
        }
    return out
