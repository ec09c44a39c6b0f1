# agency_api/common/validation.py
"""
Field-by-field form checks.

Each entity validator builds a ``FormErrors``, runs the checks it needs and
calls ``raise_if_any()``; the collected map becomes the 422 ``errors`` body,
keyed by payload field name.
"""
import re

from agency_api.common.dates import parse_date
from agency_api.common.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_blank(v) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return not v.strip()
    if isinstance(v, (list, tuple, dict)):
        return len(v) == 0
    return False


def clean_text(v):
    """Stripped string, or None for a missing/blank value."""
    if v is None:
        return None
    return str(v).strip() or None


def to_number(v):
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    if isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def valid_email(v) -> bool:
    return bool(v) and bool(EMAIL_RE.match(str(v).strip()))


class FormErrors:
    def __init__(self):
        self.errors = {}

    def __bool__(self):
        return bool(self.errors)

    def add(self, field, message):
        # first failure per field is the one shown
        self.errors.setdefault(field, message)

    def required(self, data, field, message=None):
        if is_blank(data.get(field)):
            self.add(field, message or f"{field.replace('_', ' ').capitalize()} is required")
            return False
        return True

    def text(self, data, field, message=None):
        """Required free-text field; numbers, lists and the like are rejected."""
        if not self.required(data, field, message):
            return False
        if not isinstance(data.get(field), str):
            self.add(field, f"{field.replace('_', ' ').capitalize()} must be text")
            return False
        return True

    def email(self, data, field="email", message="Please enter a valid email address"):
        if not self.required(data, field, "Email is required"):
            return False
        if not valid_email(data.get(field)):
            self.add(field, message)
            return False
        return True

    def positive(self, data, field, message, required=True):
        raw = data.get(field)
        if raw is None and not required:
            return True
        n = to_number(raw)
        if n is None or n <= 0:
            self.add(field, message)
            return False
        return True

    def non_negative(self, data, field, message, required=False):
        raw = data.get(field)
        if (raw is None or raw == "") and not required:
            return True
        n = to_number(raw)
        if n is None or n < 0:
            self.add(field, message)
            return False
        return True

    def date(self, data, field, message=None, required=True):
        raw = data.get(field)
        if is_blank(raw):
            if required:
                self.add(field, message or f"{field.replace('_', ' ').capitalize()} is required")
                return None
            return None
        d = parse_date(raw)
        if d is None:
            self.add(field, "Invalid date (use YYYY-MM-DD)")
        return d

    def date_order(self, start, end, field, message, strict=False):
        """Error on ``field`` when end precedes start (or equals it, if strict)."""
        if start is None or end is None:
            return True
        bad = end <= start if strict else end < start
        if bad:
            self.add(field, message)
            return False
        return True

    def choice(self, data, field, choices, required=False):
        raw = data.get(field)
        if is_blank(raw):
            if required:
                self.add(field, f"{field.replace('_', ' ').capitalize()} is required")
            return True
        if raw not in choices:
            self.add(field, f"{field} must be one of {', '.join(sorted(choices))}")
            return False
        return True

    def raise_if_any(self):
        if self.errors:
            raise ValidationError(self.errors)
