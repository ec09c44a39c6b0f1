# agency_api/common/dates.py
from datetime import date, datetime, time

_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_date(s):
    """Accepts a date, a datetime, 'YYYY-MM-DD' or 'DD-MM-YYYY'; None when unparseable."""
    if not s:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    # ISO datetimes from the UI ("2024-01-03T00:00:00Z")
    if "T" in s:
        s = s.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    return None


def parse_time(s):
    if not s:
        return None
    if isinstance(s, time):
        return s
    s = str(s).strip()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            pass
    return None


def iso(d):
    return d.isoformat() if d else None


def hhmm(t):
    return t.strftime("%H:%M") if t else None
