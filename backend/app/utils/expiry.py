"""
Expiry date normalization for uploaded stock sheets.

Suppliers send expiry dates in whatever shape their software exports:
real date cells, spreadsheet serial numbers, day-first or year-first text,
or month-only values such as ``08/2025`` and ``Aug-25``. Everything is
reduced to an ISO ``YYYY-MM-DD`` string, or None when the value cannot be
read. Month-only values mean "valid through the end of that month".

The batch insert stores EXPIRY_FALLBACK_DATE when this returns None, so an
unreadable date shows up as a batch that never expires.
"""
import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

EXPIRY_FALLBACK_DATE = "2099-12-31"

# Spreadsheet day zero (serial 1 = 1899-12-31, with the 1900 leap-year bug baked in)
SERIAL_DATE_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)
SERIAL_DATE_MAX = 100000

_SERIAL = re.compile(r"^\d+(\.\d+)?$")
_YMD = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
_DMY = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_MY = re.compile(r"^(\d{1,2})[/-](\d{4})$")
_MON_Y = re.compile(r"^([a-zA-Z]{3})[\s/-](\d{2,4})$")

MONTH_ABBREVIATIONS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _end_of_month(year: int, month: int) -> Optional[str]:
    if not 1 <= month <= 12 or year < 1:
        return None
    return _iso(year, month, calendar.monthrange(year, month)[1])


def serial_to_iso(serial: float) -> Optional[str]:
    """Convert a spreadsheet serial day count to ISO date, or None outside (0, 100000)."""
    if not 0 < serial < SERIAL_DATE_MAX:
        return None
    ms = round(serial * 24 * 60 * 60 * 1000)
    return (SERIAL_DATE_EPOCH + timedelta(milliseconds=ms)).date().isoformat()


def normalize_expiry_date(value) -> Optional[str]:
    """
    Normalize an expiry cell to ``YYYY-MM-DD``.

    Forms are tried in order: native date, serial number, YYYY-MM-DD,
    DD-MM-YYYY, MM-YYYY, Mon-YY / Mon-YYYY. ``/`` works wherever ``-`` does.

    >>> normalize_expiry_date("15-08-2024")
    '2024-08-15'
    >>> normalize_expiry_date("08-2024")
    '2024-08-31'
    >>> normalize_expiry_date("not-a-date") is None
    True
    """
    if value is None or isinstance(value, bool):
        return None

    # datetime is a date subclass; pandas Timestamp is a datetime subclass
    if isinstance(value, (datetime, date)):
        return _iso(value.year, value.month, value.day)

    if isinstance(value, float):
        if value != value:  # NaN
            return None
        raw = repr(value) if not value.is_integer() else str(int(value))
    else:
        raw = str(value).strip()
    if not raw:
        return None

    if _SERIAL.match(raw):
        converted = serial_to_iso(float(raw))
        if converted:
            return converted

    m = _YMD.match(raw)
    if m:
        return _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _DMY.match(raw)
    if m:
        return _iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))

    m = _MY.match(raw)
    if m:
        return _end_of_month(int(m.group(2)), int(m.group(1)))

    m = _MON_Y.match(raw)
    if m:
        month = MONTH_ABBREVIATIONS.get(m.group(1).lower())
        if month:
            year = int(m.group(2))
            if year < 100:
                year += 2000
            return _end_of_month(year, month)

    return None


def expiry_status(iso_date: Optional[str], today: Optional[date] = None, window_days: int = 90) -> str:
    """
    Classify an ISO expiry date as 'expired', 'expiring-soon' (inside window_days) or 'valid'.
    Missing dates are 'valid'.
    """
    if not iso_date:
        return "valid"
    today = today or date.today()
    expiry = date.fromisoformat(iso_date)
    if expiry < today:
        return "expired"
    if expiry < today + timedelta(days=window_days):
        return "expiring-soon"
    return "valid"
