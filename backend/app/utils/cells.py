"""
Spreadsheet cell helpers.

Cells arrive from openpyxl (str, int, float, datetime, bool, None) or from
pandas (same, plus NaN for empty cells). These helpers turn them into the
plain strings and numbers the upload services work with.
"""
import math
import re
from typing import Optional

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _is_nan(value) -> bool:
    return isinstance(value, float) and math.isnan(value)


def safe_strip(value) -> Optional[str]:
    """
    Safely strip a value, handling None, NaN, float, int types.
    Returns None if value is empty/None/NaN, otherwise returns stripped string.
    """
    if value is None or _is_nan(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # 1200.0 read from a numeric cell is "1200" in the sheet
        value = int(value)
    str_value = str(value).strip()
    return str_value if str_value else None


def cell_text(value) -> str:
    """Like safe_strip but returns '' for empty cells."""
    return safe_strip(value) or ""


def parse_number(value, default: float = 0.0) -> float:
    """
    Parse a quantity or price cell.

    Reads the leading number of a string ("50 tabs" -> 50.0). Empty cells,
    NaN, zero and unparseable text all give ``default``.
    """
    if value is None or isinstance(value, bool) or _is_nan(value):
        return default
    if isinstance(value, (int, float)):
        return float(value) or default
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return default
    try:
        number = float(match.group(1))
    except ValueError:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number or default
