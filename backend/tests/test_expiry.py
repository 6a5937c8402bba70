from __future__ import annotations

from datetime import date, datetime

import pytest

from app.utils.expiry import expiry_status, normalize_expiry_date, serial_to_iso


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("15-08-2024", "2024-08-15"),
        ("15/08/2024", "2024-08-15"),
        ("2024-08-15", "2024-08-15"),
        ("2024/8/5", "2024-08-05"),
        ("08/2025", "2025-08-31"),
        ("02-2024", "2024-02-29"),
        ("Aug-25", "2025-08-31"),
        ("aug 2025", "2025-08-31"),
        ("Feb/2023", "2023-02-28"),
        ("  15-08-2024  ", "2024-08-15"),
    ],
)
def test_text_forms_normalize_to_iso(raw: str, expected: str) -> None:
    assert normalize_expiry_date(raw) == expected


def test_native_dates_keep_their_calendar_day() -> None:
    assert normalize_expiry_date(datetime(2025, 3, 4, 22, 30)) == "2025-03-04"
    assert normalize_expiry_date(date(2026, 1, 31)) == "2026-01-31"


def test_serial_numbers_count_from_1899_12_30() -> None:
    assert normalize_expiry_date(45658) == "2025-01-01"
    assert normalize_expiry_date(45519.0) == "2024-08-15"
    assert normalize_expiry_date("45658") == "2025-01-01"
    assert normalize_expiry_date(45658.5) == "2025-01-01"


def test_serial_range_is_exclusive() -> None:
    assert serial_to_iso(0) is None
    assert serial_to_iso(100000) is None
    assert serial_to_iso(1) == "1899-12-31"
    assert normalize_expiry_date(0) is None


@pytest.mark.parametrize("raw", [None, "", "   ", "not-a-date", "31-02-2024", "13/2025", "Foo-25", True])
def test_unreadable_values_give_none(raw) -> None:
    assert normalize_expiry_date(raw) is None


def test_nan_gives_none() -> None:
    assert normalize_expiry_date(float("nan")) is None


def test_expiry_status_windows() -> None:
    today = date(2025, 1, 1)
    assert expiry_status("2024-12-31", today) == "expired"
    assert expiry_status("2025-01-01", today) == "expiring-soon"
    assert expiry_status("2025-03-15", today) == "expiring-soon"
    assert expiry_status("2025-06-01", today) == "valid"
    assert expiry_status(None, today) == "valid"
    assert expiry_status("2025-01-20", today, window_days=10) == "valid"


@pytest.mark.parametrize("raw", [150000, "150000", 100000.0, -5])
def test_numbers_outside_serial_range_give_none(raw) -> None:
    assert normalize_expiry_date(raw) is None
