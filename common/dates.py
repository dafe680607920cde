"""
Conversions for the "Month-DD-YYYY" text dates stored on purchase_orders rows.

Request handlers work with datetime.date and only format at the point of writing.
"""
from datetime import date, datetime
from typing import Optional

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def month_name(value: date) -> str:
    # Independent of the process locale, unlike strftime("%B")
    return MONTH_NAMES[value.month - 1]


def format_record_date(value: date) -> str:
    """
    date(2025, 6, 5) -> "June-05-2025"
    """
    return f"{month_name(value)}-{value.day:02d}-{value.year}"


def parse_record_date(value: Optional[str]) -> Optional[date]:
    """
    Inverse of format_record_date. Returns None for empty or unparseable values.
    """
    if not value:
        return None
    parts = value.strip().split("-")
    if len(parts) != 3 or parts[0] not in MONTH_NAMES:
        return None
    try:
        return date(int(parts[2]), MONTH_NAMES.index(parts[0]) + 1, int(parts[1]))
    except ValueError:
        return None


def format_display_date(value: date) -> str:
    """
    Date as printed on invoices: "02 Feb 2026".
    """
    return f"{value.day:02d} {MONTH_NAMES[value.month - 1][:3]} {value.year}"


def epoch_millis(now: Optional[datetime] = None) -> int:
    return int((now or datetime.now()).timestamp() * 1000)
