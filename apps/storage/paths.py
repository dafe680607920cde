"""
Object-store key layout:

    {buyer}/{MonthName}/{DD}/{poNumberOrId}/{po|pi}_{epochMillis}_{filename}

Free-text parts are reduced to a safe character set before they become path segments.
"""
import posixpath
import re
from datetime import date
from typing import Optional

from common.dates import epoch_millis, month_name

_UNSAFE_SEGMENT = re.compile(r"[^a-zA-Z0-9 _-]")
_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9._-]")
_UNSAFE_INVOICE_NO = re.compile(r"[^a-zA-Z0-9\-]")


def sanitize_segment(value: str, fallback: str = "unknown") -> str:
    cleaned = _UNSAFE_SEGMENT.sub("", value or "").strip()
    return cleaned or fallback


def sanitize_filename(value: Optional[str], fallback: str = "file") -> str:
    name = re.sub(r"\s+", "_", (value or "").strip())
    name = _UNSAFE_FILENAME.sub("", posixpath.basename(name)).lstrip(".")
    return name or fallback


def po_directory(buyer_name: str, received: date, po_number_or_id: str) -> str:
    return "/".join(
        [
            sanitize_segment(buyer_name),
            month_name(received),
            f"{received.day:02d}",
            sanitize_segment(po_number_or_id),
        ]
    )


def document_key(directory: str, kind: str, filename: Optional[str], millis: Optional[int] = None) -> str:
    """
    kind is "po" or "pi". The millisecond stamp keeps concurrent uploads apart.
    """
    stamp = millis if millis is not None else epoch_millis()
    return f"{directory}/{kind}_{stamp}_{sanitize_filename(filename)}"


def directory_of(key: str) -> str:
    return posixpath.dirname(key)


def invoice_key(invoice_no: str, millis: Optional[int] = None) -> str:
    stamp = millis if millis is not None else epoch_millis()
    return f"invoices/{_UNSAFE_INVOICE_NO.sub('_', invoice_no)}_{stamp}.pdf"


def travel_bill_key(travel_date: date, filename: Optional[str], millis: Optional[int] = None) -> str:
    stamp = millis if millis is not None else epoch_millis()
    return f"{month_name(travel_date)}/{travel_date.day:02d}/travel_{stamp}_{sanitize_filename(filename)}"
