"""
Per-buyer invoice numbering.

System mode: the server computes the next number and the caller must submit exactly that.
Manual mode: the caller supplies the number; when it carries a sequence the stored counter
catches up to it straight away, whether or not the invoice is created afterwards.
Both modes share the same counter.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from common.exceptions import ConfigurationError, ConflictError
from constants.invoices import MODE_SYSTEM
from models.base import commit_or_rollback
from models.invoice import InvoiceSeries

logger = logging.getLogger(__name__)

_SEQUENCE = re.compile(r"-(\d+)N-")


@dataclass(frozen=True)
class Allocation:
    buyer_org_id: uuid.UUID
    financial_year: str
    # None for manual numbers without a "-NNNN-" part
    sequence_number: Optional[int]


def format_invoice_number(prefix: str, number: int, financial_year: str) -> str:
    return f"{prefix}-{number:03d}N-{financial_year}"


def parse_sequence(invoice_no: str) -> Optional[int]:
    match = _SEQUENCE.search(invoice_no or "")
    return int(match.group(1)) if match else None


async def get_series(db: AsyncSession, buyer_org_id: uuid.UUID) -> Optional[InvoiceSeries]:
    res = await db.execute(select(InvoiceSeries).where(InvoiceSeries.buyer_org_id == buyer_org_id))
    return res.scalar_one_or_none()


async def peek_next(db: AsyncSession, buyer_org_id: uuid.UUID) -> Dict[str, Any]:
    series = await get_series(db, buyer_org_id)
    if series is None:
        return {"initialized": False, "prefix": None}
    if not series.initialized:
        return {"initialized": False, "prefix": series.prefix, "financial_year": series.financial_year}
    return {
        "initialized": True,
        "invoiceNo": format_invoice_number(series.prefix, series.current_number + 1, series.financial_year),
        "prefix": series.prefix,
        "financial_year": series.financial_year,
    }


async def allocate(db: AsyncSession, buyer_org_id: uuid.UUID, mode: str, invoice_no: str) -> Allocation:
    series = await get_series(db, buyer_org_id)
    if series is None:
        raise ConfigurationError("Invoice series not configured for this buyer.")

    if mode == MODE_SYSTEM:
        if not series.initialized:
            raise ConfigurationError("Invoice series not initialized for this buyer.")
        expected = format_invoice_number(series.prefix, series.current_number + 1, series.financial_year)
        if invoice_no != expected:
            raise ConflictError(f"Invoice number mismatch. Expected {expected}", status_code=400)
        return Allocation(buyer_org_id, series.financial_year, series.current_number + 1)

    sequence_number = parse_sequence(invoice_no)
    if sequence_number is None:
        return Allocation(buyer_org_id, series.financial_year, None)

    if not series.initialized:
        stmt = (
            update(InvoiceSeries)
            .where(InvoiceSeries.buyer_org_id == buyer_org_id)
            .values(current_number=sequence_number, initialized=True)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(stmt)
        await commit_or_rollback(db)
        logger.info("Invoice series for buyer %s initialized at %d", buyer_org_id, sequence_number)
    elif sequence_number > series.current_number:
        # Guarded so a concurrent higher catch-up is never pulled back
        stmt = (
            update(InvoiceSeries)
            .where(and_(InvoiceSeries.buyer_org_id == buyer_org_id, InvoiceSeries.current_number < sequence_number))
            .values(current_number=sequence_number)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(stmt)
        await commit_or_rollback(db)
        logger.info("Invoice series for buyer %s caught up to %d", buyer_org_id, sequence_number)
    return Allocation(buyer_org_id, series.financial_year, sequence_number)


async def commit(db: AsyncSession, buyer_org_id: uuid.UUID) -> None:
    """
    Advance the counter by one in a single UPDATE, after the invoice row is stored.
    """
    stmt = (
        update(InvoiceSeries)
        .where(InvoiceSeries.buyer_org_id == buyer_org_id)
        .values(current_number=InvoiceSeries.current_number + 1)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(stmt)
    await commit_or_rollback(db)
