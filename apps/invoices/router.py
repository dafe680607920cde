from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invoices.service import InvoiceService, parse_generate_request
from apps.storage.service import ObjectStore
from common.dependencies import get_invoice_store
from common.responses import success_response
from models.base import get_db
from security.api_key import require_api_key
from settings.config import Settings, get_settings


router = APIRouter(prefix="/proxy/consultancy", tags=["Consultancy Invoices"], dependencies=[Depends(require_api_key)])


@router.get("/next-invoice-number")
async def next_invoice_number(buyerId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    return await InvoiceService.next_invoice_number(db, buyerId)


@router.post("/generate-invoice")
async def generate_invoice(
    payload: Any = Body(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_invoice_store),
    settings: Settings = Depends(get_settings),
):
    request = parse_generate_request(payload)
    result = await InvoiceService.generate_invoice(db, store, request, settings)
    return success_response(
        "Invoice generated successfully.",
        warnings=result.warnings,
        invoiceId=str(result.invoice_id),
        downloadUrl=result.download_url,
    )
