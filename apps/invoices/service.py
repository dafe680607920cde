import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invoices import sequence
from apps.invoices.pdf import IssuerDetails, InvoiceDocument, InvoiceLine, parse_detail_rows, render_invoice_pdf
from apps.invoices.schemas import GenerateInvoiceRequest
from apps.organizations.service import OrganizationService
from apps.storage.commit import commit_with_compensation
from apps.storage.paths import invoice_key
from apps.storage.service import ObjectStore
from common.exceptions import ConflictError, ValidationError
from common.forms import validate_form
from constants.invoices import MODE_SYSTEM
from constants.statuses import INVOICE_ISSUED
from models.base import commit_or_rollback
from models.invoice import ConsultancyInvoice
from settings.config import Settings, get_settings

logger = logging.getLogger(__name__)

INVOICE_DESCRIPTION = "Consultancy Services"


@dataclass
class InvoiceResult:
    invoice_id: uuid.UUID
    download_url: str
    pdf_path: str
    warnings: List[str] = field(default_factory=list)


def parse_generate_request(raw: Any) -> GenerateInvoiceRequest:
    """
    The four basic checks keep their own messages; everything else is reported by field.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Request body must be a JSON object.")
    if not str(raw.get("invoiceNo") or "").strip():
        raise ValidationError("Invoice number is required.")
    if not raw.get("invoiceDate"):
        raise ValidationError("Invoice date is required.")
    buyer = raw.get("buyer")
    if not isinstance(buyer, dict) or not buyer.get("id"):
        raise ValidationError("Buyer is required.")
    if not raw.get("lineItems"):
        raise ValidationError("At least one line item is required.")
    return validate_form(GenerateInvoiceRequest, raw)


def issuer_details(settings: Settings) -> IssuerDetails:
    return IssuerDetails(
        name=settings.COMPANY_NAME or settings.APP_NAME,
        address_lines=[line.strip() for line in settings.INVOICE_ISSUER_ADDRESS.splitlines() if line.strip()],
        registration_lines=[line.strip() for line in settings.INVOICE_ISSUER_REGISTRATION.splitlines() if line.strip()],
        email=settings.INVOICE_ISSUER_EMAIL,
        bank_rows=parse_detail_rows(settings.INVOICE_BANK_DETAILS),
        intermediary_rows=parse_detail_rows(settings.INVOICE_INTERMEDIARY_BANK_DETAILS),
    )


def build_document(request: GenerateInvoiceRequest, settings: Settings) -> InvoiceDocument:
    return InvoiceDocument(
        invoice_no=request.invoice_no,
        invoice_date=request.invoice_date,
        buyer_name=request.buyer.name,
        buyer_address=request.buyer.address,
        buyer_country=request.buyer.country,
        currency=request.currency,
        lines=[
            InvoiceLine(
                sr_no=item.sr_no or index,
                description=item.description,
                purpose_code=item.purpose_code,
                total=item.total,
            )
            for index, item in enumerate(request.line_items, start=1)
        ],
        total_amount=request.amount,
        issuer=issuer_details(settings),
    )


class InvoiceService:
    @staticmethod
    async def next_invoice_number(db: AsyncSession, buyer_id: Optional[str]) -> Dict[str, Any]:
        if not buyer_id:
            raise ValidationError("buyerId required")
        try:
            buyer_org_id = uuid.UUID(str(buyer_id))
        except ValueError as exc:
            raise ValidationError("Invalid fields: buyerId") from exc
        return await sequence.peek_next(db, buyer_org_id)

    @staticmethod
    async def invoice_number_exists(db: AsyncSession, invoice_no: str) -> bool:
        res = await db.execute(select(ConsultancyInvoice.id).where(ConsultancyInvoice.invoice_number == invoice_no))
        return res.first() is not None

    @staticmethod
    async def generate_invoice(
        db: AsyncSession,
        store: ObjectStore,
        request: GenerateInvoiceRequest,
        settings: Optional[Settings] = None,
    ) -> InvoiceResult:
        """
        Validate -> resolve member -> uniqueness -> allocate -> render -> upload -> insert
        (upload removed if the insert fails) -> advance the series (system mode).
        """
        settings = settings or get_settings()
        invoice_no = request.invoice_no
        buyer_org_id = request.buyer.id

        member = None
        if request.shopify_customer_id:
            member = await OrganizationService.get_member_by_shopify_id(db, request.shopify_customer_id)
        if member is None:
            raise ValidationError("Could not resolve member identity.")
        member_id = member.id

        if await InvoiceService.invoice_number_exists(db, invoice_no):
            raise ConflictError("Invoice number already exists.", status_code=400)

        allocation = await sequence.allocate(db, buyer_org_id, request.invoice_mode, invoice_no)

        pdf_bytes = await asyncio.to_thread(render_invoice_pdf, build_document(request, settings))
        key = invoice_key(invoice_no)
        invoice_id = uuid.uuid4()

        async def write_record() -> None:
            db.add(
                ConsultancyInvoice(
                    id=invoice_id,
                    buyer_org_id=buyer_org_id,
                    invoice_number=invoice_no,
                    invoice_date=request.invoice_date,
                    amount=request.amount,
                    currency=request.currency,
                    line_items=[item.model_dump(mode="json", by_alias=True) for item in request.line_items],
                    description=INVOICE_DESCRIPTION,
                    status=INVOICE_ISSUED,
                    sequence_number=allocation.sequence_number,
                    invoice_mode=request.invoice_mode,
                    pdf_path=key,
                    created_by=member_id,
                    financial_year=allocation.financial_year,
                )
            )
            try:
                await commit_or_rollback(db)
            except IntegrityError as exc:
                # Lost the race against a concurrent invoice with the same number
                logger.warning("Insert of invoice %s rejected: %s", invoice_no, exc.orig)
                raise ConflictError("Invoice number already exists.", status_code=400) from exc

        await commit_with_compensation(
            store, key, pdf_bytes, "application/pdf", write_record,
            error_message="Failed to store invoice record.",
        )
        logger.info("Invoice %s (%s mode) stored at %s", invoice_no, request.invoice_mode, key)

        result = InvoiceResult(invoice_id=invoice_id, download_url=store.public_url(key), pdf_path=key)
        if request.invoice_mode == MODE_SYSTEM:
            try:
                await sequence.commit(db, buyer_org_id)
            except SQLAlchemyError as exc:
                logger.error(
                    "Invoice %s stored but series for buyer %s was not advanced: %s", invoice_no, buyer_org_id, exc
                )
                result.warnings.append("sequence_not_advanced")
        return result
