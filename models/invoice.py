import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from models.base import Base
from constants.statuses import INVOICE_ISSUED


class InvoiceSeries(Base):
    """
    Per-buyer invoice counter. current_number only moves forward.
    """
    __tablename__ = "invoice_series"
    __table_args__ = (
        UniqueConstraint("buyer_org_id", name="uq_invoice_series_buyer_org_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_org_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    prefix = Column(String(32), nullable=False)
    financial_year = Column(String(16), nullable=False)
    current_number = Column(Integer, nullable=False, default=0, server_default="0")
    initialized = Column(Boolean, nullable=False, default=False, server_default="false")
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class ConsultancyInvoice(Base):
    """
    Issued consultancy invoice and the path of its generated PDF.
    invoice_number is unique at the database level.
    """
    __tablename__ = "consultancy_invoices"
    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_consultancy_invoices_invoice_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    buyer_org_id = Column(Uuid, ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True)
    invoice_number = Column(String(64), nullable=False)
    invoice_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    line_items = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=INVOICE_ISSUED, server_default=INVOICE_ISSUED)
    sequence_number = Column(Integer, nullable=True)
    invoice_mode = Column(String(16), nullable=False)
    pdf_path = Column(String(1024), nullable=False)
    created_by = Column(Uuid, ForeignKey("organization_members.id", ondelete="SET NULL"), nullable=True)
    financial_year = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
