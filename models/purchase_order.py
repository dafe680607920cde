import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)

from models.base import Base


class PurchaseOrder(Base):
    """
    Purchase Order with soft delete support.

    A PO belongs either to a legacy free-text buyer (buyer_name) or to a BuyerSupplierLink,
    never both. Dates are kept in the "Month-DD-YYYY" text form existing rows use, and the
    file columns hold object-store paths, not URLs.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        CheckConstraint(
            "(buyer_name IS NULL) <> (buyer_supplier_link_id IS NULL)",
            name="one_buyer_reference",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    buyer_name = Column(String(255), nullable=True, index=True)
    buyer_supplier_link_id = Column(
        Uuid, ForeignKey("buyer_supplier_links.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    # Human-entered; not unique
    po_number = Column(String(100), nullable=True, index=True)
    po_received_date = Column(String(32), nullable=False)
    quantity_ordered = Column(Integer, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="USD", server_default="USD")
    po_file_url = Column(String(1024), nullable=False)

    pi_file_url = Column(String(1024), nullable=True)
    pi_received_date = Column(String(32), nullable=True)
    pi_confirmed = Column(Boolean, nullable=False, default=False, server_default="false")

    created_by = Column(String(255), nullable=True, index=True)
    created_by_member_id = Column(Uuid, ForeignKey("organization_members.id", ondelete="SET NULL"), nullable=True)
    updated_by_name = Column(String(255), nullable=True)
    deleted_by_name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    # Soft delete marker; non-null rows are hidden from listings
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
