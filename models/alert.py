import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB

from models.base import Base


class Alert(Base):
    """
    In-app notification, one row per recipient.

    po_snapshot is a copy of the PO fields at creation time. It is patched in place when
    the PO is edited or soft-deleted, so it is an audit trail rather than an event log.
    """
    __tablename__ = "alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    message = Column(Text, nullable=False)
    alert_type = Column(String(32), nullable=True, index=True)
    po_id = Column(Uuid, ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True, index=True)
    po_snapshot = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # Member id for relational alerts, Shopify customer id for legacy admin alerts
    recipient_user_id = Column(String(64), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_email = Column(String(255), nullable=True)

    is_read = Column(Boolean, nullable=False, default=False, server_default="false", index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

