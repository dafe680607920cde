import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid, func

from models.base import Base
from constants.statuses import TRAVEL_BILL_PENDING


class TravelBillRequest(Base):
    """
    Travel expense claim raised by an organization member. The receipt file is optional.
    """
    __tablename__ = "travel_bill_request"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    organization_member_id = Column(
        Uuid, ForeignKey("organization_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    travel_bill_date = Column(Date, nullable=False)
    travel_bill_url = Column(String(1024), nullable=True)
    travel_bill_comment = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), nullable=False, default=TRAVEL_BILL_PENDING, server_default=TRAVEL_BILL_PENDING)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
