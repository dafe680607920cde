import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class LinkedPO(BaseModel):
    """
    Current PO fields joined onto legacy alert listings.
    """

    model_config = ConfigDict(from_attributes=True)

    buyer_name: Optional[str] = None
    po_number: Optional[str] = None
    po_received_date: Optional[str] = None
    po_file_url: Optional[str] = None
    quantity_ordered: Optional[int] = None
    amount: Optional[float] = None
    created_by: Optional[str] = None


class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    message: str
    alert_type: Optional[str] = None
    po_id: Optional[uuid.UUID] = None
    po_snapshot: Optional[Dict[str, Any]] = None
    recipient_user_id: str
    recipient_name: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    purchase_orders: Optional[LinkedPO] = None


class AlertListResponse(BaseModel):
    success: bool = True
    alerts: List[AlertOut]


class MarkReadResponse(BaseModel):
    success: bool = True
    updated: Optional[int] = None
