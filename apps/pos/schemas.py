import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, constr

Text = constr(strip_whitespace=True, min_length=1, max_length=255)


class _FormModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class LegacyPORequest(_FormModel):
    """
    upload-po: free-text buyer name, creator passed as ?createdBy=.
    """

    kind: Literal["legacy"] = "legacy"
    buyer_name: Text = Field(alias="buyerName")
    po_received_date: date = Field(alias="poReceivedDate")
    quantity: int = Field(gt=0)
    value: Decimal = Field(gt=0)
    created_by: Text = Field(alias="createdBy")
    currency: constr(min_length=3, max_length=8) = "USD"


class RelationalPORequest(_FormModel):
    """
    upload-buyer-po: the buyer and supplier must share an active link.
    """

    kind: Literal["relational"] = "relational"
    buyer_name: Text = Field(alias="buyerName")
    supplier_name: Text = Field(alias="supplierName")
    po_received_date: date = Field(alias="poReceivedDate")
    quantity: int = Field(gt=0)
    value: Decimal = Field(gt=0)
    # The form calls the human-entered PO number "poId"
    po_number: Optional[constr(max_length=100)] = Field(default=None, alias="poId")
    currency: constr(min_length=3, max_length=8) = "USD"
    created_by: Optional[Text] = Field(default=None, alias="createdBy")
    shopify_customer_id: Optional[str] = Field(default=None, alias="shopifyCustomerId")


PORequest = Union[LegacyPORequest, RelationalPORequest]


class POUpdateRequest(_FormModel):
    po_received_date: Optional[date] = Field(default=None, alias="poReceivedDate")
    quantity: Optional[int] = Field(default=None, gt=0)
    value: Optional[Decimal] = Field(default=None, gt=0)
    po_number: Optional[constr(max_length=100)] = Field(default=None, alias="poId")
    currency: Optional[constr(min_length=3, max_length=8)] = None
    updated_by: Optional[Text] = Field(default=None, alias="updatedBy")
    shopify_customer_id: Optional[str] = Field(default=None, alias="shopifyCustomerId")


class PIUploadRequest(_FormModel):
    pi_received_date: date = Field(alias="piReceivedDate")
    po_number: Optional[constr(max_length=100)] = Field(default=None, alias="poId")
    updated_by: Optional[Text] = Field(default=None, alias="updatedBy")
    shopify_customer_id: Optional[str] = Field(default=None, alias="shopifyCustomerId")


class LegacyPIUploadRequest(PIUploadRequest):
    # Legacy form always carries the PO number it confirms
    po_number: constr(strip_whitespace=True, min_length=1, max_length=100) = Field(alias="poId")


class DeleteRequest(_FormModel):
    deleted_by: Optional[Text] = Field(default=None, alias="deletedBy")
    shopify_customer_id: Optional[str] = Field(default=None, alias="shopifyCustomerId")


class POOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_name: Optional[str] = None
    supplier_name: Optional[str] = None
    buyer_supplier_link_id: Optional[uuid.UUID] = None
    po_number: Optional[str] = None
    po_received_date: str
    quantity_ordered: int
    amount: float
    currency: str
    po_file_url: str
    pi_file_url: Optional[str] = None
    pi_received_date: Optional[str] = None
    pi_confirmed: bool
    created_by: Optional[str] = None
    updated_by_name: Optional[str] = None
    deleted_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


def po_out(po: Any, buyer_name: Optional[str] = None, supplier_name: Optional[str] = None) -> Dict[str, Any]:
    """
    JSON-ready PO with the party names resolved through its link (legacy rows carry their own buyer name).
    """
    out = POOut.model_validate(po)
    out.buyer_name = buyer_name or po.buyer_name
    out.supplier_name = supplier_name
    return out.model_dump(mode="json")
