import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class TravelBillSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    travel_date: date = Field(alias="travelDate")
    comments: constr(min_length=1, max_length=2000)
    shopify_customer_id: constr(min_length=1) = Field(alias="shopifyCustomerId")
    amount: Decimal = Field(gt=0)


class TravelBillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_member_id: uuid.UUID
    travel_bill_date: date
    travel_bill_url: Optional[str] = None
    travel_bill_comment: str
    amount: float
    status: str
    created_at: Optional[datetime] = None


class TravelBillListResponse(BaseModel):
    bills: List[TravelBillOut]
