import uuid
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from constants.invoices import MODE_MANUAL, MODE_SYSTEM


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class InvoiceBuyer(_Body):
    id: uuid.UUID
    name: str = ""
    address: str = ""
    country: Optional[str] = None


class InvoiceLineItem(_Body):
    sr_no: Optional[int] = Field(default=None, alias="srNo")
    description: str = ""
    purpose_code: str = Field(default="", alias="purposeCode")
    total: Decimal = Decimal("0")


class GenerateInvoiceRequest(_Body):
    invoice_mode: Literal[MODE_SYSTEM, MODE_MANUAL] = Field(default=MODE_SYSTEM, alias="invoiceMode")
    invoice_no: constr(min_length=1, max_length=64) = Field(alias="invoiceNo")
    invoice_date: date = Field(alias="invoiceDate")
    buyer: InvoiceBuyer
    line_items: List[InvoiceLineItem] = Field(alias="lineItems", min_length=1)
    # Defaults to the sum of the line items
    total_amount: Optional[Decimal] = Field(default=None, alias="totalAmount")
    currency: constr(min_length=3, max_length=8) = "USD"
    shopify_customer_id: Optional[str] = Field(default=None, alias="shopifyCustomerId")

    @property
    def amount(self) -> Decimal:
        if self.total_amount is not None:
            return self.total_amount
        return sum((item.total for item in self.line_items), Decimal("0"))
