"""
Status constants stored on relational rows.
Stored lowercase to match the values already present in existing tables.
"""

# buyer_supplier_links.status
LINK_ACTIVE = "active"

# organizations.org_type (the merchant type itself comes from settings)
ORG_BUYER = "buyer"
ORG_SUPPLIER = "supplier"

# consultancy_invoices.status
INVOICE_ISSUED = "issued"

# travel_bill_request.status
TRAVEL_BILL_PENDING = "pending"
