"""initial schema: organizations, members, links, purchase orders, alerts, invoices, travel bills

Revision ID: 0001
Revises:
Create Date: 2025-11-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("org_type", sa.String(length=32), nullable=False),
        _created_at(),
    )
    op.create_index("ix_organizations_id", "organizations", ["id"], unique=False)
    op.create_index("ix_organizations_name", "organizations", ["name"], unique=False)
    op.create_index("ix_organizations_org_type", "organizations", ["org_type"], unique=False)

    op.create_table(
        "organization_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("shopify_customer_id", sa.String(length=64), nullable=True),
        _created_at(),
        sa.UniqueConstraint("shopify_customer_id", name="uq_organization_members_shopify_customer_id"),
    )
    op.create_index("ix_organization_members_id", "organization_members", ["id"], unique=False)
    op.create_index("ix_organization_members_organization_id", "organization_members", ["organization_id"], unique=False)
    op.create_index(
        "ix_organization_members_shopify_customer_id", "organization_members", ["shopify_customer_id"], unique=False
    )

    op.create_table(
        "member_organization_access",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "member_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organization_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _created_at(),
        sa.UniqueConstraint("member_id", "organization_id", name="uq_member_organization_access_member_org"),
    )
    op.create_index("ix_member_organization_access_member_id", "member_organization_access", ["member_id"], unique=False)
    op.create_index(
        "ix_member_organization_access_organization_id", "member_organization_access", ["organization_id"], unique=False
    )

    op.create_table(
        "buyer_supplier_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "buyer_org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "supplier_org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        _created_at(),
    )
    op.create_index("ix_buyer_supplier_links_id", "buyer_supplier_links", ["id"], unique=False)
    op.create_index("ix_buyer_supplier_links_buyer_org_id", "buyer_supplier_links", ["buyer_org_id"], unique=False)
    op.create_index("ix_buyer_supplier_links_supplier_org_id", "buyer_supplier_links", ["supplier_org_id"], unique=False)
    op.create_index("ix_buyer_supplier_links_status", "buyer_supplier_links", ["status"], unique=False)

    # purchase_orders: legacy buyer name XOR buyer/supplier link
    op.create_table(
        "purchase_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("buyer_name", sa.String(length=255), nullable=True),
        sa.Column(
            "buyer_supplier_link_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("buyer_supplier_links.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("po_number", sa.String(length=100), nullable=True),
        sa.Column("po_received_date", sa.String(length=32), nullable=False),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="USD"),
        sa.Column("po_file_url", sa.String(length=1024), nullable=False),
        sa.Column("pi_file_url", sa.String(length=1024), nullable=True),
        sa.Column("pi_received_date", sa.String(length=32), nullable=True),
        sa.Column("pi_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column(
            "created_by_member_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organization_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("updated_by_name", sa.String(length=255), nullable=True),
        sa.Column("deleted_by_name", sa.String(length=255), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(buyer_name IS NULL) <> (buyer_supplier_link_id IS NULL)",
            name="ck_purchase_orders_one_buyer_reference",
        ),
    )
    op.create_index("ix_purchase_orders_id", "purchase_orders", ["id"], unique=False)
    op.create_index("ix_purchase_orders_buyer_name", "purchase_orders", ["buyer_name"], unique=False)
    op.create_index(
        "ix_purchase_orders_buyer_supplier_link_id", "purchase_orders", ["buyer_supplier_link_id"], unique=False
    )
    op.create_index("ix_purchase_orders_po_number", "purchase_orders", ["po_number"], unique=False)
    op.create_index("ix_purchase_orders_created_by", "purchase_orders", ["created_by"], unique=False)
    op.create_index("ix_purchase_orders_deleted_at", "purchase_orders", ["deleted_at"], unique=False)

    op.create_table(
        "alerts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("alert_type", sa.String(length=32), nullable=True),
        sa.Column(
            "po_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("purchase_orders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("po_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("recipient_user_id", sa.String(length=64), nullable=False),
        sa.Column("recipient_name", sa.String(length=255), nullable=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_alerts_id", "alerts", ["id"], unique=False)
    op.create_index("ix_alerts_alert_type", "alerts", ["alert_type"], unique=False)
    op.create_index("ix_alerts_po_id", "alerts", ["po_id"], unique=False)
    op.create_index("ix_alerts_recipient_user_id", "alerts", ["recipient_user_id"], unique=False)
    op.create_index("ix_alerts_is_read", "alerts", ["is_read"], unique=False)

    op.create_table(
        "invoice_series",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "buyer_org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("financial_year", sa.String(length=16), nullable=False),
        sa.Column("current_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("initialized", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("buyer_org_id", name="uq_invoice_series_buyer_org_id"),
    )
    op.create_index("ix_invoice_series_buyer_org_id", "invoice_series", ["buyer_org_id"], unique=False)

    op.create_table(
        "consultancy_invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "buyer_org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("line_items", postgresql.JSONB(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="issued"),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("invoice_mode", sa.String(length=16), nullable=False),
        sa.Column("pdf_path", sa.String(length=1024), nullable=False),
        sa.Column(
            "created_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organization_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("financial_year", sa.String(length=16), nullable=True),
        _created_at(),
        # Closes the window between the existence check and the insert
        sa.UniqueConstraint("invoice_number", name="uq_consultancy_invoices_invoice_number"),
    )
    op.create_index("ix_consultancy_invoices_id", "consultancy_invoices", ["id"], unique=False)
    op.create_index("ix_consultancy_invoices_buyer_org_id", "consultancy_invoices", ["buyer_org_id"], unique=False)

    op.create_table(
        "travel_bill_request",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_member_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organization_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("travel_bill_date", sa.Date(), nullable=False),
        sa.Column("travel_bill_url", sa.String(length=1024), nullable=True),
        sa.Column("travel_bill_comment", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        _created_at(),
    )
    op.create_index("ix_travel_bill_request_id", "travel_bill_request", ["id"], unique=False)
    op.create_index(
        "ix_travel_bill_request_organization_member_id", "travel_bill_request", ["organization_member_id"], unique=False
    )


def downgrade():
    op.drop_table("travel_bill_request")
    op.drop_table("consultancy_invoices")
    op.drop_table("invoice_series")
    op.drop_table("alerts")
    op.drop_table("purchase_orders")
    op.drop_table("buyer_supplier_links")
    op.drop_table("member_organization_access")
    op.drop_table("organization_members")
    op.drop_table("organizations")
