import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship

from models.base import Base
from constants.statuses import LINK_ACTIVE


class Organization(Base):
    """
    A buyer, supplier or merchant organization.
    The merchant type (see settings.MERCHANT_ORG_TYPE) is the oversight party whose members get alerts.
    """
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False, index=True)
    org_type = Column(String(32), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class OrganizationMember(Base):
    """
    A person belonging to exactly one (home) organization, identified on the storefront
    by their Shopify customer id.
    """
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("shopify_customer_id", name="uq_organization_members_shopify_customer_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    shopify_customer_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    organization = relationship("Organization", lazy="joined")


class MemberAccess(Base):
    """
    Grants a member visibility of another organization (typically a buyer).
    """
    __tablename__ = "member_organization_access"
    __table_args__ = (
        UniqueConstraint("member_id", "organization_id", name="uq_member_organization_access_member_org"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid, ForeignKey("organization_members.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BuyerSupplierLink(Base):
    """
    Relationship between a buyer and a supplier organization. Only active links may carry POs.
    """
    __tablename__ = "buyer_supplier_links"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    buyer_org_id = Column(Uuid, ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True)
    supplier_org_id = Column(Uuid, ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=LINK_ACTIVE, server_default=LINK_ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    buyer = relationship("Organization", foreign_keys=[buyer_org_id], lazy="joined")
    supplier = relationship("Organization", foreign_keys=[supplier_org_id], lazy="joined")
