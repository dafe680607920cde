import uuid
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import MultipleResultsFound
from sqlalchemy.ext.asyncio import AsyncSession

from common.exceptions import ConflictError, NotFoundError, ValidationError
from constants.statuses import LINK_ACTIVE
from models.organization import BuyerSupplierLink, MemberAccess, Organization, OrganizationMember


class OrganizationService:
    """
    Identity lookups shared by the PO, invoice and travel bill workflows.
    """

    @staticmethod
    async def get_member_by_shopify_id(db: AsyncSession, shopify_customer_id: str) -> Optional[OrganizationMember]:
        stmt = select(OrganizationMember).where(OrganizationMember.shopify_customer_id == str(shopify_customer_id))
        res = await db.execute(stmt)
        return res.scalar_one_or_none()

    @staticmethod
    async def require_member(db: AsyncSession, shopify_customer_id: Optional[str]) -> OrganizationMember:
        if not shopify_customer_id:
            raise ValidationError("shopifyCustomerId required")
        member = await OrganizationService.get_member_by_shopify_id(db, shopify_customer_id)
        if not member:
            raise NotFoundError("Organization member not found")
        return member

    @staticmethod
    async def get_organization_by_name(db: AsyncSession, name: str, org_type: Optional[str] = None) -> Optional[Organization]:
        conditions = [func.lower(Organization.name) == name.strip().lower()]
        if org_type:
            conditions.append(Organization.org_type == org_type)
        res = await db.execute(select(Organization).where(and_(*conditions)).limit(2))
        orgs = list(res.scalars().all())
        if len(orgs) > 1:
            raise ConflictError(f"Organization name '{name}' is ambiguous")
        return orgs[0] if orgs else None

    @staticmethod
    async def find_active_link(
        db: AsyncSession, buyer_org_id: uuid.UUID, supplier_org_id: uuid.UUID
    ) -> Optional[BuyerSupplierLink]:
        """
        The active buyer/supplier link, if any. More than one active link for a pair is a data error.
        """
        stmt = select(BuyerSupplierLink).where(
            and_(
                BuyerSupplierLink.buyer_org_id == buyer_org_id,
                BuyerSupplierLink.supplier_org_id == supplier_org_id,
                BuyerSupplierLink.status == LINK_ACTIVE,
            )
        )
        res = await db.execute(stmt)
        try:
            return res.unique().scalar_one_or_none()
        except MultipleResultsFound as exc:
            raise ConflictError("More than one active buyer/supplier link for this pair") from exc

    @staticmethod
    async def accessible_organization_ids(db: AsyncSession, member: OrganizationMember) -> List[uuid.UUID]:
        """
        The member's home organization plus every organization granted through member access.
        """
        res = await db.execute(select(MemberAccess.organization_id).where(MemberAccess.member_id == member.id))
        ids = [member.organization_id]
        ids.extend(org_id for org_id in res.scalars().all() if org_id not in ids)
        return ids
