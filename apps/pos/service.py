import logging
import mimetypes
import posixpath
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.alerts.service import (
    AlertNotifier,
    Recipient,
    legacy_admin_recipients,
    merchant_recipients,
    po_snapshot,
)
from apps.organizations.service import OrganizationService
from apps.pos.schemas import (
    DeleteRequest,
    LegacyPORequest,
    PIUploadRequest,
    PORequest,
    POUpdateRequest,
    po_out,
)
from apps.shopify.client import ShopifyAdminClient
from apps.storage.commit import commit_with_compensation
from apps.storage.paths import directory_of, document_key, po_directory
from apps.storage.service import ObjectStore
from common.dates import format_record_date, parse_record_date
from common.exceptions import ConflictError, DependencyError, NotFoundError, ValidationError
from common.uploads import UploadedDocument
from constants.alerts import PI_UPLOAD, PO_DELETED, PO_UPLOAD
from constants.statuses import ORG_BUYER, ORG_SUPPLIER
from models.base import commit_or_rollback
from models.organization import BuyerSupplierLink, Organization
from models.purchase_order import PurchaseOrder

logger = logging.getLogger(__name__)


@dataclass
class BuyerIdentity:
    """
    Who a PO belongs to: a free-text buyer name (legacy) or an active buyer/supplier link.
    """

    buyer_name: str
    supplier_name: Optional[str] = None
    buyer_org_id: Optional[uuid.UUID] = None
    link_id: Optional[uuid.UUID] = None

    @property
    def is_legacy(self) -> bool:
        return self.link_id is None


@dataclass
class POResult:
    po: Dict[str, Any]
    alerts_created: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def po_id(self) -> str:
        return self.po["id"]


async def _commit(db: AsyncSession, error_message: str) -> None:
    try:
        await commit_or_rollback(db)
    except SQLAlchemyError as exc:
        raise DependencyError(error_message, details=str(exc.__cause__ or exc)) from exc


class POService:
    """
    PO/PI lifecycle: created -> updated (until PI) -> PI attached -> soft deleted.
    Every file write goes through commit_with_compensation so a row never points at a missing object.
    """

    @staticmethod
    async def resolve_buyer(db: AsyncSession, request: PORequest) -> BuyerIdentity:
        if isinstance(request, LegacyPORequest):
            return BuyerIdentity(buyer_name=request.buyer_name)

        buyer = await OrganizationService.get_organization_by_name(db, request.buyer_name, ORG_BUYER)
        supplier = await OrganizationService.get_organization_by_name(db, request.supplier_name, ORG_SUPPLIER)
        link = None
        if buyer and supplier:
            link = await OrganizationService.find_active_link(db, buyer.id, supplier.id)
        if not link:
            raise ValidationError(
                "Invalid buyer/supplier relationship",
                details={"buyerName": request.buyer_name, "supplierName": request.supplier_name},
            )
        return BuyerIdentity(
            buyer_name=buyer.name,
            supplier_name=supplier.name,
            buyer_org_id=buyer.id,
            link_id=link.id,
        )

    @staticmethod
    async def _actor_name(db: AsyncSession, name: Optional[str], shopify_customer_id: Optional[str]):
        """
        (display name, member) for whoever performs the change; the member is None when only a name is given.
        """
        member = None
        if shopify_customer_id:
            member = await OrganizationService.require_member(db, shopify_customer_id)
        return name or (member.name if member else None), member

    @staticmethod
    async def _parties(db: AsyncSession, po: PurchaseOrder) -> Tuple[Optional[str], Optional[str], Optional[uuid.UUID]]:
        """
        (buyer name, supplier name, buyer org id) for a PO.
        """
        if po.buyer_supplier_link_id is None:
            return po.buyer_name, None, None
        link = await db.get(BuyerSupplierLink, po.buyer_supplier_link_id)
        if link is None:
            return None, None, None
        return link.buyer.name, link.supplier.name, link.buyer_org_id

    @staticmethod
    async def _recipients(
        db: AsyncSession,
        buyer_org_id: Optional[uuid.UUID],
        merchant_org_type: str,
        shopify_client: Optional[ShopifyAdminClient],
    ) -> Optional[List[Recipient]]:
        """
        Relational POs alert merchant members with access to the buyer; legacy POs alert storefront admins.
        Returns None when recipients could not be resolved.
        """
        try:
            if buyer_org_id is not None:
                return await merchant_recipients(db, buyer_org_id, merchant_org_type)
            if shopify_client is not None:
                return await legacy_admin_recipients(shopify_client)
        except SQLAlchemyError as exc:
            logger.error("Could not resolve alert recipients: %s", exc)
            return None
        return []

    @staticmethod
    async def _fan_out(
        db: AsyncSession,
        notifier: AlertNotifier,
        message: str,
        alert_type: Optional[str],
        po_id: uuid.UUID,
        snapshot: Dict[str, Any],
        buyer_org_id: Optional[uuid.UUID],
        background_tasks: BackgroundTasks,
        result: POResult,
        shopify_client: Optional[ShopifyAdminClient] = None,
    ) -> None:
        recipients = await POService._recipients(
            db, buyer_org_id, notifier.settings.MERCHANT_ORG_TYPE, shopify_client
        )
        if recipients is None:
            result.warnings.append("alerts_not_recorded")
            return
        result.alerts_created = await notifier.notify(
            db, message, alert_type, po_id, snapshot, recipients, background_tasks
        )
        if recipients and result.alerts_created < len(recipients):
            result.warnings.append("alerts_not_recorded")

    @staticmethod
    async def _patch(
        db: AsyncSession,
        notifier: AlertNotifier,
        po_id: uuid.UUID,
        changes: Dict[str, Any],
        description: str,
        result: POResult,
    ) -> None:
        if await notifier.patch_snapshots(db, po_id, changes, description) is None:
            result.warnings.append("alerts_not_updated")

    @staticmethod
    async def create_po(
        db: AsyncSession,
        store: ObjectStore,
        notifier: AlertNotifier,
        request: PORequest,
        document: UploadedDocument,
        background_tasks: BackgroundTasks,
        shopify_client: Optional[ShopifyAdminClient] = None,
    ) -> POResult:
        identity = await POService.resolve_buyer(db, request)

        member = None
        created_by = request.created_by
        if not identity.is_legacy:
            created_by, member = await POService._actor_name(db, request.created_by, request.shopify_customer_id)

        po_id = uuid.uuid4()
        po_number = getattr(request, "po_number", None)
        received = format_record_date(request.po_received_date)
        key = document_key(
            po_directory(identity.buyer_name, request.po_received_date, po_number or str(po_id)),
            "po",
            document.filename,
        )

        async def write_record() -> PurchaseOrder:
            po = PurchaseOrder(
                id=po_id,
                buyer_name=request.buyer_name if identity.is_legacy else None,
                buyer_supplier_link_id=identity.link_id,
                po_number=po_number,
                po_received_date=received,
                quantity_ordered=request.quantity,
                amount=request.value,
                currency=request.currency,
                po_file_url=key,
                pi_confirmed=False,
                created_by=created_by,
                created_by_member_id=member.id if member else None,
            )
            db.add(po)
            await commit_or_rollback(db)
            await db.refresh(po)
            return po

        po = await commit_with_compensation(
            store, key, document.data, document.content_type, write_record, error_message="Failed to save purchase order"
        )
        logger.info("PO %s stored at %s", po_id, key)

        result = POResult(po=po_out(po, identity.buyer_name, identity.supplier_name))
        snapshot = po_snapshot(po, identity.buyer_name, identity.supplier_name)
        if identity.is_legacy:
            message = f"PO received for {identity.buyer_name} by {created_by} on {received}"
            alert_type = None
        else:
            message = (
                f"PO {po_number or po_id} received for {identity.buyer_name} "
                f"from {identity.supplier_name} on {received}"
            )
            alert_type = PO_UPLOAD
        await POService._fan_out(
            db, notifier, message, alert_type, po_id, snapshot, identity.buyer_org_id,
            background_tasks, result, shopify_client=shopify_client,
        )
        return result

    @staticmethod
    async def get_po(db: AsyncSession, po_id: uuid.UUID) -> PurchaseOrder:
        """
        Direct lookup; soft-deleted rows are still returned.
        """
        po = await db.get(PurchaseOrder, po_id)
        if not po:
            raise NotFoundError("Purchase Order not found")
        return po

    @staticmethod
    async def get_active_po(db: AsyncSession, po_id: uuid.UUID) -> PurchaseOrder:
        po = await POService.get_po(db, po_id)
        if po.is_deleted:
            raise NotFoundError("Purchase Order not found")
        return po

    @staticmethod
    async def describe(db: AsyncSession, po: PurchaseOrder) -> Dict[str, Any]:
        buyer_name, supplier_name, _ = await POService._parties(db, po)
        return po_out(po, buyer_name, supplier_name)

    @staticmethod
    async def update_po(
        db: AsyncSession,
        store: ObjectStore,
        notifier: AlertNotifier,
        po_id: uuid.UUID,
        request: POUpdateRequest,
        document: Optional[UploadedDocument] = None,
    ) -> POResult:
        po = await POService.get_active_po(db, po_id)
        # Checked before anything is written, file replacement included
        if po.pi_confirmed:
            raise ConflictError("Cannot modify PO after PI confirmation", status_code=400)

        updated_by, _ = await POService._actor_name(db, request.updated_by, request.shopify_customer_id)
        buyer_name, supplier_name, _ = await POService._parties(db, po)

        values: Dict[str, Any] = {}
        if request.po_received_date is not None:
            values["po_received_date"] = format_record_date(request.po_received_date)
        if request.quantity is not None:
            values["quantity_ordered"] = request.quantity
        if request.value is not None:
            values["amount"] = request.value
        if request.po_number is not None:
            values["po_number"] = request.po_number
        if request.currency is not None:
            values["currency"] = request.currency
        values = {k: v for k, v in values.items() if getattr(po, k) != v}
        if not values and document is None:
            raise ValidationError("No changes supplied")

        received = request.po_received_date or parse_record_date(po.po_received_date)
        current_dir = directory_of(po.po_file_url)
        target_dir = current_dir
        if received is not None:
            target_dir = po_directory(
                buyer_name or "unknown", received, values.get("po_number", po.po_number) or str(po.id)
            )

        previous = {k: getattr(po, k) for k in values}
        old_key = po.po_file_url

        async def write_record(new_key: Optional[str] = None) -> PurchaseOrder:
            for name, value in values.items():
                setattr(po, name, value)
            if new_key:
                po.po_file_url = new_key
            po.updated_by_name = updated_by
            await commit_or_rollback(db)
            await db.refresh(po)
            return po

        if document is not None:
            new_key = document_key(target_dir, "po", document.filename)
            await commit_with_compensation(
                store, new_key, document.data, document.content_type,
                lambda: write_record(new_key), superseded_key=old_key,
                error_message="Failed to update purchase order",
            )
        elif target_dir != current_dir:
            # No rename in the object store: copy to the new directory, repoint the row, then drop the original
            data = await store.download(old_key)
            new_key = f"{target_dir}/{posixpath.basename(old_key)}"
            await commit_with_compensation(
                store, new_key, data, mimetypes.guess_type(new_key)[0],
                lambda: write_record(new_key), superseded_key=old_key,
                error_message="Failed to update purchase order",
            )
            logger.info("Moved PO %s file %s -> %s", po.id, old_key, new_key)
        else:
            try:
                await write_record()
            except SQLAlchemyError as exc:
                raise DependencyError("Failed to update purchase order", details=str(exc.__cause__ or exc)) from exc

        result = POResult(po=po_out(po, buyer_name, supplier_name))

        changes: Dict[str, Any] = {}
        parts = []
        for name, value in values.items():
            snap_value = float(value) if name == "amount" else value
            changes[name] = snap_value
            before = float(previous[name]) if name == "amount" and previous[name] is not None else previous[name]
            parts.append(f"{name} {before} -> {snap_value}")
        if po.po_file_url != old_key:
            changes["po_file_url"] = po.po_file_url
            parts.append("PO file replaced" if document is not None else "PO file moved")
        changes["updated_by"] = updated_by
        description = f"PO updated by {updated_by or 'unknown'}: " + ", ".join(parts)

        await POService._patch(db, notifier, po.id, changes, description, result)
        return result

    @staticmethod
    async def attach_pi(
        db: AsyncSession,
        store: ObjectStore,
        notifier: AlertNotifier,
        po_id: uuid.UUID,
        request: PIUploadRequest,
        document: UploadedDocument,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> POResult:
        """
        Store the PI next to the PO file and confirm the PO. A PI uploaded again replaces the
        previous one. PI_UPLOAD alerts go out when ``background_tasks`` is given and the PO is relational.
        """
        po = await POService.get_active_po(db, po_id)
        updated_by, _ = await POService._actor_name(db, request.updated_by, request.shopify_customer_id)
        buyer_name, supplier_name, buyer_org_id = await POService._parties(db, po)

        key = document_key(directory_of(po.po_file_url), "pi", document.filename)
        received = format_record_date(request.pi_received_date)
        superseded = po.pi_file_url

        async def write_record() -> PurchaseOrder:
            po.pi_received_date = received
            po.pi_file_url = key
            po.pi_confirmed = True
            if request.po_number:
                po.po_number = request.po_number
            if updated_by:
                po.updated_by_name = updated_by
            await commit_or_rollback(db)
            await db.refresh(po)
            return po

        await commit_with_compensation(
            store, key, document.data, document.content_type, write_record,
            superseded_key=superseded, error_message="Failed to attach PI",
        )
        logger.info("PI for PO %s stored at %s", po.id, key)

        result = POResult(po=po_out(po, buyer_name, supplier_name))
        snapshot = po_snapshot(po, buyer_name, supplier_name)
        changes = {
            "po_number": po.po_number,
            "pi_file_url": key,
            "pi_received_date": received,
            "pi_confirmed": True,
        }
        message = f"PI received for PO {snapshot['po_number'] or snapshot['po_id']} ({buyer_name}) on {received}"
        await POService._patch(db, notifier, po_id, changes, f"PI received on {received}", result)

        if background_tasks is not None and buyer_org_id is not None:
            await POService._fan_out(
                db, notifier, message, PI_UPLOAD, po_id, snapshot, buyer_org_id, background_tasks, result
            )
        return result

    @staticmethod
    async def soft_delete_po(
        db: AsyncSession,
        notifier: AlertNotifier,
        po_id: uuid.UUID,
        request: DeleteRequest,
        background_tasks: BackgroundTasks,
    ) -> POResult:
        po = await POService.get_active_po(db, po_id)
        deleted_by, _ = await POService._actor_name(db, request.deleted_by, request.shopify_customer_id)
        if not deleted_by:
            raise ValidationError("Missing required fields: deletedBy")
        buyer_name, supplier_name, buyer_org_id = await POService._parties(db, po)

        deleted_at = datetime.now(timezone.utc)
        po.deleted_at = deleted_at
        po.deleted_by_name = deleted_by
        await _commit(db, "Failed to delete purchase order")
        await db.refresh(po)
        logger.info("PO %s soft-deleted by %s", po.id, deleted_by)

        result = POResult(po=po_out(po, buyer_name, supplier_name))
        changes = {"deleted": True, "deleted_by": deleted_by, "deleted_at": deleted_at.isoformat()}
        snapshot = po_snapshot(po, buyer_name, supplier_name)
        # Existing alerts first, so the new deletion alerts don't get a duplicate change entry
        await POService._patch(db, notifier, po.id, changes, f"PO deleted by {deleted_by}", result)

        if buyer_org_id is not None:
            snapshot.update(changes)
            message = f"PO {snapshot['po_number'] or snapshot['po_id']} for {buyer_name} was deleted by {deleted_by}"
            await POService._fan_out(
                db, notifier, message, PO_DELETED, po_id, snapshot, buyer_org_id, background_tasks, result
            )
        return result

    @staticmethod
    async def list_member_pos(db: AsyncSession, shopify_customer_id: Optional[str]) -> List[Dict[str, Any]]:
        """
        Non-deleted POs visible to a member: relational POs of any link touching an organization
        the member can access, plus legacy POs whose buyer name matches one of those organizations.
        """
        member = await OrganizationService.require_member(db, shopify_customer_id)
        org_ids = await OrganizationService.accessible_organization_ids(db, member)

        link_ids = select(BuyerSupplierLink.id).where(
            or_(BuyerSupplierLink.buyer_org_id.in_(org_ids), BuyerSupplierLink.supplier_org_id.in_(org_ids))
        )
        org_names = select(func.lower(Organization.name)).where(Organization.id.in_(org_ids))
        stmt = (
            select(PurchaseOrder)
            .where(
                and_(
                    PurchaseOrder.deleted_at.is_(None),
                    or_(
                        PurchaseOrder.buyer_supplier_link_id.in_(link_ids),
                        func.lower(PurchaseOrder.buyer_name).in_(org_names),
                    ),
                )
            )
            .order_by(PurchaseOrder.created_at.desc())
        )
        res = await db.execute(stmt)
        pos = list(res.scalars().all())

        links: Dict[uuid.UUID, BuyerSupplierLink] = {}
        wanted = {po.buyer_supplier_link_id for po in pos if po.buyer_supplier_link_id}
        if wanted:
            link_res = await db.execute(select(BuyerSupplierLink).where(BuyerSupplierLink.id.in_(wanted)))
            links = {link.id: link for link in link_res.unique().scalars().all()}

        out = []
        for po in pos:
            link = links.get(po.buyer_supplier_link_id)
            out.append(po_out(po, link.buyer.name if link else None, link.supplier.name if link else None))
        return out

    @staticmethod
    async def list_created_by(db: AsyncSession, created_by: Optional[str]) -> List[Dict[str, Any]]:
        if not created_by:
            raise ValidationError("Missing createdBy parameter")
        stmt = (
            select(PurchaseOrder)
            .where(and_(PurchaseOrder.created_by == created_by, PurchaseOrder.deleted_at.is_(None)))
            .order_by(PurchaseOrder.created_at.desc())
        )
        res = await db.execute(stmt)
        pos = list(res.scalars().all())
        logger.info("Found %d POs for %s", len(pos), created_by)
        return [po_out(po) for po in pos]
