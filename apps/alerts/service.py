import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import BackgroundTasks
from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.shopify.client import ShopifyAdminClient
from common.exceptions import AppError, NotFoundError
from email_services.email_client import EmailClient
from email_services.render import alert_subject, render_po_alert_email
from models.alert import Alert
from models.base import commit_or_rollback
from models.organization import MemberAccess, Organization, OrganizationMember
from models.purchase_order import PurchaseOrder
from settings.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None


def po_snapshot(po: PurchaseOrder, buyer_name: Optional[str], supplier_name: Optional[str] = None) -> Dict[str, Any]:
    """
    JSON-safe copy of the PO fields stored on each alert row.
    """
    return {
        "po_id": str(po.id),
        "buyer_name": buyer_name,
        "supplier_name": supplier_name,
        "po_number": po.po_number,
        "po_received_date": po.po_received_date,
        "quantity_ordered": po.quantity_ordered,
        "amount": float(po.amount) if po.amount is not None else None,
        "currency": po.currency,
        "po_file_url": po.po_file_url,
        "pi_file_url": po.pi_file_url,
        "pi_received_date": po.pi_received_date,
        "pi_confirmed": bool(po.pi_confirmed),
        "created_by": po.created_by,
    }


async def merchant_recipients(db: AsyncSession, buyer_org_id: uuid.UUID, merchant_org_type: str) -> List[Recipient]:
    """
    Members holding an access grant to the buyer organization whose own organization is the
    merchant type: access grant -> member -> member's home organization type.
    """
    stmt = (
        select(OrganizationMember)
        .join(MemberAccess, MemberAccess.member_id == OrganizationMember.id)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .where(and_(MemberAccess.organization_id == buyer_org_id, Organization.org_type == merchant_org_type))
        .order_by(OrganizationMember.name)
    )
    res = await db.execute(stmt)
    members = list(res.unique().scalars().all())
    return [Recipient(user_id=str(m.id), name=m.name, email=m.email) for m in members]


async def legacy_admin_recipients(shopify_client: ShopifyAdminClient) -> Optional[List[Recipient]]:
    """
    Storefront customers flagged as admins. None when the lookup failed, so the caller can
    report the alerts as not recorded.
    """
    try:
        admins = await shopify_client.get_admin_customers()
    except AppError as exc:
        logger.error("Error fetching admin customers: %s (%s)", exc.message, exc.details)
        return None
    return [Recipient(user_id=a["id"], name=a.get("name"), email=a.get("email")) for a in admins if a.get("id")]


async def send_alert_emails(
    email_client: EmailClient,
    recipients: Sequence[Recipient],
    message: str,
    snapshot: Dict[str, Any],
    alert_type: Optional[str],
) -> Tuple[int, int]:
    """
    One email per recipient, sent concurrently (the client spaces them) and joined before logging.
    Runs as a background task after the response, so failures are only logged.
    """
    settings = email_client.settings
    targets = [r for r in recipients if r.email]
    if not targets:
        return 0, 0

    html_body = render_po_alert_email(message, snapshot, alert_type, settings.COMPANY_NAME, settings.PRODUCT_NAME)
    subject = alert_subject(snapshot)
    results = await asyncio.gather(
        *(email_client.send_email([r.email], subject, html_body) for r in targets),
        return_exceptions=True,
    )

    failed = 0
    for recipient, result in zip(targets, results):
        if isinstance(result, Exception):
            failed += 1
            logger.error("Alert email to %s failed: %s", recipient.email, result)
    sent = len(targets) - failed
    logger.info("Alert emails sent: %d, failed: %d (po %s)", sent, failed, snapshot.get("po_id"))
    return sent, failed


class AlertNotifier:
    """
    Persists alert rows and hands email delivery to a background task.
    The two channels fail independently and neither fails the triggering request.
    """

    def __init__(self, email_client: EmailClient, settings: Optional[Settings] = None):
        self.email_client = email_client
        self.settings = settings or get_settings()

    async def notify(
        self,
        db: AsyncSession,
        message: str,
        alert_type: Optional[str],
        po_id: uuid.UUID,
        snapshot: Dict[str, Any],
        recipients: Sequence[Recipient],
        background_tasks: BackgroundTasks,
    ) -> int:
        """
        Returns the number of alert rows written (0 when persistence failed).
        """
        if not recipients:
            logger.info("No alert recipients for po %s", po_id)
            return 0

        rows = [
            Alert(
                message=message,
                alert_type=alert_type,
                po_id=po_id,
                po_snapshot=dict(snapshot),
                recipient_user_id=r.user_id,
                recipient_name=r.name,
                recipient_email=r.email,
                is_read=False,
            )
            for r in recipients
        ]
        created = len(rows)
        try:
            db.add_all(rows)
            await commit_or_rollback(db)
            logger.info("Created %d %s alerts for po %s", created, alert_type or "untyped", po_id)
        except SQLAlchemyError as exc:
            logger.error("Error creating alerts for po %s: %s", po_id, exc)
            created = 0

        background_tasks.add_task(send_alert_emails, self.email_client, list(recipients), message, dict(snapshot), alert_type)
        return created

    async def patch_snapshots(
        self,
        db: AsyncSession,
        po_id: uuid.UUID,
        changes: Dict[str, Any],
        description: str,
    ) -> Optional[int]:
        """
        Merge ``changes`` into the snapshot of every alert already written for the PO and append
        a readable change entry. Failures are logged and reported as None.
        """
        try:
            res = await db.execute(select(Alert).where(Alert.po_id == po_id))
            alerts = list(res.scalars().all())
            stamp = datetime.now(timezone.utc).isoformat()
            for alert in alerts:
                snapshot = dict(alert.po_snapshot or {})
                history = list(snapshot.get("changes") or [])
                history.append({"at": stamp, "description": description})
                snapshot.update(changes)
                snapshot["changes"] = history
                # Reassign so the JSON column is flagged dirty
                alert.po_snapshot = snapshot
            await commit_or_rollback(db)
        except SQLAlchemyError as exc:
            logger.error("Could not patch alert snapshots for po %s: %s", po_id, exc)
            return None
        return len(alerts)


class AlertService:
    @staticmethod
    async def list_for_recipient(db: AsyncSession, user_id: str, limit: int = 50) -> List[Tuple[Alert, Optional[PurchaseOrder]]]:
        stmt = (
            select(Alert, PurchaseOrder)
            .outerjoin(PurchaseOrder, PurchaseOrder.id == Alert.po_id)
            .where(Alert.recipient_user_id == str(user_id))
            .order_by(Alert.created_at.desc())
            .limit(limit)
        )
        res = await db.execute(stmt)
        return [(row[0], row[1]) for row in res.all()]

    @staticmethod
    async def mark_read(db: AsyncSession, alert_id: uuid.UUID) -> None:
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id)
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        res = await db.execute(stmt)
        if res.rowcount == 0:
            await db.rollback()
            raise NotFoundError("Alert not found")
        await commit_or_rollback(db)

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: str) -> int:
        stmt = (
            update(Alert)
            .where(and_(Alert.recipient_user_id == str(user_id), Alert.is_read.is_(False)))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        res = await db.execute(stmt)
        await commit_or_rollback(db)
        return res.rowcount or 0
