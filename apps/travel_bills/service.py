import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.organizations.service import OrganizationService
from apps.storage.commit import commit_with_compensation
from apps.storage.paths import travel_bill_key
from apps.storage.service import ObjectStore
from apps.travel_bills.schemas import TravelBillSubmission
from common.exceptions import DependencyError
from common.uploads import UploadedDocument
from constants.statuses import TRAVEL_BILL_PENDING
from models.base import commit_or_rollback
from models.travel_bill import TravelBillRequest

logger = logging.getLogger(__name__)


class TravelBillService:
    @staticmethod
    async def submit(
        db: AsyncSession,
        store: ObjectStore,
        request: TravelBillSubmission,
        document: Optional[UploadedDocument] = None,
    ) -> uuid.UUID:
        """
        Record a travel bill for the member. The receipt is optional; when given it is stored
        first and removed again if the row cannot be written.
        """
        member = await OrganizationService.require_member(db, request.shopify_customer_id)
        bill_id = uuid.uuid4()

        async def write_record(key: Optional[str] = None) -> None:
            db.add(
                TravelBillRequest(
                    id=bill_id,
                    organization_member_id=member.id,
                    travel_bill_date=request.travel_date,
                    travel_bill_url=key,
                    travel_bill_comment=request.comments,
                    amount=request.amount,
                    status=TRAVEL_BILL_PENDING,
                )
            )
            await commit_or_rollback(db)

        if document is None:
            try:
                await write_record()
            except SQLAlchemyError as exc:
                raise DependencyError("Travel bill upload failed", details=str(exc.__cause__ or exc)) from exc
        else:
            key = travel_bill_key(request.travel_date, document.filename)
            await commit_with_compensation(
                store, key, document.data, document.content_type,
                lambda: write_record(key), error_message="Travel bill upload failed",
            )
        logger.info("Travel bill %s submitted by member %s", bill_id, member.id)
        return bill_id

    @staticmethod
    async def list_for_member(db: AsyncSession, shopify_customer_id: Optional[str]) -> List[TravelBillRequest]:
        member = await OrganizationService.require_member(db, shopify_customer_id)
        stmt = (
            select(TravelBillRequest)
            .where(TravelBillRequest.organization_member_id == member.id)
            .order_by(TravelBillRequest.created_at.desc())
        )
        res = await db.execute(stmt)
        return list(res.scalars().all())
