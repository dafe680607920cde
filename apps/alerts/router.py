import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.alerts.schemas import AlertListResponse, AlertOut, LinkedPO, MarkReadResponse
from apps.alerts.service import AlertService
from apps.organizations.service import OrganizationService
from common.exceptions import ValidationError
from models.base import get_db
from security.api_key import require_api_key


router = APIRouter(prefix="/proxy/merchants", tags=["Alerts"], dependencies=[Depends(require_api_key)])


def _to_out(alert, po) -> AlertOut:
    out = AlertOut.model_validate(alert)
    if po is not None:
        out.purchase_orders = LinkedPO.model_validate(po)
    return out


# Legacy: recipient is the Shopify customer id stored on the alert
@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(userId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    if not userId:
        raise ValidationError("userId required")
    rows = await AlertService.list_for_recipient(db, userId)
    return AlertListResponse(alerts=[_to_out(alert, po) for alert, po in rows])


@router.get("/my-alerts", response_model=AlertListResponse)
async def list_my_alerts(shopifyCustomerId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    member = await OrganizationService.require_member(db, shopifyCustomerId)
    rows = await AlertService.list_for_recipient(db, str(member.id))
    return AlertListResponse(alerts=[_to_out(alert, po) for alert, po in rows])


@router.post("/alerts/{alert_id}/read", response_model=MarkReadResponse)
async def mark_alert_read(alert_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await AlertService.mark_read(db, alert_id)
    return MarkReadResponse()


@router.post("/alerts/mark-all-read", response_model=MarkReadResponse)
async def mark_all_alerts_read(userId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    if not userId:
        raise ValidationError("userId required")
    updated = await AlertService.mark_all_read(db, userId)
    return MarkReadResponse(updated=updated)


@router.post("/alerts-all-read", response_model=MarkReadResponse)
async def mark_my_alerts_read(shopifyCustomerId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    member = await OrganizationService.require_member(db, shopifyCustomerId)
    updated = await AlertService.mark_all_read(db, str(member.id))
    return MarkReadResponse(updated=updated)
