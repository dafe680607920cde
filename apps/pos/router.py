import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from apps.alerts.service import AlertNotifier
from apps.pos.schemas import (
    DeleteRequest,
    LegacyPIUploadRequest,
    LegacyPORequest,
    PIUploadRequest,
    POUpdateRequest,
    RelationalPORequest,
)
from apps.pos.service import POService
from apps.shopify.client import ShopifyAdminClient
from apps.storage.service import ObjectStore
from common.dependencies import get_alert_notifier, get_po_store, get_shopify_client
from common.forms import validate_form
from common.responses import success_response
from common.uploads import read_upload
from models.base import get_db
from security.api_key import require_api_key


router = APIRouter(prefix="/proxy/merchants", tags=["Purchase Orders"], dependencies=[Depends(require_api_key)])


@router.post("/upload-po")
async def upload_po(
    background_tasks: BackgroundTasks,
    createdBy: Optional[str] = Query(default=None),
    buyerName: Optional[str] = Form(default=None),
    poReceivedDate: Optional[str] = Form(default=None),
    quantity: Optional[str] = Form(default=None),
    value: Optional[str] = Form(default=None),
    currency: Optional[str] = Form(default=None),
    poFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_po_store),
    notifier: AlertNotifier = Depends(get_alert_notifier),
    shopify_client: ShopifyAdminClient = Depends(get_shopify_client),
):
    request = validate_form(
        LegacyPORequest,
        {
            "buyerName": buyerName,
            "poReceivedDate": poReceivedDate,
            "quantity": quantity,
            "value": value,
            "currency": currency,
            "createdBy": createdBy,
        },
    )
    document = await read_upload(poFile, "poFile")
    result = await POService.create_po(
        db, store, notifier, request, document, background_tasks, shopify_client=shopify_client
    )
    return success_response(
        "PO uploaded and alerts created",
        warnings=result.warnings,
        poId=result.po_id,
        alertsSent=result.alerts_created,
    )


@router.post("/upload-pi/{po_id}")
async def upload_pi(
    po_id: uuid.UUID,
    poId: Optional[str] = Form(default=None),
    piReceivedDate: Optional[str] = Form(default=None),
    piFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_po_store),
    notifier: AlertNotifier = Depends(get_alert_notifier),
):
    request = validate_form(LegacyPIUploadRequest, {"poId": poId, "piReceivedDate": piReceivedDate})
    document = await read_upload(piFile, "piFile")
    result = await POService.attach_pi(db, store, notifier, po_id, request, document)
    return success_response(
        "PI uploaded and PO updated successfully",
        warnings=result.warnings,
        poId=result.po_id,
        piFileUrl=store.public_url(result.po["pi_file_url"]),
    )


@router.post("/upload-buyer-po")
async def upload_buyer_po(
    background_tasks: BackgroundTasks,
    buyerName: Optional[str] = Form(default=None),
    supplierName: Optional[str] = Form(default=None),
    poReceivedDate: Optional[str] = Form(default=None),
    quantity: Optional[str] = Form(default=None),
    value: Optional[str] = Form(default=None),
    poId: Optional[str] = Form(default=None),
    currency: Optional[str] = Form(default=None),
    createdBy: Optional[str] = Form(default=None),
    shopifyCustomerId: Optional[str] = Form(default=None),
    poFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_po_store),
    notifier: AlertNotifier = Depends(get_alert_notifier),
):
    request = validate_form(
        RelationalPORequest,
        {
            "buyerName": buyerName,
            "supplierName": supplierName,
            "poReceivedDate": poReceivedDate,
            "quantity": quantity,
            "value": value,
            "poId": poId,
            "currency": currency,
            "createdBy": createdBy,
            "shopifyCustomerId": shopifyCustomerId,
        },
    )
    document = await read_upload(poFile, "poFile")
    result = await POService.create_po(db, store, notifier, request, document, background_tasks)
    return success_response(
        "PO uploaded",
        warnings=result.warnings,
        poId=result.po_id,
        alertsSent=result.alerts_created,
    )


@router.put("/update-buyer-po/{po_id}")
async def update_buyer_po(
    po_id: uuid.UUID,
    poReceivedDate: Optional[str] = Form(default=None),
    quantity: Optional[str] = Form(default=None),
    value: Optional[str] = Form(default=None),
    poId: Optional[str] = Form(default=None),
    currency: Optional[str] = Form(default=None),
    updatedBy: Optional[str] = Form(default=None),
    shopifyCustomerId: Optional[str] = Form(default=None),
    poFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_po_store),
    notifier: AlertNotifier = Depends(get_alert_notifier),
):
    request = validate_form(
        POUpdateRequest,
        {
            "poReceivedDate": poReceivedDate,
            "quantity": quantity,
            "value": value,
            "poId": poId,
            "currency": currency,
            "updatedBy": updatedBy,
            "shopifyCustomerId": shopifyCustomerId,
        },
    )
    document = await read_upload(poFile, "poFile", required=False)
    result = await POService.update_po(db, store, notifier, po_id, request, document)
    return success_response("PO updated", warnings=result.warnings, po=result.po)


@router.post("/upload-buyer-pi/{po_id}")
async def upload_buyer_pi(
    po_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    piReceivedDate: Optional[str] = Form(default=None),
    poId: Optional[str] = Form(default=None),
    updatedBy: Optional[str] = Form(default=None),
    shopifyCustomerId: Optional[str] = Form(default=None),
    piFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_po_store),
    notifier: AlertNotifier = Depends(get_alert_notifier),
):
    request = validate_form(
        PIUploadRequest,
        {
            "piReceivedDate": piReceivedDate,
            "poId": poId,
            "updatedBy": updatedBy,
            "shopifyCustomerId": shopifyCustomerId,
        },
    )
    document = await read_upload(piFile, "piFile")
    result = await POService.attach_pi(db, store, notifier, po_id, request, document, background_tasks)
    return success_response(
        "PI uploaded",
        warnings=result.warnings,
        poId=result.po_id,
        poNumber=result.po["po_number"],
    )


@router.post("/delete-po/{po_id}")
async def delete_po(
    po_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    deletedBy: Optional[str] = Form(default=None),
    shopifyCustomerId: Optional[str] = Form(default=None),
    db: AsyncSession = Depends(get_db),
    notifier: AlertNotifier = Depends(get_alert_notifier),
):
    request = validate_form(DeleteRequest, {"deletedBy": deletedBy, "shopifyCustomerId": shopifyCustomerId})
    result = await POService.soft_delete_po(db, notifier, po_id, request, background_tasks)
    return success_response("PO deleted", warnings=result.warnings)


@router.get("/po/{po_id}")
async def get_po(po_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    po = await POService.get_po(db, po_id)
    return success_response(po=await POService.describe(db, po))


@router.get("/my-buyer-pos")
async def my_buyer_pos(shopifyCustomerId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    pos = await POService.list_member_pos(db, shopifyCustomerId)
    return success_response(pos=pos, count=len(pos))


@router.get("/my-pos")
async def my_pos(createdBy: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    pos = await POService.list_created_by(db, createdBy)
    return success_response(pos=pos, count=len(pos))
