from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from apps.storage.service import ObjectStore
from apps.travel_bills.schemas import TravelBillListResponse, TravelBillOut, TravelBillSubmission
from apps.travel_bills.service import TravelBillService
from common.dependencies import get_travel_bill_store
from common.forms import validate_form
from common.responses import success_response
from common.uploads import read_upload
from models.base import get_db
from security.api_key import require_api_key


router = APIRouter(prefix="/travel-bill", tags=["Travel Bills"], dependencies=[Depends(require_api_key)])


@router.post("/upload-travel-bill")
async def upload_travel_bill(
    travelDate: Optional[str] = Form(default=None),
    comments: Optional[str] = Form(default=None),
    shopifyCustomerId: Optional[str] = Form(default=None),
    amount: Optional[str] = Form(default=None),
    billFile: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_travel_bill_store),
):
    request = validate_form(
        TravelBillSubmission,
        {"travelDate": travelDate, "comments": comments, "shopifyCustomerId": shopifyCustomerId, "amount": amount},
    )
    document = await read_upload(billFile, "billFile", required=False)
    bill_id = await TravelBillService.submit(db, store, request, document)
    return success_response("Travel bill submitted successfully", travelBillId=str(bill_id))


@router.get("/travel-bills", response_model=TravelBillListResponse)
async def list_travel_bills(shopifyCustomerId: Optional[str] = Query(default=None), db: AsyncSession = Depends(get_db)):
    bills = await TravelBillService.list_for_member(db, shopifyCustomerId)
    return TravelBillListResponse(bills=[TravelBillOut.model_validate(b) for b in bills])
