from fastapi import APIRouter, Depends, Request

from apps.storage.schemas import PresignRequest, PresignResponse, PresignedUrlItem
from security.api_key import require_api_key


router = APIRouter(prefix="/api/storage", tags=["Storage"], dependencies=[Depends(require_api_key)])

_STATE_ATTRIBUTES = {"po": "po_store", "invoice": "invoice_store", "travel_bill": "travel_bill_store"}


@router.post("/presign", response_model=PresignResponse)
async def generate_presigned_urls(payload: PresignRequest, request: Request) -> PresignResponse:
    """
    Generate pre-signed GET URLs for stored document paths of one bucket.
    """
    store = getattr(request.app.state, _STATE_ATTRIBUTES[payload.bucket])
    items = []
    for path in payload.paths:
        items.append(PresignedUrlItem(path=path, presigned_url=await store.presigned_url(path)))
    return PresignResponse(items=items)
