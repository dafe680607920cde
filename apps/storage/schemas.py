from typing import List, Literal

from pydantic import BaseModel, constr


class PresignRequest(BaseModel):
    """
    Request schema for generating pre-signed download URLs.
    Accepts object paths exactly as stored on PO, invoice and travel bill rows.
    """

    bucket: Literal["po", "invoice", "travel_bill"] = "po"
    paths: List[constr(strip_whitespace=True, min_length=1)]


class PresignedUrlItem(BaseModel):
    """
    Represents a single stored path and its corresponding pre-signed URL.
    """

    path: str
    presigned_url: str


class PresignResponse(BaseModel):
    items: List[PresignedUrlItem]
