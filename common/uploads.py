from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile

from common.exceptions import ValidationError


@dataclass
class UploadedDocument:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


async def read_upload(upload: Optional[UploadFile], field: str, required: bool = True) -> Optional[UploadedDocument]:
    """
    Read a multipart file into memory. A missing file is a validation error only when ``required``.
    """
    if upload is None or not upload.filename:
        if required:
            raise ValidationError(f"Missing required fields: {field}")
        return None
    data = await upload.read()
    if not data:
        raise ValidationError(f"Invalid fields: {field}", details="Uploaded file is empty")
    return UploadedDocument(filename=upload.filename, content_type=upload.content_type, data=data)
