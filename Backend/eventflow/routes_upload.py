"""
Invitation card upload.

    POST /upload/invitation-card   multipart: file (JPEG/PNG/PDF, <= 10 MB), eventName?

Returns {url, fileId}. Only a session is needed; no event ownership check,
the card is filed under the planner's email.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from .auth import Session
from .core.config import Settings, get_settings
from .core.errors import InvalidInput, OperationFailed
from .core.request_context import get_current_session
from .drive_upload import MAX_UPLOAD_BYTES, DriveError, DriveUploader, invitation_card_filename, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

UPLOAD_FAILED_MESSAGE = "Upload failed. Please try again."


def get_drive_uploader(settings: Settings = Depends(get_settings)) -> DriveUploader:
    return DriveUploader.from_settings(settings)


@router.post("/invitation-card")
async def upload_invitation_card(
    file: Optional[UploadFile] = File(default=None),
    event_name: Optional[str] = Form(default=None, alias="eventName"),
    identity: Session = Depends(get_current_session),
    uploader: DriveUploader = Depends(get_drive_uploader),
):
    if file is None:
        raise InvalidInput("No file provided")

    validate_upload(file.content_type, file.size or 0)
    # One byte past the limit is enough to reject a body whose size was not declared.
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    extension = validate_upload(file.content_type, len(content))
    filename = invitation_card_filename(extension)

    try:
        uploaded = await uploader.upload(content, filename, file.content_type, identity.email, event_name)
    except DriveError as e:
        logger.exception(f"Invitation card upload failed for {identity.email}: {e}")
        raise OperationFailed(UPLOAD_FAILED_MESSAGE)

    return {"url": uploaded.url, "fileId": uploaded.file_id}
