"""
Upload and storage usage endpoints.

Uploads are single-request and non-transactional: if the connection
drops mid-write the object may or may not exist afterwards, and nothing
rolls it back.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ...core.files.keys import build_upload_key
from ...core.files.media import format_file_size
from ...core.files.models import DEFAULT_CONTENT_TYPE
from ...core.files.quota import compute_usage
from ...infrastructure.storage.client import StorageError
from ..dependencies import AuthenticatedSession, SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResult(BaseModel):
    """The stored file and its share links."""
    key: str = Field(description="Generated object key")
    url: str = Field(description="Direct public URL")
    embed_url: str = Field(description="Link to the embeddable view page")
    size: int = Field(description="Bytes written")
    content_type: str = Field(description="Content type stored with the object")
    uploaded_at: str = Field(description="Server upload time (ISO format)")


class UploadResponse(BaseModel):
    success: bool
    file: UploadResult


class UsageResponse(BaseModel):
    """Bucket usage against the configured limit."""
    used_bytes: int
    limit_bytes: int
    remaining_bytes: int
    file_count: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a file",
    description="Store a file in the bucket under a generated, URL-safe key",
    responses={
        400: {"description": "Missing, empty or oversized file"},
        413: {"description": "Bucket quota exceeded"},
    },
)
async def upload_file(
    _: AuthenticatedSession,
    storage: StorageClientDep,
    settings: SettingsDep,
    file: Annotated[Optional[UploadFile], File(description="The file to store")] = None,
    custom_name: Annotated[Optional[str], Form(alias="customName")] = None,
) -> UploadResponse:
    """
    Upload a file.

    The quota check lists the whole bucket and compares the total with
    the configured limit. Nothing is reserved between that check and
    the write, so concurrent uploads can together overshoot the limit.
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    too_large = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
    )

    # The multipart parser records the spooled size; reject before loading it
    if file.size is not None and file.size > settings.max_upload_size_bytes:
        raise too_large

    data = await file.read()
    size = len(data)

    if size > settings.max_upload_size_bytes:
        raise too_large

    if size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is empty",
        )

    try:
        usage = compute_usage(await storage.list_files(), settings.r2_bucket_limit)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload file",
        )

    if not usage.can_accept(size):
        logger.warning(
            "Upload rejected, bucket quota exceeded",
            extra={
                "used_bytes": usage.used_bytes,
                "limit_bytes": usage.limit_bytes,
                "size_bytes": size,
            }
        )
        raise HTTPException(
            status_code=413,
            detail={
                "error": (
                    f"Not enough space. {format_file_size(usage.remaining_bytes)} remaining, "
                    f"file is {format_file_size(size)}"
                ),
                "remaining_bytes": usage.remaining_bytes,
                "file_size": size,
            },
        )

    key = build_upload_key(file.filename or "", custom_name)
    content_type = file.content_type or DEFAULT_CONTENT_TYPE

    try:
        result = await storage.upload_file(key, data, content_type)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload file",
        )

    return UploadResponse(
        success=True,
        file=UploadResult(
            key=result.key,
            url=result.url,
            embed_url=result.embed_url,
            size=result.size,
            content_type=result.content_type,
            uploaded_at=result.uploaded_at,
        ),
    )


@router.get(
    "/usage",
    response_model=UsageResponse,
    summary="Storage usage",
    description="Bytes used by every file in the bucket against the configured limit",
)
async def storage_usage(
    _: AuthenticatedSession,
    storage: StorageClientDep,
    settings: SettingsDep,
) -> UsageResponse:
    try:
        usage = compute_usage(await storage.list_files(), settings.r2_bucket_limit)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read storage usage",
        )

    return UsageResponse(
        used_bytes=usage.used_bytes,
        limit_bytes=usage.limit_bytes,
        remaining_bytes=usage.remaining_bytes,
        file_count=usage.file_count,
    )
