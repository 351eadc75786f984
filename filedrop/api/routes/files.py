"""
File browsing and deletion endpoints.

Listing is the expensive path: the bucket listing only carries key,
size and timestamp, so every object also gets a HEAD request for its
content type. Those lookups run concurrently in fixed-size batches, so a
single slow lookup only holds up its own batch.
"""

import asyncio
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.files.media import classify, display_name
from ...core.files.models import (
    DEFAULT_CONTENT_TYPE,
    FileListItem,
    MediaType,
    isoformat_or_none,
)
from ...infrastructure.storage.client import StorageClient, StorageError
from ..dependencies import AuthenticatedSession, SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class FileItem(BaseModel):
    """One file in the dashboard listing."""
    key: str = Field(description="Object key in the bucket")
    name: str = Field(description="Last path segment of the key")
    size: int = Field(description="Size in bytes")
    content_type: str = Field(description="MIME type recorded by the store")
    media_type: MediaType = Field(description="image, video, audio or other")
    last_modified: Optional[str] = Field(None, description="Last modification (ISO format)")
    url: str = Field(description="Direct public URL")
    embed_url: str = Field(description="Link to the embeddable view page")


class FileListResponse(BaseModel):
    files: list[FileItem]
    count: int


class FileDetailResponse(BaseModel):
    """Metadata for a single file."""
    key: str
    content_type: str
    media_type: MediaType
    size: int
    last_modified: Optional[str] = None
    url: str
    embed_url: str


class DeleteResponse(BaseModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

async def _enrich(storage: StorageClient, item: FileListItem) -> FileItem:
    metadata = await storage.get_file_metadata(item.key)
    content_type = metadata.content_type if metadata else DEFAULT_CONTENT_TYPE

    return FileItem(
        key=item.key,
        name=display_name(item.key),
        size=item.size,
        content_type=content_type,
        media_type=classify(item.key, content_type),
        last_modified=isoformat_or_none(item.last_modified),
        url=item.url,
        embed_url=item.embed_url,
    )


async def enrich_files(
    storage: StorageClient,
    files: list[FileListItem],
    batch_size: int,
) -> list[FileItem]:
    """
    Attach content and media types to a listing.

    Items whose metadata lookup fails are dropped from the result and
    logged; they do not fail the batch or the listing. Order follows
    the input listing.
    """
    enriched: list[FileItem] = []

    for start in range(0, len(files), batch_size):
        batch = files[start:start + batch_size]
        results = await asyncio.gather(
            *(_enrich(storage, item) for item in batch),
            return_exceptions=True,
        )

        for item, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping file from listing after metadata failure",
                    extra={"key": item.key, "error": str(result)}
                )
                continue
            enriched.append(result)

    return enriched


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=FileListResponse,
    summary="List files",
    description="Every file in the bucket, newest first, with media classification",
)
async def list_files(
    _: AuthenticatedSession,
    storage: StorageClientDep,
    settings: SettingsDep,
    media_type: Annotated[Optional[MediaType], Query(description="Only return this media type")] = None,
    prefix: Annotated[Optional[str], Query(description="Only keys starting with this prefix")] = None,
) -> FileListResponse:
    try:
        files = await storage.list_files(prefix)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list files",
        )

    enriched = await enrich_files(storage, files, settings.list_batch_size)

    if media_type is not None:
        enriched = [item for item in enriched if item.media_type is media_type]

    return FileListResponse(files=enriched, count=len(enriched))


@router.get(
    "/{key:path}",
    response_model=FileDetailResponse,
    summary="Get file metadata",
    responses={404: {"description": "File not found"}},
)
async def get_file(
    key: str,
    _: AuthenticatedSession,
    storage: StorageClientDep,
) -> FileDetailResponse:
    try:
        metadata = await storage.get_file_metadata(key)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read file metadata",
        )

    if metadata is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return FileDetailResponse(
        key=key,
        content_type=metadata.content_type,
        media_type=classify(key, metadata.content_type),
        size=metadata.size,
        last_modified=isoformat_or_none(metadata.last_modified),
        url=storage.get_public_url(key),
        embed_url=storage.get_embed_url(key),
    )


@router.delete(
    "/{key:path}",
    response_model=DeleteResponse,
    summary="Delete file",
    responses={404: {"description": "File not found"}},
)
async def delete_file(
    key: str,
    _: AuthenticatedSession,
    storage: StorageClientDep,
) -> DeleteResponse:
    """
    Delete a file after checking it exists.

    The existence check and the delete are two separate store calls,
    not one atomic operation.
    """
    try:
        metadata = await storage.get_file_metadata(key)
        if metadata is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="File not found",
            )

        await storage.delete_file(key)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete file",
        )

    logger.info("File deleted", extra={"key": key})

    return DeleteResponse(success=True, message=f'Deleted "{key}"')
