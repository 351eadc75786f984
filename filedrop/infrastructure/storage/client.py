"""
Object storage client for dashboard files.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Using R2 because:
- No egress fees (files are served straight from the public bucket URL)
- Same S3 API means we could swap to actual S3 or MinIO if needed

The bucket is the source of truth: nothing here caches across calls, so
every listing and metadata lookup goes back to the store.

Mock mode keeps objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
from urllib.parse import quote

from ...core.files.models import (
    DEFAULT_CONTENT_TYPE,
    FileListItem,
    FileMetadata,
    UploadedFile,
)

logger = logging.getLogger(__name__)

# S3 caps a ListObjectsV2 page at 1000 keys
DEFAULT_PAGE_SIZE = 1000

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    public_url is where the bucket is served from; app_url is the
    dashboard itself, which hosts the embed pages.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    public_url: str = ""
    app_url: str = "http://localhost:3000"
    region: str = "auto"  # R2 uses 'auto' for region
    page_size: int = DEFAULT_PAGE_SIZE


def build_public_url(public_url: str, key: str) -> str:
    """Direct link to the object in the public bucket."""
    return f"{public_url.rstrip('/')}/{key}"


def build_embed_url(app_url: str, key: str) -> str:
    """Link to the dashboard's view page for the object."""
    return f"{app_url.rstrip('/')}/view/{quote(key, safe='')}"


def sort_newest_first(files: list[FileListItem]) -> list[FileListItem]:
    """
    Order a full listing by modification time, newest first.

    Listing pages carry no global ordering, so this only makes sense on a
    fully materialized listing.
    """
    return sorted(files, key=lambda item: item.sort_timestamp, reverse=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_not_found(error: Exception) -> bool:
    """True for botocore ClientErrors that mean the key does not exist."""
    response = getattr(error, "response", None) or {}
    code = str(response.get("Error", {}).get("Code", ""))
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in NOT_FOUND_CODES or status == 404


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def upload_file(
        self,
        key: str,
        data: bytes,
        content_type: str,
    ) -> UploadedFile:
        """Write an object and return its links and recorded size."""
        ...

    async def delete_file(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    async def list_files(self, prefix: Optional[str] = None) -> list[FileListItem]:
        """Every object under prefix, newest first."""
        ...

    async def get_file_metadata(self, key: str) -> Optional[FileMetadata]:
        """Point lookup. None when the key does not exist."""
        ...

    def get_public_url(self, key: str) -> str:
        ...

    def get_embed_url(self, key: str) -> str:
        ...


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    boto3 is synchronous, so every call runs in a worker thread. That
    keeps the event loop free and lets the listing enrichment issue its
    metadata lookups concurrently.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        """
        Initialize R2 client.

        The boto3 client is built on first use, not here, so an app with
        missing or malformed R2 settings still starts and reports them;
        its storage calls then fail with StorageError. An already-built
        client can be passed in, which is how tests attach a botocore
        Stubber.
        """
        self._config = config
        self._s3_client = s3_client

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def _s3(self):
        """
        The boto3 S3 client, created on first access.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        if self._s3_client is not None:
            return self._s3_client

        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        # R2 requires v4 signatures. Failed calls surface immediately:
        # one attempt in total, no automatic retries.
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
            retries={'max_attempts': 1, 'mode': 'standard'},
        )

        try:
            self._s3_client = boto3.client(
                's3',
                endpoint_url=self._config.endpoint_url,
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
                region_name=self._config.region,
                config=boto_config,
            )
        except Exception as e:
            logger.error(
                "Failed to create R2 client",
                extra={"endpoint": self._config.endpoint_url, "error": str(e)}
            )
            raise StorageError(f"R2 client unavailable: {e}")

        return self._s3_client

    def get_public_url(self, key: str) -> str:
        return build_public_url(self._config.public_url, key)

    def get_embed_url(self, key: str) -> str:
        return build_embed_url(self._config.app_url, key)

    async def upload_file(
        self,
        key: str,
        data: bytes,
        content_type: str,
    ) -> UploadedFile:
        """
        Upload a file to R2 storage.

        Upload time and declared content type are also written as object
        metadata, so they survive even if the store normalizes the
        Content-Type header.
        """
        uploaded_at = _utcnow().isoformat()

        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata={
                    'uploaded-at': uploaded_at,
                    'original-content-type': content_type,
                },
            )
        except Exception as e:
            logger.error(
                "Failed to upload file",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

        logger.info(
            "Uploaded file",
            extra={
                "key": key,
                "size_bytes": len(data),
                "content_type": content_type,
            }
        )

        return UploadedFile(
            key=key,
            url=self.get_public_url(key),
            embed_url=self.get_embed_url(key),
            size=len(data),
            content_type=content_type,
            uploaded_at=uploaded_at,
        )

    async def delete_file(self, key: str) -> None:
        """
        Delete a file from R2.

        S3 DeleteObject succeeds for missing keys, so this is idempotent.
        Callers that need a 404 must check existence first.
        """
        try:
            await asyncio.to_thread(
                self._s3.delete_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete file",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

        logger.info("Deleted file", extra={"key": key})

    async def list_files(self, prefix: Optional[str] = None) -> list[FileListItem]:
        """
        List every object in the bucket, newest first.

        Pages through ListObjectsV2 until the store reports no more
        pages, then sorts the whole result. Objects created or deleted
        mid-listing may or may not show up.
        """
        files: list[FileListItem] = []
        continuation_token: Optional[str] = None
        pages = 0

        try:
            while True:
                params = {
                    'Bucket': self._config.bucket_name,
                    'MaxKeys': self._config.page_size,
                }
                if prefix:
                    params['Prefix'] = prefix
                if continuation_token:
                    params['ContinuationToken'] = continuation_token

                response = await asyncio.to_thread(self._s3.list_objects_v2, **params)
                pages += 1

                for obj in response.get('Contents', []):
                    key = obj.get('Key')
                    if not key:
                        continue
                    files.append(FileListItem(
                        key=key,
                        size=obj.get('Size', 0) or 0,
                        last_modified=obj.get('LastModified'),
                        url=self.get_public_url(key),
                        embed_url=self.get_embed_url(key),
                    ))

                if not response.get('IsTruncated'):
                    break
                continuation_token = response.get('NextContinuationToken')
                if not continuation_token:
                    break

        except Exception as e:
            logger.error(
                "Failed to list files",
                extra={"prefix": prefix, "pages": pages, "error": str(e)}
            )
            raise StorageError(f"List failed: {e}")

        logger.debug(
            "Listed files",
            extra={"prefix": prefix, "count": len(files), "pages": pages}
        )

        return sort_newest_first(files)

    async def get_file_metadata(self, key: str) -> Optional[FileMetadata]:
        """
        Look up one object with HeadObject.

        A missing key is an ordinary outcome and returns None. Any other
        failure raises StorageError so an outage is never mistaken for
        "not found".
        """
        try:
            response = await asyncio.to_thread(
                self._s3.head_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            if _is_not_found(e):
                return None
            logger.error(
                "Failed to read file metadata",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Metadata lookup failed: {e}")

        return FileMetadata(
            key=key,
            content_type=response.get('ContentType') or DEFAULT_CONTENT_TYPE,
            size=response.get('ContentLength', 0) or 0,
            last_modified=response.get('LastModified'),
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)


class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. It behaves like the bucket where it matters:
    uploads overwrite on key collision, deletes are idempotent, and
    listings come back in pages of page_size keys in key order.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._public_url = config.public_url if config else "mock://storage"
        self._app_url = config.app_url if config else "http://localhost:3000"
        self._page_size = config.page_size if config else DEFAULT_PAGE_SIZE
        self._clock = clock
        self._objects: dict[str, _StoredObject] = {}
        logger.info("Initialized mock storage client (in-memory)")

    def get_public_url(self, key: str) -> str:
        return build_public_url(self._public_url, key)

    def get_embed_url(self, key: str) -> str:
        return build_embed_url(self._app_url, key)

    async def upload_file(
        self,
        key: str,
        data: bytes,
        content_type: str,
    ) -> UploadedFile:
        """Store file in memory."""
        now = self._clock()
        self._objects[key] = _StoredObject(
            data=bytes(data),
            content_type=content_type,
            last_modified=now,
            metadata={
                'uploaded-at': now.isoformat(),
                'original-content-type': content_type,
            },
        )

        logger.debug(
            "Stored file in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return UploadedFile(
            key=key,
            url=self.get_public_url(key),
            embed_url=self.get_embed_url(key),
            size=len(data),
            content_type=content_type,
            uploaded_at=now.isoformat(),
        )

    async def delete_file(self, key: str) -> None:
        """Delete file from memory."""
        self._objects.pop(key, None)
        logger.debug("Deleted file from mock storage", extra={"key": key})

    def _list_page(
        self,
        prefix: Optional[str],
        start_after: Optional[str],
    ) -> tuple[list[str], Optional[str]]:
        """One listing page and the token for the next, like ListObjectsV2."""
        keys = sorted(
            key for key in self._objects
            if not prefix or key.startswith(prefix)
        )
        if start_after is not None:
            keys = [key for key in keys if key > start_after]

        page = keys[:self._page_size]
        next_token = page[-1] if len(keys) > self._page_size else None
        return page, next_token

    async def list_files(self, prefix: Optional[str] = None) -> list[FileListItem]:
        """List objects from memory, walking pages like the real store."""
        files: list[FileListItem] = []
        continuation_token: Optional[str] = None

        while True:
            page, continuation_token = self._list_page(prefix, continuation_token)
            for key in page:
                stored = self._objects[key]
                files.append(FileListItem(
                    key=key,
                    size=len(stored.data),
                    last_modified=stored.last_modified,
                    url=self.get_public_url(key),
                    embed_url=self.get_embed_url(key),
                ))
            if continuation_token is None:
                break

        return sort_newest_first(files)

    async def get_file_metadata(self, key: str) -> Optional[FileMetadata]:
        """Look up a file in memory."""
        stored = self._objects.get(key)
        if stored is None:
            return None

        return FileMetadata(
            key=key,
            content_type=stored.content_type or DEFAULT_CONTENT_TYPE,
            size=len(stored.data),
            last_modified=stored.last_modified,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode; in mock
            mode only its URLs and page size are used)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (R2 or Mock)
    """
    if mock_mode:
        return MockStorageClient(config)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)
