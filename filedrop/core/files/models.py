"""
Domain models for stored files.

The bucket is the only source of truth for files, so these are plain
values describing what the store reported at a given moment. Nothing
here is cached across requests.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MediaType(Enum):
    """Coarse classification used by the dashboard filters and previews."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


@dataclass(frozen=True)
class FileListItem:
    """One object as returned by a bucket listing."""
    key: str
    size: int
    last_modified: Optional[datetime]
    url: str
    embed_url: str

    @property
    def sort_timestamp(self) -> float:
        """Listing order key. Objects without a timestamp sort as the epoch."""
        return (self.last_modified or EPOCH).timestamp()


@dataclass(frozen=True)
class FileMetadata:
    """Result of a point lookup on a single key."""
    key: str
    content_type: str
    size: int
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class UploadedFile:
    """
    What an upload produced.

    size is the byte length of the payload we actually wrote, never a
    size declared by the client.
    """
    key: str
    url: str
    embed_url: str
    size: int
    content_type: str
    uploaded_at: str


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
