"""
File domain logic: models, media classification, key derivation and quota.
"""

from .keys import build_upload_key, get_extension, sanitize_filename
from .media import classify, display_name, format_file_size
from .models import (
    DEFAULT_CONTENT_TYPE,
    FileListItem,
    FileMetadata,
    MediaType,
    UploadedFile,
)
from .quota import StorageUsage, compute_usage

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "FileListItem",
    "FileMetadata",
    "MediaType",
    "StorageUsage",
    "UploadedFile",
    "build_upload_key",
    "classify",
    "compute_usage",
    "display_name",
    "format_file_size",
    "get_extension",
    "sanitize_filename",
]
