"""
Upload key derivation.

Keys are `<id>_<sanitized name>`: a short random id followed by the
uploaded name stripped down to URL-safe characters. The id means two
uploads called "photo.png" never overwrite each other, and only the
basename survives, so nothing of the uploader's directory layout leaks
into the bucket.
"""

import re
from typing import Callable, Optional
from uuid import uuid4

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_REPEATED_SEPARATOR = re.compile(r"_{2,}")

SEPARATOR = "_"
FALLBACK_NAME = "file"


def short_id() -> str:
    """First segment of a uuid4: 8 hex characters."""
    return str(uuid4()).split("-")[0]


def _basename(filename: str) -> str:
    return re.split(r"[\\/]", filename)[-1]


def sanitize_filename(filename: str) -> str:
    """Replace unsafe characters with '_', collapse runs and trim the ends."""
    cleaned = _UNSAFE_CHARS.sub(SEPARATOR, filename)
    cleaned = _REPEATED_SEPARATOR.sub(SEPARATOR, cleaned)
    return cleaned.strip(SEPARATOR)


def get_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or '' when there is none."""
    basename = _basename(filename)
    dot_index = basename.rfind(".")
    if dot_index == -1:
        return ""
    suffix = sanitize_filename(basename[dot_index + 1:])
    return f".{suffix.lower()}" if suffix else ""


def build_upload_key(
    filename: str,
    custom_name: Optional[str] = None,
    id_factory: Callable[[], str] = short_id,
) -> str:
    """
    Derive the bucket key for an upload.

    A custom name replaces the uploaded filename but keeps the original
    extension, so content types can still be inferred from the key later.
    The extension is not appended again when the custom name already
    ends with it ("cover.PNG" stays "cover.PNG", not "cover.PNG.png").

    Args:
        filename: Name of the uploaded file as sent by the client
        custom_name: Optional display name chosen by the user
        id_factory: Produces the unique prefix (overridable for tests)
    """
    extension = get_extension(filename)
    unique_id = id_factory()

    if custom_name and custom_name.strip():
        sanitized = sanitize_filename(custom_name.strip()) or FALLBACK_NAME
        if sanitized.lower().endswith(extension):
            return f"{unique_id}{SEPARATOR}{sanitized}"
        return f"{unique_id}{SEPARATOR}{sanitized}{extension}"

    sanitized = sanitize_filename(_basename(filename)) or FALLBACK_NAME
    return f"{unique_id}{SEPARATOR}{sanitized}"
