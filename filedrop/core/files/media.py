"""
Media type classification.

Two tiers: the MIME type recorded at upload time wins, and the filename
extension is only consulted when the MIME type says nothing useful. A
browser or server may hand back a generic type for an unusual filename,
but an explicit type set at upload is more trustworthy than a guess from
the name.
"""

from typing import Optional

from .models import MediaType

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    ".ico", ".bmp", ".avif", ".tiff",
})

VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".webm", ".mov", ".avi", ".mkv",
    ".flv", ".wmv", ".m4v", ".ogv",
})

# .webm also appears under video and resolves there first
AUDIO_EXTENSIONS = frozenset({
    ".mp3", ".wav", ".ogg", ".flac", ".aac",
    ".m4a", ".wma", ".opus", ".webm",
})

IMAGE_MIMES = frozenset({
    "image/jpeg", "image/png", "image/gif", "image/webp",
    "image/svg+xml", "image/x-icon", "image/bmp",
    "image/avif", "image/tiff",
})

VIDEO_MIMES = frozenset({
    "video/mp4", "video/webm", "video/quicktime",
    "video/x-msvideo", "video/x-matroska",
    "video/x-flv", "video/x-ms-wmv", "video/ogg",
})

AUDIO_MIMES = frozenset({
    "audio/mpeg", "audio/wav", "audio/ogg", "audio/flac",
    "audio/aac", "audio/mp4", "audio/x-ms-wma",
    "audio/opus", "audio/webm",
})

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def media_type_from_mime(mime: str) -> MediaType:
    """Exact match against known types first, then the top-level prefix."""
    lower = mime.lower()

    if lower in IMAGE_MIMES:
        return MediaType.IMAGE
    if lower in VIDEO_MIMES:
        return MediaType.VIDEO
    if lower in AUDIO_MIMES:
        return MediaType.AUDIO

    if lower.startswith("image/"):
        return MediaType.IMAGE
    if lower.startswith("video/"):
        return MediaType.VIDEO
    if lower.startswith("audio/"):
        return MediaType.AUDIO

    return MediaType.OTHER


def media_type_from_extension(filename: str) -> MediaType:
    dot_index = filename.rfind(".")
    if dot_index == -1:
        return MediaType.OTHER

    ext = filename[dot_index:].lower()
    if ext in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    if ext in AUDIO_EXTENSIONS:
        return MediaType.AUDIO
    return MediaType.OTHER


def classify(filename: str, mime: Optional[str] = None) -> MediaType:
    """
    Classify a file by MIME type, falling back to its extension.

    Examples:
        classify("clip.MP4", "") -> VIDEO
        classify("unknown.xyz", "audio/mpeg") -> AUDIO
        classify("noext", "") -> OTHER
    """
    if mime:
        from_mime = media_type_from_mime(mime)
        if from_mime is not MediaType.OTHER:
            return from_mime
    return media_type_from_extension(filename)


def display_name(key: str) -> str:
    """Last path segment of a key."""
    return key.rsplit("/", 1)[-1] or key


def format_file_size(num_bytes: int) -> str:
    """Human-readable size with a 1024 base, e.g. '1.5 MB'."""
    if num_bytes <= 0:
        return "0 B"

    size = float(num_bytes)
    index = 0
    while size >= 1024 and index < len(SIZE_UNITS) - 1:
        size /= 1024
        index += 1

    if index == 0:
        return f"{num_bytes} B"
    return f"{size:.1f} {SIZE_UNITS[index]}"
