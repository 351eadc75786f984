"""
Bucket quota accounting.

Usage is computed from a full listing right before an upload is
accepted. There is no reservation step: two uploads running at the same
time can both see the same stale total and together overshoot the
limit. That race is a known limitation of check-then-act against a
store with no transactions; closing it would need an explicit
reservation protocol.
"""

from dataclasses import dataclass
from typing import Iterable

from .models import FileListItem


@dataclass(frozen=True)
class StorageUsage:
    """Bytes used versus the configured bucket limit."""
    used_bytes: int
    limit_bytes: int
    file_count: int = 0

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)

    def can_accept(self, size: int) -> bool:
        """An upload fits when the new total does not exceed the limit."""
        return self.used_bytes + size <= self.limit_bytes


def compute_usage(files: Iterable[FileListItem], limit_bytes: int) -> StorageUsage:
    used = 0
    count = 0
    for item in files:
        used += item.size
        count += 1
    return StorageUsage(used_bytes=used, limit_bytes=limit_bytes, file_count=count)
