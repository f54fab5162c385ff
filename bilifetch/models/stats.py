"""
Dataclass for tracking download session statistics.
"""

import asyncio
import time
from dataclasses import dataclass, field

from .media import DownloadResult


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    videos_processed: int = 0
    videos_failed: int = 0
    artifacts_downloaded: int = 0
    artifacts_skipped_exists: int = 0
    merges_pending: int = 0
    total_size_downloaded: int = 0
    started_at: float = field(default_factory=time.monotonic, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def record_result(self, result: DownloadResult, downloaded: int, skipped: int) -> None:
        """
        Folds one finished acquisition into the session totals.

        Args:
            result: The record returned by the media service.
            downloaded: Number of artifacts written during this acquisition.
            skipped: Number of artifacts that already existed.
        """
        async with self._lock:
            self.videos_processed += 1
            self.artifacts_downloaded += downloaded
            self.artifacts_skipped_exists += skipped
            if result.merge_required:
                self.merges_pending += 1

    async def record_bytes(self, count: int) -> None:
        async with self._lock:
            self.total_size_downloaded += count

    async def record_failure(self) -> None:
        async with self._lock:
            self.videos_failed += 1

    @property
    def elapsed_s(self) -> float:
        return time.monotonic() - self.started_at
