"""
Throttled progress reporting for a single transfer.
"""

import logging
import time
from typing import Callable, Optional

from bilifetch.models.media import TransferProgress
from bilifetch.utils.formatting import format_duration, format_size, format_speed

log = logging.getLogger(__name__)

ProgressCallback = Callable[[TransferProgress], None]


class ProgressTracker:
    """
    Reports transfer progress at most every `interval_s` seconds, or right away
    when the completed share grew by `step_percent` points since the last report.
    """

    def __init__(
        self,
        filename: str,
        total_size: int,
        callback: Optional[ProgressCallback] = None,
        clock: Callable[[], float] = time.monotonic,
        interval_s: float = 2.0,
        step_percent: float = 5.0,
    ):
        self.filename = filename
        self.total_size = total_size if total_size and total_size > 0 else 0
        self.callback = callback
        self.interval_s = interval_s
        self.step_percent = step_percent
        self._clock = clock
        self.start_time = clock()
        self._last_report_time = self.start_time
        self._last_reported_bytes = 0
        self.downloaded = 0

    def _percent(self, downloaded: int) -> float:
        return downloaded * 100 / self.total_size

    def snapshot(self, downloaded: Optional[int] = None) -> TransferProgress:
        """Builds a progress record; percent and ETA only when the total is known."""
        downloaded = self.downloaded if downloaded is None else downloaded
        elapsed = max(self._clock() - self.start_time, 1e-9)
        speed = downloaded / elapsed
        percent = eta = None
        if self.total_size:
            percent = self._percent(downloaded)
            remaining = max(self.total_size - downloaded, 0)
            eta = remaining / speed if speed > 0 else None
        return TransferProgress(
            filename=self.filename,
            downloaded=downloaded,
            total=self.total_size,
            elapsed_s=elapsed,
            speed_bps=speed,
            percent=percent,
            eta_s=eta,
        )

    def update(self, downloaded: int) -> bool:
        """
        Records the running byte count and reports if the cadence allows it.

        Returns:
            True if a report was emitted.
        """
        self.downloaded = downloaded
        now = self._clock()
        due = now - self._last_report_time >= self.interval_s
        if not due and self.total_size:
            gained = self._percent(downloaded) - self._percent(self._last_reported_bytes)
            due = gained >= self.step_percent
        if not due:
            return False

        self._report(self.snapshot(downloaded))
        self._last_report_time = now
        self._last_reported_bytes = downloaded
        return True

    def _report(self, progress: TransferProgress) -> None:
        if progress.percent is None:
            log.info(
                f"[cyan]↓[/cyan] {progress.filename}: {format_size(progress.downloaded)}, "
                f"{format_speed(progress.speed_bps)}, "
                f"elapsed {format_duration(progress.elapsed_s)}"
            )
        else:
            eta = format_duration(progress.eta_s) if progress.eta_s is not None else "?"
            log.info(
                f"[cyan]↓[/cyan] {progress.filename}: {progress.percent:.1f}% "
                f"({format_size(progress.downloaded)}/{format_size(progress.total)}), "
                f"{format_speed(progress.speed_bps)}, ETA {eta}"
            )
        if self.callback:
            self.callback(progress)

    def finish(self, downloaded: int) -> TransferProgress:
        """Logs the completion summary and returns the final record."""
        self.downloaded = downloaded
        progress = self.snapshot(downloaded)
        log.info(
            f"[green]✓ Downloaded[/green] {progress.filename}: "
            f"{format_size(downloaded)}, avg {format_speed(progress.speed_bps)}, "
            f"took {format_duration(progress.elapsed_s)}"
        )
        return progress
