"""
Core application engine for orchestrating the acquisition process.

The `DownloadManager` acts as the high-level session coordinator, delegating
each individual video page to the `MediaDownloadService`.
"""

from .download_manager import DownloadManager
from .media_service import MediaDownloadService

__all__ = ["DownloadManager", "MediaDownloadService"]
