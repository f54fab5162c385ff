"""
Media Layer.

Resolves which stream of a video to fetch and transfers its bytes to disk.
"""

from .catalog import QualityCatalog
from .downloader import AUDIO_TIMEOUT, VIDEO_TIMEOUT, TransferEngine
from .progress import ProgressTracker
from .resolver import (
    StreamResolver,
    muxed_probe_order,
    select_audio_track,
    select_video_track,
)

__all__ = [
    "AUDIO_TIMEOUT",
    "VIDEO_TIMEOUT",
    "ProgressTracker",
    "QualityCatalog",
    "StreamResolver",
    "TransferEngine",
    "muxed_probe_order",
    "select_audio_track",
    "select_video_track",
]
