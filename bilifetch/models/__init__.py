"""
Data Models.

This package contains the configuration model, the typed platform API
schemas and the domain records of the acquisition pipeline.
"""

from .config import FetchConfig, get_quality_description
from .media import (
    DownloadResult,
    MediaType,
    QualityInfo,
    ResolvedStream,
    StreamCandidate,
    StreamManifest,
    TransferJob,
    TransferProgress,
    TransferState,
)
from .stats import DownloadStats

__all__ = [
    "DownloadResult",
    "DownloadStats",
    "FetchConfig",
    "MediaType",
    "QualityInfo",
    "ResolvedStream",
    "StreamCandidate",
    "StreamManifest",
    "TransferJob",
    "TransferProgress",
    "TransferState",
    "get_quality_description",
]
