"""
Domain records passed between the resolver, the transfer engine and the
orchestration layer.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from .config import get_quality_description
from .stream import DashTrack, DurlSegment


class MediaType(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"
    MERGED = "merged"

    @classmethod
    def _missing_(cls, value: object) -> Optional["MediaType"]:
        if isinstance(value, str):
            value = value.lower()
            if value == "combined":
                return cls.MERGED
            for member in cls:
                if member.value == value:
                    return member
        return None


@dataclass
class StreamManifest:
    """
    Either a split representation (independent audio and video track lists)
    or a muxed one (an ordered list of URL segments).
    """

    audio: list[DashTrack] = field(default_factory=list)
    video: list[DashTrack] = field(default_factory=list)
    segments: list[DurlSegment] = field(default_factory=list)
    duration_s: int = 0

    @property
    def is_muxed(self) -> bool:
        return bool(self.segments)

    @property
    def is_split(self) -> bool:
        return not self.segments


@dataclass
class StreamCandidate:
    """The representation chosen for a download."""

    quality: int
    has_audio: bool
    width: int = 0
    height: int = 0
    video_track: Optional[DashTrack] = None
    audio_track: Optional[DashTrack] = None
    segment: Optional[DurlSegment] = None

    @property
    def description(self) -> str:
        return get_quality_description(self.quality)


@dataclass
class QualityInfo:
    quality: int
    description: str
    width: int = 0
    height: int = 0
    has_audio: bool = False
    available: bool = True

    @classmethod
    def for_code(cls, quality: int, **kwargs: Any) -> "QualityInfo":
        return cls(quality=quality, description=get_quality_description(quality), **kwargs)


@dataclass
class ResolvedStream:
    candidate: StreamCandidate
    manifest: StreamManifest
    qualities: list[QualityInfo]


class TransferState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class TransferJob:
    source_url: str
    dest_path: str
    expected_size: Optional[int] = None
    bytes_written: int = 0
    state: TransferState = TransferState.PENDING
    note: str = ""

    @property
    def temp_path(self) -> str:
        return self.dest_path + ".downloading"

    @property
    def skipped(self) -> bool:
        return self.note == "already exists"


@dataclass
class TransferProgress:
    """A point-in-time progress report for one transfer."""

    filename: str
    downloaded: int
    total: int
    elapsed_s: float
    speed_bps: float
    percent: Optional[float] = None
    eta_s: Optional[float] = None


@dataclass
class DownloadResult:
    """Final record of one media acquisition."""

    video_id: str
    title: str
    media_type: MediaType
    quality: int
    quality_desc: str
    duration: int = 0

    audio_path: str = ""
    video_path: str = ""
    merged_path: str = ""

    audio_size: int = 0
    video_size: int = 0
    merged_size: int = 0

    audio_url: str = ""
    video_url: str = ""

    current_quality: Optional[QualityInfo] = None
    available_qualities: list[QualityInfo] = field(default_factory=list)

    merge_required: bool = False
    merge_command: str = ""
    notes: str = ""

    transfers: list[TransferJob] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("transfers")
        data["media_type"] = self.media_type.value
        return {key: value for key, value in data.items() if value not in ("", None)}
