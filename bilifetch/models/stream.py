"""
Typed schemas for the platform API responses.

Every response is decoded once into these models; required fields are checked
at decode time so the rest of the code never probes raw dictionaries.
"""

from typing import Optional

from pydantic import BaseModel, Field


class _Schema(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


class DashTrack(_Schema):
    """One audio or video track of a split (DASH) manifest."""

    id: int
    base_url: str = Field(alias="baseUrl")
    backup_url: list[str] = Field(default_factory=list, alias="backupUrl")
    bandwidth: int = 0
    mime_type: str = Field("", alias="mimeType")
    codecs: str = ""
    width: int = 0
    height: int = 0
    frame_rate: str = Field("", alias="frameRate")


class DashInfo(_Schema):
    duration: int = 0
    min_buffer_time: float = Field(0.0, alias="minBufferTime")
    video: list[DashTrack] = Field(default_factory=list)
    # The platform sends null instead of [] for silent videos
    audio: Optional[list[DashTrack]] = Field(default_factory=list)


class DurlSegment(_Schema):
    """One segment of a muxed (single-file) representation."""

    order: int = 0
    length: int = 0
    size: int = 0
    url: str
    backup_url: Optional[list[str]] = None


class StreamData(_Schema):
    quality: int = 0
    format: str = ""
    timelength: int = 0
    accept_quality: list[int] = Field(default_factory=list)
    accept_description: list[str] = Field(default_factory=list)
    durl: list[DurlSegment] = Field(default_factory=list)
    dash: Optional[DashInfo] = None


class VideoStreamResponse(_Schema):
    code: int
    message: str = ""
    data: Optional[StreamData] = None


class PlayUrlData(_Schema):
    dash: Optional[DashInfo] = None


class PlayUrlResponse(_Schema):
    code: int
    message: str = ""
    data: Optional[PlayUrlData] = None


class VideoOwner(_Schema):
    mid: int = 0
    name: str = ""


class VideoPage(_Schema):
    cid: int
    page: int = 1
    part: str = ""
    duration: int = 0


class VideoInfoData(_Schema):
    aid: int
    bvid: str = ""
    title: str = ""
    desc: str = ""
    duration: int = 0
    cid: int = 0
    pic: str = ""
    owner: VideoOwner = Field(default_factory=VideoOwner)
    pages: list[VideoPage] = Field(default_factory=list)


class VideoInfoResponse(_Schema):
    code: int
    message: str = ""
    data: Optional[VideoInfoData] = None
