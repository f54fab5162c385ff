"""
Builders for platform API responses and a scripted API client stand-in.
"""

import os
from typing import Any, Optional

from bilifetch.exceptions import TransportError
from bilifetch.models.media import TransferJob, TransferState
from bilifetch.models.stream import (
    PlayUrlResponse,
    VideoInfoResponse,
    VideoStreamResponse,
)

FNVAL_MUXED = 1
FNVAL_DASH = 16


def track(track_id: int, bandwidth: int = 0, width: int = 0, height: int = 0) -> dict:
    return {
        "id": track_id,
        "baseUrl": f"https://upos.example.com/{track_id}-{bandwidth}.m4s",
        "backupUrl": [],
        "bandwidth": bandwidth,
        "mimeType": "video/mp4" if width else "audio/mp4",
        "codecs": "avc1.640032" if width else "mp4a.40.2",
        "width": width,
        "height": height,
    }


def video_track(track_id: int, height: int, bandwidth: int = 1000) -> dict:
    return track(track_id, bandwidth, width=height * 16 // 9, height=height)


def split_response(video: list[dict], audio: Optional[list[dict]] = None) -> VideoStreamResponse:
    return VideoStreamResponse.model_validate(
        {
            "code": 0,
            "message": "0",
            "data": {
                "quality": video[0]["id"] if video else 0,
                "timelength": 212000,
                "dash": {"duration": 212, "video": video, "audio": audio},
            },
        }
    )


def muxed_response(quality: int, size: int = 2048) -> VideoStreamResponse:
    return VideoStreamResponse.model_validate(
        {
            "code": 0,
            "message": "0",
            "data": {
                "quality": quality,
                "format": "mp4",
                "timelength": 212000,
                "durl": [
                    {
                        "order": 1,
                        "length": 212000,
                        "size": size,
                        "url": f"https://upos.example.com/muxed-{quality}.mp4",
                    }
                ],
            },
        }
    )


def error_response(code: int = -404, message: str = "not found") -> VideoStreamResponse:
    return VideoStreamResponse(code=code, message=message)


def legacy_response(video: list[dict], audio: Optional[list[dict]] = None) -> PlayUrlResponse:
    return PlayUrlResponse.model_validate(
        {
            "code": 0,
            "data": {"dash": {"duration": 212, "video": video, "audio": audio or []}},
        }
    )


def info_response(title: str = "Test Video", cid: int = 1001) -> VideoInfoResponse:
    return VideoInfoResponse.model_validate(
        {
            "code": 0,
            "data": {
                "aid": 170001,
                "bvid": "BV1xx411c7mD",
                "title": title,
                "duration": 212,
                "pages": [{"cid": cid, "page": 1, "part": "P1", "duration": 212}],
            },
        }
    )


class ScriptedAPI:
    """
    Answers play-url calls from per-quality tables.

    Values may be responses or exceptions; qualities missing from a table get
    a not-found response.
    """

    def __init__(
        self,
        muxed: Optional[dict[int, Any]] = None,
        split: Optional[dict[int, Any]] = None,
        legacy: Any = None,
        info: Optional[VideoInfoResponse] = None,
    ):
        self.muxed = muxed or {}
        self.split = split or {}
        self.legacy = legacy
        self.info = info or info_response()
        self.calls: list[tuple[int, int]] = []
        self.legacy_calls = 0

    async def get_video_info(self, video_id: str) -> VideoInfoResponse:
        return self.info

    async def get_video_stream(
        self, video_id: str, cid: int, quality: int, fnval: int, platform: str = "html5"
    ) -> VideoStreamResponse:
        self.calls.append((quality, fnval))
        table = self.muxed if fnval == FNVAL_MUXED else self.split
        outcome = table.get(quality, error_response())
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get_play_url(self, video_id: str) -> PlayUrlResponse:
        self.legacy_calls += 1
        if self.legacy is None:
            raise TransportError("legacy endpoint unavailable")
        if isinstance(self.legacy, BaseException):
            raise self.legacy
        return self.legacy

    def probes(self, fnval: int) -> list[int]:
        return [quality for quality, flag in self.calls if flag == fnval]

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "ScriptedAPI":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass


class RecordingEngine:
    """Writes a fixed payload instead of downloading; honors existing files."""

    def __init__(self, payload: bytes = b"m" * 1000):
        self.payload = payload
        self.runs: list[tuple] = []

    async def run(
        self,
        source_url,
        dest_path,
        referer_seed,
        timeout=None,
        expected_size=None,
        progress_callback=None,
    ) -> TransferJob:
        self.runs.append((source_url, dest_path, referer_seed, timeout))
        job = TransferJob(source_url=source_url, dest_path=dest_path, expected_size=expected_size)
        if os.path.exists(dest_path):
            job.bytes_written = os.path.getsize(dest_path)
            job.note = "already exists"
        else:
            with open(dest_path, "wb") as f:
                f.write(self.payload)
            job.bytes_written = len(self.payload)
        job.state = TransferState.COMPLETE
        return job

    async def close(self) -> None:
        pass
