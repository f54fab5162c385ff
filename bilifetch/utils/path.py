"""
Utilities for handling artifact file paths and video identifier parsing.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pathvalidate import sanitize_filename

from bilifetch.exceptions import InvalidVideoIdError

MAX_TITLE_LENGTH = 100
FALLBACK_TITLE = "bilibili_media"
TEMP_SUFFIX = ".downloading"

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_VIDEO_ID = re.compile(r"(?P<bvid>BV[0-9A-Za-z]{10})|(?:^|[/=])(?P<avid>[aA][vV]\d+)")


def parse_video_id(value: str) -> str:
    """
    Extracts a BV or av identifier from a raw id or a video page URL.

    Raises:
        InvalidVideoIdError: If no identifier can be found.
    """
    value = value.strip()
    match = _VIDEO_ID.search(value)
    if not match:
        raise InvalidVideoIdError(
            f"Unrecognized video id '{value}'. Expected a BV or av id or a video URL."
        )
    if match.group("bvid"):
        return match.group("bvid")
    return match.group("avid").lower()


def sanitize_title(title: str) -> str:
    """Turns a video title into a safe filename stem."""
    cleaned = _UNSAFE_CHARS.sub("_", title)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = cleaned.strip().strip(".")
    cleaned = sanitize_filename(cleaned, platform="auto")
    if len(cleaned) > MAX_TITLE_LENGTH:
        cleaned = cleaned[:MAX_TITLE_LENGTH]
    return cleaned or FALLBACK_TITLE


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class ArtifactPaths:
    audio: Path
    video: Path
    merged: Path


class ArtifactNamer:
    """
    Builds absolute artifact paths under an output directory:
    ``{title}_{video_id}_audio.m4a``, ``{title}_{video_id}_video_{label}.m4v``
    and ``{title}_{video_id}_{label}.mp4``.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir).expanduser().resolve()

    def paths_for(
        self, title: str, video_id: str, quality_label: Optional[str] = None
    ) -> ArtifactPaths:
        stem = f"{sanitize_title(title)}_{video_id}"
        label = quality_label or "auto"
        return ArtifactPaths(
            audio=self.output_dir / f"{stem}_audio.m4a",
            video=self.output_dir / f"{stem}_video_{label}.m4v",
            merged=self.output_dir / f"{stem}_{label}.mp4",
        )
