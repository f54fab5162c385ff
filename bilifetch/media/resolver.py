"""
Turns a (video, page, media type, quality) request into a concrete stream
choice.

Merged requests first look for a muxed MP4 that already carries audio; when
none exists, or when only audio or only video is wanted, the split manifest is
used, falling back to the legacy play-url endpoint if the split call fails.
"""

import logging
from typing import Optional, Sequence

from bilifetch.api.client import FNVAL_DASH, FNVAL_MUXED, BilibiliAPIClient
from bilifetch.exceptions import ResolutionError, TransportError
from bilifetch.models.config import (
    QUALITY_MAP,
    get_quality_description,
    quality_from_height,
)
from bilifetch.models.media import (
    MediaType,
    QualityInfo,
    ResolvedStream,
    StreamCandidate,
    StreamManifest,
)
from bilifetch.models.stream import DashInfo, DashTrack

from .catalog import QualityCatalog

log = logging.getLogger(__name__)

DEFAULT_SPLIT_QUALITY = 80
DEFAULT_MUXED_ORDER = [64, 32, 16]
# Reported by the legacy endpoint when it lists no video track
LEGACY_DEFAULT_QUALITY = 64


def muxed_probe_order(quality: Optional[int]) -> list[int]:
    """
    Returns the qualities probed for a muxed stream, in order.

    Known codes of 1080P and above also try 1080P before the default ladder;
    a code the platform does not define is tried once as given.

    >>> muxed_probe_order(116)
    [116, 80, 64, 32, 16]
    >>> muxed_probe_order(90)
    [90, 64, 32, 16]
    >>> muxed_probe_order(None)
    [64, 32, 16]
    """
    if not quality:
        return list(DEFAULT_MUXED_ORDER)
    if quality >= 80 and quality in QUALITY_MAP:
        return [quality, 80, 64, 32, 16]
    return [quality, 64, 32, 16]


def select_audio_track(tracks: Sequence[DashTrack]) -> Optional[DashTrack]:
    """Highest bandwidth wins; on a tie the first listed track is kept."""
    best = None
    for track in tracks:
        if best is None or track.bandwidth > best.bandwidth:
            best = track
    return best


def select_video_track(tracks: Sequence[DashTrack], quality: int) -> Optional[DashTrack]:
    """The first track whose id matches `quality`, else the first track."""
    for track in tracks:
        if track.id == quality:
            return track
    return tracks[0] if tracks else None


class StreamResolver:
    """Chooses the representation to download for one video page."""

    def __init__(
        self, api_client: BilibiliAPIClient, catalog: Optional[QualityCatalog] = None
    ):
        self.api_client = api_client
        self.catalog = catalog or QualityCatalog(api_client)

    async def resolve(
        self,
        video_id: str,
        cid: int,
        media_type: MediaType | str,
        quality: Optional[int] = None,
    ) -> ResolvedStream:
        """
        Resolves a stream for the requested media type.

        Args:
            video_id: BV or av id.
            cid: Page id.
            media_type: audio, video or merged ("combined" is accepted).
            quality: Requested quality code; None or 0 selects automatically.

        Raises:
            ResolutionError: If the manifest lacks the track kind the media
                type needs.
            TransportError: If neither the split nor the legacy manifest
                could be fetched.
        """
        media_type = MediaType(media_type)
        qualities = await self.catalog.enumerate(video_id, cid)

        if media_type is MediaType.MERGED:
            resolved = await self._probe_muxed(video_id, cid, quality, qualities)
            if resolved is not None:
                return resolved
            log.info(
                f"No muxed stream with audio for {video_id}, using split audio and video"
            )

        candidate_quality, dash, legacy = await self._fetch_split(video_id, cid, quality)
        manifest = StreamManifest(
            audio=list(dash.audio or []), video=list(dash.video), duration_s=dash.duration
        )

        candidate = StreamCandidate(quality=candidate_quality, has_audio=False)
        if media_type in (MediaType.AUDIO, MediaType.MERGED):
            candidate.audio_track = select_audio_track(manifest.audio)
            if candidate.audio_track is None:
                raise ResolutionError(f"No audio track available for {video_id}")
        if media_type in (MediaType.VIDEO, MediaType.MERGED):
            candidate.video_track = select_video_track(manifest.video, candidate_quality)
            if candidate.video_track is None:
                raise ResolutionError(
                    f"No video track available for {video_id} "
                    f"(quality {get_quality_description(candidate_quality)})"
                )
            candidate.width = candidate.video_track.width
            candidate.height = candidate.video_track.height

        log.info(
            f"Resolved {video_id} as split {media_type.value} at "
            f"{candidate.description}{' (legacy manifest)' if legacy else ''}"
        )
        return ResolvedStream(candidate=candidate, manifest=manifest, qualities=qualities)

    async def _probe_muxed(
        self,
        video_id: str,
        cid: int,
        quality: Optional[int],
        qualities: list[QualityInfo],
    ) -> Optional[ResolvedStream]:
        for probe in muxed_probe_order(quality):
            try:
                response = await self.api_client.get_video_stream(
                    video_id, cid, probe, FNVAL_MUXED, platform="html5"
                )
            except TransportError as e:
                log.debug(f"Muxed probe {probe} for {video_id} failed: {e}")
                continue
            if response.code != 0 or response.data is None or not response.data.durl:
                log.debug(
                    f"Muxed probe {probe} for {video_id}: no segments (code {response.code})"
                )
                continue

            data = response.data
            manifest = StreamManifest(
                segments=list(data.durl), duration_s=data.timelength // 1000
            )
            candidate = StreamCandidate(
                quality=probe, has_audio=True, segment=data.durl[0]
            )
            log.info(
                f"[green]Found muxed stream with audio for {video_id} at "
                f"{candidate.description}[/green]"
            )
            return ResolvedStream(candidate=candidate, manifest=manifest, qualities=qualities)
        return None

    async def _fetch_split(
        self, video_id: str, cid: int, quality: Optional[int]
    ) -> tuple[int, DashInfo, bool]:
        """
        Returns the negotiated quality, the split manifest and whether the
        legacy endpoint supplied it.
        """
        target = quality if quality in QUALITY_MAP else DEFAULT_SPLIT_QUALITY
        try:
            response = await self.api_client.get_video_stream(
                video_id, cid, target, FNVAL_DASH, platform="html5"
            )
        except TransportError as e:
            log.warning(f"[yellow]Split manifest for {video_id} failed: {e}[/yellow]")
        else:
            if response.code == 0 and response.data is not None and response.data.dash:
                return target, response.data.dash, False
            log.warning(
                f"[yellow]Split manifest for {video_id} at {target} returned code "
                f"{response.code} ({response.message})[/yellow]"
            )

        log.warning(f"[yellow]Falling back to legacy play url for {video_id}[/yellow]")
        try:
            legacy = await self.api_client.get_play_url(video_id)
        except TransportError as e:
            raise TransportError(
                f"Could not resolve {video_id} at quality {target} "
                f"(stage: legacy play url): {e}"
            ) from e
        if legacy.code != 0 or legacy.data is None or legacy.data.dash is None:
            raise TransportError(
                f"Could not resolve {video_id} at quality {target} "
                f"(stage: legacy play url): {legacy.message} (code: {legacy.code})"
            )

        dash = legacy.data.dash
        if dash.video:
            inferred = quality_from_height(max(track.height for track in dash.video))
        else:
            inferred = LEGACY_DEFAULT_QUALITY
        return inferred, dash, True
