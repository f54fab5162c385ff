"""
Handles the acquisition of a single video page, from stream resolution to the
artifacts on disk.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from rich.markup import escape

from bilifetch.api.client import BilibiliAPIClient
from bilifetch.exceptions import FilesystemError, ResolutionError, TransportError
from bilifetch.media import AUDIO_TIMEOUT, VIDEO_TIMEOUT, StreamResolver, TransferEngine
from bilifetch.media.progress import ProgressCallback
from bilifetch.models.config import get_quality_description
from bilifetch.models.media import (
    DownloadResult,
    MediaType,
    QualityInfo,
    ResolvedStream,
    TransferJob,
)
from bilifetch.utils.formatting import build_merge_command, format_size
from bilifetch.utils.path import ArtifactNamer, ArtifactPaths, create_dir

log = logging.getLogger(__name__)


class MediaDownloadService:
    """
    Orchestrates resolution and transfer of one video page.

    The service is bound to one API client, and therefore to one account's
    credentials.
    """

    def __init__(
        self,
        api_client: BilibiliAPIClient,
        engine: TransferEngine,
        output_dir: str | Path,
        resolver: Optional[StreamResolver] = None,
        audio_timeout: float = AUDIO_TIMEOUT,
        video_timeout: float = VIDEO_TIMEOUT,
    ):
        self.api_client = api_client
        self.engine = engine
        self.namer = ArtifactNamer(output_dir)
        self.resolver = resolver or StreamResolver(api_client)
        self.audio_timeout = audio_timeout
        self.video_timeout = video_timeout

    async def download_media(
        self,
        video_id: str,
        media_type: MediaType | str = MediaType.MERGED,
        quality: Optional[int] = None,
        cid: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        """
        Downloads the artifacts of one video page.

        Args:
            video_id: BV or av id.
            media_type: audio, video or merged.
            quality: Requested quality code; None selects automatically.
            cid: Page id; the first page when omitted.
            progress_callback: Receives progress snapshots of every transfer.

        Returns:
            The acquisition record, including the ffmpeg command to run when
            audio and video were fetched as separate artifacts.
        """
        media_type = MediaType(media_type)
        log.info(
            f"Starting {media_type.value} download of {video_id}"
            + (f" at {get_quality_description(quality)}" if quality else "")
        )

        info = await self.api_client.get_video_info(video_id)
        if info.code != 0 or info.data is None:
            raise TransportError(
                f"Failed to get video info for {video_id}: {info.message} (code: {info.code})"
            )
        title = info.data.title
        log.info(f"Video: [bold]{escape(title)}[/bold]")

        if not cid:
            if not info.data.pages:
                raise ResolutionError(f"Video {video_id} has no pages to download")
            cid = info.data.pages[0].cid

        resolved = await self.resolver.resolve(video_id, cid, media_type, quality)
        candidate = resolved.candidate

        result = DownloadResult(
            video_id=video_id,
            title=title,
            media_type=media_type,
            quality=candidate.quality,
            quality_desc=candidate.description,
            duration=resolved.manifest.duration_s or info.data.duration,
            current_quality=QualityInfo.for_code(
                candidate.quality,
                width=candidate.width,
                height=candidate.height,
                has_audio=candidate.has_audio,
            ),
            available_qualities=resolved.qualities,
        )

        try:
            await asyncio.to_thread(create_dir, self.namer.output_dir)
        except OSError as e:
            raise FilesystemError(
                f"Could not create output directory {self.namer.output_dir}: {e}"
            ) from e

        paths = self.namer.paths_for(title, video_id, candidate.description)
        if media_type is MediaType.AUDIO:
            await self._download_audio(result, resolved, paths, progress_callback)
        elif media_type is MediaType.VIDEO:
            await self._download_video(result, resolved, paths, progress_callback)
        elif resolved.manifest.is_muxed:
            await self._download_muxed(result, resolved, paths, progress_callback)
        else:
            await self._download_split(result, resolved, paths, progress_callback)

        log.info(f"[green]✓ {video_id}:[/green] {result.notes}")
        return result

    async def _transfer(
        self,
        result: DownloadResult,
        url: str,
        dest: Path,
        timeout: float,
        expected_size: Optional[int],
        progress_callback: Optional[ProgressCallback],
    ) -> TransferJob:
        job = await self.engine.run(
            url,
            str(dest),
            result.video_id,
            timeout=timeout,
            expected_size=expected_size,
            progress_callback=progress_callback,
        )
        result.transfers.append(job)
        return job

    async def _download_audio(
        self,
        result: DownloadResult,
        resolved: ResolvedStream,
        paths: ArtifactPaths,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        track = resolved.candidate.audio_track
        result.audio_path = str(paths.audio)
        result.audio_url = track.base_url
        job = await self._transfer(
            result, track.base_url, paths.audio, self.audio_timeout, None, progress_callback
        )
        result.audio_size = job.bytes_written
        result.notes = "audio file already exists" if job.skipped else "audio downloaded"

    async def _download_video(
        self,
        result: DownloadResult,
        resolved: ResolvedStream,
        paths: ArtifactPaths,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        track = resolved.candidate.video_track
        result.video_path = str(paths.video)
        result.video_url = track.base_url
        job = await self._transfer(
            result, track.base_url, paths.video, self.video_timeout, None, progress_callback
        )
        result.video_size = job.bytes_written
        result.notes = (
            "video file already exists"
            if job.skipped
            else "video downloaded (video track only, no audio)"
        )

    async def _download_muxed(
        self,
        result: DownloadResult,
        resolved: ResolvedStream,
        paths: ArtifactPaths,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        segment = resolved.candidate.segment
        result.merged_path = str(paths.merged)
        result.video_url = segment.url
        job = await self._transfer(
            result,
            segment.url,
            paths.merged,
            self.video_timeout,
            segment.size or None,
            progress_callback,
        )
        result.merged_size = job.bytes_written
        result.notes = (
            "MP4 file already exists"
            if job.skipped
            else "MP4 downloaded (audio and video included)"
        )

    async def _download_split(
        self,
        result: DownloadResult,
        resolved: ResolvedStream,
        paths: ArtifactPaths,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        audio = resolved.candidate.audio_track
        video = resolved.candidate.video_track
        result.audio_path = str(paths.audio)
        result.video_path = str(paths.video)
        result.merged_path = str(paths.merged)
        result.audio_url = audio.base_url
        result.video_url = video.base_url

        if await asyncio.to_thread(paths.merged.is_file):
            result.merged_size = await asyncio.to_thread(lambda: paths.merged.stat().st_size)
            result.notes = "merged file already exists, nothing downloaded"
            log.info(
                f"[yellow]Merged file already exists:[/yellow] [dim]{escape(paths.merged.name)}"
                f"[/dim] ({format_size(result.merged_size)})"
            )
            return

        audio_job = await self._transfer(
            result, audio.base_url, paths.audio, self.audio_timeout, None, progress_callback
        )
        result.audio_size = audio_job.bytes_written
        video_job = await self._transfer(
            result, video.base_url, paths.video, self.video_timeout, None, progress_callback
        )
        result.video_size = video_job.bytes_written

        result.merge_required = True
        result.merge_command = build_merge_command(
            result.video_path, result.audio_path, result.merged_path
        )
        if audio_job.skipped and video_job.skipped:
            result.notes = "audio and video files already exist, merge them with ffmpeg"
        elif audio_job.skipped:
            result.notes = "audio file already exists, video downloaded, merge them with ffmpeg"
        elif video_job.skipped:
            result.notes = "video file already exists, audio downloaded, merge them with ffmpeg"
        else:
            result.notes = "audio and video downloaded, merge them with ffmpeg"
