"""
The main orchestrator: turns video ids into downloaded artifacts using the
browser pool for credentials and one API client per acquisition.
"""

import asyncio
import logging
from typing import Iterable, Optional

from rich.markup import escape

from bilifetch.api import BilibiliAPIClient, OperationRateLimiter, operation_key
from bilifetch.api.auth import Credential
from bilifetch.browser import SessionPool
from bilifetch.exceptions import (
    AuthenticationUnavailableError,
    BiliFetchError,
    PoolExhaustedError,
    TransportError,
)
from bilifetch.media import QualityCatalog, TransferEngine
from bilifetch.media.progress import ProgressCallback
from bilifetch.models.config import FetchConfig
from bilifetch.models.media import DownloadResult, MediaType, QualityInfo
from bilifetch.models.stats import DownloadStats
from bilifetch.utils.path import parse_video_id

from .media_service import MediaDownloadService

log = logging.getLogger(__name__)

DOWNLOAD_INTERVAL = 5.0
QUALITIES_INTERVAL = 5.0


class DownloadManager:
    """Orchestrates the entire acquisition process."""

    def __init__(
        self,
        config: FetchConfig,
        pool: SessionPool,
        rate_limiter: Optional[OperationRateLimiter] = None,
        engine: Optional[TransferEngine] = None,
        stats: Optional[DownloadStats] = None,
    ):
        self.config = config
        self.pool = pool
        self.rate_limiter = rate_limiter or OperationRateLimiter()
        self.engine = engine or TransferEngine(user_agent=config.user_agent)
        self.stats = stats or DownloadStats()

    async def close(self) -> None:
        await self.engine.close()

    async def __aenter__(self) -> "DownloadManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _api_client(self, credential) -> BilibiliAPIClient:
        return BilibiliAPIClient(
            credential,
            user_agent=self.config.user_agent,
            timeout=self.config.api_timeout,
        )

    async def _credential(self, key: str, account: Optional[str]) -> Credential:
        """
        Takes a credential from the pool. When none can be had the platform was
        never contacted, so the operation is not held against the rate limit.
        """
        try:
            return await self.pool.fetch_credential(account)
        except (PoolExhaustedError, AuthenticationUnavailableError):
            await self.rate_limiter.forget(key)
            raise

    async def download(
        self,
        video: str,
        media_type: MediaType | str = MediaType.MERGED,
        quality: Optional[int] = None,
        cid: Optional[int] = None,
        account: Optional[str] = None,
        output_dir: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        """
        Acquires one video page.

        Args:
            video: BV or av id, or a video page URL.
            media_type: audio, video or merged.
            quality: Requested quality code; falls back to the configured
                quality, 0 meaning automatic.
            cid: Page id; the first page when omitted.
            account: Account whose credentials are used; the default when omitted.
            output_dir: Overrides the configured output directory.
            progress_callback: Receives progress snapshots of every transfer.
        """
        video_id = parse_video_id(video)
        media_type = MediaType(media_type)
        quality = quality or self.config.quality or None

        key = operation_key(
            "download_media", account or self.config.default_account, video_id
        )
        await self.rate_limiter.check(key, DOWNLOAD_INTERVAL)

        try:
            credential = await self._credential(key, account)
            async with self._api_client(credential) as client:
                service = MediaDownloadService(
                    client,
                    self.engine,
                    output_dir or self.config.output_dir,
                    audio_timeout=self.config.audio_timeout,
                    video_timeout=self.config.video_timeout,
                )
                result = await service.download_media(
                    video_id, media_type, quality, cid, progress_callback
                )
        except BiliFetchError:
            await self.stats.record_failure()
            raise

        downloaded = [job for job in result.transfers if not job.skipped]
        await self.stats.record_result(
            result, downloaded=len(downloaded), skipped=len(result.transfers) - len(downloaded)
        )
        await self.stats.record_bytes(sum(job.bytes_written for job in downloaded))
        return result

    async def download_many(
        self,
        videos: Iterable[str],
        media_type: MediaType | str = MediaType.MERGED,
        quality: Optional[int] = None,
        account: Optional[str] = None,
        output_dir: Optional[str] = None,
    ) -> list[DownloadResult]:
        """
        Acquires several videos concurrently, at most one per pooled browser
        at a time. Failures are logged and left out of the returned list.
        """
        unique = list(dict.fromkeys(videos))
        if not unique:
            log.info("No videos provided. Nothing to do.")
            return []

        semaphore = asyncio.Semaphore(self.pool.size)

        async def _one(video: str) -> Optional[DownloadResult]:
            async with semaphore:
                try:
                    return await self.download(
                        video, media_type, quality, account=account, output_dir=output_dir
                    )
                except BiliFetchError as e:
                    log.error(f"[red]✗ {escape(video)}: {e}[/red]")
                    return None

        results = await asyncio.gather(*(_one(video) for video in unique))
        return [result for result in results if result is not None]

    async def list_qualities(
        self, video: str, cid: Optional[int] = None, account: Optional[str] = None
    ) -> list[QualityInfo]:
        """Enumerates the qualities a video page is offered in."""
        video_id = parse_video_id(video)
        key = operation_key(
            "get_qualities", account or self.config.default_account, video_id
        )
        await self.rate_limiter.check(key, QUALITIES_INTERVAL)

        credential = await self._credential(key, account)
        async with self._api_client(credential) as client:
            if not cid:
                info = await client.get_video_info(video_id)
                if info.code != 0 or info.data is None or not info.data.pages:
                    raise TransportError(
                        f"Could not look up pages of {video_id}: {info.message} "
                        f"(code: {info.code})"
                    )
                cid = info.data.pages[0].cid
            return await QualityCatalog(client).enumerate(video_id, cid)
