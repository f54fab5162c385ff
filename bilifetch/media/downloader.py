"""
Streams one remote media URL into a local artifact.

Bytes are written to a temporary sibling of the destination and renamed into
place only after the last chunk arrived, so the destination path never holds a
partial file.
"""

import asyncio
import logging
import os
from typing import Optional

import aiofiles
import aiohttp

from bilifetch.api.client import video_referer
from bilifetch.exceptions import FilesystemError, TransportError
from bilifetch.models.config import DEFAULT_USER_AGENT
from bilifetch.models.media import TransferJob, TransferState
from bilifetch.utils.formatting import format_size

from .progress import ProgressCallback, ProgressTracker

log = logging.getLogger(__name__)

AUDIO_TIMEOUT = 600.0
VIDEO_TIMEOUT = 1800.0

ALREADY_EXISTS = "already exists"


class TransferEngine:
    """An HTTP downloader with idempotent skip and atomic commit."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            user_agent: Browser user agent sent with every transfer.
            session: Shared client session; one is created lazily when omitted
                and closed by `close()`.
        """
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=8,
                ttl_dns_cache=600,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
            log.debug("Created transfer session")
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Transfer session closed")

    async def __aenter__(self) -> "TransferEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _headers(self, referer_seed: str) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Referer": video_referer(referer_seed),
            "Accept": "*/*",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        }

    async def run(
        self,
        source_url: str,
        dest_path: str,
        referer_seed: str,
        timeout: Optional[float] = None,
        expected_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferJob:
        """
        Downloads `source_url` to `dest_path`.

        An existing destination is never re-downloaded: the job comes back
        complete with the file's size and the note "already exists".

        Args:
            source_url: Media URL.
            dest_path: Final artifact path.
            referer_seed: Video id used to build the Referer header.
            timeout: Total seconds allowed for the transfer; unlimited if None.
            expected_size: Size hint used for progress when the response
                carries no Content-Length.
            progress_callback: Receives each throttled progress snapshot.

        Raises:
            TransportError: On a non-200 response, network error or timeout.
            FilesystemError: If the artifact cannot be written or renamed.
        """
        job = TransferJob(
            source_url=source_url, dest_path=dest_path, expected_size=expected_size
        )
        filename = os.path.basename(dest_path)

        if await asyncio.to_thread(os.path.isfile, dest_path):
            job.bytes_written = await asyncio.to_thread(os.path.getsize, dest_path)
            job.state = TransferState.COMPLETE
            job.note = ALREADY_EXISTS
            log.info(
                f"[yellow]Skipping {filename}: already exists "
                f"({format_size(job.bytes_written)})[/yellow]"
            )
            return job

        job.state = TransferState.RUNNING
        try:
            await self._stream(job, referer_seed, timeout, progress_callback)
            await asyncio.to_thread(os.replace, job.temp_path, dest_path)
        except asyncio.CancelledError:
            job.state = TransferState.FAILED
            _remove_temp(job.temp_path)
            log.info(f"Transfer of {filename} cancelled")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            job.state = TransferState.FAILED
            _remove_temp(job.temp_path)
            raise TransportError(f"Transfer of {filename} failed: {e!r}") from e
        except OSError as e:
            job.state = TransferState.FAILED
            _remove_temp(job.temp_path)
            raise FilesystemError(f"Could not write {dest_path}: {e}") from e
        except TransportError:
            job.state = TransferState.FAILED
            _remove_temp(job.temp_path)
            raise

        job.state = TransferState.COMPLETE
        return job

    async def _stream(
        self,
        job: TransferJob,
        referer_seed: str,
        timeout: Optional[float],
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        session = await self._get_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout, sock_connect=15)
        filename = os.path.basename(job.dest_path)

        async with session.get(
            job.source_url,
            headers=self._headers(referer_seed),
            timeout=client_timeout,
            allow_redirects=True,
        ) as response:
            if response.status != 200:
                raise TransportError(
                    f"Transfer of {filename} got HTTP {response.status} {response.reason}"
                )

            total = response.content_length or job.expected_size or 0
            tracker = ProgressTracker(filename, total, callback=progress_callback)
            log.debug(f"Writing {filename} ({format_size(total)} expected)")

            async with aiofiles.open(job.temp_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    job.bytes_written += len(chunk)
                    tracker.update(job.bytes_written)

        tracker.finish(job.bytes_written)


def _remove_temp(temp_path: str) -> None:
    try:
        os.remove(temp_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f"[yellow]Could not remove temporary file {temp_path}: {e}[/yellow]")
