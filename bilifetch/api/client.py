"""
Async client for the platform's JSON API, limited to the read calls the
acquisition pipeline needs.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Type, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from bilifetch.exceptions import InvalidVideoIdError, TransportError
from bilifetch.models.config import DEFAULT_USER_AGENT
from bilifetch.models.stream import (
    PlayUrlResponse,
    VideoInfoResponse,
    VideoStreamResponse,
)

from .auth import Credential

log = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

# fnval flags understood by the play-url endpoints
FNVAL_MUXED = 1
FNVAL_DASH = 16


def video_referer(video_id: str) -> str:
    return f"https://www.bilibili.com/video/{video_id}"


class BilibiliAPIClient:
    """
    Async client for the platform API.

    Each instance is bound to one explicit `Credential`; the cookie header is
    built from it for every request.
    """

    BASE_URL = "https://api.bilibili.com"

    def __init__(
        self,
        credential: Credential,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 60.0,
        base_url: Optional[str] = None,
    ):
        """
        Initializes the API client.

        Args:
            credential: Cookie set of the account the calls are made for.
            user_agent: Browser user agent presented to the API.
            timeout: Total timeout in seconds for a single API call.
            base_url: Override for the API origin (used by tests).
        """
        self.credential = credential
        self.user_agent = user_agent
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        self._aid_cache: Dict[str, int] = {}

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.user_agent,
                    "Origin": "https://www.bilibili.com",
                    "Accept": "application/json, text/plain, */*",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=15),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BilibiliAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_json(
        self, path: str, params: Dict[str, Any], referer: str, stage: str
    ) -> Dict[str, Any]:
        """Issues a GET request and returns the decoded JSON body."""
        await self._initialize_session()
        headers = {"Referer": referer}
        if self.credential.cookies:
            headers["Cookie"] = self.credential.cookie_header()

        start_time = time.monotonic()
        try:
            async with self._session.get(
                self.base_url + path, params=params, headers=headers
            ) as r:
                r.raise_for_status()
                payload = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.debug(f"API call {stage} failed: {e}")
            raise TransportError(f"{stage} request failed: {e}") from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(f"API call {stage} completed in {duration_ms:.0f} ms")

        if not isinstance(payload, dict):
            raise TransportError(f"{stage} returned a non-object JSON body")
        return payload

    @staticmethod
    def _decode(model: Type[ResponseT], payload: Dict[str, Any], stage: str) -> ResponseT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise TransportError(f"{stage} returned a malformed response: {e}") from e

    @staticmethod
    def _id_params(video_id: str) -> Dict[str, str]:
        if video_id.startswith("BV"):
            return {"bvid": video_id}
        if video_id.lower().startswith("av"):
            aid = video_id[2:]
            if not aid.isdigit():
                raise InvalidVideoIdError(f"Invalid av id: {video_id}")
            return {"aid": aid}
        raise InvalidVideoIdError(
            f"Invalid video id '{video_id}', expected a BV or av id."
        )

    async def get_video_info(self, video_id: str) -> VideoInfoResponse:
        """Fetches title, duration and page (cid) list for a video."""
        payload = await self._get_json(
            "/x/web-interface/view",
            self._id_params(video_id),
            video_referer(video_id),
            stage=f"video info for {video_id}",
        )
        return self._decode(VideoInfoResponse, payload, f"video info for {video_id}")

    async def video_id_to_aid(self, video_id: str) -> int:
        """Converts a BV or av id into the numeric aid the play-url endpoints need."""
        if video_id in self._aid_cache:
            return self._aid_cache[video_id]

        params = self._id_params(video_id)
        if "aid" in params:
            aid = int(params["aid"])
        else:
            info = await self.get_video_info(video_id)
            if info.code != 0 or info.data is None:
                raise TransportError(
                    f"Could not convert {video_id} to aid: {info.message} (code: {info.code})"
                )
            aid = info.data.aid

        self._aid_cache[video_id] = aid
        return aid

    async def get_play_url(self, video_id: str) -> PlayUrlResponse:
        """
        Legacy single-call manifest endpoint.

        Looks up the first page's cid, then requests the split manifest
        without an explicit quality.
        """
        info = await self.get_video_info(video_id)
        if info.code != 0 or info.data is None:
            raise TransportError(
                f"Failed to get video info for {video_id}: {info.message} (code: {info.code})"
            )
        if not info.data.pages:
            raise TransportError(f"Video {video_id} has no pages")

        params: Dict[str, Any] = {
            "fnval": FNVAL_DASH,
            "fnver": 0,
            "fourk": 1,
            "cid": info.data.pages[0].cid,
        }
        if video_id.startswith("BV"):
            params["bvid"] = video_id
        else:
            params["avid"] = self._id_params(video_id)["aid"]

        stage = f"play url for {video_id}"
        payload = await self._get_json(
            "/x/player/playurl", params, video_referer(video_id), stage=stage
        )
        return self._decode(PlayUrlResponse, payload, stage)

    async def get_video_stream(
        self,
        video_id: str,
        cid: int,
        quality: int,
        fnval: int,
        platform: str = "html5",
    ) -> VideoStreamResponse:
        """
        Requests a stream manifest for one page of a video.

        Args:
            video_id: BV or av id.
            cid: Page id.
            quality: Requested quality code, 0 lets the platform choose.
            fnval: Format flags, 1 for muxed segments, 16 for split tracks.
            platform: Player platform hint; 'html5' enables muxed MP4 output.

        Returns:
            The decoded response. A non-zero `code` is returned, not raised.
        """
        aid = await self.video_id_to_aid(video_id)
        params: Dict[str, Any] = {
            "avid": aid,
            "cid": cid,
            "fnval": fnval,
            "fnver": 0,
            "fourk": 1,
            "otype": "json",
        }
        if quality > 0:
            params["qn"] = quality
        if platform:
            params["platform"] = platform
        if self.credential.has_session:
            params["try_look"] = 1

        stage = f"video stream for {video_id} (qn={quality}, fnval={fnval})"
        payload = await self._get_json(
            "/x/player/wbi/playurl", params, video_referer(video_id), stage=stage
        )
        return self._decode(VideoStreamResponse, payload, stage)
