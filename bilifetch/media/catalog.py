"""
Enumerates the qualities a video is offered in.
"""

import logging

from bilifetch.api.client import FNVAL_DASH, FNVAL_MUXED, BilibiliAPIClient
from bilifetch.exceptions import TransportError
from bilifetch.models.config import QUALITY_PREFERENCE
from bilifetch.models.media import QualityInfo

log = logging.getLogger(__name__)

CATALOG_PROBE_QUALITY = 80
MUXED_PROBE_QUALITIES = (64, 32, 16)
FALLBACK_QUALITIES = (80, 64, 32, 16)


def _rank(quality: int) -> int:
    return QUALITY_PREFERENCE.index(quality)


def fallback_catalog() -> list[QualityInfo]:
    """The fixed list reported when the platform cannot be probed."""
    return [
        QualityInfo.for_code(q, has_audio=q <= 64) for q in FALLBACK_QUALITIES
    ]


class QualityCatalog:
    """
    Builds the list of qualities available for one page of a video, best first.
    Only codes of the fixed preference order are reported.

    The split manifest lists every video quality; low qualities are also
    probed as muxed streams to learn which of them come with audio in a single
    file.
    """

    def __init__(self, api_client: BilibiliAPIClient):
        self.api_client = api_client

    async def enumerate(self, video_id: str, cid: int) -> list[QualityInfo]:
        """
        Returns the catalog. Failures degrade to a fixed list and are never
        raised.
        """
        try:
            response = await self.api_client.get_video_stream(
                video_id, cid, CATALOG_PROBE_QUALITY, FNVAL_DASH
            )
        except TransportError as e:
            log.warning(
                f"[yellow]Quality probe for {video_id} failed ({e}), "
                f"using default list[/yellow]"
            )
            return fallback_catalog()

        if response.code != 0 or response.data is None or response.data.dash is None:
            log.warning(
                f"[yellow]Quality probe for {video_id} returned code {response.code} "
                f"({response.message}), using default list[/yellow]"
            )
            return fallback_catalog()

        found: dict[int, QualityInfo] = {}
        for track in response.data.dash.video:
            if track.id not in found:
                found[track.id] = QualityInfo.for_code(
                    track.id, width=track.width, height=track.height
                )

        for quality in MUXED_PROBE_QUALITIES:
            if await self._has_muxed(video_id, cid, quality):
                if quality in found:
                    found[quality].has_audio = True
                else:
                    found[quality] = QualityInfo.for_code(quality, has_audio=True)

        unknown = [code for code in found if code not in QUALITY_PREFERENCE]
        if unknown:
            log.debug(f"Ignoring unknown quality codes of {video_id}: {unknown}")
        qualities = sorted(
            (info for code, info in found.items() if code in QUALITY_PREFERENCE),
            key=lambda info: _rank(info.quality),
        )
        log.debug(
            f"Qualities of {video_id}: "
            + ", ".join(info.description for info in qualities)
        )
        return qualities

    async def _has_muxed(self, video_id: str, cid: int, quality: int) -> bool:
        try:
            response = await self.api_client.get_video_stream(
                video_id, cid, quality, FNVAL_MUXED
            )
        except TransportError as e:
            log.debug(f"Muxed probe at {quality} for {video_id} failed: {e}")
            return False
        return response.code == 0 and response.data is not None and bool(response.data.durl)
