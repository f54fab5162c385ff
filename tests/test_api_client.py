import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from bilifetch.api.auth import Credential
from bilifetch.api.client import FNVAL_DASH, FNVAL_MUXED, BilibiliAPIClient
from bilifetch.exceptions import InvalidVideoIdError, TransportError

VIEW = {
    "code": 0,
    "message": "0",
    "data": {
        "aid": 170001,
        "bvid": "BV1xx411c7mD",
        "title": "Test Video",
        "duration": 212,
        "pages": [{"cid": 1001, "page": 1, "part": "P1"}, {"cid": 1002, "page": 2}],
    },
}

PLAYURL = {
    "code": 0,
    "message": "0",
    "data": {
        "quality": 80,
        "timelength": 212000,
        "dash": {
            "duration": 212,
            "video": [{"id": 80, "baseUrl": "https://upos/v.m4s", "height": 1080}],
            "audio": None,
        },
    },
}


class FakePlatform:
    """Records requests to the view and play-url endpoints."""

    def __init__(self):
        self.requests = []
        self.view_body = VIEW
        self.playurl_body = PLAYURL
        self.playurl_status = 200

    def app(self):
        app = web.Application()
        app.router.add_get("/x/web-interface/view", self.view)
        app.router.add_get("/x/player/wbi/playurl", self.playurl)
        app.router.add_get("/x/player/playurl", self.playurl)
        return app

    async def view(self, request):
        self.requests.append(request)
        return web.json_response(self.view_body)

    async def playurl(self, request):
        self.requests.append(request)
        if self.playurl_status != 200:
            return web.Response(status=self.playurl_status)
        if isinstance(self.playurl_body, str):
            return web.Response(text=self.playurl_body, content_type="text/html")
        return web.json_response(self.playurl_body)


@pytest.fixture
def platform():
    return FakePlatform()


def make_client(server, cookies=None):
    return BilibiliAPIClient(
        Credential(cookies or {}, account_name="main"),
        user_agent="TestAgent/1.0",
        base_url=str(server.make_url("")),
    )


@pytest.mark.asyncio
async def test_video_info_sends_credentials_and_referer(platform):
    async with TestServer(platform.app()) as server:
        async with make_client(server, {"SESSDATA": "s", "bili_jct": "c"}) as client:
            info = await client.get_video_info("BV1xx411c7mD")

    assert info.data.title == "Test Video"
    assert [page.cid for page in info.data.pages] == [1001, 1002]
    (request,) = platform.requests
    assert request.query["bvid"] == "BV1xx411c7mD"
    assert request.headers["Cookie"] == "SESSDATA=s; bili_jct=c"
    assert request.headers["Referer"] == "https://www.bilibili.com/video/BV1xx411c7mD"
    assert request.headers["User-Agent"] == "TestAgent/1.0"


@pytest.mark.asyncio
async def test_video_stream_parameters(platform):
    async with TestServer(platform.app()) as server:
        async with make_client(server, {"SESSDATA": "s"}) as client:
            response = await client.get_video_stream("BV1xx411c7mD", 1001, 80, FNVAL_DASH)
            await client.get_video_stream("BV1xx411c7mD", 1001, 0, FNVAL_MUXED, platform="")

    assert response.code == 0
    assert response.data.dash.audio is None
    assert response.data.dash.video[0].base_url == "https://upos/v.m4s"

    view, first, second = platform.requests
    assert view.path == "/x/web-interface/view"
    assert dict(first.query) == {
        "avid": "170001",
        "cid": "1001",
        "fnval": "16",
        "fnver": "0",
        "fourk": "1",
        "otype": "json",
        "qn": "80",
        "platform": "html5",
        "try_look": "1",
    }
    assert "qn" not in second.query
    assert "platform" not in second.query
    assert second.query["fnval"] == "1"


@pytest.mark.asyncio
async def test_av_ids_skip_the_lookup(platform):
    async with TestServer(platform.app()) as server:
        async with make_client(server) as client:
            await client.get_video_stream("av170001", 1001, 64, FNVAL_MUXED)

    (request,) = platform.requests
    assert request.query["avid"] == "170001"
    assert "try_look" not in request.query
    assert "Cookie" not in request.headers


@pytest.mark.asyncio
async def test_non_zero_code_is_returned_not_raised(platform):
    platform.playurl_body = {"code": -404, "message": "啥都木有", "data": None}
    async with TestServer(platform.app()) as server:
        async with make_client(server) as client:
            response = await client.get_video_stream("av1", 1, 80, FNVAL_DASH)
    assert response.code == -404
    assert response.data is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, status",
    [
        ("<html>blocked</html>", 200),
        ({"code": 0, "data": {"durl": [{"order": 1}]}}, 200),
        (["not", "an", "object"], 200),
        (PLAYURL, 412),
    ],
)
async def test_bad_responses_are_transport_errors(platform, body, status):
    platform.playurl_body = body
    platform.playurl_status = status
    async with TestServer(platform.app()) as server:
        async with make_client(server) as client:
            with pytest.raises(TransportError):
                await client.get_video_stream("av1", 1, 80, FNVAL_DASH)


@pytest.mark.asyncio
async def test_legacy_play_url_uses_first_page(platform):
    async with TestServer(platform.app()) as server:
        async with make_client(server) as client:
            response = await client.get_play_url("BV1xx411c7mD")

    assert response.data.dash.video[0].height == 1080
    view, legacy = platform.requests
    assert legacy.path == "/x/player/playurl"
    assert legacy.query["cid"] == "1001"
    assert legacy.query["bvid"] == "BV1xx411c7mD"
    assert "qn" not in legacy.query


@pytest.mark.asyncio
async def test_legacy_play_url_without_pages(platform):
    platform.view_body = {"code": 0, "data": {"aid": 1, "pages": []}}
    async with TestServer(platform.app()) as server:
        async with make_client(server) as client:
            with pytest.raises(TransportError, match="no pages"):
                await client.get_play_url("BV1xx411c7mD")


@pytest.mark.asyncio
async def test_unreachable_api_is_transport_error():
    client = BilibiliAPIClient(Credential(), base_url="http://127.0.0.1:9", timeout=2)
    async with client:
        with pytest.raises(TransportError):
            await client.get_video_info("BV1xx411c7mD")


@pytest.mark.asyncio
@pytest.mark.parametrize("video_id", ["avNaN", "12345"])
async def test_malformed_ids_are_rejected(video_id):
    async with BilibiliAPIClient(Credential()) as client:
        with pytest.raises(InvalidVideoIdError):
            await client.get_video_info(video_id)
