import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from bilifetch.browser.pool import SessionPool
from bilifetch.exceptions import (
    AuthenticationUnavailableError,
    BiliFetchError,
    PoolExhaustedError,
)
from bilifetch.models.config import FetchConfig


class FakeBrowserContext:
    def __init__(self):
        self.jar = []
        self.closed = False

    async def add_cookies(self, cookies):
        self.jar.extend(cookies)

    async def cookies(self):
        return [{"name": c["name"], "value": c["value"]} for c in self.jar]

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self):
        self.contexts = []
        self.context_options = []
        self.close = AsyncMock()

    async def new_context(self, **options):
        self.context_options.append(options)
        context = FakeBrowserContext()
        self.contexts.append(context)
        return context


def make_pool(store, size=2, **kwargs):
    browsers = []

    async def launcher():
        browser = FakeBrowser()
        browsers.append(browser)
        return browser

    pool = SessionPool(size, store, launcher=launcher, **kwargs)
    return pool, browsers


@pytest.mark.asyncio
async def test_third_checkout_waits_for_checkin(credential_store):
    pool, browsers = make_pool(credential_store, size=2)
    async with pool:
        first = await pool.checkout()
        second = await pool.checkout()
        assert first is not second

        waiter = asyncio.create_task(pool.checkout(timeout=5))
        await asyncio.sleep(0.05)
        assert not waiter.done()
        assert pool.stats()["in_use"] == 2

        pool.checkin(first)
        third = await waiter
        assert third is first
        assert third.in_use

        pool.checkin(second)
        pool.checkin(third)
        assert pool.stats() == {"total": 2, "in_use": 0, "available": 2, "closed": False}

    assert all(browser.close.await_count == 1 for browser in browsers)


@pytest.mark.asyncio
async def test_checkout_times_out_when_exhausted(credential_store):
    pool, _ = make_pool(credential_store, size=1)
    async with pool:
        held = await pool.checkout()
        with pytest.raises(PoolExhaustedError):
            await pool.checkout(timeout=0.05)
        pool.checkin(held)
        again = await pool.checkout(timeout=0.05)
        assert again is held


@pytest.mark.asyncio
async def test_waiters_are_served_in_arrival_order(credential_store):
    pool, _ = make_pool(credential_store, size=1)
    order = []
    async with pool:
        held = await pool.checkout()

        async def wait(name):
            ctx = await pool.checkout(timeout=5)
            order.append(name)
            pool.checkin(ctx)

        tasks = [asyncio.create_task(wait(name)) for name in ("a", "b", "c")]
        await asyncio.sleep(0.05)
        pool.checkin(held)
        await asyncio.gather(*tasks)

    assert order == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_checkin_rejects_unpaired_or_foreign_contexts(credential_store):
    pool, _ = make_pool(credential_store, size=1)
    other, _ = make_pool(credential_store, size=1)
    async with pool, other:
        ctx = await pool.checkout()
        pool.checkin(ctx)
        with pytest.raises(RuntimeError):
            pool.checkin(ctx)

        foreign = await other.checkout()
        with pytest.raises(ValueError):
            pool.checkin(foreign)


@pytest.mark.asyncio
async def test_acquire_releases_on_error(credential_store):
    pool, _ = make_pool(credential_store, size=1)
    async with pool:
        with pytest.raises(KeyError):
            async with pool.acquire():
                raise KeyError("boom")
        assert pool.stats()["available"] == 1


@pytest.mark.asyncio
async def test_closed_or_unstarted_pool_refuses_checkout(credential_store):
    pool, _ = make_pool(credential_store)
    with pytest.raises(PoolExhaustedError):
        await pool.checkout(timeout=0.01)
    await pool.start()
    await pool.close()
    with pytest.raises(PoolExhaustedError):
        await pool.checkout(timeout=0.01)


@pytest.mark.asyncio
async def test_launch_failure_is_reported(credential_store):
    async def launcher():
        raise OSError("no chromium")

    pool = SessionPool(1, credential_store, launcher=launcher)
    with pytest.raises(BiliFetchError, match="no chromium"):
        await pool.start()


@pytest.mark.asyncio
async def test_authenticated_session_loads_default_account(credential_store):
    pool, browsers = make_pool(
        credential_store, size=1, user_agent="UA/1", viewport=(1280, 720)
    )
    async with pool:
        async with await pool.create_authenticated_session() as session:
            assert session.account_name == "main"
            assert pool.stats()["in_use"] == 1
            credential = await session.credentials()

        assert session.closed
        assert pool.stats()["in_use"] == 0
        await session.close()
        assert pool.stats()["available"] == 1

    assert credential.account_name == "main"
    assert credential.has_session
    assert credential.csrf_token == "csrf-main"
    assert browsers[0].context_options == [
        {"user_agent": "UA/1", "viewport": {"width": 1280, "height": 720}}
    ]
    assert browsers[0].contexts[0].closed


@pytest.mark.asyncio
async def test_session_failure_checks_context_back_in(credential_store):
    pool, browsers = make_pool(credential_store, size=1)
    async with pool:
        with pytest.raises(AuthenticationUnavailableError):
            await pool.create_authenticated_session("nobody")
        assert pool.stats()["in_use"] == 0
        assert browsers[0].contexts[0].closed

        credential = await pool.fetch_credential("main", timeout=0.1)
        assert credential.cookies["SESSDATA"] == "sess-main"


@pytest.mark.asyncio
async def test_configured_default_account_is_used(credential_store, cookie_dir):
    (cookie_dir / "alt_bilibili_cookies.json").write_text(
        '[{"name": "SESSDATA", "value": "sess-alt"}]', encoding="utf-8"
    )
    pool, _ = make_pool(credential_store, size=1, default_account="alt")
    async with pool:
        credential = await pool.fetch_credential()
    assert credential.account_name == "alt"
    assert credential.cookies == {"SESSDATA": "sess-alt"}


def test_pool_from_config(tmp_path):
    config = FetchConfig(pool_size=3, cookie_dir=str(tmp_path), checkout_timeout=12)
    pool = SessionPool.from_config(config)
    assert pool.size == 3
    assert pool.checkout_timeout == 12
    assert pool.credential_store.cookie_dir == tmp_path


def test_pool_size_must_be_positive(credential_store):
    with pytest.raises(ValueError):
        SessionPool(0, credential_store, launcher=MagicMock())


@pytest.mark.asyncio
async def test_missing_csrf_token_is_reported(credential_store, cookie_dir, caplog):
    (cookie_dir / "alt_bilibili_cookies.json").write_text(
        '[{"name": "SESSDATA", "value": "sess-alt"}]', encoding="utf-8"
    )
    pool, _ = make_pool(credential_store, size=1)
    async with pool:
        with caplog.at_level(logging.WARNING, logger="bilifetch.browser.pool"):
            credential = await pool.fetch_credential("alt")
            await pool.fetch_credential("main")

    assert credential.csrf_token == ""
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "'alt'" in warnings[0]
