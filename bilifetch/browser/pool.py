"""
A fixed-size pool of headless browser instances used to materialize
authenticated sessions.

Browsers are expensive to launch, so the pool launches them once and lends
them out one caller at a time. Each authenticated session runs in its own
isolated browser context loaded with one account's cookies; once the
credentials have been read the context is closed and the browser goes back
to the pool.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from bilifetch.api.auth import CSRF_COOKIE, Credential
from bilifetch.exceptions import BiliFetchError, PoolExhaustedError
from bilifetch.models.config import DEFAULT_USER_AGENT, FetchConfig
from bilifetch.storage.credentials import CredentialStore

log = logging.getLogger(__name__)

BrowserLauncher = Callable[[], Awaitable[Any]]

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]


@dataclass(eq=False)
class ExecutionContext:
    """One pooled browser instance."""

    browser: Any
    index: int
    created_at: float = field(default_factory=time.time)
    last_used_at: float = field(default_factory=time.time)
    in_use: bool = False


class SessionPool:
    """
    Lends a fixed number of browser instances to concurrent callers.

    Callers beyond capacity wait in arrival order until an instance is
    checked back in or their checkout timeout elapses.
    """

    def __init__(
        self,
        size: int,
        credential_store: CredentialStore,
        *,
        default_account: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
        viewport: tuple[int, int] = (1920, 1080),
        headless: bool = True,
        checkout_timeout: float = 30.0,
        launcher: Optional[BrowserLauncher] = None,
    ):
        """
        Initializes the pool. No browser is launched until `start()`.

        Args:
            size: Number of browser instances; fixed for the pool's lifetime.
            credential_store: Read-only source of account cookies.
            default_account: Account used when a session names none; when empty
                the store's default account is used.
            user_agent: User agent of every authenticated browser context.
            viewport: Width and height of every authenticated browser context.
            headless: Launch browsers without a window.
            checkout_timeout: Default seconds a checkout waits for a free instance.
            launcher: Coroutine factory returning a browser; defaults to chromium
                through playwright.
        """
        if size < 1:
            raise ValueError("Pool size must be at least 1.")
        self.size = size
        self.credential_store = credential_store
        self.default_account = default_account
        self.user_agent = user_agent
        self.viewport = viewport
        self.headless = headless
        self.checkout_timeout = checkout_timeout

        self._launcher = launcher
        self._playwright: Any = None
        self._contexts: list[ExecutionContext] = []
        self._available: asyncio.Queue[ExecutionContext] = asyncio.Queue(maxsize=size)
        self._started = False
        self._closed = False

    @classmethod
    def from_config(
        cls, config: FetchConfig, credential_store: Optional[CredentialStore] = None
    ) -> "SessionPool":
        return cls(
            config.pool_size,
            credential_store or CredentialStore(Path(config.cookie_dir)),
            default_account=config.default_account,
            user_agent=config.user_agent,
            viewport=(config.viewport_width, config.viewport_height),
            headless=config.headless,
            checkout_timeout=config.checkout_timeout,
        )

    async def start(self) -> None:
        """Launches every browser instance of the pool."""
        if self._started:
            return
        self._started = True

        launcher = self._launcher
        if launcher is None:
            self._playwright = await async_playwright().start()

            def launcher() -> Awaitable[Any]:
                return self._playwright.chromium.launch(
                    headless=self.headless, args=CHROMIUM_ARGS
                )

        try:
            for i in range(self.size):
                browser = await launcher()
                ctx = ExecutionContext(browser=browser, index=i)
                self._contexts.append(ctx)
                self._available.put_nowait(ctx)
        except Exception as e:
            await self.close()
            raise BiliFetchError(f"Failed to launch browser instance {i}: {e}") from e

        log.info(f"Browser pool ready with {self.size} instance(s)")

    async def close(self) -> None:
        """Closes every browser instance; later checkouts fail."""
        if self._closed:
            return
        self._closed = True

        for ctx in self._contexts:
            try:
                await ctx.browser.close()
            except PlaywrightError as e:
                log.warning(f"[yellow]Failed to close browser {ctx.index}: {e}[/yellow]")

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        log.info("Browser pool closed")

    async def __aenter__(self) -> "SessionPool":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def checkout(self, timeout: Optional[float] = None) -> ExecutionContext:
        """
        Takes a free browser instance, waiting up to `timeout` seconds.

        Raises:
            PoolExhaustedError: If the pool is closed or no instance became
            free in time.
        """
        if self._closed:
            raise PoolExhaustedError("Browser pool is closed.")
        if not self._started:
            raise PoolExhaustedError("Browser pool has not been started.")

        wait_s = self.checkout_timeout if timeout is None else timeout
        try:
            ctx = await asyncio.wait_for(self._available.get(), timeout=wait_s)
        except asyncio.TimeoutError as e:
            raise PoolExhaustedError(
                f"No browser instance became free within {wait_s:.0f}s."
            ) from e

        ctx.in_use = True
        ctx.last_used_at = time.time()
        log.debug(f"Checked out browser {ctx.index}")
        return ctx

    def checkin(self, ctx: ExecutionContext) -> None:
        """
        Returns a checked-out instance to the pool.

        Raises:
            ValueError: If the instance does not belong to this pool.
            RuntimeError: If the instance is not checked out.
        """
        if ctx not in self._contexts:
            raise ValueError("Execution context does not belong to this pool.")
        if not ctx.in_use:
            raise RuntimeError(f"Browser {ctx.index} is not checked out.")

        ctx.in_use = False
        ctx.last_used_at = time.time()
        if not self._closed:
            self._available.put_nowait(ctx)
        log.debug(f"Checked in browser {ctx.index}")

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None) -> AsyncIterator[ExecutionContext]:
        """Checks out an instance for the duration of the block."""
        ctx = await self.checkout(timeout)
        try:
            yield ctx
        finally:
            self.checkin(ctx)

    async def create_authenticated_session(
        self, account_name: Optional[str] = None, timeout: Optional[float] = None
    ) -> "AuthenticatedSession":
        """
        Opens an isolated browser context loaded with an account's cookies.

        Args:
            account_name: Account to load; the default account when omitted.
            timeout: Checkout timeout override.

        Raises:
            PoolExhaustedError: If no browser instance became free.
            AuthenticationUnavailableError: If the account or its cookies
            cannot be loaded.
        """
        ctx = await self.checkout(timeout)
        browser_context = None
        try:
            browser_context = await ctx.browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": self.viewport[0], "height": self.viewport[1]},
            )

            name = account_name or self.default_account
            if not name:
                account = await asyncio.to_thread(self.credential_store.get_default_account)
                name = account.name
                log.info(f"Using default account '{name}'")

            cookies = await asyncio.to_thread(self.credential_store.load_cookies, name)
            await browser_context.add_cookies([c.to_browser_cookie() for c in cookies])
        except BaseException as e:
            if browser_context is not None:
                await _close_quietly(browser_context)
            self.checkin(ctx)
            if isinstance(e, PlaywrightError):
                raise BiliFetchError(f"Failed to prepare browser session: {e}") from e
            raise

        return AuthenticatedSession(self, ctx, browser_context, name)

    async def fetch_credential(
        self, account_name: Optional[str] = None, timeout: Optional[float] = None
    ) -> Credential:
        """Opens a session, reads its cookies and releases the browser again."""
        session = await self.create_authenticated_session(account_name, timeout)
        async with session:
            return await session.credentials()

    def stats(self) -> dict[str, Any]:
        in_use = sum(1 for ctx in self._contexts if ctx.in_use)
        return {
            "total": len(self._contexts),
            "in_use": in_use,
            "available": len(self._contexts) - in_use,
            "closed": self._closed,
        }


async def _close_quietly(browser_context: Any) -> None:
    try:
        await browser_context.close()
    except PlaywrightError as e:
        log.debug(f"Ignoring error while closing browser context: {e}")


class AuthenticatedSession:
    """
    A short-lived authenticated browser context.

    Closing it closes the browser context and checks the browser instance
    back into its pool; closing twice is a no-op.
    """

    def __init__(
        self,
        pool: SessionPool,
        context: ExecutionContext,
        browser_context: Any,
        account_name: str,
    ):
        self._pool = pool
        self._context = context
        self._browser_context = browser_context
        self.account_name = account_name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def credentials(self) -> Credential:
        """Extracts the account's current cookie set from the browser context."""
        if self._closed:
            raise RuntimeError("Session is already closed.")
        cookies = await self._browser_context.cookies()
        credential = Credential.from_cookies(cookies, account_name=self.account_name)
        if not credential.csrf_token:
            log.warning(
                f"[yellow]Cookies of account '{self.account_name}' carry no CSRF token"
                f" ({CSRF_COOKIE})[/yellow]"
            )
        return credential

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await _close_quietly(self._browser_context)
        finally:
            self._pool.checkin(self._context)

    async def __aenter__(self) -> "AuthenticatedSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
