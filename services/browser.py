"""Headless browser render strategy.

One ``BrowserManager`` owns the browser handle. In ``persistent`` mode a
single Chromium is launched lazily (or at startup) and shared by every
request; in ``per_request`` mode each render launches and closes its own.
Either way each request gets its own context and page, which are closed on
every exit path.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from enum import Enum
from functools import partial
from typing import Any, Protocol
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from core.classify import kind_for_browser_error
from core.config import BrowserSettings
from core.exceptions import FetchError, SSRFBlockedError
from core.headers import CHROME_USER_AGENT
from core.protocols import RequestLogger
from core.request_types import RenderResult
from core.ssrf import is_blocked
from core.validation import guard_hostname

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-features=VizDisplayCompositor",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-field-trial-config",
    "--disable-back-forward-cache",
    "--disable-ipc-flooding-protection",
    "--window-size=1920,1080",
]


class RenderState(str, Enum):
    """Per-request lifecycle of a browser render."""

    IDLE = "idle"
    BROWSER_ACQUIRED = "browser_acquired"
    PAGE_OPENED = "page_opened"
    NAVIGATING = "navigating"
    CONTENT_EXTRACTED = "content_extracted"
    CLOSED = "closed"


class BrowserHandle(Protocol):
    """What the manager needs from a launched browser."""

    async def new_context(self, **kwargs: Any) -> Any: ...
    def is_connected(self) -> bool: ...
    async def close(self) -> None: ...


Launcher = Callable[[], Awaitable[BrowserHandle]]


class PlaywrightBrowser:
    """A launched Chromium together with the Playwright driver that owns it."""

    def __init__(self, playwright: Any, browser: Any) -> None:
        self._playwright = playwright
        self._browser = browser

    async def new_context(self, **kwargs: Any) -> Any:
        return await self._browser.new_context(**kwargs)

    def is_connected(self) -> bool:
        return self._browser.is_connected()

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


async def launch_chromium(settings: BrowserSettings) -> PlaywrightBrowser:
    """Start a Playwright driver and launch Chromium with anti-detection flags."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(headless=settings.headless, args=CHROMIUM_ARGS)
    except BaseException:
        await playwright.stop()
        raise
    return PlaywrightBrowser(playwright, browser)


class BrowserManager:
    """Own the browser handle and hand out per-request pages."""

    def __init__(
        self,
        settings: BrowserSettings,
        logger: RequestLogger,
        launcher: Launcher | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._launcher = launcher or partial(launch_chromium, settings)
        self._shared: BrowserHandle | None = None
        self._launch_lock = asyncio.Lock()
        self._page_slots = asyncio.Semaphore(settings.max_pages)
        self._browser_slots = asyncio.Semaphore(settings.max_pages)
        self.open_browsers = 0
        self.open_pages = 0

    @property
    def mode(self) -> str:
        return self._settings.mode

    @property
    def is_running(self) -> bool:
        return self._shared is not None and self._shared.is_connected()

    async def start(self) -> None:
        """Launch the shared browser eagerly (persistent mode only)."""
        if self.mode == "persistent":
            await self._shared_browser()

    async def shutdown(self) -> None:
        """Close the shared browser, if any."""
        async with self._launch_lock:
            if self._shared is not None:
                await self._close_browser(self._shared)
                self._shared = None

    @asynccontextmanager
    async def browser(self) -> AsyncIterator[BrowserHandle]:
        """Yield a browser for one request; per-request handles are closed on exit."""
        if self.mode == "persistent":
            yield await self._shared_browser()
            return

        async with self._browser_slots:
            handle = await self._launch()
            try:
                yield handle
            finally:
                await self._close_browser(handle)

    @asynccontextmanager
    async def page(
        self,
        browser: BrowserHandle,
        *,
        user_agent: str,
        headers: Mapping[str, str],
    ) -> AsyncIterator[Any]:
        """Open a context and page owned by the caller; both close on exit."""
        async with self._page_slots:
            context = await browser.new_context(
                user_agent=user_agent,
                viewport={
                    "width": self._settings.viewport_width,
                    "height": self._settings.viewport_height,
                },
                extra_http_headers=dict(headers),
                locale="en-US",
                java_script_enabled=True,
            )
            try:
                page = await context.new_page()
            except BaseException:
                await self._close_quietly(context, "context")
                raise

            self.open_pages += 1
            try:
                yield page
            finally:
                self.open_pages -= 1
                await self._close_quietly(page, "page")
                await self._close_quietly(context, "context")

    async def _shared_browser(self) -> BrowserHandle:
        if self._shared is not None and self._shared.is_connected():
            return self._shared

        async with self._launch_lock:
            # Double-check after acquiring lock
            if self._shared is not None and self._shared.is_connected():
                return self._shared
            if self._shared is not None:
                self._logger.log_warning("Shared browser disconnected, relaunching")
                await self._close_browser(self._shared)
            self._shared = await self._launch()
            return self._shared

    async def _launch(self) -> BrowserHandle:
        handle = await self._launcher()
        self.open_browsers += 1
        return handle

    async def _close_browser(self, handle: BrowserHandle) -> None:
        self.open_browsers -= 1
        await self._close_quietly(handle, "browser")

    async def _close_quietly(self, resource: Any, label: str) -> None:
        try:
            await resource.close()
        except Exception as e:
            self._logger.log_warning(f"Could not close {label}", error=e)


class PrivateNetworkFilter:
    """Route handler aborting page requests, redirect hops included, to private hosts."""

    def __init__(self) -> None:
        self.blocked: list[str] = []

    async def handle(self, route: Any) -> None:
        hostname = urlsplit(route.request.url).hostname
        if hostname and is_blocked(hostname):
            self.blocked.append(hostname)
            await route.abort("blockedbyclient")
            return
        await route.continue_()

    def blocked_navigation(self, error: PlaywrightError) -> str | None:
        """Host whose abort made the navigation fail, if any."""
        if self.blocked and "ERR_BLOCKED_BY_CLIENT" in str(error):
            return self.blocked[-1]
        return None


class BrowserRenderer:
    """Render the target in headless Chromium and return the final DOM."""

    name = "browser"

    def __init__(self, manager: BrowserManager, settings: BrowserSettings) -> None:
        self._manager = manager
        self._settings = settings

    async def fetch(self, url: str, headers: Mapping[str, str]) -> RenderResult:
        user_agent, extra_headers = _split_user_agent(headers)
        request_filter = PrivateNetworkFilter()
        trail = [RenderState.IDLE]
        try:
            async with self._manager.browser() as browser:
                trail.append(RenderState.BROWSER_ACQUIRED)
                async with self._manager.page(
                    browser, user_agent=user_agent, headers=extra_headers
                ) as page:
                    trail.append(RenderState.PAGE_OPENED)
                    await page.route("**/*", request_filter.handle)
                    trail.append(RenderState.NAVIGATING)
                    response = await page.goto(
                        url,
                        wait_until="networkidle",
                        timeout=self._settings.navigation_timeout_ms,
                    )
                    final_url = page.url or url
                    guard_hostname(urlsplit(final_url).hostname)
                    if self._settings.settle_ms:
                        await page.wait_for_timeout(self._settings.settle_ms)
                    html = await page.content()
                    trail.append(RenderState.CONTENT_EXTRACTED)
                    status = response.status if response is not None else 200
        except PlaywrightError as e:
            blocked_host = request_filter.blocked_navigation(e)
            if blocked_host:
                raise SSRFBlockedError(blocked_host) from e
            raise FetchError(
                kind_for_browser_error(e),
                f"{e} (state: {_format_trail(trail)})",
                url=url,
            ) from e
        finally:
            trail.append(RenderState.CLOSED)

        return RenderResult(
            status_code=status,
            content_type="text/html",
            body=html,
            final_url=final_url,
        )


def _format_trail(trail: list[RenderState]) -> str:
    return " -> ".join(state.value for state in trail)


def _split_user_agent(headers: Mapping[str, str]) -> tuple[str, dict[str, str]]:
    user_agent = CHROME_USER_AGENT
    extra: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() == "user-agent":
            user_agent = value
        else:
            extra[name] = value
    return user_agent, extra
