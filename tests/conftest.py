"""Shared fixtures: isolated logs, a recording logger, fake browsers, app clients."""

import asyncio
from contextlib import AsyncExitStack

import httpx
import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError

from app import create_app
from core.config import Config
from ui import log_utils


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setattr(log_utils, "LOG_ROOT", tmp_path / "logs")
    monkeypatch.setattr(log_utils, "CLI_LOG_FILE", tmp_path / "logs" / "proxy.log")


class RecordingLogger:
    """In-memory RequestLogger."""

    def __init__(self):
        self.renders: list[dict] = []
        self.errors: list[tuple[str, int, str]] = []
        self.warnings: list[tuple[str, dict]] = []

    def log_render(self, strategy, url, status, elapsed_ms, *, content_type, headers=None):
        self.renders.append(
            {"strategy": strategy, "url": url, "status": status, "content_type": content_type}
        )

    def log_error(self, route, status, message):
        self.errors.append((route, status, message))

    def log_warning(self, message, **extra):
        self.warnings.append((message, extra))


@pytest.fixture
def logger():
    return RecordingLogger()


class FakeResponse:
    def __init__(self, status: int):
        self.status = status


class FakeRoute:
    def __init__(self, url: str):
        self.request = type("FakeRequest", (), {"url": url})()
        self.aborted: str | None = None
        self.continued = False

    async def abort(self, error_code=None):
        self.aborted = error_code or "failed"

    async def continue_(self):
        self.continued = True


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self._browser = browser
        self.url = "about:blank"
        self.closed = False
        self.goto_calls: list[dict] = []
        self.waits: list[int] = []
        self.routes: list[FakeRoute] = []
        self._route_handler = None

    async def route(self, pattern, handler):
        self._route_handler = handler

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        await asyncio.sleep(self._browser.navigation_delay)
        hops = [url, *self._browser.redirects.get(url, [])]
        routed = hops if self._browser.route_redirects else hops[:1]
        for hop in routed:
            if self._route_handler is None:
                break
            route = FakeRoute(hop)
            self.routes.append(route)
            await self._route_handler(route)
            if route.aborted:
                raise PlaywrightError(f"net::ERR_BLOCKED_BY_CLIENT at {hop}")
        outcome = self._browser.behavior(url)
        if isinstance(outcome, BaseException):
            raise outcome
        self.url = hops[-1]
        self._html = outcome
        return FakeResponse(200)

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)

    async def content(self):
        return self._html

    async def close(self):
        if not self.closed:
            self.closed = True
            self._browser.open_pages -= 1
        if self._browser.fail_page_close:
            raise RuntimeError("page close failed")


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: dict):
        self._browser = browser
        self.options = options
        self.pages: list[FakePage] = []
        self.closed = False

    async def new_page(self):
        page = FakePage(self._browser)
        self.pages.append(page)
        self._browser.open_pages += 1
        self._browser.max_open_pages = max(self._browser.max_open_pages, self._browser.open_pages)
        if self._browser.on_page_open:
            self._browser.on_page_open(self._browser)
        return page

    async def close(self):
        self.closed = True


class FakeBrowser:
    """Stand-in for a launched Playwright browser."""

    def __init__(self, behavior, navigation_delay: float = 0.0, redirects=None):
        self.behavior = behavior
        self.navigation_delay = navigation_delay
        # url -> hops the navigation is redirected through
        self.redirects: dict[str, list[str]] = redirects or {}
        self.route_redirects = True
        self.contexts: list[FakeContext] = []
        self.open_pages = 0
        self.max_open_pages = 0
        self.connected = True
        self.closed = False
        self.fail_page_close = False
        self.fail_close = False
        self.on_page_open = None

    async def new_context(self, **kwargs):
        context = FakeContext(self, kwargs)
        self.contexts.append(context)
        return context

    def is_connected(self):
        return self.connected and not self.closed

    async def close(self):
        self.closed = True
        if self.fail_close:
            raise RuntimeError("browser close failed")

    @property
    def pages(self) -> list[FakePage]:
        return [page for context in self.contexts for page in context.pages]


class FakeLauncher:
    """Launcher returning a fresh FakeBrowser per launch."""

    def __init__(self, behavior=None, navigation_delay: float = 0.0):
        self.behavior = behavior or (lambda url: f"<html><head></head><body>{url}</body></html>")
        self.navigation_delay = navigation_delay
        self.launched: list[FakeBrowser] = []
        self.redirects: dict[str, list[str]] = {}
        self.max_live = 0
        self.fail_with: BaseException | None = None
        self.configure = None

    async def __call__(self):
        if self.fail_with is not None:
            raise self.fail_with
        browser = FakeBrowser(self.behavior, self.navigation_delay, self.redirects)
        if self.configure:
            self.configure(browser)
        self.launched.append(browser)
        self.max_live = max(self.max_live, sum(not b.closed for b in self.launched))
        return browser


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def make_launcher():
    return FakeLauncher


def make_config(**overrides) -> Config:
    """Test config: no throttle, no settle delay, no eager browser launch."""
    data = {
        "throttle": {"enabled": False},
        "browser": {"launch_on_startup": False, "settle_ms": 0},
    }
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return Config.model_validate(data)


@pytest.fixture
def config_factory():
    return make_config


@pytest_asyncio.fixture
async def client_factory(logger):
    """Build an app with a mocked network and browser, lifespan entered."""
    async with AsyncExitStack() as stack:

        async def make(config: Config, handler=None, launcher=None) -> httpx.AsyncClient:
            transport = httpx.MockTransport(handler) if handler else None
            app = create_app(config, logger, transport=transport, launcher=launcher)
            await stack.enter_async_context(app.router.lifespan_context(app))
            client = httpx.AsyncClient(
                transport=httpx.ASGITransport(app=app),
                base_url="http://testserver",
            )
            await stack.enter_async_context(client)
            client.app = app
            return client

        yield make
