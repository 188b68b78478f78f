"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.handlers import (
    BROWSER_ENDPOINT,
    DIRECT_ENDPOINT,
    HEALTH_ENDPOINT,
    endpoint_not_found,
    handle_health,
    handle_preflight,
    handle_render,
    method_not_allowed,
)
from core.config import Config
from core.headers import BROWSER_POLICY, DIRECT_POLICY, HeaderBuilder
from core.protocols import RequestLogger
from core.rewrite import URLRewriter
from services.browser import BrowserManager, BrowserRenderer, Launcher
from services.direct import DirectFetchRenderer, build_http_client
from services.emitter import ResponseEmitter, json_response
from services.render_service import RenderService


def create_app(
    config: Config,
    logger: RequestLogger,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    launcher: Launcher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    `transport` and `launcher` replace the network and the browser (tests).
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client = build_http_client(config.fetch, transport)
        emitter = ResponseEmitter(include_details=not config.server.is_production)
        header_builder = HeaderBuilder()
        rewriter = URLRewriter(logger)
        browser_manager: BrowserManager | None = None

        app.state.started_at = time.monotonic()
        if config.direct_enabled:
            app.state.direct_service = RenderService(
                endpoint=DIRECT_ENDPOINT,
                strategy=DirectFetchRenderer(http_client, config.fetch),
                policy=DIRECT_POLICY,
                throttle=config.throttle,
                logger=logger,
                emitter=emitter,
                header_builder=header_builder,
                rewriter=rewriter,
            )
        if config.browser_enabled:
            browser_manager = BrowserManager(config.browser, logger, launcher)
            app.state.browser_manager = browser_manager
            # Rendered pages only route links through /proxy when it is mounted
            rewrite_rendered = config.direct_enabled and config.browser.rewrite_links
            app.state.browser_service = RenderService(
                endpoint=BROWSER_ENDPOINT,
                strategy=BrowserRenderer(browser_manager, config.browser),
                policy=BROWSER_POLICY,
                throttle=config.throttle,
                logger=logger,
                emitter=emitter,
                header_builder=header_builder,
                rewriter=rewriter if rewrite_rendered else None,
            )
            if browser_manager.mode == "persistent" and config.browser.launch_on_startup:
                try:
                    await browser_manager.start()
                except Exception as e:
                    # Lazy launch on first request will retry
                    logger.log_warning("Failed to initialize browser", error=e)
        try:
            yield
        finally:
            await http_client.aclose()
            if browser_manager is not None:
                await browser_manager.shutdown()

    app = FastAPI(title="Embed Proxy", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return endpoint_not_found(config)
        if exc.status_code == 405:
            return method_not_allowed()
        return json_response({"error": str(exc.detail)}, exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.log_error("app", 500, f"Unhandled error: {exc}")
        content = {"error": "Internal server error"}
        if not config.server.is_production:
            content["details"] = str(exc)
        return json_response(content, 500)

    @app.get(HEALTH_ENDPOINT)
    async def health(request: Request):
        return await handle_health(request, config)

    if config.direct_enabled:

        @app.get(DIRECT_ENDPOINT)
        async def proxy(request: Request):
            return await handle_render(request, request.app.state.direct_service, config)

        app.add_api_route(DIRECT_ENDPOINT, handle_preflight, methods=["OPTIONS"])

    if config.browser_enabled:

        @app.get(BROWSER_ENDPOINT)
        async def learn(request: Request):
            return await handle_render(request, request.app.state.browser_service, config)

        app.add_api_route(BROWSER_ENDPOINT, handle_preflight, methods=["OPTIONS"])

    return app
