"""FastAPI route handlers."""

import time
from datetime import UTC, datetime

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from core.config import Config
from services.emitter import json_response
from services.render_service import RenderService

DIRECT_ENDPOINT = "/proxy"
BROWSER_ENDPOINT = "/learn"
HEALTH_ENDPOINT = "/health"


def proxy_endpoint_base(request: Request, config: Config) -> str:
    """Externally reachable URL of the direct endpoint, used for rewritten links."""
    if config.server.public_base_url:
        return config.server.public_base_url.rstrip("/") + DIRECT_ENDPOINT

    scheme = request.url.scheme
    host = request.headers.get("host") or request.url.netloc
    if config.server.trust_forwarded:
        scheme = _first_value(request.headers.get("x-forwarded-proto")) or scheme
        host = _first_value(request.headers.get("x-forwarded-host")) or host
    return f"{scheme}://{host}{DIRECT_ENDPOINT}"


async def handle_render(
    request: Request,
    service: RenderService,
    config: Config,
) -> Response:
    """Handle a render endpoint (`/proxy` or `/learn`)."""
    return await service.handle(
        request.query_params.get("url"),
        dict(request.headers),
        proxy_endpoint_base(request, config),
    )


async def handle_preflight(_request: Request) -> JSONResponse:
    """Answer CORS preflight requests."""
    return json_response({"message": "CORS preflight"}, 200)


def method_not_allowed() -> JSONResponse:
    return json_response({"error": "Method not allowed", "allowedMethods": ["GET"]}, 405)


def endpoint_not_found(config: Config) -> JSONResponse:
    return json_response(
        {"error": "Endpoint not found", "availableEndpoints": available_endpoints(config)},
        404,
    )


def available_endpoints(config: Config) -> list[str]:
    endpoints = [HEALTH_ENDPOINT]
    if config.direct_enabled:
        endpoints.append(DIRECT_ENDPOINT)
    if config.browser_enabled:
        endpoints.append(BROWSER_ENDPOINT)
    return endpoints


async def handle_health(request: Request, config: Config) -> JSONResponse:
    """Report uptime and the enabled feature flags."""
    started_at: float = request.app.state.started_at
    manager = getattr(request.app.state, "browser_manager", None)
    endpoints = {"health": HEALTH_ENDPOINT}
    if config.direct_enabled:
        endpoints["proxy"] = f"{DIRECT_ENDPOINT}?url=<TARGET_URL>"
    if config.browser_enabled:
        endpoints["learn"] = f"{BROWSER_ENDPOINT}?url=<TARGET_URL>"

    return json_response(
        {
            "status": "OK",
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": round(time.monotonic() - started_at, 3),
            "port": config.server.port,
            "environment": config.server.environment,
            "strategy": config.strategy,
            "browserMode": config.browser.mode if config.browser_enabled else None,
            "features": {
                "headlessBrowser": config.browser_enabled,
                "browserRunning": bool(manager and manager.is_running),
                "antiBotMeasures": True,
                "headerForwarding": True,
                "throttling": config.throttle.enabled,
                "redirectHandling": True,
                "enhancedLogging": config.server.debug,
                "serverless": config.browser.mode == "per_request",
            },
            "endpoints": endpoints,
        },
        200,
    )


def _first_value(header: str | None) -> str | None:
    if not header:
        return None
    return header.split(",", 1)[0].strip() or None
