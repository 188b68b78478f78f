"""Direct HTTP fetch strategy."""

from collections.abc import Mapping

import httpx

from core.classify import kind_for_transport_error
from core.config import FetchSettings
from core.exceptions import FetchError, UpstreamStatusError
from core.request_types import RenderResult
from core.validation import guard_hostname

DEFAULT_CONTENT_TYPE = "text/html"


def build_http_client(
    settings: FetchSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared client used by the direct strategy."""
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )
    return httpx.AsyncClient(
        timeout=settings.timeout_seconds,
        limits=limits,
        follow_redirects=True,
        max_redirects=settings.max_redirects,
        event_hooks={"request": [guard_request_host]},
        transport=transport,
    )


async def guard_request_host(request: httpx.Request) -> None:
    """Refuse every outgoing hop, redirects included, to a private host."""
    guard_hostname(request.url.host)


class DirectFetchRenderer:
    """Fetch the target with a plain GET using browser-like headers."""

    name = "direct"

    def __init__(self, client: httpx.AsyncClient, settings: FetchSettings) -> None:
        self._client = client
        self._settings = settings

    async def fetch(self, url: str, headers: Mapping[str, str]) -> RenderResult:
        try:
            response = await self._client.get(
                url,
                headers=dict(headers),
                timeout=self._settings.timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise FetchError(kind_for_transport_error(e), str(e) or type(e).__name__, url=url) from e

        if not 200 <= response.status_code <= 399:
            raise UpstreamStatusError(response.status_code, url=url)

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        result_body: bytes | str
        if "text/html" in content_type.lower():
            result_body = response.text
        else:
            result_body = response.content

        return RenderResult(
            status_code=response.status_code,
            content_type=content_type,
            body=result_body,
            final_url=str(response.url),
        )
