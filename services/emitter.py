"""HTTP response construction for render results and classified errors."""

from typing import Any

from fastapi import Response
from fastapi.responses import JSONResponse

from core.classify import ErrorClassification
from core.exceptions import ErrorKind
from core.request_types import RenderResult

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With",
    "Access-Control-Max-Age": "86400",
}

HTML_HEADERS = {
    "Content-Type": "text/html; charset=utf-8",
    "X-Frame-Options": "ALLOWALL",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

PASSTHROUGH_CACHE_CONTROL = "public, max-age=3600"

INVALID_URL_DETAILS = "Please provide a valid URL with protocol (http:// or https://)"


class ResponseEmitter:
    """Serialize results with iframe-friendly headers."""

    def __init__(self, *, include_details: bool) -> None:
        self._include_details = include_details

    def emit(self, result: RenderResult) -> Response:
        """Build the success response for a render result."""
        if result.is_html:
            body = result.body.encode("utf-8") if isinstance(result.body, str) else result.body
            return Response(content=body, status_code=200, headers={**HTML_HEADERS, **CORS_HEADERS})

        headers = {
            "Content-Type": result.content_type,
            "Cache-Control": PASSTHROUGH_CACHE_CONTROL,
            **CORS_HEADERS,
        }
        return Response(content=result.body, status_code=200, headers=headers)

    def emit_error(self, classification: ErrorClassification, url: str | None) -> JSONResponse:
        """Build the JSON error envelope for a classified failure."""
        content: dict[str, Any] = {"error": classification.user_message}

        if classification.kind is ErrorKind.VALIDATION_MISSING_URL:
            content["usage"] = classification.extra.get("usage", "")
        elif classification.kind is ErrorKind.VALIDATION_BAD_URL:
            content["details"] = INVALID_URL_DETAILS
        elif classification.kind is ErrorKind.SSRF_BLOCKED:
            content["hostname"] = classification.extra.get("hostname", "")
        else:
            content["url"] = url
            content["statusCode"] = classification.http_status
            if self._include_details:
                content["details"] = classification.cause_detail

        return json_response(content, classification.http_status)


def json_response(content: dict[str, Any], status_code: int) -> JSONResponse:
    """JSON response carrying the CORS headers."""
    return JSONResponse(content=content, status_code=status_code, headers=dict(CORS_HEADERS))
