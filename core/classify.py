"""Failure classification into the stable HTTP error contract.

Structured signals are consulted first: our own tagged exceptions, httpx
exception types, the exception cause chain (``socket.gaierror``,
``ConnectionRefusedError``, ``ssl.SSLCertVerificationError``...) and Chromium
``net::ERR_*`` codes carried by Playwright errors. Message substrings are the
last resort.
"""

import asyncio
import re
import socket
import ssl
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.exceptions import (
    ErrorKind,
    FetchError,
    InvalidURLError,
    MissingURLError,
    SSRFBlockedError,
    UpstreamStatusError,
)


@dataclass(frozen=True)
class ErrorClassification:
    """Classified failure ready for emission."""

    kind: ErrorKind
    http_status: int
    user_message: str
    cause_detail: str = ""
    extra: Mapping[str, str] = field(default_factory=dict)


# kind -> (http status, user message); UPSTREAM_STATUS takes the upstream's status
ERROR_TABLE: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.VALIDATION_MISSING_URL: (400, "URL parameter is required"),
    ErrorKind.VALIDATION_BAD_URL: (400, "Invalid URL format"),
    ErrorKind.SSRF_BLOCKED: (403, "Access to private IPs is not allowed"),
    ErrorKind.DNS_NOT_FOUND: (404, "Website not found. Please check the URL."),
    ErrorKind.CONNECTION_REFUSED: (503, "Connection refused. The website may be down."),
    ErrorKind.TIMEOUT: (504, "Page load timeout. The website is taking too long to respond."),
    ErrorKind.UPSTREAM_ABORTED: (
        403,
        "Request was aborted. The website may have blocked the request.",
    ),
    ErrorKind.UPSTREAM_STATUS: (502, "Website returned an error"),
    ErrorKind.BROWSER_PROTOCOL_ERROR: (502, "Protocol error occurred while loading the page."),
    ErrorKind.BROWSER_SESSION_EXPIRED: (408, "Browser session expired. Please try again."),
    ErrorKind.RATE_LIMITED_UPSTREAM: (
        429,
        "Too many requests. The website is rate limiting requests.",
    ),
    ErrorKind.TLS_FAILURE: (526, "SSL certificate is not trusted or has expired."),
    ErrorKind.INTERNAL: (500, "Failed to load the requested website"),
}

# Chromium network error codes (net::ERR_*) surfaced by Playwright navigation
CHROMIUM_NET_ERRORS: dict[str, ErrorKind] = {
    "ERR_NAME_NOT_RESOLVED": ErrorKind.DNS_NOT_FOUND,
    "ERR_NAME_RESOLUTION_FAILED": ErrorKind.DNS_NOT_FOUND,
    "ERR_ADDRESS_UNREACHABLE": ErrorKind.CONNECTION_REFUSED,
    "ERR_CONNECTION_REFUSED": ErrorKind.CONNECTION_REFUSED,
    "ERR_CONNECTION_FAILED": ErrorKind.CONNECTION_REFUSED,
    "ERR_TIMED_OUT": ErrorKind.TIMEOUT,
    "ERR_CONNECTION_TIMED_OUT": ErrorKind.TIMEOUT,
    "ERR_ABORTED": ErrorKind.UPSTREAM_ABORTED,
    "ERR_CONNECTION_RESET": ErrorKind.UPSTREAM_ABORTED,
    "ERR_CONNECTION_CLOSED": ErrorKind.UPSTREAM_ABORTED,
    "ERR_EMPTY_RESPONSE": ErrorKind.UPSTREAM_ABORTED,
    "ERR_BLOCKED_BY_RESPONSE": ErrorKind.UPSTREAM_ABORTED,
    "ERR_TOO_MANY_REDIRECTS": ErrorKind.UPSTREAM_ABORTED,
    "ERR_SSL_PROTOCOL_ERROR": ErrorKind.TLS_FAILURE,
}
NET_ERROR_PATTERN = re.compile(r"net::(ERR_[A-Z0-9_]+)")

# Last-resort message fragments, checked in order
MESSAGE_FALLBACKS: tuple[tuple[str, ErrorKind], ...] = (
    ("target page, context or browser has been closed", ErrorKind.BROWSER_SESSION_EXPIRED),
    ("browser has been closed", ErrorKind.BROWSER_SESSION_EXPIRED),
    ("navigation timeout", ErrorKind.TIMEOUT),
    ("timed out", ErrorKind.TIMEOUT),
    ("name or service not known", ErrorKind.DNS_NOT_FOUND),
    ("nodename nor servname", ErrorKind.DNS_NOT_FOUND),
    ("temporary failure in name resolution", ErrorKind.DNS_NOT_FOUND),
    ("getaddrinfo failed", ErrorKind.DNS_NOT_FOUND),
    ("connection refused", ErrorKind.CONNECTION_REFUSED),
    ("certificate_verify_failed", ErrorKind.TLS_FAILURE),
    ("certificate has expired", ErrorKind.TLS_FAILURE),
    ("protocol error", ErrorKind.BROWSER_PROTOCOL_ERROR),
)


def classify(error: BaseException, *, usage: str = "") -> ErrorClassification:
    """Map any pipeline failure to exactly one classification."""
    detail = str(error) or type(error).__name__

    if isinstance(error, MissingURLError):
        return _build(ErrorKind.VALIDATION_MISSING_URL, detail, extra={"usage": usage})
    if isinstance(error, InvalidURLError):
        return _build(ErrorKind.VALIDATION_BAD_URL, detail)
    if isinstance(error, SSRFBlockedError):
        return _build(ErrorKind.SSRF_BLOCKED, detail, extra={"hostname": error.hostname})
    if isinstance(error, UpstreamStatusError):
        return _upstream_status(error.status_code, detail)
    if isinstance(error, FetchError):
        return _build(error.kind, detail)

    return _build(kind_for_exception(error), detail)


def kind_for_exception(error: BaseException) -> ErrorKind:
    """Best structured guess for a raw transport or browser exception."""
    if isinstance(error, FetchError):
        return error.kind
    if isinstance(error, PlaywrightError):
        return kind_for_browser_error(error)
    if isinstance(error, httpx.HTTPError):
        return kind_for_transport_error(error)
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    kind = _kind_from_cause_chain(error)
    if kind is not None:
        return kind
    return _kind_from_message(error) or ErrorKind.INTERNAL


def kind_for_transport_error(error: httpx.HTTPError) -> ErrorKind:
    """Classify an httpx failure by type, then by its underlying OS error."""
    if isinstance(error, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    kind = _kind_from_cause_chain(error)
    if kind is not None:
        return kind
    if isinstance(error, httpx.RemoteProtocolError):
        return ErrorKind.UPSTREAM_ABORTED
    if isinstance(error, httpx.ReadError):
        return ErrorKind.UPSTREAM_ABORTED
    if isinstance(error, httpx.TooManyRedirects):
        return ErrorKind.UPSTREAM_ABORTED
    return _kind_from_message(error) or ErrorKind.INTERNAL


def kind_for_browser_error(error: PlaywrightError) -> ErrorKind:
    """Classify a Playwright failure by type, then by its net::ERR_* code."""
    if isinstance(error, PlaywrightTimeoutError):
        return ErrorKind.TIMEOUT
    message = str(error)
    match = NET_ERROR_PATTERN.search(message)
    if match:
        code = match.group(1)
        if code.startswith("ERR_CERT_"):
            return ErrorKind.TLS_FAILURE
        if code in CHROMIUM_NET_ERRORS:
            return CHROMIUM_NET_ERRORS[code]
    return _kind_from_message(error) or ErrorKind.INTERNAL


def _iter_causes(error: BaseException) -> Iterator[BaseException]:
    """Walk the cause chain depth-first, including every member of exception groups."""
    seen: set[int] = set()
    pending: list[BaseException] = [error]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        cause = current.__cause__ or current.__context__
        if cause is not None:
            pending.append(cause)
        # anyio groups one failure per address tried when connecting
        if isinstance(current, BaseExceptionGroup):
            pending.extend(reversed(current.exceptions))


def _kind_from_cause_chain(error: BaseException) -> ErrorKind | None:
    for exc in _iter_causes(error):
        if isinstance(exc, socket.gaierror):
            return ErrorKind.DNS_NOT_FOUND
        if isinstance(exc, ssl.SSLCertVerificationError):
            return ErrorKind.TLS_FAILURE
        if isinstance(exc, ConnectionRefusedError):
            return ErrorKind.CONNECTION_REFUSED
        if isinstance(exc, (ConnectionResetError, ConnectionAbortedError)):
            return ErrorKind.UPSTREAM_ABORTED
        if isinstance(exc, (socket.timeout, TimeoutError)):
            return ErrorKind.TIMEOUT
    return None


def _kind_from_message(error: BaseException) -> ErrorKind | None:
    for exc in _iter_causes(error):
        message = str(exc).lower()
        for fragment, kind in MESSAGE_FALLBACKS:
            if fragment in message:
                return kind
    return None


def _upstream_status(status_code: int, detail: str) -> ErrorClassification:
    if status_code == 429:
        return _build(ErrorKind.RATE_LIMITED_UPSTREAM, detail)
    if status_code == 403:
        message = "Access denied. The website blocked the request (403 Forbidden)."
    else:
        message = f"Website returned error {status_code}"
    return ErrorClassification(
        kind=ErrorKind.UPSTREAM_STATUS,
        http_status=status_code,
        user_message=message,
        cause_detail=detail,
    )


def _build(
    kind: ErrorKind,
    detail: str,
    extra: Mapping[str, str] | None = None,
) -> ErrorClassification:
    status, message = ERROR_TABLE[kind]
    return ErrorClassification(
        kind=kind,
        http_status=status,
        user_message=message,
        cause_detail=detail,
        extra=dict(extra or {}),
    )
