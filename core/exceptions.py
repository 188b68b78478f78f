"""Custom exception hierarchy for the embed proxy."""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable failure taxonomy exposed through the HTTP contract."""

    VALIDATION_MISSING_URL = "VALIDATION_MISSING_URL"
    VALIDATION_BAD_URL = "VALIDATION_BAD_URL"
    SSRF_BLOCKED = "SSRF_BLOCKED"
    DNS_NOT_FOUND = "DNS_NOT_FOUND"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_ABORTED = "UPSTREAM_ABORTED"
    UPSTREAM_STATUS = "UPSTREAM_STATUS"
    BROWSER_PROTOCOL_ERROR = "BROWSER_PROTOCOL_ERROR"
    BROWSER_SESSION_EXPIRED = "BROWSER_SESSION_EXPIRED"
    RATE_LIMITED_UPSTREAM = "RATE_LIMITED_UPSTREAM"
    TLS_FAILURE = "TLS_FAILURE"
    INTERNAL = "INTERNAL"


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid."""


class ValidationError(ProxyError):
    """Raised when the inbound request does not name a usable target."""


class MissingURLError(ValidationError):
    """No `url` query parameter was supplied."""


class InvalidURLError(ValidationError):
    """The `url` parameter is not an absolute http(s) URL."""


class SSRFBlockedError(ProxyError):
    """Raised when the target hostname points at a private network."""

    def __init__(self, hostname: str) -> None:
        super().__init__(f"Blocked private hostname: {hostname}")
        self.hostname = hostname


class FetchError(ProxyError):
    """Raised by a fetch strategy, tagged with the failure kind.

    Attributes:
        kind: Classified failure kind
        url: Target URL being fetched (optional)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url


class UpstreamStatusError(FetchError):
    """Raised when the target answers outside the 200-399 range."""

    def __init__(
        self,
        status_code: int,
        url: str | None = None,
    ) -> None:
        kind = ErrorKind.RATE_LIMITED_UPSTREAM if status_code == 429 else ErrorKind.UPSTREAM_STATUS
        super().__init__(kind, f"Upstream returned HTTP {status_code}", url=url)
        self.status_code = status_code
