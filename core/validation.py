"""Inbound target validation."""

from collections.abc import Mapping
from urllib.parse import urlsplit

from core.exceptions import InvalidURLError, MissingURLError, SSRFBlockedError
from core.request_types import TargetRequest
from core.ssrf import is_blocked

ALLOWED_SCHEMES = ("http", "https")


def parse_target(raw_url: str | None, forwarded_headers: Mapping[str, str]) -> TargetRequest:
    """Validate the `url` parameter and return the request target.

    Raises:
        MissingURLError: no url was supplied
        InvalidURLError: url is not an absolute http(s) URL
    """
    if raw_url is None or not raw_url.strip():
        raise MissingURLError("URL parameter is required")

    url = raw_url.strip()
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise InvalidURLError(f"Unparsable URL: {e}") from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURLError(f"Unsupported or missing scheme in {url!r}")
    if not hostname:
        raise InvalidURLError(f"Missing hostname in {url!r}")
    if any(ch.isspace() for ch in parts.netloc):
        raise InvalidURLError(f"Whitespace in host of {url!r}")

    return TargetRequest(
        raw_url=raw_url,
        url=url,
        hostname=hostname,
        forwarded_headers=dict(forwarded_headers),
    )


def guard_target(target: TargetRequest) -> None:
    """Reject targets on private networks before any connection is made."""
    guard_hostname(target.hostname)


def guard_hostname(hostname: str | None) -> None:
    """Raise SSRFBlockedError when a request host (any redirect hop) is private."""
    if hostname and is_blocked(hostname):
        raise SSRFBlockedError(hostname)
