"""Tests for inbound target validation."""

import pytest

from core.exceptions import InvalidURLError, MissingURLError
from core.validation import parse_target


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_missing_url(raw):
    with pytest.raises(MissingURLError):
        parse_target(raw, {})


@pytest.mark.parametrize(
    "raw",
    [
        "not a url",
        "example.com/page",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "http://",
        "https://exa mple.com/",
        "http://example.com:notaport/",
        "http://[::1/",
    ],
)
def test_invalid_url(raw):
    with pytest.raises(InvalidURLError):
        parse_target(raw, {})


def test_parse_target_keeps_headers_and_hostname():
    target = parse_target("  https://Example.com:8443/a?b=c  ", {"Cookie": "sid=1"})

    assert target.url == "https://Example.com:8443/a?b=c"
    assert target.hostname == "example.com"
    assert target.forwarded_headers == {"Cookie": "sid=1"}
