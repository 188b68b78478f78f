"""Tests for the private-network hostname guard."""

import pytest

from core.exceptions import SSRFBlockedError
from core.ssrf import is_blocked
from core.validation import guard_target, parse_target


@pytest.mark.parametrize(
    "hostname",
    [
        "localhost",
        "LOCALHOST",
        "localhost.",
        "api.localhost",
        "127.0.0.1",
        "127.8.9.10",
        "10.0.0.1",
        "10.255.255.255",
        "172.16.0.1",
        "172.31.255.254",
        "192.168.1.1",
        "169.254.169.254",
        "0.0.0.0",
        "::1",
        "[::1]",
        "::",
        "fc00::1",
        "fd12:3456::1",
        "fe80::1",
        "fe80::1%eth0",
        "::ffff:127.0.0.1",
        "[::ffff:10.0.0.5]",
        "127.1",
        "2130706433",
        "0x7f.0.0.1",
        "017700000001",
    ],
)
def test_private_hostnames_are_blocked(hostname):
    assert is_blocked(hostname)


@pytest.mark.parametrize(
    "hostname",
    [
        "example.com",
        "cafe.de",
        "172.15.0.1",
        "172.32.0.1",
        "192.169.0.1",
        "8.8.8.8",
        "2001:4860:4860::8888",
        "localhost.example.com",
        "10.example.org",
        "127.example.com",
        "192.168.example.net",
        "169.254.example.io",
        "10.cafe.de",
        "fd00.example.com",
    ],
)
def test_public_hostnames_are_allowed(hostname):
    assert not is_blocked(hostname)


def test_guard_target_raises_with_hostname():
    target = parse_target("http://localhost:8080/admin", {})

    with pytest.raises(SSRFBlockedError) as exc_info:
        guard_target(target)

    assert exc_info.value.hostname == "localhost"


def test_guard_target_accepts_public_host():
    guard_target(parse_target("https://example.com/page", {}))
