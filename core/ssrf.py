"""Private-network hostname guard.

Only the hostname literal is inspected; nothing is resolved. Resolver-accepted
IPv4 shorthands (``127.1``, ``2130706433``, ``0x7f.0.0.1``) are normalized
through ``socket.inet_aton`` before the range checks.
"""

import ipaddress
import re
import socket

LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}

NAME_PATTERNS = (
    re.compile(r"^localhost$"),
    re.compile(r"\.localhost$"),
)

# Prefix checks apply only to hosts spelled as address literals
IPV4_PATTERNS = (
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[0-1])\."),
    re.compile(r"^169\.254\."),
)

IPV6_PATTERNS = (
    re.compile(r"^::1$"),
    re.compile(r"^f[cd][0-9a-f]{2}:"),
    re.compile(r"^fe[89ab][0-9a-f]:"),
)

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

_IPV4_SHORTHAND = re.compile(r"^[0-9a-fx.]+$")
_DOTTED_DECIMAL = re.compile(r"^[0-9.]+$")


def is_blocked(hostname: str) -> bool:
    """Return True when the hostname names a loopback, private or link-local target."""
    host = _normalize(hostname)
    if not host:
        return False
    if host in LOCAL_HOSTNAMES:
        return True
    if any(pattern.search(host) for pattern in _patterns_for(host)):
        return True

    address = _parse_address(host)
    if address is None:
        return False
    return _in_blocked_network(address)


def _patterns_for(host: str) -> tuple[re.Pattern[str], ...]:
    if ":" in host:
        return NAME_PATTERNS + IPV6_PATTERNS
    if _DOTTED_DECIMAL.match(host):
        return NAME_PATTERNS + IPV4_PATTERNS
    return NAME_PATTERNS


def _normalize(hostname: str) -> str:
    host = hostname.strip().lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    # Zone index (fe80::1%eth0) is not part of the address
    host = host.split("%", 1)[0]
    return host.rstrip(".")


def _parse_address(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if not _IPV4_SHORTHAND.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def _in_blocked_network(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(address, ipaddress.IPv6Address):
        embedded = address.ipv4_mapped or address.sixtofour
        if embedded is not None and _in_blocked_network(embedded):
            return True
    return any(
        address.version == network.version and address in network
        for network in BLOCKED_NETWORKS
    )
