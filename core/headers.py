"""Outbound header synthesis for target requests."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

CHROME_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

BROWSER_TEMPLATE: tuple[tuple[str, str], ...] = (
    ("User-Agent", CHROME_USER_AGENT),
    (
        "Accept",
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    ),
    ("Accept-Language", "en-US,en;q=0.9"),
    ("Accept-Encoding", "gzip, deflate, br"),
    ("Cache-Control", "max-age=0"),
    ("DNT", "1"),
    ("Upgrade-Insecure-Requests", "1"),
    ("Sec-Ch-Ua", '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"'),
    ("Sec-Ch-Ua-Mobile", "?0"),
    ("Sec-Ch-Ua-Platform", '"Windows"'),
    ("Sec-Fetch-Dest", "document"),
    ("Sec-Fetch-Mode", "navigate"),
    ("Sec-Fetch-Site", "none"),
    ("Sec-Fetch-User", "?1"),
)

# Canonical casing for forwardable caller headers
CANONICAL_NAMES = {
    "user-agent": "User-Agent",
    "accept": "Accept",
    "accept-language": "Accept-Language",
    "cookie": "Cookie",
    "referer": "Referer",
    "authorization": "Authorization",
}


@dataclass(frozen=True)
class HeaderPolicy:
    """Ordered caller headers overlaid on the template; later entries win."""

    name: str
    forwarded: tuple[str, ...]


# Direct fetch trusts the client's own fingerprint.
DIRECT_POLICY = HeaderPolicy(
    name="direct",
    forwarded=("user-agent", "accept", "accept-language", "cookie", "referer", "authorization"),
)

# The browser keeps its synthetic fingerprint; only session headers pass through.
BROWSER_POLICY = HeaderPolicy(
    name="browser",
    forwarded=("cookie", "authorization", "referer"),
)


class OutboundHeaders(Mapping[str, str]):
    """Immutable, case-insensitive header mapping keeping canonical casing."""

    def __init__(self, items: Mapping[str, str] | None = None) -> None:
        self._items: dict[str, tuple[str, str]] = {}
        for key, value in (items or {}).items():
            self._items[key.lower()] = (key, value)

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __repr__(self) -> str:
        return f"OutboundHeaders({dict(self.items())!r})"

    def without(self, *names: str) -> dict[str, str]:
        """Plain dict copy without the given header names."""
        dropped = {name.lower() for name in names}
        return {name: value for key, (name, value) in self._items.items() if key not in dropped}


class HeaderBuilder:
    """Build browser-like outbound headers for a fetch strategy."""

    def __init__(self, template: tuple[tuple[str, str], ...] = BROWSER_TEMPLATE) -> None:
        self._template = template

    def build(self, forwarded: Mapping[str, str], policy: HeaderPolicy) -> OutboundHeaders:
        """Overlay the policy's forwarded caller headers on the template."""
        merged: dict[str, tuple[str, str]] = {
            name.lower(): (name, value) for name, value in self._template
        }
        inbound = {key.lower(): value for key, value in forwarded.items()}
        for name in policy.forwarded:
            value = inbound.get(name)
            if value is None or not str(value).strip():
                continue
            merged[name] = (CANONICAL_NAMES.get(name, name), str(value))
        return OutboundHeaders(dict(merged.values()))
