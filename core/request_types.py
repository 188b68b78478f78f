"""Shared request data types."""

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TargetRequest:
    """A validated target for one in-flight request."""

    raw_url: str
    url: str
    hostname: str
    forwarded_headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderResult:
    """Output of a fetch strategy."""

    status_code: int
    content_type: str
    body: bytes | str
    final_url: str

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()


@dataclass(frozen=True)
class RewriteContext:
    """Inputs for rewriting one HTML document."""

    base_url: str
    proxy_endpoint_base: str
