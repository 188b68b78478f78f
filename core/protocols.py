"""Shared protocol definitions."""

from collections.abc import Mapping
from typing import Protocol

from core.request_types import RenderResult


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard)."""

    def log_render(
        self,
        strategy: str,
        url: str,
        status: int,
        elapsed_ms: float,
        *,
        content_type: str,
        headers: Mapping[str, str] | None = None,
    ) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...
    def log_warning(self, message: str, **extra: object) -> None: ...


class FetchStrategy(Protocol):
    """Contract shared by the direct and browser renderers."""

    name: str

    async def fetch(self, url: str, headers: Mapping[str, str]) -> RenderResult: ...
