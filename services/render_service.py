"""Render pipeline orchestration for proxy requests."""

import time
from collections.abc import Mapping

from fastapi import Response

from core.classify import classify
from core.config import ThrottleSettings
from core.headers import HeaderBuilder, HeaderPolicy
from core.protocols import FetchStrategy, RequestLogger
from core.request_types import RenderResult, RewriteContext, TargetRequest
from core.rewrite import URLRewriter
from core.throttle import maybe_delay
from core.validation import guard_target, parse_target
from services.emitter import ResponseEmitter


class RenderService:
    """Run one request through validate, guard, throttle, fetch, rewrite and emit."""

    def __init__(
        self,
        *,
        endpoint: str,
        strategy: FetchStrategy,
        policy: HeaderPolicy,
        throttle: ThrottleSettings,
        logger: RequestLogger,
        emitter: ResponseEmitter,
        header_builder: HeaderBuilder | None = None,
        rewriter: URLRewriter | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._strategy = strategy
        self._policy = policy
        self._throttle = throttle
        self._logger = logger
        self._emitter = emitter
        self._headers = header_builder or HeaderBuilder()
        self._rewriter = rewriter

    @property
    def usage(self) -> str:
        return f"{self.endpoint}?url=<TARGET_URL>"

    async def handle(
        self,
        raw_url: str | None,
        forwarded_headers: Mapping[str, str],
        proxy_endpoint_base: str,
    ) -> Response:
        """Render the target and emit it; every failure becomes a JSON envelope."""
        started = time.perf_counter()
        try:
            target = parse_target(raw_url, forwarded_headers)
            guard_target(target)
            result = await self.render(target, proxy_endpoint_base)
        except Exception as e:
            classification = classify(e, usage=self.usage)
            self._logger.log_error(
                self._strategy.name,
                classification.http_status,
                f"{classification.kind.value} {raw_url}: {classification.cause_detail}",
            )
            return self._emitter.emit_error(classification, raw_url)

        self._logger.log_render(
            self._strategy.name,
            result.final_url,
            result.status_code,
            (time.perf_counter() - started) * 1000,
            content_type=result.content_type,
            headers=forwarded_headers,
        )
        return self._emitter.emit(result)

    async def render(self, target: TargetRequest, proxy_endpoint_base: str) -> RenderResult:
        """Fetch a validated target and rewrite HTML when a rewriter is configured."""
        await maybe_delay(self._throttle)
        headers = self._headers.build(target.forwarded_headers, self._policy)
        result = await self._strategy.fetch(target.url, headers)

        if not (result.is_html and self._rewriter):
            return result

        body = result.body if isinstance(result.body, str) else result.body.decode("utf-8", "replace")
        context = RewriteContext(base_url=result.final_url, proxy_endpoint_base=proxy_endpoint_base)
        return RenderResult(
            status_code=result.status_code,
            content_type=result.content_type,
            body=self._rewriter.rewrite(body, context),
            final_url=result.final_url,
        )
