"""
Gateway request pipeline.

Each inbound proxy request runs through an ordered tuple of stages:
validate, cache lookup, rate limit, credential resolution, upstream call and
finally cache store. A stage returns ``Continue()`` to hand over to the next
stage or ``Respond(result)`` to end the request.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Union

from crypto_proxy.cache.ttl_cache import ResponseCache, make_cache_key
from crypto_proxy.errors import (
    ConfigurationError,
    GatewayError,
    RateLimitExceeded,
    UpstreamError,
    ValidationError,
)
from crypto_proxy.internal_metrics import MetricsCollector
from crypto_proxy.ratelimit.fixed_window import FixedWindowRateLimiter, RateDecision
from crypto_proxy.schemas import ErrorResponse
from crypto_proxy.upstream.base import UpstreamClient, UpstreamResponse
from crypto_proxy.utils.request_parsing import ProxyRequest, resolve_credential
from crypto_proxy.utils.validators import validate_proxy_request

logger = logging.getLogger(__name__)

GLOBAL_IDENTITY = "global"
PROXY_CACHE_TTL_SECONDS = 15 * 60


@dataclass
class GatewayResult:
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Continue:
    pass


@dataclass
class Respond:
    result: GatewayResult


StageOutcome = Union[Continue, Respond]


@dataclass
class ProxyContext:
    request: ProxyRequest
    client_identity: str
    started: float = field(default_factory=time.perf_counter)
    cache_key: str = ""
    credential: str | None = None
    rate_decision: RateDecision | None = None
    upstream_response: UpstreamResponse | None = None
    cache_hit: bool = False
    upstream_called: bool = False
    rate_limited: bool = False

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


def error_result(exc: GatewayError, headers: dict[str, str] | None = None) -> GatewayResult:
    payload = ErrorResponse(error=exc.error_code, message=exc.message, details=exc.details, status=exc.status_code)
    return GatewayResult(status_code=exc.status_code, body=payload.model_dump(), headers=headers or {})


class GatewayService:
    def __init__(
        self,
        cache: ResponseCache,
        rate_limiter: FixedWindowRateLimiter,
        upstream: UpstreamClient,
        metrics: MetricsCollector | None = None,
        default_credential: str | None = None,
        allowed_currencies: Iterable[str] = ("usd", "eur", "btc", "eth"),
        cache_ttl_seconds: int = PROXY_CACHE_TTL_SECONDS,
        per_client_limits: bool = True,
    ):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.upstream = upstream
        self.metrics = metrics or MetricsCollector()
        self.default_credential = default_credential
        self.allowed_currencies = tuple(currency.lower() for currency in allowed_currencies)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.per_client_limits = per_client_limits
        self._stages: tuple[Callable[[ProxyContext], Awaitable[StageOutcome]], ...] = (
            self._validate,
            self._lookup_cache,
            self._check_rate_limit,
            self._resolve_credential,
            self._call_upstream,
            self._store_and_respond,
        )

    async def handle(self, request: ProxyRequest, client_identity: str) -> GatewayResult:
        identity = client_identity if self.per_client_limits else GLOBAL_IDENTITY
        ctx = ProxyContext(request=request, client_identity=identity)
        for stage in self._stages:
            outcome = await stage(ctx)
            if isinstance(outcome, Respond):
                self._record(ctx, outcome.result)
                return outcome.result
        raise RuntimeError("gateway pipeline finished without a response")

    def _record(self, ctx: ProxyContext, result: GatewayResult):
        self.metrics.record_request(
            ctx.request.endpoint,
            success=result.status_code < 400,
            latency_ms=ctx.elapsed_ms(),
            cache_hit=ctx.cache_hit,
            upstream_called=ctx.upstream_called,
            rate_limited=ctx.rate_limited,
        )

    async def _validate(self, ctx: ProxyContext) -> StageOutcome:
        result = validate_proxy_request(ctx.request, self.allowed_currencies)
        if not result.ok:
            logger.info("request_rejected", extra={"path": ctx.request.path, "reason": result.reason})
            return Respond(error_result(ValidationError(result.reason or "Invalid request")))
        ctx.cache_key = make_cache_key(ctx.request.path, ctx.request.query)
        return Continue()

    async def _lookup_cache(self, ctx: ProxyContext) -> StageOutcome:
        entry = self.cache.get(ctx.cache_key)
        if entry is None:
            return Continue()
        ctx.cache_hit = True
        headers = {"X-Cache": "HIT", **self.rate_limiter.status(ctx.client_identity).headers()}
        return Respond(GatewayResult(status_code=entry.status_code, body=entry.body, headers=headers))

    async def _check_rate_limit(self, ctx: ProxyContext) -> StageOutcome:
        decision = self.rate_limiter.allow(ctx.client_identity)
        ctx.rate_decision = decision
        if decision.admitted:
            return Continue()
        ctx.rate_limited = True
        exc = RateLimitExceeded(retry_after_seconds=decision.retry_after_seconds(self.rate_limiter.now()))
        logger.warning("rate_limit_exceeded", extra={"client": ctx.client_identity, "limit": decision.limit})
        headers = decision.headers()
        headers["Retry-After"] = str(exc.retry_after_seconds)
        return Respond(error_result(exc, headers=headers))

    async def _resolve_credential(self, ctx: ProxyContext) -> StageOutcome:
        ctx.credential = resolve_credential(ctx.request.caller_credential, self.default_credential)
        if ctx.credential:
            return Continue()
        logger.error("No upstream credential available: caller sent none and no default is configured")
        return Respond(
            error_result(
                ConfigurationError(
                    "CoinGecko API key missing. Provide 'x-cg-api-key' header or set COINGECKO_API_KEY."
                ),
                headers=self._rate_headers(ctx),
            )
        )

    async def _call_upstream(self, ctx: ProxyContext) -> StageOutcome:
        ctx.upstream_called = True
        try:
            ctx.upstream_response = await self.upstream.fetch(ctx.request.path, ctx.request.query, ctx.credential)
        except UpstreamError as exc:
            logger.warning(
                "upstream_failure",
                extra={"path": ctx.request.path, "error_code": exc.error_code, "status_code": exc.status_code},
            )
            return Respond(error_result(exc, headers=self._rate_headers(ctx)))
        return Continue()

    async def _store_and_respond(self, ctx: ProxyContext) -> StageOutcome:
        upstream = ctx.upstream_response
        self.cache.put(ctx.cache_key, upstream.body, self.cache_ttl_seconds, status_code=upstream.status_code)
        headers = {"X-Cache": "MISS", **self._rate_headers(ctx)}
        return Respond(GatewayResult(status_code=upstream.status_code, body=upstream.body, headers=headers))

    @staticmethod
    def _rate_headers(ctx: ProxyContext) -> dict[str, str]:
        if ctx.rate_decision is None:
            return {}
        return ctx.rate_decision.headers()
