from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from crypto_proxy.cache.ttl_cache import ResponseCache
from crypto_proxy.config.settings import Settings, settings as default_settings
from crypto_proxy.errors import GatewayError
from crypto_proxy.internal_metrics import MetricsCollector
from crypto_proxy.ratelimit.fixed_window import FixedWindowRateLimiter
from crypto_proxy.schemas import ErrorResponse, HealthResponse, ReadinessResponse
from crypto_proxy.services.gateway_service import GatewayService, error_result
from crypto_proxy.upstream.base import UpstreamClient
from crypto_proxy.upstream.coingecko import CoinGeckoClient
from crypto_proxy.utils.request_parsing import CREDENTIAL_HEADER, build_proxy_request

logger = logging.getLogger(__name__)
router = APIRouter()

PROXY_PREFIX = "/api/coingecko"
RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After", "X-Cache"]
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
}


def error_response(error_code: str, message: str, status_code: int, details=None, headers: dict[str, str] | None = None):
    payload = ErrorResponse(error=error_code, message=message, details=details, status=status_code)
    return JSONResponse(payload.model_dump(), status_code=status_code, headers=headers)


def internal_error_response():
    return error_response("internal_server_error", "Internal Server Error", 500)


def _flatten_validation_errors(exc: RequestValidationError) -> str:
    """Return a concise, stable validation message string."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(i) for i in err.get("loc", []) if i != "body")
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def build_gateway(config: Settings, upstream: UpstreamClient | None = None) -> GatewayService:
    if upstream is None:
        upstream = CoinGeckoClient(
            base_url=config.upstream_base_url,
            api_key_header=config.upstream_api_key_header,
            timeout_seconds=config.upstream_timeout_seconds,
            user_agent=f"crypto-proxy/{config.app_version}",
        )
    return GatewayService(
        cache=ResponseCache(),
        rate_limiter=FixedWindowRateLimiter(
            limit=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
        ),
        upstream=upstream,
        metrics=MetricsCollector(),
        default_credential=config.coingecko_api_key,
        allowed_currencies=config.allowed_vs_currencies,
        cache_ttl_seconds=config.cache_ttl_seconds,
        per_client_limits=config.rate_limit_per_client,
    )


def create_app(config: Settings | None = None, upstream: UpstreamClient | None = None) -> FastAPI:
    config = config or default_settings
    gateway = build_gateway(config, upstream)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {config.app_name} {config.app_version}")
        try:
            yield
        finally:
            await gateway.upstream.aclose()
            logger.info("Shutdown complete")

    app = FastAPI(title=config.app_name, version=config.app_version, lifespan=lifespan)
    app.state.settings = config
    app.state.gateway = gateway

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(_: Request, exc: GatewayError):
        result = error_result(exc)
        return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        details = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return error_response("request_failed", details, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        return error_response("validation_error", _flatten_validation_errors(exc), 400)

    # Last resort for faults raised by the middleware stack itself
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception):
        logger.error(f"Unhandled API exception: {exc}", exc_info=True)
        return internal_error_response()

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        start = time.perf_counter()
        response = None
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # Answered here so security, CORS and request id headers still apply
                logger.error(f"Unhandled API exception: {exc}", exc_info=True, extra={"request_id": request_id})
                response = internal_error_response()
            response.headers["x-request-id"] = request_id
            return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "request_complete",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "client": client_identity(request),
                    "status_code": response.status_code if response else 500,
                    "latency_ms": round(elapsed_ms, 2),
                    "cache": response.headers.get("x-cache") if response else None,
                },
            )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-CG-API-Key"],
        expose_headers=RATE_LIMIT_HEADERS,
    )

    app.include_router(router)
    return app


@router.get("/health", response_model=HealthResponse)
def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/readiness", response_model=ReadinessResponse)
def readiness(request: Request):
    gateway: GatewayService = request.app.state.gateway
    return {
        "status": "ready",
        "uptime_seconds": round(gateway.metrics.uptime_seconds(), 3),
        "cache": gateway.cache.metrics(),
        "requests": gateway.metrics.timing(),
    }


@router.get("/metrics")
def all_metrics(request: Request):
    gateway: GatewayService = request.app.state.gateway
    output = gateway.metrics.global_metrics()
    output["cache"] = gateway.cache.metrics()
    output["rate_limit"] = gateway.rate_limiter.snapshot()
    output["timestamp"] = time.time()
    return output


@router.get(PROXY_PREFIX + "/{upstream_path:path}")
async def proxy_coingecko(upstream_path: str, request: Request):
    gateway: GatewayService = request.app.state.gateway
    proxy_request = build_proxy_request(
        request.method,
        upstream_path,
        request.query_params.multi_items(),
        {CREDENTIAL_HEADER: request.headers.get(CREDENTIAL_HEADER, "")},
    )
    result = await gateway.handle(proxy_request, client_identity(request))
    return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)
