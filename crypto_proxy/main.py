"""
Main application entry point.
Configures logging and serves the gateway with uvicorn.
"""
import logging
import sys

import uvicorn

from crypto_proxy.api.routes import create_app
from crypto_proxy.config.settings import settings

# Configure logging for stdout/stderr collectors
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

logger = logging.getLogger(__name__)

app = create_app(settings)


def main():
    """Run the application."""
    logger.info(
        "Configuration loaded",
        extra={
            "host": settings.host,
            "port": settings.port,
            "log_level": settings.log_level,
            "upstream_base_url": settings.upstream_base_url,
            "default_credential_configured": bool(settings.coingecko_api_key),
            "cors_allowed_origins": settings.cors_allowed_origins,
            "rate_limit_max_requests": settings.rate_limit_max_requests,
            "rate_limit_window_seconds": settings.rate_limit_window_seconds,
            "cache_ttl_seconds": settings.cache_ttl_seconds,
        },
    )
    logger.info(
        f"Rate limiting ({settings.rate_limit_max_requests} requests per "
        f"{settings.rate_limit_window_seconds // 60} minutes), response caching "
        f"({settings.cache_ttl_seconds // 60} minutes), request validation, security headers and compression enabled"
    )

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        lifespan="on",
        access_log=True,
    )


if __name__ == "__main__":
    main()
