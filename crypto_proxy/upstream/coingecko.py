from __future__ import annotations

import logging
from typing import Any

import httpx

from crypto_proxy.errors import UpstreamHttpError, UpstreamMalformed, UpstreamUnreachable
from crypto_proxy.upstream.base import UpstreamClient, UpstreamResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_API_KEY_HEADER = "X-CG-Demo-API-Key"


def extract_error_message(body: Any) -> str:
    """Best-effort message from a provider error payload."""
    if isinstance(body, dict):
        for field in ("error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
        status = body.get("status")
        if isinstance(status, dict) and status.get("error_message"):
            return str(status["error_message"])
    return "API Error"


class CoinGeckoClient(UpstreamClient):
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key_header: str = DEFAULT_API_KEY_HEADER,
        timeout_seconds: float = 10.0,
        user_agent: str = "crypto-proxy/1.0.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key_header = api_key_header
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"Accept": "application/json", "User-Agent": user_agent},
            transport=transport,
        )

    def build_url(self, path: str) -> str:
        path = path.strip("/")
        if not path:
            return self.base_url
        return f"{self.base_url}/{path}"

    async def fetch(self, path: str, query: list[tuple[str, str]], credential: str) -> UpstreamResponse:
        url = self.build_url(path)
        try:
            response = await self._client.get(url, params=query, headers={self.api_key_header: credential})
        except httpx.TransportError as exc:
            logger.warning(f"Upstream unreachable for {url}: {exc!r}")
            raise UpstreamUnreachable() from exc

        if not response.is_success:
            try:
                details: Any = response.json()
            except ValueError:
                details = response.text or None
            logger.info(
                "upstream_error_response",
                extra={"url": url, "status_code": response.status_code},
            )
            raise UpstreamHttpError(response.status_code, extract_error_message(details), details=details)

        try:
            body = response.json()
        except ValueError as exc:
            logger.error(
                f"Upstream returned non-JSON body for {url}",
                extra={"status_code": response.status_code, "content_type": response.headers.get("content-type", "")},
            )
            raise UpstreamMalformed() from exc

        return UpstreamResponse(status_code=response.status_code, body=body)

    async def aclose(self):
        await self._client.aclose()
