from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock

# Top-level CoinGecko v3 resource groups; anything else is counted under OTHER_ENDPOINT
KNOWN_ENDPOINTS = frozenset(
    {
        "asset_platforms",
        "coins",
        "companies",
        "derivatives",
        "entities",
        "exchange_rates",
        "exchanges",
        "global",
        "key",
        "nfts",
        "onchain",
        "ping",
        "search",
        "simple",
        "token_lists",
    }
)
OTHER_ENDPOINT = "other"


def metrics_endpoint(endpoint: str) -> str:
    return endpoint if endpoint in KNOWN_ENDPOINTS else OTHER_ENDPOINT


@dataclass
class EndpointMetrics:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    rate_limited: int = 0
    upstream_calls: int = 0
    latency_total_ms: float = 0.0
    hit_latency_total_ms: float = 0.0
    upstream_latency_total_ms: float = 0.0
    max_latency_ms: float = 0.0

    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.latency_total_ms / self.total_requests


def _average(total: float, count: int) -> float:
    return 0.0 if count == 0 else round(total / count, 3)


class MetricsCollector:
    """Gateway counters per upstream resource group, plus process uptime."""

    def __init__(self):
        self.started_at = datetime.now(timezone.utc)
        self._per_endpoint: dict[str, EndpointMetrics] = {}
        self._lock = Lock()

    def _get(self, endpoint: str) -> EndpointMetrics:
        if endpoint not in self._per_endpoint:
            self._per_endpoint[endpoint] = EndpointMetrics()
        return self._per_endpoint[endpoint]

    def record_request(
        self,
        endpoint: str,
        success: bool,
        latency_ms: float,
        cache_hit: bool,
        upstream_called: bool = False,
        rate_limited: bool = False,
    ):
        latency_ms = max(latency_ms, 0.0)
        with self._lock:
            m = self._get(metrics_endpoint(endpoint))
            m.total_requests += 1
            m.latency_total_ms += latency_ms
            m.max_latency_ms = max(m.max_latency_ms, latency_ms)
            if success:
                m.successful_requests += 1
            else:
                m.failed_requests += 1
            if cache_hit:
                m.cache_hits += 1
                m.hit_latency_total_ms += latency_ms
            else:
                m.cache_misses += 1
            if upstream_called:
                m.upstream_calls += 1
                m.upstream_latency_total_ms += latency_ms
            if rate_limited:
                m.rate_limited += 1

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()

    def endpoint_status(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            out: dict[str, dict[str, float | int]] = {}
            for endpoint, m in self._per_endpoint.items():
                failure_rate = 0.0 if m.total_requests == 0 else (m.failed_requests / m.total_requests)
                out[endpoint] = {
                    "total_requests": m.total_requests,
                    "successful_requests": m.successful_requests,
                    "failed_requests": m.failed_requests,
                    "cache_hits": m.cache_hits,
                    "cache_misses": m.cache_misses,
                    "rate_limited": m.rate_limited,
                    "upstream_calls": m.upstream_calls,
                    "failure_rate": round(failure_rate, 4),
                    "average_latency_ms": round(m.avg_latency_ms(), 3),
                }
            return out

    def timing(self) -> dict[str, float | int]:
        """Latency summary split by where the response came from."""
        with self._lock:
            values = list(self._per_endpoint.values())
        requests = sum(m.total_requests for m in values)
        hits = sum(m.cache_hits for m in values)
        upstream = sum(m.upstream_calls for m in values)
        return {
            "request_count": requests,
            "average_ms": _average(sum(m.latency_total_ms for m in values), requests),
            "cache_hit_average_ms": _average(sum(m.hit_latency_total_ms for m in values), hits),
            "upstream_average_ms": _average(sum(m.upstream_latency_total_ms for m in values), upstream),
            "max_ms": round(max((m.max_latency_ms for m in values), default=0.0), 3),
        }

    def global_metrics(self) -> dict[str, float | int | dict]:
        per = self.endpoint_status()
        total_requests = sum(v["total_requests"] for v in per.values())
        total_hits = sum(v["cache_hits"] for v in per.values())
        weighted_latency = sum((v["average_latency_ms"] * v["total_requests"]) for v in per.values())
        cache_hit_rate = 0.0 if total_requests == 0 else (total_hits / total_requests)
        average_latency = 0.0 if total_requests == 0 else (weighted_latency / total_requests)
        return {
            "request_count": total_requests,
            "upstream_calls": sum(v["upstream_calls"] for v in per.values()),
            "rate_limited": sum(v["rate_limited"] for v in per.values()),
            "cache_hit_rate": round(cache_hit_rate, 4),
            "average_latency_ms": round(average_latency, 3),
            "per_endpoint": per,
        }
