from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from crypto_proxy.utils.request_parsing import ProxyRequest

CURRENCY_REQUIRED_PREFIXES = ("coins/markets",)
DAYS_SENTINEL = "max"

# name -> (minimum, maximum)
_INT_RANGES = {
    "page": (1, None),
    "per_page": (1, 100),
    "days": (1, 365),
}


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str | None = None


VALID = ValidationResult(ok=True)


def invalid(reason: str) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason)


def to_int(value: str) -> int | None:
    """Plain ASCII digits only; signs, underscores and other numerals are rejected."""
    cleaned = value.strip()
    if not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return int(cleaned)


def _check_range(name: str, raw: str) -> ValidationResult:
    if name == "days" and raw.strip().lower() == DAYS_SENTINEL:
        return VALID
    parsed = to_int(raw)
    minimum, maximum = _INT_RANGES[name]
    if parsed is None:
        return invalid(f"Invalid {name} value: must be an integer")
    if parsed < minimum:
        return invalid(f"Invalid {name} value: must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        return invalid(f"Invalid {name} value: must be between {minimum} and {maximum}")
    return VALID


def validate_proxy_request(request: ProxyRequest, allowed_currencies: Iterable[str]) -> ValidationResult:
    segments = request.path.split("/") if request.path else []
    if any(segment in (".", "..") for segment in segments):
        return invalid("Invalid upstream path")

    # Every occurrence is forwarded upstream, so every occurrence is checked
    currencies = request.params("vs_currency")
    if request.path.startswith(CURRENCY_REQUIRED_PREFIXES) and not any(currencies):
        return invalid("Missing parameter vs_currency")
    if currencies:
        allowed = {currency.lower() for currency in allowed_currencies}
        if any(currency.lower() not in allowed for currency in currencies):
            return invalid("Invalid vs_currency value")

    for name in _INT_RANGES:
        for raw in request.params(name):
            result = _check_range(name, raw)
            if not result.ok:
                return result

    return VALID
