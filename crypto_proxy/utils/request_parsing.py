from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

CREDENTIAL_HEADER = "x-cg-api-key"
CREDENTIAL_QUERY_PARAMS = ("api_key", "key")
RESERVED_QUERY_PARAMS = frozenset(CREDENTIAL_QUERY_PARAMS)
LOWERCASE_QUERY_PARAMS = frozenset({"vs_currency"})


@dataclass(frozen=True)
class ProxyRequest:
    method: str
    path: str
    query: list[tuple[str, str]] = field(default_factory=list)
    caller_credential: str | None = None

    def params(self, name: str) -> list[str]:
        return [value for key, value in self.query if key == name]

    @property
    def endpoint(self) -> str:
        return self.path.split("/", 1)[0] if self.path else ""


def normalize_path(path: str) -> str:
    return path.strip().strip("/")


def extract_caller_credential(headers: Mapping[str, str], query: Iterable[tuple[str, str]]) -> str | None:
    """Header first, then api_key, then key."""
    header_value = headers.get(CREDENTIAL_HEADER)
    if header_value:
        return header_value
    params = {}
    for key, value in query:
        params.setdefault(key, value)
    for name in CREDENTIAL_QUERY_PARAMS:
        if params.get(name):
            return params[name]
    return None


def sanitize_query(query: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    cleaned: list[tuple[str, str]] = []
    for key, value in query:
        if key in RESERVED_QUERY_PARAMS:
            continue
        if key in LOWERCASE_QUERY_PARAMS:
            value = value.strip().lower()
        cleaned.append((key, value))
    return cleaned


def build_proxy_request(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]],
    headers: Mapping[str, str],
) -> ProxyRequest:
    items = list(query)
    return ProxyRequest(
        method=method.upper(),
        path=normalize_path(path),
        query=sanitize_query(items),
        caller_credential=extract_caller_credential(headers, items),
    )


def resolve_credential(caller_credential: str | None, default_credential: str | None) -> str | None:
    return caller_credential or default_credential or None
