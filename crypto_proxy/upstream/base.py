from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class UpstreamResponse:
    status_code: int
    body: Any


class UpstreamClient(ABC):
    @abstractmethod
    async def fetch(self, path: str, query: list[tuple[str, str]], credential: str) -> UpstreamResponse:
        raise NotImplementedError

    async def aclose(self):
        return None
