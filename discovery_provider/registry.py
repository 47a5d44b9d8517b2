"""Source of candidate discovery nodes and the fleet-wide regressed mode flag."""
from __future__ import annotations

import time
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from loguru import logger

from .config import normalize_endpoint
from .constants import REGRESSED_MODE_TIMEOUT_MS


@runtime_checkable
class ServiceRegistry(Protocol):
    async def list_endpoints(self) -> List[str]:
        ...

    def is_in_regressed_mode(self) -> bool:
        ...

    def enter_regressed_mode(self) -> None:
        ...


class StaticServiceRegistry:
    """Registry backed by a fixed endpoint list.

    Regressed mode means no node in the fleet is within the staleness
    bounds. Once entered it lasts ``regressed_mode_timeout_ms`` and then
    lapses so the next selection round can look for in-sync nodes again.
    """

    def __init__(
        self,
        endpoints: Iterable[str],
        regressed_mode_timeout_ms: int = REGRESSED_MODE_TIMEOUT_MS,
        regressed_mode: bool = False,
    ) -> None:
        self._endpoints = list(dict.fromkeys(normalize_endpoint(item) for item in endpoints))
        self._regressed_mode_timeout_s = regressed_mode_timeout_ms / 1000
        self._regressed_since: Optional[float] = None
        self._pinned_regressed = regressed_mode

    async def list_endpoints(self) -> List[str]:
        return list(self._endpoints)

    def set_endpoints(self, endpoints: Iterable[str]) -> None:
        self._endpoints = list(dict.fromkeys(normalize_endpoint(item) for item in endpoints))

    def is_in_regressed_mode(self) -> bool:
        if self._pinned_regressed:
            return True
        if self._regressed_since is None:
            return False
        if time.monotonic() - self._regressed_since > self._regressed_mode_timeout_s:
            self._regressed_since = None
            return False
        return True

    def enter_regressed_mode(self) -> None:
        if self._regressed_since is None:
            logger.info("Entering regressed mode, no discovery node is within staleness bounds")
        self._regressed_since = time.monotonic()

    def set_regressed_mode(self, enabled: bool) -> None:
        self._pinned_regressed = enabled
        if not enabled:
            self._regressed_since = None
