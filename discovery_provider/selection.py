"""Discovery node selection with cached choice and unhealthy tracking."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

import httpx
from loguru import logger

from .errors import NoHealthyEndpointError
from .health import HealthProber
from .models import EndpointHealth
from .registry import ServiceRegistry

SelectionCallback = Callable[[Optional[str], List[Dict[str, Any]]], Any]


@dataclass
class SelectionState:
    current_endpoint: Optional[str] = None
    unhealthy: Set[str] = field(default_factory=set)
    selected_at: Optional[float] = None
    backups: Dict[str, EndpointHealth] = field(default_factory=dict)


class EndpointSelector:
    """Chooses the best discovery node and caches the choice.

    All changes to :class:`SelectionState` go through ``select``,
    ``add_unhealthy``, ``clear_cached`` and ``clear_unhealthy``.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        prober: HealthProber,
        whitelist: Optional[FrozenSet[str]] = None,
        blacklist: Optional[FrozenSet[str]] = None,
        reselect_timeout_ms: Optional[int] = None,
        selection_callback: Optional[SelectionCallback] = None,
        raise_on_empty: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        state: Optional[SelectionState] = None,
    ) -> None:
        self._registry = registry
        self._prober = prober
        self._whitelist = whitelist
        self._blacklist = blacklist
        self._reselect_timeout_s = (
            reselect_timeout_ms / 1000 if reselect_timeout_ms is not None else None
        )
        self._selection_callback = selection_callback
        self._raise_on_empty = raise_on_empty
        self._http_client = http_client
        self._state = state if state is not None else SelectionState()
        self._lock = asyncio.Lock()

    @property
    def current_endpoint(self) -> Optional[str]:
        return self._state.current_endpoint

    @property
    def backups(self) -> Dict[str, EndpointHealth]:
        return dict(self._state.backups)

    def get_unhealthy(self) -> FrozenSet[str]:
        return frozenset(self._state.unhealthy)

    def set_unhealthy_block_diff(self, block_diff: int) -> None:
        self._prober.unhealthy_block_diff = block_diff

    def set_unhealthy_slot_diff_plays(self, slot_diff: Optional[int]) -> None:
        self._prober.unhealthy_slot_diff_plays = slot_diff

    def add_unhealthy(self, endpoint: str) -> None:
        logger.info(f"Marking discovery node {endpoint} unhealthy")
        self._state.unhealthy.add(endpoint)
        self._state.backups.pop(endpoint, None)
        if self._state.current_endpoint == endpoint:
            self._state.current_endpoint = None
            self._state.selected_at = None

    def clear_cached(self) -> None:
        self._state.current_endpoint = None
        self._state.selected_at = None

    def clear_unhealthy(self) -> None:
        self._state.unhealthy.clear()

    async def select(self) -> Optional[str]:
        async with self._lock:
            if self._cache_valid():
                return self._state.current_endpoint

            decision_tree: List[Dict[str, Any]] = []
            ranked = await self._probe_candidates(decision_tree, recover=True)
            reachable = [health for health in ranked if health.reachable]

            if not reachable:
                decision_tree.append({"stage": "no reachable endpoints"})
                self.clear_cached()
                self._notify(None, decision_tree)
                if self._raise_on_empty:
                    raise NoHealthyEndpointError()
                return None

            best = reachable[0]
            self._state.backups = {health.endpoint: health for health in reachable if health.behind}
            if best.behind:
                decision_tree.append({"stage": "selected backup", "endpoint": best.endpoint})
                self._registry.enter_regressed_mode()
            else:
                decision_tree.append({"stage": "selected", "endpoint": best.endpoint})

            self._state.current_endpoint = best.endpoint
            self._state.selected_at = time.monotonic()
            logger.info(f"Selected discovery node {best.endpoint} (version {best.version or 'unknown'})")
            self._notify(best.endpoint, decision_tree)
            return best.endpoint

    async def select_many(self, count: int) -> List[str]:
        """Up to ``count`` reachable endpoints, best first. Does not touch the cache."""
        ranked = await self._probe_candidates([])
        return [health.endpoint for health in ranked if health.reachable][:count]

    def _cache_valid(self) -> bool:
        state = self._state
        if state.current_endpoint is None or state.current_endpoint in state.unhealthy:
            return False
        if self._reselect_timeout_s is None or state.selected_at is None:
            return True
        return time.monotonic() - state.selected_at < self._reselect_timeout_s

    async def _eligible(self, decision_tree: List[Dict[str, Any]], recover: bool = False) -> List[str]:
        candidates = await self._registry.list_endpoints()
        decision_tree.append({"stage": "candidates", "endpoints": list(candidates)})
        if self._whitelist is not None:
            candidates = [endpoint for endpoint in candidates if endpoint in self._whitelist]
            decision_tree.append({"stage": "filtered whitelist", "endpoints": list(candidates)})
        if self._blacklist is not None:
            candidates = [endpoint for endpoint in candidates if endpoint not in self._blacklist]
            decision_tree.append({"stage": "filtered blacklist", "endpoints": list(candidates)})
        healthy = [endpoint for endpoint in candidates if endpoint not in self._state.unhealthy]
        decision_tree.append({"stage": "filtered unhealthy", "endpoints": list(healthy)})
        if recover and candidates and not healthy:
            # Every candidate was written off; start over from a fresh probe round
            logger.warning(f"All {len(candidates)} discovery nodes are marked unhealthy, resetting")
            self.clear_unhealthy()
            decision_tree.append({"stage": "reset unhealthy", "endpoints": list(candidates)})
            return candidates
        return healthy

    async def _probe_candidates(
        self, decision_tree: List[Dict[str, Any]], recover: bool = False
    ) -> List[EndpointHealth]:
        candidates = await self._eligible(decision_tree, recover)
        if not candidates:
            return []
        if self._http_client is not None:
            results = await self._prober.probe_all_with(self._http_client, candidates)
        else:
            results = await self._prober.probe_all(candidates)
        ranked = sorted(results, key=EndpointHealth.rank_key)
        decision_tree.append(
            {
                "stage": "probed",
                "results": [
                    {
                        "endpoint": health.endpoint,
                        "reachable": health.reachable,
                        "behind": health.behind,
                        "version": health.version,
                    }
                    for health in ranked
                ],
            }
        )
        return ranked

    def _notify(self, endpoint: Optional[str], decision_tree: List[Dict[str, Any]]) -> None:
        if self._selection_callback is None:
            return
        try:
            self._selection_callback(endpoint, decision_tree)
        except Exception:  # noqa: BLE001
            logger.exception("selection callback failed")
