"""Health probes against discovery nodes."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from .constants import HEALTH_CHECK_PATH
from .models import EndpointHealth
from .request_client import TRANSPORT_ERRORS
from .staleness import blocks_behind, measure_lag, plays_slots_behind

HealthCheckCallback = Callable[[str, EndpointHealth], Any]


def _health_fields(body: Any) -> Dict[str, Any]:
    """Flatten a health check body; fields may sit at the top level or under ``data``."""
    if not isinstance(body, dict):
        raise ValueError("health check body is not an object")
    fields = dict(body)
    nested = body.get("data")
    if isinstance(nested, dict):
        for key, value in nested.items():
            fields.setdefault(key, value)
    return fields


def _extract_version(fields: Dict[str, Any]) -> str:
    version = fields.get("version")
    if isinstance(version, dict):
        version = version.get("version")
    if version is None:
        return ""
    return str(version)


class HealthProber:
    def __init__(
        self,
        unhealthy_block_diff: int,
        unhealthy_slot_diff_plays: Optional[int] = None,
        timeout_s: float = 5.0,
        health_check_callback: Optional[HealthCheckCallback] = None,
    ) -> None:
        self.unhealthy_block_diff = unhealthy_block_diff
        self.unhealthy_slot_diff_plays = unhealthy_slot_diff_plays
        self._timeout_s = timeout_s
        self._callback = health_check_callback

    async def probe(self, client: httpx.AsyncClient, endpoint: str) -> EndpointHealth:
        started = time.monotonic()
        try:
            response = await client.get(f"{endpoint}/{HEALTH_CHECK_PATH}", timeout=self._timeout_s)
            elapsed_ms = int((time.monotonic() - started) * 1000)
            response.raise_for_status()
            fields = _health_fields(response.json())
        except (*TRANSPORT_ERRORS, ValueError) as exc:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.debug(f"Health check failed for {endpoint}: {exc!r}")
            health = EndpointHealth.unreachable(endpoint, response_time_ms=elapsed_ms)
        else:
            health = self._score(endpoint, fields, elapsed_ms)
        self._notify(endpoint, health)
        return health

    async def probe_all(self, endpoints: Iterable[str]) -> List[EndpointHealth]:
        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            return await self.probe_all_with(client, endpoints)

    async def probe_all_with(
        self, client: httpx.AsyncClient, endpoints: Iterable[str]
    ) -> List[EndpointHealth]:
        tasks = [self.probe(client, endpoint) for endpoint in endpoints]
        return list(await asyncio.gather(*tasks))

    def _score(self, endpoint: str, fields: Dict[str, Any], elapsed_ms: int) -> EndpointHealth:
        block_over = blocks_behind(fields, self.unhealthy_block_diff)
        slot_over = plays_slots_behind(fields, self.unhealthy_slot_diff_plays)
        return EndpointHealth(
            endpoint=endpoint,
            reachable=True,
            behind=block_over is not None or slot_over is not None,
            blocks_behind=self._lag_or(fields, "latest_indexed_block", "latest_chain_block", block_over),
            slots_behind=(
                self._lag_or(fields, "latest_indexed_slot_plays", "latest_chain_slot_plays", slot_over)
                if self.unhealthy_slot_diff_plays is not None
                else None
            ),
            version=_extract_version(fields),
            response_time_ms=elapsed_ms,
        )

    @staticmethod
    def _lag_or(fields: Dict[str, Any], indexed_key: str, chain_key: str, fallback: Optional[int]) -> Optional[int]:
        try:
            return max(measure_lag(fields, indexed_key, chain_key), 0)
        except (TypeError, ValueError):
            return fallback

    def _notify(self, endpoint: str, health: EndpointHealth) -> None:
        if self._callback is None:
            return
        try:
            self._callback(endpoint, health)
        except Exception:  # noqa: BLE001
            logger.exception(f"health check callback failed for {endpoint}")
