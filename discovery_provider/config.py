"""Configuration loading for the discovery provider client."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

from .constants import (
    DEFAULT_UNHEALTHY_BLOCK_DIFF,
    HEALTH_CHECK_TIMEOUT_MS,
    MAX_MAKE_REQUEST_RETRIES_WITH_404,
    MAX_MAKE_REQUEST_RETRY_COUNT,
    REGRESSED_MODE_TIMEOUT_MS,
    REQUEST_TIMEOUT_MS,
    RESELECT_TIMEOUT_MS,
)


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid int for {name}: {value}") from exc


def _get_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid int for {name}: {value}") from exc


def _get_list(name: str) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None or value == "":
        return ()
    return tuple(normalize_endpoint(item) for item in value.split(",") if item.strip())


def _get_optional_set(name: str) -> Optional[FrozenSet[str]]:
    items = _get_list(name)
    if not items:
        return None
    return frozenset(items)


def normalize_endpoint(endpoint: str) -> str:
    return endpoint.strip().rstrip("/")


@dataclass(frozen=True)
class DiscoverySettings:
    """Knobs for node selection, request retries and staleness checks.

    Durations are in milliseconds. ``whitelist`` restricts selection to the
    listed endpoints, ``blacklist`` excludes endpoints. ``unhealthy_slot_diff_plays``
    of None disables the plays-slot staleness check.
    """

    endpoints: Tuple[str, ...] = ()
    whitelist: Optional[FrozenSet[str]] = None
    blacklist: Optional[FrozenSet[str]] = None
    reselect_timeout_ms: int = RESELECT_TIMEOUT_MS
    selection_request_timeout_ms: int = REQUEST_TIMEOUT_MS
    selection_request_retries: int = MAX_MAKE_REQUEST_RETRY_COUNT
    unhealthy_block_diff: int = DEFAULT_UNHEALTHY_BLOCK_DIFF
    unhealthy_slot_diff_plays: Optional[int] = None
    max_requests_for_true_404: int = MAX_MAKE_REQUEST_RETRIES_WITH_404
    health_check_timeout_ms: int = HEALTH_CHECK_TIMEOUT_MS
    regressed_mode_timeout_ms: int = REGRESSED_MODE_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.selection_request_retries < 0:
            raise ValueError("selection_request_retries must be >= 0")
        if self.max_requests_for_true_404 < 0:
            raise ValueError("max_requests_for_true_404 must be >= 0")
        if self.unhealthy_block_diff < 0:
            raise ValueError("unhealthy_block_diff must be >= 0")
        if self.selection_request_timeout_ms <= 0 or self.health_check_timeout_ms <= 0:
            raise ValueError("timeouts must be positive")

    def with_overrides(self, **changes) -> "DiscoverySettings":
        return replace(self, **changes)

    @classmethod
    def load(cls) -> "DiscoverySettings":
        load_dotenv()
        return cls(
            endpoints=_get_list("DISCOVERY_ENDPOINTS"),
            whitelist=_get_optional_set("DISCOVERY_WHITELIST"),
            blacklist=_get_optional_set("DISCOVERY_BLACKLIST"),
            reselect_timeout_ms=_get_int("DISCOVERY_RESELECT_TIMEOUT_MS", RESELECT_TIMEOUT_MS),
            selection_request_timeout_ms=_get_int(
                "DISCOVERY_SELECTION_REQUEST_TIMEOUT_MS", REQUEST_TIMEOUT_MS
            ),
            selection_request_retries=_get_int(
                "DISCOVERY_SELECTION_REQUEST_RETRIES", MAX_MAKE_REQUEST_RETRY_COUNT
            ),
            unhealthy_block_diff=_get_int("DISCOVERY_UNHEALTHY_BLOCK_DIFF", DEFAULT_UNHEALTHY_BLOCK_DIFF),
            unhealthy_slot_diff_plays=_get_optional_int("DISCOVERY_UNHEALTHY_SLOT_DIFF_PLAYS"),
            max_requests_for_true_404=_get_int(
                "DISCOVERY_MAX_REQUESTS_FOR_TRUE_404", MAX_MAKE_REQUEST_RETRIES_WITH_404
            ),
            health_check_timeout_ms=_get_int("DISCOVERY_HEALTH_CHECK_TIMEOUT_MS", HEALTH_CHECK_TIMEOUT_MS),
            regressed_mode_timeout_ms=_get_int(
                "DISCOVERY_REGRESSED_MODE_TIMEOUT_MS", REGRESSED_MODE_TIMEOUT_MS
            ),
        )
