"""Block and plays-slot lag measures for discovery node responses.

Every discovery node reports how far its index trails the chain. These
helpers turn those fields into a lag value and decide whether the lag is
over the configured threshold. Missing or malformed fields are treated as
unhealthy so a broken node is never mistaken for an in-sync one.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from loguru import logger


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


def measure_lag(payload: Mapping[str, Any], indexed_key: str, chain_key: str) -> int:
    """Return ``chain - indexed``; raises ValueError when either field is unusable."""
    indexed = _as_int(payload.get(indexed_key))
    chain = _as_int(payload.get(chain_key))
    return chain - indexed


def _fail_safe(threshold: int) -> int:
    # A lag of 0 would read as "not behind"
    return max(threshold, 1)


def blocks_behind(payload: Mapping[str, Any], unhealthy_block_diff: int) -> Optional[int]:
    """Blocks behind when over ``unhealthy_block_diff``, else None."""
    try:
        block_diff = measure_lag(payload, "latest_indexed_block", "latest_chain_block")
    except (TypeError, ValueError) as exc:
        logger.warning(f"Unusable block health fields, treating node as behind: {exc}")
        return _fail_safe(unhealthy_block_diff)
    if block_diff > unhealthy_block_diff:
        return block_diff
    return None


def plays_slots_behind(
    payload: Mapping[str, Any],
    unhealthy_slot_diff_plays: Optional[int],
) -> Optional[int]:
    """Plays slots behind when over the threshold, else None.

    A threshold of None disables the check.
    """
    if unhealthy_slot_diff_plays is None:
        return None
    try:
        slot_diff = measure_lag(payload, "latest_indexed_slot_plays", "latest_chain_slot_plays")
    except (TypeError, ValueError) as exc:
        logger.warning(f"Unusable plays slot health fields, treating node as behind: {exc}")
        return _fail_safe(unhealthy_slot_diff_plays)
    if slot_diff > unhealthy_slot_diff_plays:
        return slot_diff
    return None
