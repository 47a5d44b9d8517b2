import pytest

from discovery_provider.staleness import blocks_behind, measure_lag, plays_slots_behind


def test_blocks_behind_within_threshold() -> None:
    payload = {"latest_indexed_block": 95, "latest_chain_block": 100}
    assert blocks_behind(payload, unhealthy_block_diff=15) is None


def test_blocks_behind_over_threshold() -> None:
    payload = {"latest_indexed_block": 0, "latest_chain_block": 1000}
    assert blocks_behind(payload, unhealthy_block_diff=100) == 1000


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"latest_chain_block": 100},
        {"latest_indexed_block": 100},
        {"latest_indexed_block": "abc", "latest_chain_block": 100},
        {"latest_indexed_block": None, "latest_chain_block": 100},
        {"latest_indexed_block": {"block": 1}, "latest_chain_block": 100},
    ],
)
def test_missing_block_fields_count_as_behind(payload) -> None:
    assert blocks_behind(payload, unhealthy_block_diff=15) == 15


def test_missing_block_fields_behind_even_with_zero_threshold() -> None:
    assert blocks_behind({}, unhealthy_block_diff=0) == 1


def test_numeric_strings_are_accepted() -> None:
    assert measure_lag(
        {"latest_indexed_block": "90", "latest_chain_block": "100"},
        "latest_indexed_block",
        "latest_chain_block",
    ) == 10


def test_slot_check_disabled_ignores_any_lag() -> None:
    payload = {"latest_indexed_slot_plays": 0, "latest_chain_slot_plays": 10_000_000}
    assert plays_slots_behind(payload, None) is None
    assert plays_slots_behind({}, None) is None


def test_slot_check_over_threshold() -> None:
    payload = {"latest_indexed_slot_plays": 100, "latest_chain_slot_plays": 400}
    assert plays_slots_behind(payload, 200) == 300
    assert plays_slots_behind(payload, 500) is None


def test_slot_check_missing_fields_fail_safe() -> None:
    assert plays_slots_behind({"latest_chain_slot_plays": 400}, 200) == 200
