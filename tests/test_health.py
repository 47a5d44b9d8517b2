import asyncio

from discovery_provider import HealthProber

from fakes import FakeNode, fleet_client

A = "http://dn-a.test"
B = "http://dn-b.test"
C = "http://dn-c.test"


def _probe_all(nodes, prober, endpoints):
    async def scenario():
        async with fleet_client(nodes) as client:
            return await prober.probe_all_with(client, endpoints)

    return asyncio.run(scenario())


def test_probe_reports_lag_and_version() -> None:
    nodes = {A: FakeNode(indexed_block=90, chain_block=100, version="0.3.60")}
    [health] = _probe_all(nodes, HealthProber(unhealthy_block_diff=15), [A])

    assert health.reachable
    assert not health.behind
    assert health.blocks_behind == 10
    assert health.slots_behind is None
    assert health.version == "0.3.60"
    assert health.response_time_ms is not None


def test_probe_marks_node_behind() -> None:
    nodes = {A: FakeNode(indexed_block=0, chain_block=1000)}
    [health] = _probe_all(nodes, HealthProber(unhealthy_block_diff=100), [A])
    assert health.reachable
    assert health.behind
    assert health.blocks_behind == 1000


def test_probe_missing_fields_is_behind() -> None:
    nodes = {A: FakeNode(indexed_block=None, chain_block=None)}
    [health] = _probe_all(nodes, HealthProber(unhealthy_block_diff=15), [A])
    assert health.reachable
    assert health.behind
    assert health.blocks_behind == 15


def test_probe_slot_lag_only_when_enabled() -> None:
    nodes = {A: FakeNode(indexed_slot_plays=0, chain_slot_plays=5000)}

    [disabled] = _probe_all(nodes, HealthProber(unhealthy_block_diff=15), [A])
    assert not disabled.behind
    assert disabled.slots_behind is None

    [enabled] = _probe_all(
        nodes, HealthProber(unhealthy_block_diff=15, unhealthy_slot_diff_plays=100), [A]
    )
    assert enabled.behind
    assert enabled.slots_behind == 5000


def test_probe_failures_become_unreachable() -> None:
    nodes = {
        A: FakeNode(reachable=False),
        B: FakeNode(health_status=500),
    }

    results = _probe_all(nodes, HealthProber(unhealthy_block_diff=15), [A, B, C])
    assert [health.reachable for health in results] == [False, False, False]
    assert [health.endpoint for health in results] == [A, B, C]


def test_health_check_callback_errors_are_swallowed() -> None:
    seen = []

    def callback(endpoint, health):
        seen.append(endpoint)
        raise RuntimeError("metrics backend down")

    nodes = {A: FakeNode(), B: FakeNode(reachable=False)}
    results = _probe_all(nodes, HealthProber(unhealthy_block_diff=15, health_check_callback=callback), [A, B])

    assert sorted(seen) == [A, B]
    assert results[0].reachable
    assert not results[1].reachable
