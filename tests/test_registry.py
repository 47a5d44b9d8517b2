import asyncio
import time

from discovery_provider import ServiceRegistry, StaticServiceRegistry


def test_endpoints_are_normalized_and_deduplicated() -> None:
    registry = StaticServiceRegistry(["http://dn-a.test/", "http://dn-a.test", " http://dn-b.test "])
    assert asyncio.run(registry.list_endpoints()) == ["http://dn-a.test", "http://dn-b.test"]

    registry.set_endpoints(["http://dn-c.test/"])
    assert asyncio.run(registry.list_endpoints()) == ["http://dn-c.test"]


def test_static_registry_satisfies_protocol() -> None:
    assert isinstance(StaticServiceRegistry([]), ServiceRegistry)


def test_regressed_mode_lapses_after_timeout() -> None:
    registry = StaticServiceRegistry([], regressed_mode_timeout_ms=10)
    assert not registry.is_in_regressed_mode()

    registry.enter_regressed_mode()
    assert registry.is_in_regressed_mode()

    time.sleep(0.03)
    assert not registry.is_in_regressed_mode()


def test_pinned_regressed_mode() -> None:
    registry = StaticServiceRegistry([], regressed_mode=True)
    assert registry.is_in_regressed_mode()

    registry.set_regressed_mode(False)
    assert not registry.is_in_regressed_mode()
