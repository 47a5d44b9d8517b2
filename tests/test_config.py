import pytest

from discovery_provider import DiscoverySettings
from discovery_provider.constants import DEFAULT_UNHEALTHY_BLOCK_DIFF, MAX_MAKE_REQUEST_RETRY_COUNT

_ENV_VARS = [
    "DISCOVERY_ENDPOINTS",
    "DISCOVERY_WHITELIST",
    "DISCOVERY_BLACKLIST",
    "DISCOVERY_SELECTION_REQUEST_RETRIES",
    "DISCOVERY_UNHEALTHY_BLOCK_DIFF",
    "DISCOVERY_UNHEALTHY_SLOT_DIFF_PLAYS",
    "DISCOVERY_MAX_REQUESTS_FOR_TRUE_404",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_load_defaults(clean_env) -> None:
    settings = DiscoverySettings.load()
    assert settings.endpoints == ()
    assert settings.whitelist is None
    assert settings.unhealthy_block_diff == DEFAULT_UNHEALTHY_BLOCK_DIFF
    assert settings.selection_request_retries == MAX_MAKE_REQUEST_RETRY_COUNT
    assert settings.unhealthy_slot_diff_plays is None
    assert settings.max_requests_for_true_404 == 2


def test_load_from_env(clean_env) -> None:
    clean_env.setenv("DISCOVERY_ENDPOINTS", "https://dn1.test/, https://dn2.test")
    clean_env.setenv("DISCOVERY_BLACKLIST", "https://dn2.test")
    clean_env.setenv("DISCOVERY_SELECTION_REQUEST_RETRIES", "3")
    clean_env.setenv("DISCOVERY_UNHEALTHY_SLOT_DIFF_PLAYS", "200")

    settings = DiscoverySettings.load()
    assert settings.endpoints == ("https://dn1.test", "https://dn2.test")
    assert settings.blacklist == frozenset({"https://dn2.test"})
    assert settings.selection_request_retries == 3
    assert settings.unhealthy_slot_diff_plays == 200


def test_invalid_int_raises(clean_env) -> None:
    clean_env.setenv("DISCOVERY_UNHEALTHY_BLOCK_DIFF", "lots")
    with pytest.raises(ValueError):
        DiscoverySettings.load()


def test_negative_retries_rejected() -> None:
    with pytest.raises(ValueError):
        DiscoverySettings(selection_request_retries=-1)


def test_with_overrides_keeps_other_fields() -> None:
    settings = DiscoverySettings(endpoints=("http://a",), unhealthy_block_diff=50)
    changed = settings.with_overrides(unhealthy_block_diff=5)
    assert changed.endpoints == ("http://a",)
    assert changed.unhealthy_block_diff == 5
    assert settings.unhealthy_block_diff == 50
