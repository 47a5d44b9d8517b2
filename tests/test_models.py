import pytest

from discovery_provider import EndpointHealth, MalformedRequestError, RequestDescriptor
from discovery_provider.models import version_key
from discovery_provider import queries


def test_version_key_orders_numerically() -> None:
    assert version_key("0.3.10") > version_key("0.3.9")
    assert version_key("1.0") == version_key("1.0.0")
    assert version_key("0.3.1") > version_key("0.3")
    assert version_key("0.3.5-rc1") == version_key("0.3.5")


def test_rank_key_prefers_reachable_then_in_sync_then_version() -> None:
    unreachable = EndpointHealth.unreachable("http://c")
    behind = EndpointHealth(endpoint="http://b", reachable=True, behind=True, blocks_behind=1000, version="9.9.9")
    old = EndpointHealth(endpoint="http://a", reachable=True, blocks_behind=0, version="0.3.1")
    new = EndpointHealth(endpoint="http://z", reachable=True, blocks_behind=0, version="0.3.2")

    ranked = sorted([unreachable, behind, old, new], key=EndpointHealth.rank_key)
    assert [health.endpoint for health in ranked] == ["http://z", "http://a", "http://b", "http://c"]


def test_rank_key_prefers_smaller_lag_among_behind_nodes() -> None:
    far = EndpointHealth(endpoint="http://a", reachable=True, behind=True, blocks_behind=500)
    near = EndpointHealth(endpoint="http://b", reachable=True, behind=True, blocks_behind=50)
    assert sorted([far, near], key=EndpointHealth.rank_key)[0] is near


def test_descriptor_drops_empty_query_params() -> None:
    descriptor = RequestDescriptor.build("/users/", query_params={"limit": 10, "handle": None})
    assert descriptor.path == "users"
    assert descriptor.query_params == {"limit": 10}
    assert descriptor.method == "GET"


@pytest.mark.parametrize(
    "path,kwargs",
    [
        ("", {}),
        ("/", {}),
        ("users", {"method": "PATCHY"}),
        ("users", {"timeout_ms": 0}),
    ],
)
def test_malformed_descriptor_raises(path, kwargs) -> None:
    with pytest.raises(MalformedRequestError):
        RequestDescriptor.build(path, **kwargs)


def test_query_builders() -> None:
    users = queries.get_users(limit=5, ids=[3, 2, 6], handle="someone")
    assert users.path == "users"
    assert users.query_params == {"limit": 5, "offset": 0, "id": [3, 2, 6], "handle": "someone"}

    followers = queries.get_followers_for_user(42, limit=10)
    assert followers.path == "users/followers"
    assert followers.url_params == ("42",)

    attestation = queries.get_challenge_attestation("listen-streak", "abc", "sp-1", "0xoracle")
    assert attestation.url_params == ("listen-streak", "attest")
    assert attestation.query_params["oracle"] == "0xoracle"

    trending = queries.get_trending_tracks(genre="Electronic")
    assert trending.url_params == ()
    assert trending.query_params == {"genre": "Electronic"}


def test_user_account_requires_wallet() -> None:
    with pytest.raises(MalformedRequestError):
        queries.get_user_account("")
