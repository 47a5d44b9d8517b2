"""Request builders for the discovery node application API."""
from __future__ import annotations

from typing import List, Optional, Sequence

from .errors import MalformedRequestError
from .models import RequestDescriptor


def get_users(
    limit: int = 100,
    offset: int = 0,
    ids: Optional[Sequence[int]] = None,
    wallet: Optional[str] = None,
    handle: Optional[str] = None,
    is_creator: Optional[bool] = None,
    min_block_number: Optional[int] = None,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "users",
        query_params={
            "limit": limit,
            "offset": offset,
            "id": _id_list(ids),
            "wallet": wallet,
            "handle": handle,
            "is_creator": is_creator,
            "min_block_number": min_block_number,
        },
    )


def get_tracks(
    limit: int = 100,
    offset: int = 0,
    ids: Optional[Sequence[int]] = None,
    target_user_id: Optional[int] = None,
    sort: Optional[str] = None,
    min_block_number: Optional[int] = None,
    filter_deleted: Optional[bool] = None,
    with_users: bool = False,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "tracks",
        query_params={
            "limit": limit,
            "offset": offset,
            "id": _id_list(ids),
            "user_id": target_user_id,
            "sort": sort,
            "min_block_number": min_block_number,
            "filter_deleted": filter_deleted,
            "with_users": with_users or None,
        },
    )


def get_tracks_by_handle_and_slug(handle: str, slug: str) -> RequestDescriptor:
    return RequestDescriptor.build("v1/tracks", query_params={"handle": handle, "slug": slug})


def get_playlists(
    limit: int = 100,
    offset: int = 0,
    ids: Optional[Sequence[int]] = None,
    target_user_id: Optional[int] = None,
    with_users: bool = False,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "playlists",
        query_params={
            "limit": limit,
            "offset": offset,
            "playlist_id": _id_list(ids),
            "user_id": target_user_id,
            "with_users": with_users or None,
        },
    )


def get_trending_tracks(
    genre: Optional[str] = None,
    time_frame: Optional[str] = None,
    ids: Optional[Sequence[int]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "trending",
        url_params=(time_frame,) if time_frame else (),
        query_params={"genre": genre, "id": _id_list(ids), "limit": limit, "offset": offset},
    )


def get_followers_for_user(followee_user_id: int, limit: int = 100, offset: int = 0) -> RequestDescriptor:
    return RequestDescriptor.build(
        "users/followers",
        url_params=(str(followee_user_id),),
        query_params={"limit": limit, "offset": offset},
    )


def get_followees_for_user(follower_user_id: int, limit: int = 100, offset: int = 0) -> RequestDescriptor:
    return RequestDescriptor.build(
        "users/followees",
        url_params=(str(follower_user_id),),
        query_params={"limit": limit, "offset": offset},
    )


def search_full(text: str, kind: str, limit: int = 100, offset: int = 0) -> RequestDescriptor:
    return RequestDescriptor.build(
        "search/full",
        query_params={"query": text, "kind": kind, "limit": limit, "offset": offset},
    )


def search_autocomplete(text: str, limit: int = 100, offset: int = 0) -> RequestDescriptor:
    return RequestDescriptor.build(
        "search/autocomplete",
        query_params={"query": text, "limit": limit, "offset": offset},
    )


def search_tags(
    text: str,
    user_tag_count: int = 2,
    kind: str = "all",
    limit: int = 100,
    offset: int = 0,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "search/tags",
        query_params={
            "query": text,
            "user_tag_count": user_tag_count,
            "kind": kind,
            "limit": limit,
            "offset": offset,
        },
    )


def verify_token(token: str) -> RequestDescriptor:
    return RequestDescriptor.build("v1/users/verify_token", query_params={"token": token})


def get_user_account(wallet: str) -> RequestDescriptor:
    if not wallet:
        raise MalformedRequestError("wallet is required")
    return RequestDescriptor.build("users/account", query_params={"wallet": wallet})


def get_undisbursed_challenges(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    completed_block_number: Optional[int] = None,
    encoded_user_id: Optional[str] = None,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "v1/challenges/undisbursed",
        query_params={
            "limit": limit,
            "offset": offset,
            "completed_blocknumber": completed_block_number,
            "user_id": encoded_user_id,
        },
    )


def get_challenge_attestation(
    challenge_id: str,
    encoded_user_id: str,
    specifier: str,
    oracle_address: str,
) -> RequestDescriptor:
    return RequestDescriptor.build(
        "v1/challenges",
        url_params=(challenge_id, "attest"),
        query_params={"user_id": encoded_user_id, "specifier": specifier, "oracle": oracle_address},
    )


def get_create_sender_attestation(sender_eth_address: str) -> RequestDescriptor:
    return RequestDescriptor.build(
        "v1/challenges/attest_sender",
        query_params={"sender_eth_address": sender_eth_address},
    )


def _id_list(ids: Optional[Sequence[int]]) -> Optional[List[int]]:
    if not ids:
        return None
    return [int(item) for item in ids]
