"""Discovery provider client: node selection, staleness checks and failover."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

import httpx
from loguru import logger

from . import queries
from .config import DiscoverySettings
from .constants import MAX_MAKE_REQUEST_ATTEMPTS
from .errors import NoHealthyEndpointError, NotFoundError, RequestFailedError
from .health import HealthCheckCallback, HealthProber
from .models import DiscoveryResponse, RequestDescriptor
from .registry import ServiceRegistry, StaticServiceRegistry
from .request_client import IdentityProvider, RequestCallback, RequestClient
from .selection import EndpointSelector, SelectionCallback
from .staleness import blocks_behind, plays_slots_behind


@dataclass
class RetryContext:
    endpoint: Optional[str] = None
    attempted_retries: int = 0
    request_404_count: int = 0
    abandoned: Set[str] = field(default_factory=set)


class DiscoveryProvider:
    """Runs requests against the healthiest discovery node, failing over as needed.

    Each call to :meth:`make_request` retries on the same node up to
    ``selection_request_retries`` times. Past that budget the node is marked
    unhealthy and a new one is selected. A 404 is retried on up to
    ``max_requests_for_true_404`` other nodes before it is accepted as a
    real absence. Exhausted retries give ``None``; only the lack of any
    usable node raises.
    """

    def __init__(
        self,
        settings: Optional[DiscoverySettings] = None,
        registry: Optional[ServiceRegistry] = None,
        selection_callback: Optional[SelectionCallback] = None,
        request_callback: Optional[RequestCallback] = None,
        health_check_callback: Optional[HealthCheckCallback] = None,
        identity_provider: Optional[IdentityProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = MAX_MAKE_REQUEST_ATTEMPTS,
    ) -> None:
        self.settings = settings or DiscoverySettings.load()
        self.registry = registry or StaticServiceRegistry(
            self.settings.endpoints,
            regressed_mode_timeout_ms=self.settings.regressed_mode_timeout_ms,
        )
        self.unhealthy_block_diff = self.settings.unhealthy_block_diff
        self.unhealthy_slot_diff_plays = self.settings.unhealthy_slot_diff_plays
        self.selection_request_retries = self.settings.selection_request_retries
        self.max_requests_for_true_404 = self.settings.max_requests_for_true_404
        self._max_attempts = max_attempts

        prober = HealthProber(
            unhealthy_block_diff=self.unhealthy_block_diff,
            unhealthy_slot_diff_plays=self.unhealthy_slot_diff_plays,
            timeout_s=self.settings.health_check_timeout_ms / 1000,
            health_check_callback=health_check_callback,
        )
        self.selector = EndpointSelector(
            registry=self.registry,
            prober=prober,
            whitelist=self.settings.whitelist,
            blacklist=self.settings.blacklist,
            reselect_timeout_ms=self.settings.reselect_timeout_ms,
            selection_callback=selection_callback,
            http_client=http_client,
        )
        self.request_client = RequestClient(
            timeout_ms=self.settings.selection_request_timeout_ms,
            request_callback=request_callback,
            identity_provider=identity_provider,
            http_client=http_client,
        )

    @property
    def endpoint(self) -> Optional[str]:
        return self.selector.current_endpoint

    async def init(self) -> Optional[str]:
        return await self.selector.select()

    def set_unhealthy_block_diff(self, block_diff: int) -> None:
        self.unhealthy_block_diff = block_diff
        self.selector.set_unhealthy_block_diff(block_diff)

    def set_unhealthy_slot_diff_plays(self, slot_diff: Optional[int]) -> None:
        self.unhealthy_slot_diff_plays = slot_diff
        self.selector.set_unhealthy_slot_diff_plays(slot_diff)

    async def make_request(self, descriptor: RequestDescriptor, retry: bool = True) -> Any:
        """Run ``descriptor`` against a healthy node and return the response ``data``.

        Returns None when the content is not found on enough nodes, when
        every retry failed or returned stale data, or when ``retry`` is off
        and the single attempt did not succeed.
        Raises NoHealthyEndpointError when no node can be selected.
        """
        ctx = RetryContext(endpoint=self.selector.current_endpoint)

        for _ in range(self._max_attempts):
            endpoint = await self._healthy_endpoint(ctx)
            if endpoint in ctx.abandoned:
                # The selector reset its unhealthy set and came back to a node this call gave up on
                logger.warning(f"Every discovery node failed {descriptor.path}, giving up")
                return None
            if endpoint != ctx.endpoint:
                if ctx.endpoint is not None:
                    logger.info(
                        f"Discovery node {ctx.endpoint} is unhealthy, switching to {endpoint}"
                    )
                ctx.endpoint = endpoint
                ctx.attempted_retries = 0

            try:
                response = await self.request_client.perform(descriptor, endpoint)
            except NotFoundError:
                logger.warning(
                    f"Discovery request {descriptor.path} returned 404 on {endpoint}, "
                    f"attempt #{ctx.attempted_retries}"
                )
                if not retry:
                    return None
                ctx.request_404_count += 1
                if ctx.request_404_count > self.max_requests_for_true_404:
                    ctx.request_404_count = 0
                    return None
                # Ask a different node before accepting the 404
                ctx.attempted_retries = self.selection_request_retries + 1
                continue
            except RequestFailedError as exc:
                logger.warning(
                    f"Failed discovery request {descriptor.path} on {endpoint}, "
                    f"attempt #{ctx.attempted_retries}: {exc}"
                )
                if not retry:
                    return None
                ctx.attempted_retries += 1
                continue

            lag = self._stale_by(response)
            if lag is not None:
                logger.info(
                    f"{endpoint} is too far behind [{lag}], retrying at attempt #{ctx.attempted_retries}"
                )
                if not retry:
                    return None
                ctx.attempted_retries += 1
                continue

            ctx.request_404_count = 0
            return response.data

        logger.warning(f"Giving up on discovery request {descriptor.path} after {self._max_attempts} attempts")
        return None

    async def perform_request_on(self, descriptor: RequestDescriptor, endpoint: str) -> Any:
        """One request against a specific node, no selection and no retries."""
        response = await self.request_client.perform(descriptor, endpoint)
        return response.data

    async def _healthy_endpoint(self, ctx: RetryContext) -> str:
        if ctx.attempted_retries > self.selection_request_retries:
            logger.info(f"Attempted max retries with discovery node {ctx.endpoint}")
            if ctx.endpoint is not None:
                self.selector.add_unhealthy(ctx.endpoint)
                ctx.abandoned.add(ctx.endpoint)
            self.selector.clear_cached()
        endpoint = await self.selector.select()
        if not endpoint:
            raise NoHealthyEndpointError()
        return endpoint

    def _stale_by(self, response: DiscoveryResponse) -> Optional[str]:
        # Regressed mode: the whole fleet is behind, there is nothing better to fail over to
        if self.registry.is_in_regressed_mode():
            return None
        payload = response.model_dump()
        block_diff = blocks_behind(payload, self.unhealthy_block_diff)
        if block_diff:
            return f"block diff: {block_diff}"
        slot_diff = plays_slots_behind(payload, self.unhealthy_slot_diff_plays)
        if slot_diff:
            return f"slot diff: {slot_diff}"
        return None

    # Application API

    async def get_users(
        self,
        limit: int = 100,
        offset: int = 0,
        ids: Optional[Sequence[int]] = None,
        wallet: Optional[str] = None,
        handle: Optional[str] = None,
        is_creator: Optional[bool] = None,
        min_block_number: Optional[int] = None,
    ) -> Any:
        return await self.make_request(
            queries.get_users(limit, offset, ids, wallet, handle, is_creator, min_block_number)
        )

    async def get_tracks(
        self,
        limit: int = 100,
        offset: int = 0,
        ids: Optional[Sequence[int]] = None,
        target_user_id: Optional[int] = None,
        sort: Optional[str] = None,
        min_block_number: Optional[int] = None,
        filter_deleted: Optional[bool] = None,
        with_users: bool = False,
    ) -> Any:
        return await self.make_request(
            queries.get_tracks(
                limit, offset, ids, target_user_id, sort, min_block_number, filter_deleted, with_users
            )
        )

    async def get_tracks_by_handle_and_slug(self, handle: str, slug: str) -> Any:
        return await self.make_request(queries.get_tracks_by_handle_and_slug(handle, slug))

    async def get_playlists(
        self,
        limit: int = 100,
        offset: int = 0,
        ids: Optional[Sequence[int]] = None,
        target_user_id: Optional[int] = None,
        with_users: bool = False,
    ) -> Any:
        return await self.make_request(queries.get_playlists(limit, offset, ids, target_user_id, with_users))

    async def get_trending_tracks(
        self,
        genre: Optional[str] = None,
        time_frame: Optional[str] = None,
        ids: Optional[Sequence[int]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Any:
        return await self.make_request(queries.get_trending_tracks(genre, time_frame, ids, limit, offset))

    async def get_followers_for_user(self, followee_user_id: int, limit: int = 100, offset: int = 0) -> Any:
        return await self.make_request(queries.get_followers_for_user(followee_user_id, limit, offset))

    async def get_followees_for_user(self, follower_user_id: int, limit: int = 100, offset: int = 0) -> Any:
        return await self.make_request(queries.get_followees_for_user(follower_user_id, limit, offset))

    async def search_full(self, text: str, kind: str, limit: int = 100, offset: int = 0) -> Any:
        return await self.make_request(queries.search_full(text, kind, limit, offset))

    async def search_autocomplete(self, text: str, limit: int = 100, offset: int = 0) -> Any:
        return await self.make_request(queries.search_autocomplete(text, limit, offset))

    async def search_tags(
        self,
        text: str,
        user_tag_count: int = 2,
        kind: str = "all",
        limit: int = 100,
        offset: int = 0,
    ) -> Any:
        return await self.make_request(queries.search_tags(text, user_tag_count, kind, limit, offset))

    async def verify_token(self, token: str) -> Union[Dict[str, Any], bool]:
        """Profile attached to a valid token, or False."""
        result = await self.make_request(queries.verify_token(token))
        if not isinstance(result, list) or not result or result[0] is None:
            return False
        return result[0]

    async def get_user_account(self, wallet: str) -> Any:
        return await self.make_request(queries.get_user_account(wallet))

    async def get_undisbursed_challenges(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        completed_block_number: Optional[int] = None,
        encoded_user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        result = await self.make_request(
            queries.get_undisbursed_challenges(limit, offset, completed_block_number, encoded_user_id)
        )
        if not result:
            return []
        return [{**item, "amount": _parse_amount(item.get("amount"))} for item in result]

    async def get_challenge_attestation(
        self,
        challenge_id: str,
        encoded_user_id: str,
        specifier: str,
        oracle_address: str,
        endpoint: str,
    ) -> Any:
        descriptor = queries.get_challenge_attestation(challenge_id, encoded_user_id, specifier, oracle_address)
        return await self.perform_request_on(descriptor, endpoint)

    async def get_create_sender_attestation(self, sender_eth_address: str, endpoint: str) -> Any:
        return await self.perform_request_on(queries.get_create_sender_attestation(sender_eth_address), endpoint)


_LEADING_INT = re.compile(r"\s*[-+]?\d+")


def _parse_amount(value: Any) -> Optional[int]:
    """Leading integer of ``value`` ("5", "5.7" and 5 all give 5), None if there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    return int(match.group()) if match else None
