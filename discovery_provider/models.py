"""Pydantic models shared by the prober, selector and request client."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedRequestError


QueryValue = Union[str, int, float, bool, None, List[Union[str, int, float, bool]]]

_METHODS = {"GET", "POST", "PUT", "DELETE"}
_VERSION_WIDTH = 4


def version_key(version: str) -> Tuple[int, ...]:
    """Numeric sort key for dotted versions; non-numeric parts count as 0."""
    parts: List[int] = []
    for chunk in version.split("+")[0].split("-")[0].split("."):
        digits = "".join(ch for ch in chunk if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    while len(parts) < _VERSION_WIDTH:
        parts.append(0)
    return tuple(parts)


class EndpointHealth(BaseModel):
    """Result of probing one discovery node.

    ``blocks_behind`` and ``slots_behind`` hold the measured lag, or None
    when it could not be measured (slot lag with the check disabled).
    ``behind`` is set when either lag exceeded its threshold at probe time,
    including the fail-safe case of missing health fields.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str
    reachable: bool
    behind: bool = False
    blocks_behind: Optional[int] = None
    slots_behind: Optional[int] = None
    version: str = ""
    response_time_ms: Optional[int] = None

    def rank_key(self) -> tuple:
        """Sort key, lower is better.

        Reachable before unreachable, in-sync before behind, smaller block lag,
        smaller slot lag, newer version, then endpoint name.
        """
        negated_version = tuple(-part for part in version_key(self.version))
        return (
            not self.reachable,
            self.behind,
            self.blocks_behind or 0,
            self.slots_behind or 0,
            negated_version,
            self.endpoint,
        )

    @classmethod
    def unreachable(cls, endpoint: str, response_time_ms: Optional[int] = None) -> "EndpointHealth":
        return cls(endpoint=endpoint, reachable=False, response_time_ms=response_time_ms)


class RequestDescriptor(BaseModel):
    """One logical request against a discovery node, relative to its base URL."""

    model_config = ConfigDict(frozen=True)

    path: str
    url_params: Tuple[str, ...] = ()
    query_params: Dict[str, QueryValue] = Field(default_factory=dict)
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    data: Optional[Dict[str, Any]] = None
    timeout_ms: Optional[int] = Field(default=None, gt=0)

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value:
            raise ValueError("path must not be empty")
        return value

    @field_validator("method")
    @classmethod
    def _known_method(cls, value: str) -> str:
        value = value.upper()
        if value not in _METHODS:
            raise ValueError(f"unsupported method: {value}")
        return value

    @field_validator("query_params")
    @classmethod
    def _drop_empty_params(cls, value: Dict[str, QueryValue]) -> Dict[str, QueryValue]:
        return {key: item for key, item in value.items() if item is not None}

    @classmethod
    def build(cls, path: str, **kwargs: Any) -> "RequestDescriptor":
        try:
            return cls(path=path, **kwargs)
        except ValidationError as exc:
            raise MalformedRequestError(f"Malformed request for {path!r}: {exc}") from exc


class DiscoveryResponse(BaseModel):
    """Envelope every discovery node wraps its payload in.

    Health fields are kept as received; staleness checks do their own
    conversion so a malformed value counts as unhealthy instead of failing
    the parse.
    """

    model_config = ConfigDict(extra="allow")

    data: Any = None
    latest_indexed_block: Any = None
    latest_chain_block: Any = None
    latest_indexed_slot_plays: Any = None
    latest_chain_slot_plays: Any = None
    version: Any = None
    signer: Optional[str] = None
    signature: Optional[str] = None


class RequestEvent(BaseModel):
    endpoint: str
    pathname: str
    query_string: str
    request_method: str
    status: Optional[int] = None
    response_time_millis: int
    signer: Optional[str] = None
    signature: Optional[str] = None
