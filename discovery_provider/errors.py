"""Errors raised by the discovery provider client."""
from __future__ import annotations

from typing import Any, Optional


class DiscoveryProviderError(Exception):
    pass


class NoHealthyEndpointError(DiscoveryProviderError):
    def __init__(self, message: str = "All discovery providers are unhealthy and unavailable.") -> None:
        super().__init__(message)


class MalformedRequestError(DiscoveryProviderError, ValueError):
    pass


class RequestFailedError(DiscoveryProviderError):
    """A single request to a discovery node failed.

    ``status`` is None when no HTTP response was received (connection error,
    timeout). ``body`` holds the decoded response body or the underlying
    exception.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.endpoint = endpoint


class NotFoundError(RequestFailedError):
    def __init__(self, endpoint: Optional[str] = None, body: Any = None) -> None:
        super().__init__("404", status=404, body=body, endpoint=endpoint)
