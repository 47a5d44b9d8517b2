"""
Client for a fleet of redundant discovery nodes.

Every node indexes the same data and reports how far behind the chain it
is. The client keeps talking to one healthy node and moves to another when
that node fails or falls behind.

Request Flow:
    DiscoveryProvider.make_request
    ├── EndpointSelector.select → cached node, or a fresh probe round
    │   └── HealthProber.probe_all → GET {node}/health_check/verbose (concurrent)
    ├── RequestClient.perform → GET/POST {node}/{path}?{query}
    └── staleness check → block lag / plays slot lag (skipped in regressed mode)
"""
from .config import DiscoverySettings
from .errors import (
    DiscoveryProviderError,
    MalformedRequestError,
    NoHealthyEndpointError,
    NotFoundError,
    RequestFailedError,
)
from .health import HealthProber
from .models import DiscoveryResponse, EndpointHealth, RequestDescriptor, RequestEvent
from .provider import DiscoveryProvider, RetryContext
from .registry import ServiceRegistry, StaticServiceRegistry
from .request_client import RequestClient
from .selection import EndpointSelector, SelectionState

__all__ = [
    "DiscoveryProvider",
    "DiscoveryProviderError",
    "DiscoveryResponse",
    "DiscoverySettings",
    "EndpointHealth",
    "EndpointSelector",
    "HealthProber",
    "MalformedRequestError",
    "NoHealthyEndpointError",
    "NotFoundError",
    "RequestClient",
    "RequestDescriptor",
    "RequestEvent",
    "RequestFailedError",
    "RetryContext",
    "SelectionState",
    "ServiceRegistry",
    "StaticServiceRegistry",
]
