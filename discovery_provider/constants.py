"""Default thresholds and timeouts for discovery node selection."""
from __future__ import annotations

HEALTH_CHECK_PATH = "health_check/verbose"

DEFAULT_UNHEALTHY_BLOCK_DIFF = 15
REQUEST_TIMEOUT_MS = 30_000
HEALTH_CHECK_TIMEOUT_MS = 5_000
RESELECT_TIMEOUT_MS = 10 * 60 * 1000
REGRESSED_MODE_TIMEOUT_MS = 10 * 60 * 1000

MAX_MAKE_REQUEST_RETRY_COUNT = 5
# 404s may come from a node that has not indexed the content yet, so a few
# other nodes are asked before the content is treated as absent.
MAX_MAKE_REQUEST_RETRIES_WITH_404 = 2
MAX_MAKE_REQUEST_ATTEMPTS = 100

USER_ID_HEADER = "X-User-ID"
REQUEST_ID_HEADER = "X-Request-ID"
