"""Observability for the BAP: structured logging and metrics.

Example:
    >>> from beckn_bap.observability import get_logger, get_metrics
    >>> logger = get_logger(__name__)
    >>> logger.info("bap.dispatch.sent", action="search", transaction_id="t-1")
    >>> get_metrics().increment_counter("bap_dispatch_total", {"action": "search"})
"""

from beckn_bap.observability.logging import (
    configure_logging,
    get_logger,
    sanitize_for_logging,
)
from beckn_bap.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "get_metrics",
    "reset_metrics",
    "MetricsCollector",
    "sanitize_for_logging",
]
