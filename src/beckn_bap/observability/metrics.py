"""BAP metrics collection.

Thread-safe counters and histograms exported in Prometheus text format at
``GET /metrics``. Only metrics declared up front are recorded; unknown
names are ignored so a typo never raises on the request path.

Example:
    >>> from beckn_bap.observability.metrics import get_metrics
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("bap_callbacks_total", {"action": "on_search", "ack": "ACK"})
    >>> "bap_callbacks_total" in metrics.export_prometheus()
    True
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]

DEFAULT_LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


@dataclass
class Counter:
    """A monotonically increasing counter, one value per label set."""

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        return self.values.get(_label_key(labels), 0.0)


@dataclass
class _HistogramSeries:
    bucket_counts: list[float]
    total: float = 0.0
    count: float = 0.0


@dataclass
class Histogram:
    """A cumulative-bucket histogram, one series per label set."""

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    series: dict[LabelKey, _HistogramSeries] = field(default_factory=dict)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        data = self.series.get(key)
        if data is None:
            data = _HistogramSeries(bucket_counts=[0.0] * len(self.buckets))
            self.series[key] = data
        for index, bound in enumerate(self.buckets):
            if value <= bound:
                data.bucket_counts[index] += 1.0
        data.total += value
        data.count += 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        data = self.series.get(_label_key(labels))
        return data.count if data else 0.0


def _format_labels(labels: LabelKey, extra: tuple[str, str] | None = None) -> str:
    pairs = list(labels)
    if extra is not None:
        pairs.append(extra)
    if not pairs:
        return ""
    escaped = [(k, v.replace("\\", "\\\\").replace('"', '\\"')) for k, v in pairs]
    return "{" + ",".join(f'{k}="{v}"' for k, v in escaped) + "}"


class MetricsCollector:
    """Collects BAP metrics and renders them in Prometheus exposition format."""

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "bap_callbacks_total": "Callbacks received, by action and ack status",
        "bap_auth_failures_total": "Callbacks rejected by Authorization verification, by reason",
        "bap_context_errors_total": "Callbacks rejected for an invalid context",
        "bap_unknown_transaction_total": "Callbacks for a transaction_id the store does not know",
        "bap_dispatch_total": "Outbound protocol calls, by action and status",
        "bap_state_transitions_total": "Transaction status transitions",
        "bap_out_of_sequence_total": "Callbacks arriving against the stage order",
        "bap_transactions_created_total": "Transactions created in the correlation store",
        "bap_transactions_evicted_total": "Transactions removed by sweep",
        "bap_subscribe_challenges_total": "Registry subscription challenges, by outcome",
    }

    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "bap_dispatch_duration_seconds": "Outbound protocol call duration in seconds",
        "bap_callback_duration_seconds": "Callback handling duration in seconds",
    }

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._counters = {
            name: Counter(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_COUNTERS.items()
        }
        self._histograms = {
            name: Histogram(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_HISTOGRAMS.items()
        }

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        with self._lock:
            counter = self._counters.get(name)
            if counter is not None:
                counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            histogram = self._histograms.get(name)
            if histogram is not None:
                histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            counter = self._counters.get(name)
            return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            histogram = self._histograms.get(name)
            return histogram.get_count(labels) if histogram is not None else 0.0

    def export_prometheus(self) -> str:
        lines: list[str] = []
        with self._lock:
            for counter in self._counters.values():
                lines.append(f"# HELP {counter.name} {counter.help_text}")
                lines.append(f"# TYPE {counter.name} counter")
                if not counter.values:
                    lines.append(f"{counter.name} 0")
                for key, value in counter.values.items():
                    lines.append(f"{counter.name}{_format_labels(key)} {value}")

            for histogram in self._histograms.values():
                lines.append(f"# HELP {histogram.name} {histogram.help_text}")
                lines.append(f"# TYPE {histogram.name} histogram")
                for key, data in histogram.series.items():
                    for bound, bucket_count in zip(histogram.buckets, data.bucket_counts):
                        labels = _format_labels(key, ("le", str(bound)))
                        lines.append(f"{histogram.name}_bucket{labels} {bucket_count}")
                    labels = _format_labels(key, ("le", "+Inf"))
                    lines.append(f"{histogram.name}_bucket{labels} {data.count}")
                    lines.append(f"{histogram.name}_sum{_format_labels(key)} {data.total}")
                    lines.append(f"{histogram.name}_count{_format_labels(key)} {data.count}")

            uptime = time.time() - self._start_time
            lines.append("# HELP bap_process_uptime_seconds Time since process start")
            lines.append("# TYPE bap_process_uptime_seconds gauge")
            lines.append(f"bap_process_uptime_seconds {uptime:.3f}")

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics to zero. Useful for testing."""
        with self._lock:
            for counter in self._counters.values():
                counter.values.clear()
            for histogram in self._histograms.values():
                histogram.series.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Return the process-wide metrics collector."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Reset the process-wide metrics collector. Useful for testing."""
    with _collector_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset()
