"""Prometheus metrics for ActionGate.

Metrics are kept in-process and exposed at ``/metrics`` in the Prometheus text
exposition format.

Metrics collected:
    - actiongate_actions_total: Counter of pipeline outcomes by action and status
    - actiongate_request_duration_seconds: Histogram of pipeline latency by action
    - actiongate_idempotent_replays_total: Counter of cached responses served
    - actiongate_downstream_retries_total: Counter of retried downstream calls by host
    - actiongate_audit_entries: Gauge of entries currently held by the audit log
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from threading import Lock

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _format_labels(names: Iterable[str], values: Iterable[str], extra: str = "") -> str:
    pairs = [f'{name}="{_escape(value)}"' for name, value in zip(names, values, strict=False)]
    if extra:
        pairs.append(extra)
    return "{" + ",".join(pairs) + "}" if pairs else ""


@dataclass
class _Metric:
    name: str
    description: str
    labels: tuple[str, ...] = ()
    _lock: Lock = field(default_factory=Lock, repr=False)

    kind = "untyped"

    def _header(self) -> list[str]:
        return [
            f"# HELP {self.name} {self.description}",
            f"# TYPE {self.name} {self.kind}",
        ]


@dataclass
class _ScalarMetric(_Metric):
    _values: dict[tuple[str, ...], float] = field(default_factory=dict, repr=False)

    def _add(self, label_values: tuple[str, ...], amount: float) -> None:
        with self._lock:
            self._values[label_values] = self._values.get(label_values, 0.0) + amount

    def get(self, *label_values: str) -> float:
        """Return the current value for a label combination."""
        with self._lock:
            return self._values.get(label_values, 0.0)

    def collect(self) -> str:
        """Render the metric in Prometheus text format."""
        lines = self._header()
        with self._lock:
            if not self._values:
                lines.append(f"{self.name} 0")
            for label_values, value in sorted(self._values.items()):
                lines.append(f"{self.name}{_format_labels(self.labels, label_values)} {value}")
        return "\n".join(lines)


@dataclass
class Counter(_ScalarMetric):
    """Thread-safe monotonically increasing counter."""

    kind = "counter"

    def inc(self, *label_values: str, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        self._add(label_values, amount)


@dataclass
class Gauge(_ScalarMetric):
    """Thread-safe gauge."""

    kind = "gauge"

    def set(self, value: float, *label_values: str) -> None:
        with self._lock:
            self._values[label_values] = value


@dataclass
class Histogram(_Metric):
    """Thread-safe histogram with fixed upper bounds."""

    buckets: tuple[float, ...] = DEFAULT_BUCKETS
    _series: dict[tuple[str, ...], list[int]] = field(default_factory=dict, repr=False)
    _sums: dict[tuple[str, ...], float] = field(default_factory=dict, repr=False)
    _counts: dict[tuple[str, ...], int] = field(default_factory=dict, repr=False)

    kind = "histogram"

    def __post_init__(self) -> None:
        self.buckets = tuple(sorted(self.buckets))

    def observe(self, value: float, *label_values: str) -> None:
        with self._lock:
            counts = self._series.setdefault(label_values, [0] * len(self.buckets))
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    counts[index] += 1
            self._sums[label_values] = self._sums.get(label_values, 0.0) + value
            self._counts[label_values] = self._counts.get(label_values, 0) + 1

    def collect(self) -> str:
        lines = self._header()
        with self._lock:
            for label_values in sorted(self._series):
                # Bucket counts are already cumulative: observe() bumps every bound >= value.
                for bound, hits in zip(self.buckets, self._series[label_values], strict=True):
                    label_str = _format_labels(self.labels, label_values, f'le="{bound}"')
                    lines.append(f"{self.name}_bucket{label_str} {hits}")
                total = self._counts[label_values]
                inf_labels = _format_labels(self.labels, label_values, 'le="+Inf"')
                lines.append(f"{self.name}_bucket{inf_labels} {total}")
                plain = _format_labels(self.labels, label_values)
                lines.append(f"{self.name}_sum{plain} {self._sums[label_values]}")
                lines.append(f"{self.name}_count{plain} {total}")
        return "\n".join(lines)


class MetricsRegistry:
    """Registry for all ActionGate metrics."""

    def __init__(self) -> None:
        self.actions_total = Counter(
            name="actiongate_actions_total",
            description="Pipeline outcomes by action and status",
            labels=("action", "status"),
        )
        self.request_duration_seconds = Histogram(
            name="actiongate_request_duration_seconds",
            description="Pipeline processing duration in seconds",
            labels=("action",),
        )
        self.idempotent_replays_total = Counter(
            name="actiongate_idempotent_replays_total",
            description="Execute requests answered from the idempotency cache",
            labels=("action",),
        )
        self.downstream_retries_total = Counter(
            name="actiongate_downstream_retries_total",
            description="Downstream HTTP attempts retried after a transport error",
            labels=("host",),
        )
        self.audit_entries = Gauge(
            name="actiongate_audit_entries",
            description="Entries currently retained by the audit log",
        )

    def collect_all(self) -> str:
        """Collect all metrics in Prometheus format."""
        metrics = [
            self.actions_total.collect(),
            self.request_duration_seconds.collect(),
            self.idempotent_replays_total.collect(),
            self.downstream_retries_total.collect(),
            self.audit_entries.collect(),
        ]
        return "\n\n".join(metrics) + "\n"


_metrics = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Return the process-wide metrics registry."""
    return _metrics


def reset_metrics() -> MetricsRegistry:
    """Replace the process-wide registry with a fresh one and return it."""
    global _metrics
    _metrics = MetricsRegistry()
    return _metrics
