"""Prometheus metrics for the backup loop.

The orchestrator only talks to the narrow :class:`MetricsRecorder` protocol;
:class:`PrometheusMetrics` is the implementation exported over HTTP by
:mod:`redis_vault.server`.
"""

from __future__ import annotations

from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

NAMESPACE = "redis_vault"

# ==================== METRICS DEFINITIONS ====================

COUNTERS: dict[str, str] = {
    "backups_attempted_total": "Backup cycles in which this node was eligible for backup",
    "backups_succeeded_total": "Snapshots uploaded successfully",
    "backups_failed_total": "Backup cycles that failed before or during upload",
    "backups_skipped_total": "Backup cycles skipped because of the node's role",
    "retention_runs_total": "Retention passes started",
    "retention_failed_total": "Retention passes aborted because listing failed",
    "retention_deleted_total": "Old snapshots deleted by retention",
    "retention_delete_failed_total": "Snapshot deletions that failed",
}

GAUGES: dict[str, str] = {
    "last_backup_timestamp_seconds": "Unix timestamp of the last successful backup",
    "last_backup_size_bytes": "Size of the last successfully uploaded snapshot",
}

HISTOGRAMS: dict[str, tuple[str, tuple[float, ...]]] = {
    "backup_duration_seconds": (
        "Duration of snapshot uploads in seconds",
        (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0),
    ),
}


class MetricsRecorder(Protocol):
    """Write-only view of the metrics used by the backup loop."""

    def increment(self, name: str) -> None: ...

    def set_gauge(self, name: str, value: float) -> None: ...

    def observe(self, name: str, value: float) -> None: ...


class PrometheusMetrics:
    """MetricsRecorder backed by a private prometheus_client registry.

    prometheus_client metrics are lock-protected, so the HTTP server thread
    can scrape while the backup loop writes.
    """

    def __init__(self, registry: CollectorRegistry | None = None, namespace: str = NAMESPACE):
        self.registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self.namespace = namespace

        self._counters = {
            name: Counter(name.removesuffix("_total"), doc, namespace=namespace, registry=self.registry)
            for name, doc in COUNTERS.items()
        }
        self._gauges = {
            name: Gauge(name, doc, namespace=namespace, registry=self.registry) for name, doc in GAUGES.items()
        }
        self._histograms = {
            name: Histogram(name, doc, buckets=buckets, namespace=namespace, registry=self.registry)
            for name, (doc, buckets) in HISTOGRAMS.items()
        }

    def increment(self, name: str) -> None:
        self._counters[name].inc()

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name].set(value)

    def observe(self, name: str, value: float) -> None:
        self._histograms[name].observe(value)

    def value(self, name: str) -> float:
        """Current value of a counter or gauge (0.0 if never touched)."""
        if name not in self._counters and name not in self._gauges:
            raise KeyError(name)
        sample = self.registry.get_sample_value(f"{self.namespace}_{name}")
        return sample or 0.0

    def render(self) -> bytes:
        """Prometheus text exposition of every metric."""
        return generate_latest(self.registry)
