"""
Prometheus metrics for the model catalog.

Only low-cardinality labels are exported: the backend name is the single
allowed label. Artifact names and paths belong in logs, never in labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from visionmodels.catalog.snapshot import Catalog
    from visionmodels.install.installer import InstallState

# Labels that would put per-artifact values into the time series key
FORBIDDEN_LABELS = frozenset(
    {
        "artifact",
        "name",
        "path",
        "filename",
        "labels_file",
        "archive",
        "entry",
    }
)

ALLOWED_LABELS = frozenset({"backend"})


class CatalogMetricsExporter:
    """
    Prometheus exporter for discovery and install activity.

    Usage:
        registry = CollectorRegistry()
        metrics = CatalogMetricsExporter(registry=registry)
        catalog = ModelCatalog(models_root, registry=handlers, metrics=metrics)
        # generate_latest(registry) -> bytes for a /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize metrics exporter.

        Args:
            registry: Prometheus CollectorRegistry. If None, a private one is created.
        """
        self._registry = registry or CollectorRegistry()

        self._discovery_runs = Counter(
            "visionmodels_discovery_runs",
            "Completed discovery passes",
            registry=self._registry,
        )
        self._artifacts_skipped = Counter(
            "visionmodels_artifacts_skipped",
            "Owned paths skipped during discovery because they failed to load",
            registry=self._registry,
        )
        self._installs_committed = Counter(
            "visionmodels_installs_committed",
            "Uploads installed and committed",
            ["backend"],
            registry=self._registry,
        )
        self._installs_failed = Counter(
            "visionmodels_installs_failed",
            "Uploads rejected or rolled back",
            ["backend"],
            registry=self._registry,
        )
        self._install_rollbacks = Counter(
            "visionmodels_install_rollbacks",
            "Install attempts that touched the filesystem and were rolled back",
            ["backend"],
            registry=self._registry,
        )
        self._artifacts = Gauge(
            "visionmodels_artifacts",
            "Artifacts in the current catalog",
            ["backend"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Get the Prometheus CollectorRegistry."""
        return self._registry

    def record_discovery(self, catalog: Catalog, *, skipped: int) -> None:
        """Record one finished discovery pass and the catalog it produced."""
        self._discovery_runs.inc()
        if skipped > 0:
            self._artifacts_skipped.inc(skipped)
        for backend, artifacts in catalog.items():
            self._artifacts.labels(backend=backend).set(len(artifacts))

    def record_install_committed(self, backend: str) -> None:
        self._installs_committed.labels(backend=backend).inc()

    def record_install_failed(self, backend: str, state: InstallState | None = None) -> None:
        """Record a failed install.

        Args:
            backend: Backend of the selected handler ("none" if no handler matched).
            state: Last install state reached; set only when a rollback ran.
        """
        self._installs_failed.labels(backend=backend).inc()
        if state is not None:
            self._install_rollbacks.labels(backend=backend).inc()


# Counters are exported with a _total suffix by prometheus_client
REQUIRED_METRIC_NAMES: frozenset[str] = frozenset(
    {
        "visionmodels_discovery_runs_total",
        "visionmodels_artifacts_skipped_total",
        "visionmodels_installs_committed_total",
        "visionmodels_installs_failed_total",
        "visionmodels_install_rollbacks_total",
        "visionmodels_artifacts",
    }
)
