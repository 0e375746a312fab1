"""Single-pass discovery of artifacts under a models directory."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from visionmodels.catalog.snapshot import Catalog
from visionmodels.errors import LoadError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from visionmodels.formats.base import ArtifactDescriptor, FormatHandler
    from visionmodels.metrics import CatalogMetricsExporter

logger = logging.getLogger(__name__)


def _walk(models_root: Path) -> list[Path]:
    """Every path under models_root (root excluded), in a stable order."""
    return sorted(models_root.rglob("*"))


def discover(
    models_root: Path,
    handlers: Sequence[FormatHandler],
    metrics: CatalogMetricsExporter | None = None,
) -> Catalog:
    """Build a catalog from the artifacts found under models_root.

    Handlers are consulted in priority order; the first handler that owns
    and successfully loads a path claims it. A path that fails to load is
    logged and left for later handlers.

    Never raises: a missing or unreadable root yields an empty catalog.

    Args:
        models_root: Directory to scan.
        handlers: Registered handlers, highest priority first.
        metrics: Optional exporter for discovery counters.

    Returns:
        Catalog with one bucket per handler backend.
    """
    started = time.monotonic()
    backends = tuple(h.backend_name for h in handlers)

    if not models_root.is_dir():
        logger.info("Models directory does not exist", extra={"path": str(models_root)})
        catalog = Catalog.empty(backends)
        if metrics is not None:
            metrics.record_discovery(catalog, skipped=0)
        return catalog

    try:
        paths = _walk(models_root)
    except OSError as e:
        logger.error("Failed to walk models directory", extra={"path": str(models_root), "error": str(e)})
        catalog = Catalog.empty(backends)
        if metrics is not None:
            metrics.record_discovery(catalog, skipped=0)
        return catalog

    buckets: dict[str, list[ArtifactDescriptor]] = {backend: [] for backend in backends}
    claimed: set[Path] = set()
    skipped = 0

    for handler in handlers:
        for path in paths:
            if path in claimed or not handler.owns_storage_path(path):
                continue

            result = handler.load_artifact(path, models_root)
            if isinstance(result, LoadError):
                skipped += 1
                logger.warning(
                    "Skipping artifact",
                    extra={
                        "backend": handler.backend_name,
                        "path": str(path),
                        "error_kind": type(result).__name__,
                        "error": str(result),
                    },
                )
                continue

            claimed.add(path)
            buckets[handler.backend_name].append(result)
            logger.info(
                "Loaded artifact",
                extra={
                    "backend": handler.backend_name,
                    "artifact": result.name,
                    "label_count": len(result.labels),
                },
            )

    catalog = Catalog.from_buckets(buckets)
    logger.info(
        "Discovery complete",
        extra={
            "path": str(models_root),
            "artifact_count": catalog.total,
            "skipped": skipped,
            "elapsed_ms": round((time.monotonic() - started) * 1000, 1),
        },
    )
    if metrics is not None:
        metrics.record_discovery(catalog, skipped=skipped)
    return catalog
