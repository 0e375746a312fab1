"""Model catalog manager.

Owns the current catalog snapshot, answers lookups, and re-runs discovery
after every committed install. Readers always see a whole snapshot: each
discovery builds a new Catalog and swaps the reference in one assignment.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, TypeVar

from visionmodels.catalog.discovery import discover
from visionmodels.catalog.snapshot import Catalog
from visionmodels.errors import (
    InstallStepFailure,
    LoadError,
    ModelCatalogError,
    NoHandlerForUploadError,
)
from visionmodels.formats.base import ArtifactKind

if TYPE_CHECKING:
    from pathlib import Path

    from visionmodels.catalog.registry import HandlerRegistry
    from visionmodels.formats.base import ArtifactDescriptor, BackendInfo
    from visionmodels.formats.uploads import Upload
    from visionmodels.metrics import CatalogMetricsExporter

logger = logging.getLogger(__name__)

DetectorT = TypeVar("DetectorT", covariant=True)


class DetectorFactory(Protocol[DetectorT]):
    """Turns a committed artifact into an inference-engine detector."""

    def __call__(self, descriptor: ArtifactDescriptor) -> DetectorT: ...


class ModelCatalog:
    """Catalog of installed artifacts for a set of registered handlers.

    Usage:
        registry = HandlerRegistry.from_capabilities([Capability.RKNN])
        catalog = ModelCatalog(Path("models"), registry)
        catalog.discover()
        artifact = catalog.default_artifact()
    """

    def __init__(
        self,
        models_root: Path,
        registry: HandlerRegistry,
        metrics: CatalogMetricsExporter | None = None,
    ) -> None:
        """
        Initialize catalog manager.

        The catalog is empty until discover() is called.

        Args:
            models_root: Directory holding artifacts and labels files.
            registry: Handlers in priority order.
            metrics: Optional Prometheus exporter.
        """
        self._models_root = models_root
        self._registry = registry
        self._metrics = metrics
        self._catalog = Catalog.empty(registry.backend_names)
        # Serializes writers (discovery, install); readers never take it
        self._write_lock = threading.Lock()

    @property
    def models_root(self) -> Path:
        return self._models_root

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    # --- Discovery ---

    def discover(self) -> Catalog:
        """Rebuild the catalog from disk and publish it."""
        with self._write_lock:
            return self._rediscover()

    def _rediscover(self) -> Catalog:
        catalog = discover(self._models_root, self._registry, metrics=self._metrics)
        self._catalog = catalog
        return catalog

    # --- Lookup (lock-free: reads one snapshot reference) ---

    def catalog(self) -> Catalog:
        """Current snapshot."""
        return self._catalog

    def list_backends(self) -> list[str]:
        """Registered backend names, in registration order."""
        return list(self._catalog.backends)

    def supported_backends(self) -> list[BackendInfo]:
        return self._registry.infos()

    def list_artifacts(self, backend_name: str) -> list[ArtifactDescriptor]:
        """Artifacts of one backend sorted by name; empty if unknown."""
        return list(self._catalog.get(backend_name, ()))

    def list_models(self) -> dict[str, list[str]]:
        """Backend name -> artifact names, for pickers."""
        return {
            backend: [artifact.name for artifact in artifacts]
            for backend, artifacts in self._catalog.items()
        }

    def find_by_name(self, name: str) -> ArtifactDescriptor | None:
        """First artifact with this display name, searching backends in order."""
        for artifact in self._catalog.artifacts():
            if artifact.name == name:
                return artifact
        return None

    def default_artifact(self) -> ArtifactDescriptor | None:
        """First artifact of the first registered backend that has any."""
        snapshot = self._catalog
        for backend in snapshot.backends:
            artifacts = snapshot[backend]
            if artifacts:
                return artifacts[0]
        return None

    # --- Install ---

    def install_upload(self, model_upload: Upload, labels_upload: Upload) -> ArtifactDescriptor:
        """Install an uploaded artifact pair and refresh the catalog.

        Steps: pick the first handler whose filename pre-check accepts the
        pair, validate declared extensions, install transactionally, then
        re-run discovery.

        Returns:
            Descriptor of the installed artifact from the refreshed catalog.

        Raises:
            NoHandlerForUploadError: No handler accepts the filenames.
            UploadValidationError: Declared extensions are wrong.
            InvalidNameError: Names violate the convention or do not match.
            InstallStepFailure: A filesystem step failed (already rolled back).
            LoadError: The committed artifact could not be loaded back.
        """
        handler = self._registry.select_for_upload(model_upload.filename, labels_upload.filename)
        if handler is None:
            self._record_failure("none")
            msg = (
                f"No handler accepts model {model_upload.filename!r} with "
                f"labels {labels_upload.filename!r}; supported uploads: "
                f"{', '.join(h.upload_suffix for h in self._registry)}"
            )
            raise NoHandlerForUploadError(msg)

        validation_error = handler.validate_upload_content(model_upload, labels_upload)
        if validation_error is not None:
            self._record_failure(handler.backend_name)
            raise validation_error

        logger.info(
            "Installing upload",
            extra={"backend": handler.backend_name, "model": model_upload.filename},
        )
        with self._write_lock:
            try:
                storage_path = handler.install(model_upload, labels_upload, self._models_root)
            except InstallStepFailure as e:
                self._record_failure(handler.backend_name, e)
                raise
            except ModelCatalogError:
                self._record_failure(handler.backend_name)
                raise

            if self._metrics is not None:
                self._metrics.record_install_committed(handler.backend_name)
            catalog = self._rediscover()

        for artifact in catalog.get(handler.backend_name, ()):
            if artifact.storage_path == storage_path:
                return artifact

        # Committed but not loadable: surface why discovery skipped it
        result = handler.load_artifact(storage_path, self._models_root)
        if isinstance(result, LoadError):
            raise result
        return result

    def _record_failure(self, backend: str, failure: InstallStepFailure | None = None) -> None:
        if self._metrics is not None:
            self._metrics.record_install_failed(
                backend, failure.state if failure is not None else None
            )

    # --- Detector boundary ---

    def load_detector(self, name: str, factory: DetectorFactory[DetectorT]) -> DetectorT:
        """Hand a catalogued artifact to an inference-engine factory.

        Raises:
            KeyError: No artifact with this name is catalogued.
            LoadError: The artifact's storage path no longer has its
                declared kind.
        """
        artifact = self.find_by_name(name)
        if artifact is None:
            msg = f"No artifact named {name!r}"
            raise KeyError(msg)

        path = artifact.storage_path
        present = path.is_dir() if artifact.kind is ArtifactKind.DIRECTORY else path.is_file()
        if not present:
            raise LoadError(path, f"Artifact {name!r} is no longer present as a {artifact.kind.value}")

        logger.info("Loading detector", extra={"backend": artifact.backend, "artifact": artifact.name})
        return factory(artifact)
