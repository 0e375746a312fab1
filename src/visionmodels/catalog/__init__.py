"""Artifact discovery and the catalog manager."""

from visionmodels.catalog.bundled import extract_bundled_artifacts
from visionmodels.catalog.discovery import discover
from visionmodels.catalog.manager import DetectorFactory, ModelCatalog
from visionmodels.catalog.registry import (
    Capability,
    HandlerRegistry,
    detect_capabilities,
    handlers_for,
)
from visionmodels.catalog.snapshot import Catalog

__all__ = [
    "Capability",
    "Catalog",
    "DetectorFactory",
    "HandlerRegistry",
    "ModelCatalog",
    "detect_capabilities",
    "discover",
    "extract_bundled_artifacts",
    "handlers_for",
]
