"""Artifact naming convention: name-width-height-version[suffix]."""

from visionmodels.naming.convention import (
    LABELS_SUFFIX,
    ArtifactName,
    ModelFamily,
    check_match,
    format_artifact_name,
    parse_artifact_name,
    verify_match,
)

__all__ = [
    "LABELS_SUFFIX",
    "ArtifactName",
    "ModelFamily",
    "check_match",
    "format_artifact_name",
    "parse_artifact_name",
    "verify_match",
]
