"""Artifact naming convention.

Every artifact and its companion labels file follow one grammar:
    {base}-{width}-{height}-{version_tag}{suffix}

Examples:
    note-640-640-yolov5s.rknn
    note-640-640-yolov5s-labels.txt
    demo-640-640-yolov8n.mlpackage.zip
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from visionmodels.errors import (
    CompanionMismatchError,
    InvalidNameError,
    MalformedNameError,
)

LABELS_SUFFIX = "-labels.txt"

# Recognized version tags: family prefix plus optional size letters (n/s/m/l/x)
VERSION_TAG_PATTERN = r"yolov(?:5|8|11)[nsmlx]*"

_FAMILY_PREFIXES: tuple[tuple[str, str], ...] = (
    ("yolov11", "YOLO_V11"),
    ("yolov5", "YOLO_V5"),
    ("yolov8", "YOLO_V8"),
)


class ModelFamily(str, Enum):
    """Detector model family derived from the version tag."""

    YOLO_V5 = "YOLO_V5"
    YOLO_V8 = "YOLO_V8"
    YOLO_V11 = "YOLO_V11"

    @classmethod
    def from_version_tag(cls, version_tag: str) -> ModelFamily:
        """Map a version tag such as "yolov8n" to its family."""
        for prefix, member in _FAMILY_PREFIXES:
            if version_tag.startswith(prefix):
                return cls(member)
        msg = f"Unknown model version tag: {version_tag!r}"
        raise ValueError(msg)


@dataclass(frozen=True)
class ArtifactName:
    """Parsed naming-convention tuple.

    Two names are companion-matched iff all four fields are equal.

    Attributes:
        base_name: Free-form name part (letters, digits, '.', '_', '-').
        width: Model input width in pixels (> 0).
        height: Model input height in pixels (> 0).
        version_tag: Version tag, e.g. "yolov5s".
    """

    base_name: str
    width: int
    height: int
    version_tag: str

    @property
    def stem(self) -> str:
        """Name without any suffix: base-width-height-version."""
        return f"{self.base_name}-{self.width}-{self.height}-{self.version_tag}"

    @property
    def family(self) -> ModelFamily:
        return ModelFamily.from_version_tag(self.version_tag)

    @property
    def size_suffix(self) -> str:
        """Trailing size letters of the version tag ("" if none)."""
        match = re.fullmatch(r"yolov(?:5|8|11)([nsmlx]*)", self.version_tag)
        return match.group(1) if match else ""

    def filename(self, suffix: str) -> str:
        """Render this name with the given suffix."""
        return f"{self.stem}{suffix}"

    @property
    def labels_filename(self) -> str:
        """Name of the companion labels file."""
        return self.filename(LABELS_SUFFIX)


@lru_cache(maxsize=32)
def naming_pattern(suffix: str) -> re.Pattern[str]:
    """Compile the full grammar for one suffix."""
    return re.compile(
        r"^"
        r"(?P<base>[A-Za-z0-9._-]+)"
        r"-(?P<width>\d+)"
        r"-(?P<height>\d+)"
        rf"-(?P<version>{VERSION_TAG_PATTERN})"
        rf"{re.escape(suffix)}"
        r"$"
    )


@lru_cache(maxsize=32)
def _loose_pattern(suffix: str) -> re.Pattern[str]:
    # Same shape with any version token; used only to explain failures
    return re.compile(
        rf"^(?P<base>[A-Za-z0-9._-]+)-(?P<width>\d+)-(?P<height>\d+)-(?P<version>[A-Za-z0-9]+){re.escape(suffix)}$"
    )


def _parse_dimension(value: str, field: str, filename: str, suffix: str) -> int:
    number = int(value)
    if number <= 0:
        raise MalformedNameError(filename, suffix, f"{field} must be a positive integer")
    if value.startswith("0"):
        raise MalformedNameError(filename, suffix, f"{field} must not have leading zeros")
    return number


def parse_artifact_name(filename: str | None, expected_suffix: str) -> ArtifactName:
    """Parse a filename against the naming grammar for one suffix.

    Args:
        filename: Bare filename (no directory part).
        expected_suffix: Suffix the name must end with, e.g. ".rknn" or
            "-labels.txt".

    Returns:
        Parsed ArtifactName.

    Raises:
        MalformedNameError: If the name is missing, does not match the grammar,
            has a zero or zero-padded dimension, or an unknown version tag.
    """
    if not filename:
        raise MalformedNameError(filename, expected_suffix, "name is empty")

    match = naming_pattern(expected_suffix).match(filename)
    if match is None:
        loose = _loose_pattern(expected_suffix).match(filename)
        if loose is not None:
            reason = f"unrecognized version tag {loose.group('version')!r}"
        elif not filename.endswith(expected_suffix):
            reason = f"expected suffix {expected_suffix!r}"
        else:
            reason = "name does not match the grammar"
        raise MalformedNameError(filename, expected_suffix, reason)

    width = _parse_dimension(match.group("width"), "width", filename, expected_suffix)
    height = _parse_dimension(match.group("height"), "height", filename, expected_suffix)

    return ArtifactName(
        base_name=match.group("base"),
        width=width,
        height=height,
        version_tag=match.group("version"),
    )


def format_artifact_name(name: ArtifactName, suffix: str) -> str:
    """Inverse of parse_artifact_name."""
    return name.filename(suffix)


def verify_match(
    model_filename: str | None,
    labels_filename: str | None,
    *,
    model_suffix: str,
) -> ArtifactName:
    """Verify that a model name and its labels name are companion-matched.

    Args:
        model_filename: Model (or archive) filename.
        labels_filename: Labels filename.
        model_suffix: Suffix grammar for the model filename.

    Returns:
        The parsed model name.

    Raises:
        MalformedNameError: If either name fails to parse.
        CompanionMismatchError: If both parse but any field differs.
    """
    model_name = parse_artifact_name(model_filename, model_suffix)
    labels_name = parse_artifact_name(labels_filename, LABELS_SUFFIX)

    for field in ("base_name", "width", "height", "version_tag"):
        if getattr(model_name, field) != getattr(labels_name, field):
            raise CompanionMismatchError(model_filename, labels_filename, field)

    return model_name


def check_match(
    model_filename: str | None,
    labels_filename: str | None,
    *,
    model_suffix: str,
) -> InvalidNameError | None:
    """Non-raising form of verify_match.

    Returns:
        The naming error, or None if the pair is valid.
    """
    try:
        verify_match(model_filename, labels_filename, model_suffix=model_suffix)
    except InvalidNameError as e:
        return e
    return None
