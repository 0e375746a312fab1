"""Error taxonomy for artifact discovery and installation.

Naming errors are recoverable and never leave side effects. Load errors are
per-artifact and only ever skip that artifact during discovery. Install errors
are terminal for one install call and are raised only after rollback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from visionmodels.install.installer import InstallState


class ModelCatalogError(Exception):
    """Base exception for model catalog operations."""


# --- Naming ---


class InvalidNameError(ModelCatalogError):
    """Raised when a filename violates the naming convention."""


class MalformedNameError(InvalidNameError):
    """A single filename failed to parse.

    Attributes:
        filename: The offending filename.
        expected_suffix: Suffix grammar the name was parsed against.
        reason: Short description of the failed rule.
    """

    def __init__(self, filename: str | None, expected_suffix: str, reason: str) -> None:
        self.filename = filename
        self.expected_suffix = expected_suffix
        self.reason = reason
        super().__init__(
            f"Name {filename!r} must follow the convention "
            f"name-width-height-version{expected_suffix}: {reason}"
        )


class CompanionMismatchError(InvalidNameError):
    """Model and labels names both parse but their naming fields differ."""

    def __init__(self, model_filename: str | None, labels_filename: str | None, field: str) -> None:
        self.model_filename = model_filename
        self.labels_filename = labels_filename
        self.field = field
        super().__init__(
            f"Model name {model_filename!r} and labels name {labels_filename!r} "
            f"must match (differs in {field})"
        )


# --- Discovery-time loading ---


class LoadError(ModelCatalogError):
    """Artifact at a storage path could not be loaded.

    Attributes:
        path: Storage path of the artifact that was skipped.
    """

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(message)


class MissingLabelsFileError(LoadError):
    """Companion labels file does not exist or is not a regular file."""


class UnreadableLabelsFileError(LoadError):
    """Companion labels file exists but could not be read."""


class MalformedArtifactNameError(LoadError):
    """The artifact's own filename does not follow the naming convention."""


# --- Upload selection / validation ---


class UploadError(ModelCatalogError):
    """Base exception for rejected uploads."""


class NoHandlerForUploadError(UploadError):
    """No registered format handler accepts the uploaded filename pair."""


class UploadValidationError(UploadError):
    """Uploaded files declare the wrong extensions for the selected handler."""


# --- Installation ---


class InstallError(ModelCatalogError):
    """Base exception for failed installs."""


class InstallStepFailure(InstallError):
    """An install step failed after rollback completed.

    Attributes:
        state: Last state the install reached before failing.
    """

    def __init__(self, state: InstallState, message: str) -> None:
        self.state = state
        super().__init__(f"Install failed after {state.value}: {message}")


class PathTraversalRejected(InstallStepFailure):
    """An archive entry resolves outside the target package directory.

    Attributes:
        entry_name: Name of the offending archive entry.
    """

    def __init__(self, state: InstallState, entry_name: str) -> None:
        self.entry_name = entry_name
        super().__init__(state, f"archive entry escapes target directory: {entry_name!r}")
