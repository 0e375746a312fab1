"""Base interface for artifact format handlers.

A format handler owns one artifact kind (a single weights file or a package
directory) and knows how to recognise it on disk, validate an upload pair for
it, load it with its companion labels file, and plan its installation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from pydantic import BaseModel, ConfigDict, Field

from visionmodels.errors import (
    InvalidNameError,
    LoadError,
    MalformedArtifactNameError,
    MalformedNameError,
    MissingLabelsFileError,
    UnreadableLabelsFileError,
    UploadValidationError,
)
from visionmodels.formats.uploads import declared_extension
from visionmodels.install.installer import InstallPlan, TransactionalInstaller
from visionmodels.naming.convention import (
    LABELS_SUFFIX,
    ArtifactName,
    ModelFamily,
    check_match,
    parse_artifact_name,
)

if TYPE_CHECKING:
    from visionmodels.formats.uploads import Upload

logger = logging.getLogger(__name__)


class ArtifactKind(str, Enum):
    """On-disk shape of an artifact."""

    FILE = "file"
    DIRECTORY = "directory"


class ArtifactDescriptor(BaseModel):
    """One discovered or installed artifact.

    Attributes:
        storage_path: Path of the artifact file or package directory.
        kind: Whether storage_path is a file or a directory.
        backend: Backend name of the handler that loaded it.
        parsed_name: Parsed naming-convention tuple.
        labels: Class labels; position is the label index.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    storage_path: Path = Field(..., description="Artifact file or package directory")
    kind: ArtifactKind = Field(..., description="File or directory")
    backend: str = Field(..., min_length=1, description="Owning backend name")
    parsed_name: ArtifactName = Field(..., description="Parsed naming tuple")
    labels: tuple[str, ...] = Field(default=(), description="Ordered class labels")

    @property
    def name(self) -> str:
        """Display name: the artifact's filename."""
        return self.storage_path.name

    @property
    def input_width(self) -> int:
        return self.parsed_name.width

    @property
    def input_height(self) -> int:
        return self.parsed_name.height

    @property
    def version_tag(self) -> str:
        return self.parsed_name.version_tag

    @property
    def family(self) -> ModelFamily:
        return self.parsed_name.family

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "name": self.name,
            "backend": self.backend,
            "kind": self.kind.value,
            "storage_path": str(self.storage_path),
            "base_name": self.parsed_name.base_name,
            "input_width": self.input_width,
            "input_height": self.input_height,
            "version_tag": self.version_tag,
            "family": self.family.value,
            "labels": list(self.labels),
        }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.to_dict())


@dataclass(frozen=True)
class BackendInfo:
    """Backend summary for upload forms."""

    name: str
    upload_accept_type: str


def read_labels(labels_path: Path) -> list[str]:
    """Read a labels file as an ordered list of lines.

    Line order is label index order. Trailing blank lines are dropped;
    interior lines are kept so indices never shift.
    """
    lines = labels_path.read_text(encoding="utf-8-sig").splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


class FormatHandler(ABC):
    """Abstract base class for artifact format handlers.

    Subclasses declare their suffixes and shape; shared behavior lives here.

    Usage:
        handler = RknnFormatHandler()
        if handler.owns_storage_path(path):
            result = handler.load_artifact(path, models_root)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Unique backend name, e.g. "RKNN"."""
        ...

    @property
    @abstractmethod
    def kind(self) -> ArtifactKind:
        """Shape of stored artifacts."""
        ...

    @property
    @abstractmethod
    def primary_suffix(self) -> str:
        """Suffix of stored artifacts, e.g. ".rknn" or ".mlpackage"."""
        ...

    @property
    @abstractmethod
    def upload_suffix(self) -> str:
        """Suffix an uploaded model file must carry."""
        ...

    @property
    def upload_accept_type(self) -> str:
        """Value for an HTML file input "accept" attribute."""
        return self.upload_suffix

    def info(self) -> BackendInfo:
        return BackendInfo(name=self.backend_name, upload_accept_type=self.upload_accept_type)

    # --- Ownership predicates ---

    def owns_storage_path(self, path: Path) -> bool:
        """True iff the path has this handler's shape and primary suffix."""
        if not path.name.endswith(self.primary_suffix):
            return False
        if self.kind is ArtifactKind.DIRECTORY:
            return path.is_dir()
        return path.is_file()

    def owns_upload_pair(self, model_filename: str | None, labels_filename: str | None) -> bool:
        """Cheap filename-only pre-check used to select a handler."""
        if not model_filename or not labels_filename:
            return False
        return model_filename.endswith(self.upload_suffix) and labels_filename.endswith(
            LABELS_SUFFIX
        )

    # --- Validation ---

    def validate_upload_content(
        self, model_upload: Upload, labels_upload: Upload
    ) -> UploadValidationError | None:
        """Check the declared extensions of an upload pair.

        Returns:
            The validation error, or None if both extensions are acceptable.
        """
        model_name = model_upload.filename
        if not model_name.lower().endswith(self.upload_suffix):
            return UploadValidationError(
                f"Invalid model file type. Expected {self.upload_suffix!r} "
                f"but got {declared_extension(model_name)!r}"
            )
        labels_ext = declared_extension(labels_upload.filename)
        if labels_ext != ".txt":
            return UploadValidationError(
                f"Invalid labels file type. Expected '.txt' but got {labels_ext!r}"
            )
        return None

    def verify_naming(
        self, model_filename: str | None, labels_filename: str | None
    ) -> InvalidNameError | None:
        """Full grammar and companion-match check for an upload pair."""
        logger.debug(
            "Verifying names",
            extra={"backend": self.backend_name, "model": model_filename, "labels_file": labels_filename},
        )
        return check_match(model_filename, labels_filename, model_suffix=self.upload_suffix)

    # --- Loading ---

    def parse_storage_name(self, path: Path) -> ArtifactName:
        """Parse a stored artifact's filename.

        Raises:
            MalformedNameError: If the name violates the convention.
        """
        return parse_artifact_name(path.name, self.primary_suffix)

    def companion_labels_name(self, path: Path) -> str:
        """Derive the labels filename for a stored artifact."""
        return self.parse_storage_name(path).labels_filename

    def load_artifact(self, path: Path, models_root: Path) -> ArtifactDescriptor | LoadError:
        """Load an owned artifact together with its labels file.

        Args:
            path: Storage path already confirmed by owns_storage_path.
            models_root: Directory holding the companion labels file.

        Returns:
            The descriptor, or the LoadError explaining why it was skipped.
        """
        try:
            parsed = self.parse_storage_name(path)
        except MalformedNameError as e:
            return MalformedArtifactNameError(path, f"Failed to parse artifact name: {e}")

        labels_path = models_root / parsed.labels_filename
        if not labels_path.is_file():
            return MissingLabelsFileError(path, f"Could not find expected labels file: {labels_path}")

        try:
            labels = read_labels(labels_path)
        except (OSError, UnicodeDecodeError) as e:
            return UnreadableLabelsFileError(path, f"Failed to read labels file {labels_path}: {e}")

        return ArtifactDescriptor(
            storage_path=path,
            kind=self.kind,
            backend=self.backend_name,
            parsed_name=parsed,
            labels=tuple(labels),
        )

    # --- Installation ---

    @abstractmethod
    def plan_install(
        self, name: ArtifactName, model_upload: Upload, labels_upload: Upload, models_root: Path
    ) -> InstallPlan:
        """Describe where each staged file goes for this handler."""
        ...

    def install(
        self,
        model_upload: Upload,
        labels_upload: Upload,
        models_root: Path,
        installer: TransactionalInstaller | None = None,
    ) -> Path:
        """Validate names, then install the pair transactionally.

        Args:
            model_upload: Uploaded model file (or package archive).
            labels_upload: Uploaded labels file.
            models_root: Destination directory.
            installer: Installer to run the plan (default: a new one).

        Returns:
            Storage path of the committed artifact.

        Raises:
            InvalidNameError: Before any filesystem side effect.
            InstallError: After rollback, if any install step failed.
        """
        naming_error = self.verify_naming(model_upload.filename, labels_upload.filename)
        if naming_error is not None:
            raise naming_error

        name = parse_artifact_name(model_upload.filename, self.upload_suffix)
        plan = self.plan_install(name, model_upload, labels_upload, models_root)
        installer = installer or TransactionalInstaller()
        return installer.install(plan, model_upload, labels_upload)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(backend={self.backend_name!r})"
