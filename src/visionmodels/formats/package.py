"""Package-directory artifact handlers.

Packages are directories on disk but travel as zip archives:
    upload:  <base>-<w>-<h>-<version>.mlpackage.zip
    stored:  models/<base>-<w>-<h>-<version>.mlpackage/
    labels:  models/<base>-<w>-<h>-<version>-labels.txt
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from visionmodels.formats.base import ArtifactKind, FormatHandler
from visionmodels.install.installer import InstallPlan

if TYPE_CHECKING:
    from pathlib import Path

    from visionmodels.formats.uploads import Upload
    from visionmodels.naming.convention import ArtifactName

ARCHIVE_EXTENSION = ".zip"


class PackageFormatHandler(FormatHandler):
    """Handler for artifacts stored as a directory and uploaded as a zip."""

    def __init__(self, backend_name: str, package_suffix: str) -> None:
        if not package_suffix.startswith("."):
            msg = f"package_suffix must start with '.', got {package_suffix!r}"
            raise ValueError(msg)
        self._backend_name = backend_name
        self._package_suffix = package_suffix

    @property
    def backend_name(self) -> str:
        return self._backend_name

    @property
    def kind(self) -> ArtifactKind:
        return ArtifactKind.DIRECTORY

    @property
    def primary_suffix(self) -> str:
        return self._package_suffix

    @property
    def upload_suffix(self) -> str:
        return f"{self._package_suffix}{ARCHIVE_EXTENSION}"

    @property
    def upload_accept_type(self) -> str:
        return ARCHIVE_EXTENSION

    def package_dir_name(self, archive_filename: str) -> str:
        """Strip the upload-only archive extension: x.mlpackage.zip -> x.mlpackage."""
        if not archive_filename.endswith(ARCHIVE_EXTENSION):
            msg = f"Archive name {archive_filename!r} does not end with {ARCHIVE_EXTENSION!r}"
            raise ValueError(msg)
        return archive_filename[: -len(ARCHIVE_EXTENSION)]

    def plan_install(
        self, name: ArtifactName, model_upload: Upload, labels_upload: Upload, models_root: Path
    ) -> InstallPlan:
        archive_name = name.filename(self.upload_suffix)
        return InstallPlan.for_package(
            backend=self.backend_name,
            models_root=models_root,
            labels_name=name.labels_filename,
            package_name=self.package_dir_name(archive_name),
            archive_name=archive_name,
        )


class CoreMLPackageFormatHandler(PackageFormatHandler):
    """CoreML model package directory (.mlpackage/)."""

    BACKEND_NAME = "COREML_PACKAGE"
    SUFFIX = ".mlpackage"

    def __init__(self) -> None:
        super().__init__(self.BACKEND_NAME, self.SUFFIX)
