"""Single-file artifact handlers.

The uploaded model file is stored as-is next to its labels file:
    models/<base>-<w>-<h>-<version>.rknn
    models/<base>-<w>-<h>-<version>-labels.txt
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from visionmodels.formats.base import ArtifactKind, FormatHandler
from visionmodels.install.installer import InstallPlan

if TYPE_CHECKING:
    from pathlib import Path

    from visionmodels.formats.uploads import Upload
    from visionmodels.naming.convention import ArtifactName


class SingleFileFormatHandler(FormatHandler):
    """Handler for artifacts stored as one regular file.

    The stored suffix and the upload suffix are the same.
    """

    def __init__(self, backend_name: str, suffix: str) -> None:
        if not suffix.startswith("."):
            msg = f"suffix must start with '.', got {suffix!r}"
            raise ValueError(msg)
        self._backend_name = backend_name
        self._suffix = suffix

    @property
    def backend_name(self) -> str:
        return self._backend_name

    @property
    def kind(self) -> ArtifactKind:
        return ArtifactKind.FILE

    @property
    def primary_suffix(self) -> str:
        return self._suffix

    @property
    def upload_suffix(self) -> str:
        return self._suffix

    def plan_install(
        self, name: ArtifactName, model_upload: Upload, labels_upload: Upload, models_root: Path
    ) -> InstallPlan:
        return InstallPlan.for_file(
            backend=self.backend_name,
            models_root=models_root,
            labels_name=name.labels_filename,
            model_name=name.filename(self.primary_suffix),
        )


class RknnFormatHandler(SingleFileFormatHandler):
    """Rockchip NPU weights (.rknn)."""

    BACKEND_NAME = "RKNN"
    SUFFIX = ".rknn"

    def __init__(self) -> None:
        super().__init__(self.BACKEND_NAME, self.SUFFIX)


class CoreMLFileFormatHandler(SingleFileFormatHandler):
    """Compiled-on-load CoreML model file (.mlmodel)."""

    BACKEND_NAME = "COREML_FILE"
    SUFFIX = ".mlmodel"

    def __init__(self) -> None:
        super().__init__(self.BACKEND_NAME, self.SUFFIX)
