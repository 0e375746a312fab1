"""Artifact format handlers.

One handler per artifact kind:
- RKNN: single .rknn file
- COREML_FILE: single .mlmodel file
- COREML_PACKAGE: .mlpackage directory, uploaded as .mlpackage.zip
"""

from visionmodels.formats.base import (
    ArtifactDescriptor,
    ArtifactKind,
    BackendInfo,
    FormatHandler,
    read_labels,
)
from visionmodels.formats.package import CoreMLPackageFormatHandler, PackageFormatHandler
from visionmodels.formats.single_file import (
    CoreMLFileFormatHandler,
    RknnFormatHandler,
    SingleFileFormatHandler,
)
from visionmodels.formats.uploads import BytesUpload, FileUpload, Upload, declared_extension

__all__ = [
    "ArtifactDescriptor",
    "ArtifactKind",
    "BackendInfo",
    "BytesUpload",
    "CoreMLFileFormatHandler",
    "CoreMLPackageFormatHandler",
    "FileUpload",
    "FormatHandler",
    "PackageFormatHandler",
    "RknnFormatHandler",
    "SingleFileFormatHandler",
    "Upload",
    "declared_extension",
    "read_labels",
]
