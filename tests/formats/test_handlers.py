"""Tests for the concrete format handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import orjson
import pytest
from pydantic import ValidationError

from visionmodels.errors import (
    CompanionMismatchError,
    MalformedArtifactNameError,
    MalformedNameError,
    MissingLabelsFileError,
    UnreadableLabelsFileError,
    UploadValidationError,
)
from visionmodels.formats import (
    ArtifactDescriptor,
    ArtifactKind,
    BackendInfo,
    BytesUpload,
    CoreMLFileFormatHandler,
    CoreMLPackageFormatHandler,
    RknnFormatHandler,
    read_labels,
)
from visionmodels.naming.convention import ModelFamily

if TYPE_CHECKING:
    from pathlib import Path


def write_pair(root: Path, artifact: str, labels: str, text: str = "person\ncar\n") -> Path:
    """Create a single-file artifact and its labels file."""
    root.mkdir(parents=True, exist_ok=True)
    path = root / artifact
    path.write_bytes(b"weights")
    (root / labels).write_text(text, encoding="utf-8")
    return path


class TestBackendInfo:
    """Tests for backend names and upload types."""

    def test_rknn(self) -> None:
        handler = RknnFormatHandler()
        assert handler.info() == BackendInfo(name="RKNN", upload_accept_type=".rknn")
        assert handler.kind is ArtifactKind.FILE

    def test_coreml_file(self) -> None:
        assert CoreMLFileFormatHandler().info() == BackendInfo("COREML_FILE", ".mlmodel")

    def test_coreml_package(self) -> None:
        handler = CoreMLPackageFormatHandler()
        assert handler.info() == BackendInfo("COREML_PACKAGE", ".zip")
        assert handler.upload_suffix == ".mlpackage.zip"
        assert handler.kind is ArtifactKind.DIRECTORY

    def test_repr(self) -> None:
        assert repr(RknnFormatHandler()) == "RknnFormatHandler(backend='RKNN')"


class TestOwnsStoragePath:
    """Tests for owns_storage_path."""

    def test_file_with_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "note-640-640-yolov5s.rknn"
        path.write_bytes(b"x")
        assert RknnFormatHandler().owns_storage_path(path)
        assert not CoreMLFileFormatHandler().owns_storage_path(path)

    def test_directory_with_file_suffix_not_owned(self, tmp_path: Path) -> None:
        path = tmp_path / "note-640-640-yolov5s.rknn"
        path.mkdir()
        assert not RknnFormatHandler().owns_storage_path(path)

    def test_package_directory_owned(self, tmp_path: Path) -> None:
        path = tmp_path / "demo-640-640-yolov8n.mlpackage"
        path.mkdir()
        assert CoreMLPackageFormatHandler().owns_storage_path(path)

    def test_package_file_not_owned(self, tmp_path: Path) -> None:
        path = tmp_path / "demo-640-640-yolov8n.mlpackage"
        path.write_bytes(b"x")
        assert not CoreMLPackageFormatHandler().owns_storage_path(path)

    def test_missing_path_not_owned(self, tmp_path: Path) -> None:
        assert not RknnFormatHandler().owns_storage_path(tmp_path / "gone-1-1-yolov5.rknn")


class TestOwnsUploadPair:
    """Tests for the filename-only pre-check."""

    def test_rknn_pair(self) -> None:
        assert RknnFormatHandler().owns_upload_pair("a-1-1-yolov5.rknn", "a-1-1-yolov5-labels.txt")

    def test_package_pair(self) -> None:
        handler = CoreMLPackageFormatHandler()
        assert handler.owns_upload_pair("d-1-1-yolov8.mlpackage.zip", "d-1-1-yolov8-labels.txt")
        assert not handler.owns_upload_pair("d-1-1-yolov8.zip", "d-1-1-yolov8-labels.txt")

    def test_labels_suffix_required(self) -> None:
        assert not RknnFormatHandler().owns_upload_pair("a-1-1-yolov5.rknn", "labels.csv")

    @pytest.mark.parametrize(("model", "labels"), [(None, "x-labels.txt"), ("a.rknn", None), ("", "")])
    def test_missing_names(self, model: str | None, labels: str | None) -> None:
        assert not RknnFormatHandler().owns_upload_pair(model, labels)

    def test_precheck_does_not_parse(self) -> None:
        # Grammar is checked later by verify_naming
        assert RknnFormatHandler().owns_upload_pair("bad.rknn", "bad-labels.txt")


class TestValidateUploadContent:
    """Tests for declared-extension validation."""

    def test_valid(self) -> None:
        error = RknnFormatHandler().validate_upload_content(
            BytesUpload("a-1-1-yolov5.rknn", b""), BytesUpload("a-1-1-yolov5-labels.txt", b"")
        )
        assert error is None

    def test_uppercase_extension_accepted(self) -> None:
        error = RknnFormatHandler().validate_upload_content(
            BytesUpload("A-1-1-yolov5.RKNN", b""), BytesUpload("a-1-1-yolov5-labels.TXT", b"")
        )
        assert error is None

    def test_wrong_model_extension(self) -> None:
        error = RknnFormatHandler().validate_upload_content(
            BytesUpload("a-1-1-yolov5.onnx", b""), BytesUpload("a-1-1-yolov5-labels.txt", b"")
        )
        assert isinstance(error, UploadValidationError)
        assert "'.onnx'" in str(error)

    def test_wrong_labels_extension(self) -> None:
        error = CoreMLFileFormatHandler().validate_upload_content(
            BytesUpload("a-1-1-yolov5.mlmodel", b""), BytesUpload("labels.csv", b"")
        )
        assert isinstance(error, UploadValidationError)
        assert "labels" in str(error)


class TestVerifyNaming:
    """Tests for verify_naming."""

    def test_valid_package_pair(self) -> None:
        handler = CoreMLPackageFormatHandler()
        assert handler.verify_naming("d-640-640-yolov8n.mlpackage.zip", "d-640-640-yolov8n-labels.txt") is None

    def test_mismatch(self) -> None:
        error = RknnFormatHandler().verify_naming("a-1-1-yolov5.rknn", "b-1-1-yolov5-labels.txt")
        assert isinstance(error, CompanionMismatchError)

    def test_malformed(self) -> None:
        error = RknnFormatHandler().verify_naming("a.rknn", "a-1-1-yolov5-labels.txt")
        assert isinstance(error, MalformedNameError)


class TestLoadArtifact:
    """Tests for load_artifact."""

    def test_loads_single_file(self, tmp_path: Path) -> None:
        path = write_pair(tmp_path, "note-640-640-yolov5s.rknn", "note-640-640-yolov5s-labels.txt")
        result = RknnFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, ArtifactDescriptor)
        assert result.name == "note-640-640-yolov5s.rknn"
        assert result.backend == "RKNN"
        assert result.kind is ArtifactKind.FILE
        assert (result.input_width, result.input_height) == (640, 640)
        assert result.version_tag == "yolov5s"
        assert result.family is ModelFamily.YOLO_V5
        assert result.labels == ("person", "car")

    def test_loads_package_directory(self, tmp_path: Path) -> None:
        package = tmp_path / "demo-320-320-yolov11n.mlpackage"
        package.mkdir()
        (tmp_path / "demo-320-320-yolov11n-labels.txt").write_text("cat\n")
        result = CoreMLPackageFormatHandler().load_artifact(package, tmp_path)
        assert isinstance(result, ArtifactDescriptor)
        assert result.kind is ArtifactKind.DIRECTORY
        assert result.family is ModelFamily.YOLO_V11

    def test_companion_labels_name(self, tmp_path: Path) -> None:
        handler = CoreMLPackageFormatHandler()
        name = handler.companion_labels_name(tmp_path / "demo-320-320-yolov11n.mlpackage")
        assert name == "demo-320-320-yolov11n-labels.txt"

    def test_missing_labels(self, tmp_path: Path) -> None:
        path = tmp_path / "note-640-640-yolov5s.rknn"
        path.write_bytes(b"x")
        result = RknnFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, MissingLabelsFileError)
        assert result.path == path

    def test_labels_directory_counts_as_missing(self, tmp_path: Path) -> None:
        path = tmp_path / "note-640-640-yolov5s.rknn"
        path.write_bytes(b"x")
        (tmp_path / "note-640-640-yolov5s-labels.txt").mkdir()
        assert isinstance(RknnFormatHandler().load_artifact(path, tmp_path), MissingLabelsFileError)

    def test_unreadable_labels(self, tmp_path: Path) -> None:
        path = write_pair(tmp_path, "note-640-640-yolov5s.rknn", "note-640-640-yolov5s-labels.txt")
        (tmp_path / "note-640-640-yolov5s-labels.txt").write_bytes(b"\xff\xfe\xfa")
        result = RknnFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, UnreadableLabelsFileError)

    def test_malformed_artifact_name(self, tmp_path: Path) -> None:
        path = tmp_path / "weights.rknn"
        path.write_bytes(b"x")
        result = RknnFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, MalformedArtifactNameError)


class TestReadLabels:
    """Tests for labels file parsing."""

    def test_order_preserved(self, tmp_path: Path) -> None:
        path = tmp_path / "l.txt"
        path.write_text("b\na\nc\n")
        assert read_labels(path) == ["b", "a", "c"]

    def test_crlf_and_bom(self, tmp_path: Path) -> None:
        path = tmp_path / "l.txt"
        path.write_bytes("\ufeffone\r\ntwo\r\n".encode("utf-8"))
        assert read_labels(path) == ["one", "two"]

    def test_trailing_blank_lines_dropped_interior_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "l.txt"
        path.write_text("one\n\nthree\n\n\n")
        assert read_labels(path) == ["one", "", "three"]

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "l.txt"
        path.write_text("")
        assert read_labels(path) == []


class TestDescriptorSerialization:
    """Tests for ArtifactDescriptor JSON output."""

    def test_to_json(self, tmp_path: Path) -> None:
        path = write_pair(tmp_path, "note-640-480-yolov8s.mlmodel", "note-640-480-yolov8s-labels.txt")
        result = CoreMLFileFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, ArtifactDescriptor)
        data = orjson.loads(result.to_json())
        assert data["name"] == "note-640-480-yolov8s.mlmodel"
        assert data["backend"] == "COREML_FILE"
        assert data["input_height"] == 480
        assert data["family"] == "YOLO_V8"
        assert data["labels"] == ["person", "car"]

    def test_descriptor_is_frozen(self, tmp_path: Path) -> None:
        path = write_pair(tmp_path, "note-640-640-yolov5s.rknn", "note-640-640-yolov5s-labels.txt")
        result = RknnFormatHandler().load_artifact(path, tmp_path)
        assert isinstance(result, ArtifactDescriptor)
        with pytest.raises(ValidationError):
            result.backend = "OTHER"  # type: ignore[misc]
