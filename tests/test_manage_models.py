"""Tests for scripts/manage_models.py."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from pathlib import Path

import orjson
import pytest

from scripts.manage_models import build_parser, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in (
        "VISIONMODELS_MODELS_DIR",
        "VISIONMODELS_CAPABILITIES",
        "VISIONMODELS_BUNDLED_DIR",
        "VISIONMODELS_LOG_LEVEL",
        "VISIONMODELS_JSON_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


def run_cli(*argv: str) -> tuple[int, object]:
    out = io.StringIO()
    code = main(list(argv), out=out)
    return code, orjson.loads(out.getvalue()) if out.getvalue() else None


def write_upload_pair(directory: Path, stem: str) -> tuple[Path, Path]:
    directory.mkdir(parents=True, exist_ok=True)
    model = directory / f"{stem}.rknn"
    model.write_bytes(b"weights")
    labels = directory / f"{stem}-labels.txt"
    labels.write_text("person\ncar\n")
    return model, labels


class TestParser:
    """Argument parsing."""

    def test_install_arguments(self) -> None:
        args = build_parser().parse_args(["--capability", "rknn", "install", "m.rknn", "m-labels.txt"])
        assert args.command == "install"
        assert args.model == Path("m.rknn")
        assert args.capability == ["rknn"]

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """End-to-end CLI runs."""

    def test_backends(self, tmp_path: Path) -> None:
        code, data = run_cli("--models-dir", str(tmp_path), "--capability", "coreml", "backends")
        assert code == 0
        assert data == [
            {"name": "COREML_FILE", "upload_accept_type": ".mlmodel"},
            {"name": "COREML_PACKAGE", "upload_accept_type": ".zip"},
        ]

    def test_install_then_discover(self, tmp_path: Path) -> None:
        models = tmp_path / "models"
        model, labels = write_upload_pair(tmp_path / "upload", "note-640-640-yolov5s")

        code, data = run_cli("--models-dir", str(models), "--capability", "rknn", "install", str(model), str(labels))
        assert code == 0
        assert isinstance(data, dict) and data["ok"] is True
        assert data["artifact"]["name"] == "note-640-640-yolov5s.rknn"

        code, data = run_cli("--models-dir", str(models), "--capability", "rknn", "discover")
        assert code == 0
        assert isinstance(data, dict)
        assert [a["labels"] for a in data["RKNN"]] == [["person", "car"]]

    def test_install_error_exit_code(self, tmp_path: Path) -> None:
        model, _ = write_upload_pair(tmp_path / "upload", "note-640-640-yolov5s")
        _, other_labels = write_upload_pair(tmp_path / "upload", "note-640-640-yolov8s")

        code, data = run_cli(
            "--models-dir", str(tmp_path / "models"), "--capability", "rknn", "install", str(model), str(other_labels)
        )

        assert code == 1
        assert isinstance(data, dict)
        assert data["error"] == "CompanionMismatchError"

    def test_extract(self, tmp_path: Path) -> None:
        bundle = tmp_path / "bundle"
        write_upload_pair(bundle, "coco-640-640-yolov5s")
        models = tmp_path / "models"

        code, data = run_cli("--models-dir", str(models), "--capability", "rknn", "extract", str(bundle))

        assert code == 0
        assert isinstance(data, dict) and len(data["written"]) == 2
        assert (models / "coco-640-640-yolov5s.rknn").is_file()

    def test_extract_without_directory(self, tmp_path: Path) -> None:
        code, data = run_cli("--models-dir", str(tmp_path), "--capability", "rknn", "extract")
        assert code == 1
        assert isinstance(data, dict) and data["ok"] is False

    def test_invalid_env_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VISIONMODELS_LOG_LEVEL", "LOUD")
        code, data = run_cli("backends")
        assert code == 1
        assert data is None
