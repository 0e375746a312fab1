"""Inspect and manage the on-disk model catalog.

Usage:
    python -m scripts.manage_models backends
    python -m scripts.manage_models discover
    python -m scripts.manage_models install note-640-640-yolov5s.rknn note-640-640-yolov5s-labels.txt
    python -m scripts.manage_models extract path/to/bundled

Settings come from VISIONMODELS_* environment variables; --models-dir and
--capability override them. Results are printed as JSON on stdout.

Exit code 0 = success; 1 = install or usage error.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, TextIO

import orjson
from pydantic import ValidationError

from visionmodels.catalog import ModelCatalog, extract_bundled_artifacts
from visionmodels.config import CatalogConfig
from visionmodels.errors import ModelCatalogError
from visionmodels.formats.uploads import FileUpload
from visionmodels.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def _emit(payload: Any, out: TextIO) -> None:
    out.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))
    out.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage vision model artifacts")
    parser.add_argument(
        "--models-dir",
        type=Path,
        default=None,
        help="Models directory (default: $VISIONMODELS_MODELS_DIR or ./models)",
    )
    parser.add_argument(
        "--capability",
        action="append",
        choices=["rknn", "coreml"],
        default=None,
        help="Enable a backend group; repeatable (default: detect from host)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("backends", help="List registered backends and upload types")
    sub.add_parser("discover", help="Scan the models directory and print the catalog")

    install = sub.add_parser("install", help="Install a model file and its labels file")
    install.add_argument("model", type=Path, help="Model file or package archive")
    install.add_argument("labels", type=Path, help="Companion labels file")

    extract = sub.add_parser("extract", help="Copy bundled artifacts into the models directory")
    extract.add_argument("bundled_dir", type=Path, nargs="?", default=None)
    return parser


def _load_config(args: argparse.Namespace) -> CatalogConfig:
    config = CatalogConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.models_dir is not None:
        overrides["models_root"] = args.models_dir
    if args.capability is not None:
        overrides["capabilities"] = tuple(args.capability)
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if not overrides:
        return config
    return CatalogConfig.model_validate({**config.model_dump(), **overrides})


def run(args: argparse.Namespace, out: TextIO) -> int:
    """Execute one parsed command. Returns the process exit code."""
    config = _load_config(args)
    setup_logging(level=config.log_level, json_format=config.json_logs)

    catalog = ModelCatalog(config.models_root, config.build_registry())

    if args.command == "backends":
        _emit(
            [{"name": b.name, "upload_accept_type": b.upload_accept_type} for b in catalog.supported_backends()],
            out,
        )
        return 0

    if args.command == "discover":
        _emit(catalog.discover().to_dict(), out)
        return 0

    if args.command == "install":
        catalog.discover()
        try:
            artifact = catalog.install_upload(FileUpload(args.model), FileUpload(args.labels))
        except ModelCatalogError as e:
            logger.error("Install failed", extra={"error_kind": type(e).__name__})
            _emit({"ok": False, "error": type(e).__name__, "message": str(e)}, out)
            return 1
        _emit({"ok": True, "artifact": artifact.to_dict()}, out)
        return 0

    if args.command == "extract":
        bundled_dir = args.bundled_dir or config.bundled_dir
        if bundled_dir is None:
            _emit({"ok": False, "message": "No bundled directory given"}, out)
            return 1
        written = extract_bundled_artifacts(bundled_dir, config.models_root)
        _emit({"ok": True, "written": [str(p) for p in written]}, out)
        return 0

    raise AssertionError(f"unhandled command {args.command!r}")


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args, out or sys.stdout)
    except ValidationError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
