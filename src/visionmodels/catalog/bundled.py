"""First-run copy of shipped default artifacts into the models directory."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def extract_bundled_artifacts(source_dir: Path, models_root: Path) -> list[Path]:
    """Copy bundled artifacts into models_root, never overwriting.

    Walks source_dir recursively and mirrors its layout under models_root.
    A destination that already exists (file or directory) is left alone,
    so user-installed artifacts always win. Per-file failures are logged
    and the copy continues.

    Args:
        source_dir: Directory holding the shipped artifacts and labels.
        models_root: Models directory to populate.

    Returns:
        Destination paths of the files written.
    """
    if not source_dir.is_dir():
        logger.warning("Bundled artifact directory not found", extra={"path": str(source_dir)})
        return []

    models_root.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    for source in sorted(source_dir.rglob("*")):
        if not source.is_file():
            continue
        destination = models_root / source.relative_to(source_dir)
        if destination.exists():
            logger.debug("Bundled artifact already present", extra={"path": str(destination)})
            continue
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as e:
            logger.error(
                "Failed to extract bundled artifact",
                extra={"path": str(destination), "error": str(e)},
            )
            continue
        written.append(destination)

    logger.info(
        "Extracted bundled artifacts",
        extra={"path": str(models_root), "file_count": len(written)},
    )
    return written
