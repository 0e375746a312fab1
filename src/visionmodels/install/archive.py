"""Safe extraction of uploaded package archives.

Every entry is resolved against the target directory and checked to stay a
descendant of it before anything is written. Platform bookkeeping entries
(__MACOSX/, ._* resource forks, .DS_Store) are skipped.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

METADATA_DIRS = frozenset({"__MACOSX"})
METADATA_FILES = frozenset({".DS_Store", "Thumbs.db"})

_COPY_CHUNK = 1024 * 1024


class ArchiveError(Exception):
    """Base exception for archive extraction."""


class UnsafeArchiveEntryError(ArchiveError):
    """An entry would be written outside the target directory."""

    def __init__(self, entry_name: str) -> None:
        self.entry_name = entry_name
        super().__init__(f"Archive entry is outside of the target dir: {entry_name!r}")


class EmptyArchiveError(ArchiveError):
    """Archive has no extractable entries."""


def is_platform_metadata(entry_name: str) -> bool:
    """True for hidden OS bookkeeping entries."""
    parts = PurePosixPath(entry_name.replace("\\", "/")).parts
    if not parts:
        return False
    if any(part in METADATA_DIRS for part in parts):
        return True
    leaf = parts[-1]
    return leaf in METADATA_FILES or leaf.startswith("._")


def resolve_entry(target_dir: Path, entry_name: str) -> Path:
    """Resolve an archive entry name to its destination path.

    Uses relative_to() on resolved paths, which is immune to prefix
    collisions such as /models/pkg vs /models/pkg_evil.

    Raises:
        UnsafeArchiveEntryError: If the entry is absolute, carries a drive,
            or normalizes to a path outside target_dir.
    """
    normalized = entry_name.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or (len(normalized) >= 2 and normalized[1] == ":"):
        raise UnsafeArchiveEntryError(entry_name)

    root = target_dir.resolve()
    destination = (root / normalized).resolve()
    try:
        destination.relative_to(root)
    except ValueError:
        raise UnsafeArchiveEntryError(entry_name) from None
    return destination


def _wrapping_root(names: list[str], root_name: str) -> str:
    # Archives made by zipping "x.mlpackage/" carry that folder as a prefix
    prefix = f"{root_name}/"
    normalized = [n.replace("\\", "/") for n in names]
    if normalized and all(n.startswith(prefix) or n.rstrip("/") == root_name for n in normalized):
        return prefix
    return ""


def safe_extract(archive_path: Path, target_dir: Path) -> int:
    """Extract a zip archive into target_dir.

    If every entry sits under a folder named like target_dir, that folder is
    unwrapped so the package contents land directly in target_dir. All entries
    are validated before the first write.

    Args:
        archive_path: Zip archive on disk.
        target_dir: Existing destination directory.

    Returns:
        Number of files written.

    Raises:
        UnsafeArchiveEntryError: If any entry escapes target_dir.
        EmptyArchiveError: If nothing extractable remains.
        zipfile.BadZipFile: If the archive is not a valid zip file.
        OSError: On write failure.
    """
    with zipfile.ZipFile(archive_path) as zf:
        entries: list[zipfile.ZipInfo] = []
        for info in zf.infolist():
            if is_platform_metadata(info.filename):
                logger.debug("Skipping platform metadata entry", extra={"entry": info.filename})
                continue
            entries.append(info)

        prefix = _wrapping_root([e.filename for e in entries], target_dir.name)

        planned: list[tuple[zipfile.ZipInfo, Path]] = []
        for info in entries:
            relative = info.filename.replace("\\", "/")[len(prefix) :]
            if not relative.strip("/"):
                continue
            planned.append((info, resolve_entry(target_dir, relative)))

        if not any(not info.is_dir() for info, _ in planned):
            msg = f"Archive contains no files: {archive_path.name}"
            raise EmptyArchiveError(msg)

        written = 0
        for info, destination in planned:
            if info.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, destination.open("wb") as dst:
                shutil.copyfileobj(src, dst, _COPY_CHUNK)
            written += 1

    logger.debug("Extracted archive", extra={"archive": archive_path.name, "files": written})
    return written
