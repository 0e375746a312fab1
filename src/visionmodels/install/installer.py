"""Transactional install of an uploaded artifact pair.

State machine per attempt:
    START -> LABELS_STAGED -> ARCHIVE_STAGED -> UNPACKED -> COMMITTED

Any failure before COMMITTED rolls the models directory back to the state it
had before the labels file was staged: everything this attempt created is
deleted (newest first) and anything it displaced is moved back. Rollback
problems are logged; the caller sees the first failure.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from visionmodels.errors import InstallStepFailure, PathTraversalRejected
from visionmodels.install.archive import UnsafeArchiveEntryError, safe_extract

if TYPE_CHECKING:
    from visionmodels.formats.uploads import Upload

logger = logging.getLogger(__name__)

_COPY_CHUNK = 1024 * 1024


class InstallState(str, Enum):
    """Last completed step of an install attempt."""

    START = "start"
    LABELS_STAGED = "labels_staged"
    ARCHIVE_STAGED = "archive_staged"
    UNPACKED = "unpacked"
    COMMITTED = "committed"


@dataclass(frozen=True)
class InstallPlan:
    """Destinations for one install attempt.

    Attributes:
        backend: Backend name of the planning handler (for logs).
        models_root: Directory receiving the artifact and labels.
        labels_path: Final labels file path.
        artifact_path: Final artifact path (file, or package directory).
        archive_path: Temporary archive path for package installs; None for
            single-file installs, which write the model straight to
            artifact_path.
    """

    backend: str
    models_root: Path
    labels_path: Path
    artifact_path: Path
    archive_path: Path | None = None

    @property
    def is_package(self) -> bool:
        return self.archive_path is not None

    @classmethod
    def for_file(
        cls, backend: str, models_root: Path, labels_name: str, model_name: str
    ) -> InstallPlan:
        return cls(
            backend=backend,
            models_root=models_root,
            labels_path=models_root / labels_name,
            artifact_path=models_root / model_name,
        )

    @classmethod
    def for_package(
        cls,
        backend: str,
        models_root: Path,
        labels_name: str,
        package_name: str,
        archive_name: str,
    ) -> InstallPlan:
        return cls(
            backend=backend,
            models_root=models_root,
            labels_path=models_root / labels_name,
            artifact_path=models_root / package_name,
            archive_path=models_root / archive_name,
        )


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


@dataclass
class _JournalEntry:
    path: Path
    backup: Path | None = None


@dataclass
class RollbackJournal:
    """Records filesystem changes so they can be undone in reverse order."""

    entries: list[_JournalEntry] = field(default_factory=list)

    def record_created(self, path: Path) -> None:
        """Record a path about to be created by this attempt."""
        self.entries.append(_JournalEntry(path=path))

    def set_aside(self, path: Path) -> Path | None:
        """Move an existing path out of the way, recording where it went.

        Returns:
            Backup location, or None if nothing existed at path.
        """
        if not path.exists() and not path.is_symlink():
            return None
        backup = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.bak")
        path.rename(backup)
        self.entries.append(_JournalEntry(path=path, backup=backup))
        return backup

    def rollback(self) -> int:
        """Undo every recorded change, newest first.

        Returns:
            Number of entries that could not be undone.
        """
        failures = 0
        while self.entries:
            entry = self.entries.pop()
            try:
                if entry.backup is None:
                    if entry.path.exists() or entry.path.is_symlink():
                        _remove_path(entry.path)
                        logger.warning("Rolled back created path", extra={"path": str(entry.path)})
                else:
                    if entry.path.exists() or entry.path.is_symlink():
                        _remove_path(entry.path)
                    entry.backup.rename(entry.path)
                    logger.warning("Restored displaced path", extra={"path": str(entry.path)})
            except OSError as e:
                failures += 1
                logger.error(
                    "Rollback step failed",
                    extra={"path": str(entry.path), "error": str(e)},
                )
        return failures

    def discard_backups(self) -> None:
        """Delete displaced copies once the install has committed."""
        for entry in self.entries:
            if entry.backup is None:
                continue
            try:
                _remove_path(entry.backup)
            except OSError as e:
                logger.warning(
                    "Failed to delete displaced copy",
                    extra={"path": str(entry.backup), "error": str(e)},
                )
        self.entries.clear()


def _stream_to_path(upload: Upload, destination: Path) -> None:
    with upload.content() as src, destination.open("wb") as dst:
        shutil.copyfileobj(src, dst, _COPY_CHUNK)


class TransactionalInstaller:
    """Runs an InstallPlan with guaranteed rollback.

    Usage:
        installer = TransactionalInstaller()
        storage_path = installer.install(plan, model_upload, labels_upload)
    """

    def __init__(self, extractor: Callable[[Path, Path], int] = safe_extract) -> None:
        """
        Initialize installer.

        Args:
            extractor: Function unpacking (archive_path, target_dir).
        """
        self._extractor = extractor
        self._last_state = InstallState.START

    @property
    def last_state(self) -> InstallState:
        """State reached by the most recent install attempt."""
        return self._last_state

    def _advance(self, plan: InstallPlan, state: InstallState) -> None:
        self._last_state = state
        logger.debug(
            "Install state",
            extra={"backend": plan.backend, "state": state.value, "artifact": plan.artifact_path.name},
        )

    def install(self, plan: InstallPlan, model_upload: Upload, labels_upload: Upload) -> Path:
        """Stage, unpack, verify and commit one artifact pair.

        Returns:
            plan.artifact_path once committed.

        Raises:
            InstallStepFailure: If a step failed; state is the last state
                reached. The filesystem has been rolled back.
            PathTraversalRejected: If an archive entry escapes the package
                directory.
        """
        self._last_state = InstallState.START
        journal = RollbackJournal()
        committed = False

        try:
            try:
                plan.models_root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                msg = f"cannot create models directory {plan.models_root}: {e}"
                raise InstallStepFailure(InstallState.START, msg) from e

            self._stage_labels(plan, labels_upload, journal)
            self._advance(plan, InstallState.LABELS_STAGED)

            self._stage_model(plan, model_upload, journal)
            self._advance(plan, InstallState.ARCHIVE_STAGED)

            if plan.is_package:
                self._unpack(plan, journal)
                self._advance(plan, InstallState.UNPACKED)

            self._commit(plan, journal)
            committed = True
            self._advance(plan, InstallState.COMMITTED)
        finally:
            if not committed:
                logger.error(
                    "Install failed, rolling back",
                    extra={"backend": plan.backend, "state": self._last_state.value},
                )
                journal.rollback()

        logger.info(
            "Installed artifact",
            extra={"backend": plan.backend, "artifact": plan.artifact_path.name},
        )
        return plan.artifact_path

    def _stage_labels(self, plan: InstallPlan, labels_upload: Upload, journal: RollbackJournal) -> None:
        try:
            journal.set_aside(plan.labels_path)
            journal.record_created(plan.labels_path)
            _stream_to_path(labels_upload, plan.labels_path)
        except Exception as e:
            msg = f"failed to save labels file {plan.labels_path.name}: {e}"
            raise InstallStepFailure(InstallState.START, msg) from e

    def _stage_model(self, plan: InstallPlan, model_upload: Upload, journal: RollbackJournal) -> None:
        destination = plan.archive_path if plan.archive_path is not None else plan.artifact_path
        try:
            journal.set_aside(destination)
            journal.record_created(destination)
            _stream_to_path(model_upload, destination)
        except Exception as e:
            msg = f"failed to save {destination.name}: {e}"
            raise InstallStepFailure(InstallState.LABELS_STAGED, msg) from e

    def _unpack(self, plan: InstallPlan, journal: RollbackJournal) -> None:
        assert plan.archive_path is not None
        target = plan.artifact_path
        try:
            if target.exists() or target.is_symlink():
                logger.warning(
                    "Overwriting existing package directory",
                    extra={"artifact": target.name},
                )
                journal.set_aside(target)
            journal.record_created(target)
            target.mkdir()
            self._extractor(plan.archive_path, target)
        except UnsafeArchiveEntryError as e:
            raise PathTraversalRejected(InstallState.ARCHIVE_STAGED, e.entry_name) from e
        except Exception as e:
            msg = f"failed to unpack {plan.archive_path.name}: {e}"
            raise InstallStepFailure(InstallState.ARCHIVE_STAGED, msg) from e

        if not target.is_dir():
            msg = f"unpacking did not create {target.name}"
            raise InstallStepFailure(InstallState.ARCHIVE_STAGED, msg)

    def _commit(self, plan: InstallPlan, journal: RollbackJournal) -> None:
        if plan.archive_path is not None:
            try:
                plan.archive_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(
                    "Failed to delete temporary archive after unpack",
                    extra={"archive": plan.archive_path.name, "error": str(e)},
                )
        journal.discard_backups()
