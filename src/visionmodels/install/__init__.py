"""Transactional artifact installation with rollback."""

from visionmodels.install.archive import (
    ArchiveError,
    EmptyArchiveError,
    UnsafeArchiveEntryError,
    is_platform_metadata,
    resolve_entry,
    safe_extract,
)
from visionmodels.install.installer import (
    InstallPlan,
    InstallState,
    RollbackJournal,
    TransactionalInstaller,
)

__all__ = [
    "ArchiveError",
    "EmptyArchiveError",
    "InstallPlan",
    "InstallState",
    "RollbackJournal",
    "TransactionalInstaller",
    "UnsafeArchiveEntryError",
    "is_platform_metadata",
    "resolve_entry",
    "safe_extract",
]
