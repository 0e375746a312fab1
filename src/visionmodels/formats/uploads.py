"""Upload boundary.

The HTTP layer hands the catalog two upload objects. Only the declared
filename and a readable byte stream are used.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class Upload(Protocol):
    """An uploaded file as delivered by the transport layer."""

    @property
    def filename(self) -> str:
        """Declared client-side filename (no directory part)."""
        ...

    def content(self) -> BinaryIO:
        """Open a fresh readable byte stream over the upload."""
        ...


def declared_extension(filename: str) -> str:
    """Lower-cased extension after the last dot ("" if none)."""
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    return filename[dot:].lower()


@dataclass(frozen=True)
class BytesUpload:
    """In-memory upload."""

    filename: str
    data: bytes

    def content(self) -> BinaryIO:
        return io.BytesIO(self.data)


@dataclass(frozen=True)
class FileUpload:
    """Upload backed by a file on local disk.

    The declared filename defaults to the file's own name.
    """

    path: Path
    declared_name: str | None = None

    @property
    def filename(self) -> str:
        return self.declared_name or self.path.name

    def content(self) -> BinaryIO:
        return self.path.open("rb")
