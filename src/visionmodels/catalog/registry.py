"""Handler registration.

The active handlers are fixed once, from an explicit capability list, and
passed to whatever owns the catalog. Registration order is priority order.
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Iterable, Iterator, Sequence
from enum import Enum
from pathlib import Path

from visionmodels.formats.base import BackendInfo, FormatHandler
from visionmodels.formats.package import CoreMLPackageFormatHandler
from visionmodels.formats.single_file import CoreMLFileFormatHandler, RknnFormatHandler

logger = logging.getLogger(__name__)

DEVICE_TREE_COMPATIBLE = Path("/proc/device-tree/compatible")
RK3588_MARKER = "rk3588"


class Capability(str, Enum):
    """Accelerator capability enabling a group of handlers."""

    RKNN = "rknn"
    COREML = "coreml"


def handlers_for(capability: Capability) -> list[FormatHandler]:
    """Handlers registered for one capability, in priority order."""
    if capability is Capability.RKNN:
        return [RknnFormatHandler()]
    if capability is Capability.COREML:
        return [CoreMLFileFormatHandler(), CoreMLPackageFormatHandler()]
    msg = f"Unknown capability: {capability!r}"
    raise ValueError(msg)


def _read_compatible(path: Path) -> str:
    try:
        # Device-tree strings are NUL separated
        return path.read_bytes().replace(b"\x00", b" ").decode("ascii", errors="replace").lower()
    except OSError:
        return ""


def detect_capabilities(
    system: str | None = None,
    compatible_path: Path = DEVICE_TREE_COMPATIBLE,
) -> tuple[Capability, ...]:
    """Work out which accelerators this host offers.

    Args:
        system: platform.system() value; detected when None.
        compatible_path: Device-tree compatible file to inspect on Linux.

    Returns:
        Detected capabilities; empty on hosts with neither accelerator.
    """
    system = system if system is not None else platform.system()
    detected: list[Capability] = []

    if system == "Darwin":
        detected.append(Capability.COREML)
    elif system == "Linux" and RK3588_MARKER in _read_compatible(compatible_path):
        detected.append(Capability.RKNN)

    logger.info(
        "Detected capabilities",
        extra={"system": system, "capabilities": [c.value for c in detected]},
    )
    return tuple(detected)


class HandlerRegistry(Sequence[FormatHandler]):
    """Read-only, ordered set of format handlers.

    Safe to share across threads once built.
    """

    def __init__(self, handlers: Iterable[FormatHandler]) -> None:
        handlers = tuple(handlers)
        seen: set[str] = set()
        for handler in handlers:
            if handler.backend_name in seen:
                msg = f"Duplicate backend registered: {handler.backend_name}"
                raise ValueError(msg)
            seen.add(handler.backend_name)
        self._handlers = handlers

    @classmethod
    def from_capabilities(cls, capabilities: Iterable[Capability]) -> HandlerRegistry:
        """Build a registry from an explicit capability list.

        Capabilities listed twice register their handlers once.
        """
        handlers: list[FormatHandler] = []
        seen: set[Capability] = set()
        for capability in capabilities:
            capability = Capability(capability)
            if capability in seen:
                continue
            seen.add(capability)
            handlers.extend(handlers_for(capability))
        registry = cls(handlers)
        logger.info("Registered handlers", extra={"backends": list(registry.backend_names)})
        return registry

    @classmethod
    def detect(cls) -> HandlerRegistry:
        """Build a registry for the current host."""
        return cls.from_capabilities(detect_capabilities())

    def __getitem__(self, index):  # type: ignore[no-untyped-def]
        return self._handlers[index]

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[FormatHandler]:
        return iter(self._handlers)

    def __repr__(self) -> str:
        return f"HandlerRegistry({list(self.backend_names)!r})"

    @property
    def backend_names(self) -> tuple[str, ...]:
        return tuple(h.backend_name for h in self._handlers)

    def get(self, backend_name: str) -> FormatHandler | None:
        for handler in self._handlers:
            if handler.backend_name == backend_name:
                return handler
        return None

    def infos(self) -> list[BackendInfo]:
        return [h.info() for h in self._handlers]

    def select_for_upload(
        self, model_filename: str | None, labels_filename: str | None
    ) -> FormatHandler | None:
        """First handler whose filename pre-check accepts the pair."""
        for handler in self._handlers:
            if handler.owns_upload_pair(model_filename, labels_filename):
                return handler
        return None
