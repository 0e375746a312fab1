"""Immutable catalog snapshot produced by one discovery pass."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from visionmodels.formats.base import ArtifactDescriptor


@dataclass(frozen=True)
class Catalog(Mapping[str, tuple["ArtifactDescriptor", ...]]):
    """Backend name -> artifacts sorted by display name.

    Backends appear in registration order, including backends with no
    artifacts. A Catalog is never mutated; discovery builds a new one.
    """

    _buckets: Mapping[str, tuple[ArtifactDescriptor, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_buckets(cls, buckets: Mapping[str, list[ArtifactDescriptor]]) -> Catalog:
        """Freeze per-backend lists, sorting each by artifact name."""
        frozen = {
            backend: tuple(sorted(artifacts, key=lambda a: a.name))
            for backend, artifacts in buckets.items()
        }
        return cls(MappingProxyType(frozen))

    @classmethod
    def empty(cls, backends: tuple[str, ...] = ()) -> Catalog:
        return cls(MappingProxyType({backend: () for backend in backends}))

    def __getitem__(self, backend: str) -> tuple[ArtifactDescriptor, ...]:
        return self._buckets[backend]

    def __iter__(self) -> Iterator[str]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Catalog):
            return NotImplemented
        return list(self._buckets.items()) == list(other._buckets.items())

    def __hash__(self) -> int:
        return hash(tuple(self._buckets.items()))

    @property
    def backends(self) -> tuple[str, ...]:
        return tuple(self._buckets)

    @property
    def total(self) -> int:
        """Total number of artifacts across all backends."""
        return sum(len(artifacts) for artifacts in self._buckets.values())

    def artifacts(self) -> Iterator[ArtifactDescriptor]:
        """All artifacts, backend by backend in registration order."""
        for artifacts in self._buckets.values():
            yield from artifacts

    def to_dict(self) -> dict[str, Any]:
        return {
            backend: [artifact.to_dict() for artifact in artifacts]
            for backend, artifacts in self._buckets.items()
        }

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())
