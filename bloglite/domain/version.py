"""
Content-addressed version history of an article.

Each version is keyed by the hash of the content it was created from.
History is append-only: ``add_version`` links the new hash to the current
one and advances the pointer; ``rollback_to_version`` only moves the
pointer, so every version (including the one rolled back from) stays
reachable.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from bloglite.domain.errors import DuplicateVersion, EmptyHash, VersionNotFound


@dataclass(frozen=True)
class Version:
    hash: str
    parent: str | None = None

    def __post_init__(self) -> None:
        if not self.hash:
            raise EmptyHash()

    @property
    def is_root(self) -> bool:
        return self.parent is None


class VersionHistory:
    def __init__(self, versions: Mapping[str, Version], current: str) -> None:
        self._versions = dict(versions)
        self._current = current

    @classmethod
    def new(cls, root_hash: str) -> VersionHistory:
        root = Version(root_hash)
        return cls({root.hash: root}, root.hash)

    @classmethod
    def from_versions(cls, versions: Iterable[Version], current: str) -> VersionHistory:
        """
        Rebuild a history from stored versions, checking its invariants.

        Raises ``ValueError`` when ``current`` is unknown, a parent reference
        dangles, there is not exactly one root, or some version does not lead
        back to the root; callers translate that into their own error.
        """
        by_hash = {v.hash: v for v in versions}
        if current not in by_hash:
            raise ValueError(f"current version {current!r} is not in the history")
        for version in by_hash.values():
            if version.parent is not None and version.parent not in by_hash:
                raise ValueError(
                    f"version {version.hash!r} references missing parent {version.parent!r}"
                )
        roots = [v.hash for v in by_hash.values() if v.is_root]
        if len(roots) != 1:
            raise ValueError(f"expected exactly one root version, found {len(roots)}")
        reaches_root = set(roots)
        for start in by_hash:
            path = []
            node = start
            while node not in reaches_root:
                if node in path:
                    raise ValueError(f"version {start!r} is part of a parent cycle")
                path.append(node)
                node = by_hash[node].parent
            reaches_root.update(path)
        return cls(by_hash, current)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def current(self) -> str:
        return self._current

    @property
    def versions(self) -> dict[str, Version]:
        return dict(self._versions)

    def contains(self, version_hash: str) -> bool:
        return version_hash in self._versions

    def __contains__(self, version_hash: object) -> bool:
        return version_hash in self._versions

    def __len__(self) -> int:
        return len(self._versions)

    def copy(self) -> VersionHistory:
        return VersionHistory(self._versions, self._current)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_version(self, version_hash: str) -> None:
        if version_hash in self._versions:
            raise DuplicateVersion(version_hash)
        version = Version(version_hash, parent=self._current)
        self._versions[version.hash] = version
        self._current = version.hash

    def rollback_to_version(self, version_hash: str) -> None:
        if version_hash not in self._versions:
            raise VersionNotFound(version_hash)
        self._current = version_hash

    def __repr__(self) -> str:
        return f"VersionHistory(current={self._current!r}, versions={len(self._versions)})"
