"""
Persisted encoding of a ``VersionHistory``.

The history is stored as JSON in ``articles.version_history``::

    {
        "version_pool": ["a1b2c3", "d4e5f6"],   # each hash once, sorted
        "history": [[0, -1], [1, 0]],           # (index, parent index)
        "current_index": 1
    }

A parent index of ``ROOT_PARENT`` marks the root version. Decoding checks
every index and the history invariants and raises ``DataIntegrityError``
on any violation, so a corrupt row can never become a live aggregate.
"""
from bloglite.domain.errors import EmptyHash
from bloglite.domain.version import Version, VersionHistory
from bloglite.exceptions import DataIntegrityError

ROOT_PARENT = -1


def encode_history(history: VersionHistory) -> dict:
    versions = history.versions
    pool = sorted(versions)
    index = {version_hash: i for i, version_hash in enumerate(pool)}

    edges = [
        [index[v.hash], ROOT_PARENT if v.parent is None else index[v.parent]]
        for v in sorted(versions.values(), key=lambda v: index[v.hash])
    ]
    return {
        "version_pool": pool,
        "history": edges,
        "current_index": index[history.current],
    }


def decode_history(data: dict) -> VersionHistory:
    try:
        pool = list(data["version_pool"])
        edges = list(data["history"])
        current_index = data["current_index"]
    except (KeyError, TypeError) as exc:
        raise DataIntegrityError(f"Version history is missing a field: {exc}") from exc

    def lookup(i, what: str) -> str:
        if not isinstance(i, int) or isinstance(i, bool) or not 0 <= i < len(pool):
            raise DataIntegrityError(f"Version history {what} index {i!r} is out of range")
        return pool[i]

    versions = []
    for edge in edges:
        if not isinstance(edge, (list, tuple)) or len(edge) != 2:
            raise DataIntegrityError(f"Version history edge {edge!r} is malformed")
        idx, parent_idx = edge
        version_hash = lookup(idx, "version")
        parent = None if parent_idx == ROOT_PARENT else lookup(parent_idx, "parent")
        try:
            versions.append(Version(version_hash, parent))
        except EmptyHash as exc:
            raise DataIntegrityError("Version history contains an empty hash") from exc

    current = lookup(current_index, "current")
    try:
        return VersionHistory.from_versions(versions, current)
    except ValueError as exc:
        raise DataIntegrityError(f"Version history is inconsistent: {exc}") from exc
