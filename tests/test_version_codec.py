"""Pooled JSON encoding of VersionHistory stored in articles.version_history."""
import pytest

from bloglite.domain.version import VersionHistory
from bloglite.exceptions import DataIntegrityError
from bloglite.repositories.version_codec import ROOT_PARENT, decode_history, encode_history


def _history() -> VersionHistory:
    history = VersionHistory.new("c3c3c3")
    history.add_version("a1a1a1")
    history.add_version("b2b2b2")
    history.rollback_to_version("a1a1a1")
    return history


def test_encode_uses_sorted_pool_and_indexes():
    data = encode_history(_history())

    assert data["version_pool"] == ["a1a1a1", "b2b2b2", "c3c3c3"]
    assert data["history"] == [[0, 2], [1, 0], [2, ROOT_PARENT]]
    assert data["current_index"] == 0


def test_decode_restores_current_and_edges():
    original = _history()
    decoded = decode_history(encode_history(original))

    assert decoded.current == original.current
    assert decoded.versions == original.versions


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"version_pool": ["a"], "history": [[0, -1]]},
        {"version_pool": ["a"], "history": [[0, -1]], "current_index": 1},
        {"version_pool": ["a"], "history": [[0, -1]], "current_index": True},
        {"version_pool": ["a"], "history": [[1, -1]], "current_index": 0},
        {"version_pool": ["a", "b"], "history": [[0, -1], [1, 5]], "current_index": 1},
        {"version_pool": ["a"], "history": [[0]], "current_index": 0},
        {"version_pool": [""], "history": [[0, -1]], "current_index": 0},
        # current points at a pool entry that has no history edge
        {"version_pool": ["a", "b"], "history": [[0, -1]], "current_index": 1},
        # parent cycle with no root
        {"version_pool": ["a", "b"], "history": [[0, 1], [1, 0]], "current_index": 0},
        # two roots
        {"version_pool": ["a", "b"], "history": [[0, -1], [1, -1]], "current_index": 1},
        # cycle detached from the root
        {
            "version_pool": ["a", "b", "c"],
            "history": [[0, -1], [1, 2], [2, 1]],
            "current_index": 0,
        },
    ],
)
def test_decode_rejects_corrupt_data(data):
    with pytest.raises(DataIntegrityError):
        decode_history(data)
