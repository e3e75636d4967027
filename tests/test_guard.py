"""Tests for the batch-state guard."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path

import pytest

from wharf.errors import GuardError
from wharf.fs import Filesystem
from wharf.guard import (
    PROCESSED_FLAG,
    TRANSFERRED_FLAG,
    BatchState,
    batch_state,
    create_flag_file,
    expand_paths,
    expand_transferred_paths,
    list_non_empty_files,
)


@pytest.fixture(params=["local", "memory"])
def store(request, tmp_path: Path) -> tuple[Filesystem, str]:
    """A filesystem and an empty root directory on it."""
    if request.param == "local":
        return request.getfixturevalue("local_fs"), str(tmp_path)
    return request.getfixturevalue("memory_fs"), request.getfixturevalue("memory_root")


def _touch(fs: Filesystem, path: str, data: bytes = b"") -> None:
    fs.makedirs(fs.dirname(path))
    with fs.open_write(path) as f:
        f.write(data)


@pytest.fixture
def batches(store) -> tuple[Filesystem, str]:
    """Three batch directories ``a``, ``a_transferred`` and ``a_processed``.

    Each holds one data file; the latter two carry their marker.
    """
    fs, root = store
    for name in ("a", "a_transferred", "a_processed"):
        _touch(fs, fs.join(root, name, "part-0000"), b"data")
    _touch(fs, fs.join(root, "a_transferred", TRANSFERRED_FLAG))
    _touch(fs, fs.join(root, "a_processed", TRANSFERRED_FLAG))
    _touch(fs, fs.join(root, "a_processed", PROCESSED_FLAG))
    return fs, root


def _names(paths: list[str]) -> list[str]:
    return sorted(posixpath.basename(p.rstrip("/")) for p in paths)


class TestBatchState:
    def test_states(self, batches):
        fs, root = batches
        assert batch_state(fs.join(root, "a"), fs=fs) is BatchState.UNMARKED
        assert batch_state(fs.join(root, "a_transferred"), fs=fs) is BatchState.TRANSFERRED
        assert batch_state(fs.join(root, "a_processed"), fs=fs) is BatchState.PROCESSED

    def test_processed_without_transferred_marker(self, store):
        fs, root = store
        _touch(fs, fs.join(root, "b", PROCESSED_FLAG))
        assert batch_state(fs.join(root, "b"), fs=fs) is BatchState.PROCESSED


class TestExpand:
    def test_expand_paths(self, batches):
        fs, root = batches
        assert _names(expand_paths(fs.join(root, "a*"), fs=fs)) == ["a", "a_transferred"]

    def test_expand_transferred_paths(self, batches):
        fs, root = batches
        assert _names(expand_transferred_paths(fs.join(root, "a*"), fs=fs)) == ["a_transferred"]

    def test_transferred_is_subset(self, batches):
        fs, root = batches
        pattern = fs.join(root, "*")
        candidates = expand_paths(pattern, fs=fs)
        transferred = set(expand_transferred_paths(pattern, fs=fs))
        assert transferred <= set(candidates)
        assert transferred == {
            p for p in candidates if batch_state(p, fs=fs) is BatchState.TRANSFERRED
        }

    def test_files_are_not_batches(self, batches):
        fs, root = batches
        _touch(fs, fs.join(root, "a_file"), b"x")
        assert "a_file" not in _names(expand_paths(fs.join(root, "a*"), fs=fs))

    def test_no_matches(self, store):
        fs, root = store
        assert expand_paths(fs.join(root, "nothing*"), fs=fs) == []

    def test_state_is_reread(self, batches):
        fs, root = batches
        pattern = fs.join(root, "a*")
        _touch(fs, fs.join(root, "a", TRANSFERRED_FLAG))
        assert _names(expand_transferred_paths(pattern, fs=fs)) == ["a", "a_transferred"]


class TestListNonEmptyFiles:
    def test_lists_data_files_only(self, batches):
        fs, root = batches
        directory = fs.join(root, "a_processed")
        _touch(fs, fs.join(directory, "empty"))
        _touch(fs, fs.join(directory, "nested", "part-0001"), b"deep")

        files = list_non_empty_files([directory], fs=fs)
        assert _names(files) == ["part-0000"]

    def test_marker_with_content_is_excluded(self, store):
        fs, root = store
        directory = fs.join(root, "c")
        _touch(fs, fs.join(directory, TRANSFERRED_FLAG), b"written by producer")
        _touch(fs, fs.join(directory, "part-0000"), b"x")
        assert _names(list_non_empty_files([directory], fs=fs)) == ["part-0000"]

    def test_in_flight_copies_are_excluded(self, store):
        fs, root = store
        directory = fs.join(root, "d")
        _touch(fs, fs.join(directory, "part-0000"), b"x")
        _touch(fs, fs.join(directory, "part-0001.3f2a9c.part"), b"half")
        assert _names(list_non_empty_files([directory], fs=fs)) == ["part-0000"]

    def test_several_directories(self, batches):
        fs, root = batches
        dirs = [fs.join(root, "a"), fs.join(root, "a_transferred")]
        assert len(list_non_empty_files(dirs, fs=fs)) == 2

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(GuardError, match="Cannot list"):
            list_non_empty_files([str(tmp_path / "missing")])


class TestCreateFlagFile:
    def test_marks_processed(self, batches):
        fs, root = batches
        directory = fs.join(root, "a_transferred")
        create_flag_file([directory], fs=fs)

        assert fs.exists(fs.join(directory, PROCESSED_FLAG))
        assert batch_state(directory, fs=fs) is BatchState.PROCESSED
        assert expand_paths(directory, fs=fs) == []

    def test_idempotent(self, batches, caplog):
        caplog.set_level(logging.DEBUG, logger="wharf")
        fs, root = batches
        directory = fs.join(root, "a_processed")
        with fs.open_write(fs.join(directory, PROCESSED_FLAG)) as f:
            f.write(b"first")

        create_flag_file([directory], fs=fs)

        with fs.open_read(fs.join(directory, PROCESSED_FLAG)) as f:
            assert f.read() == b"first"
        assert any("already processed" in r.getMessage() for r in caplog.records)

    def test_empty_list(self, store):
        fs, _ = store
        create_flag_file([], fs=fs)

    def test_missing_local_directory(self, tmp_path: Path):
        with pytest.raises(GuardError, match="Cannot create"):
            create_flag_file([str(tmp_path / "missing")])
