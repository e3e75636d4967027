"""Batch lifecycle tracked through marker files.

A batch is a directory.  Its state is read from two marker files inside it
every time it is asked for; nothing is cached between calls.

============  =========================================================
State         Markers present
============  =========================================================
UNMARKED      neither
TRANSFERRED   ``_INGESTION_COMPLETE`` (written by the producer)
PROCESSED     ``_PROCESSED`` (written by `create_flag_file`)
============  =========================================================

Downstream jobs call `expand_transferred_paths` (or `expand_paths`) to find
work, `list_non_empty_files` to enumerate inputs, and `create_flag_file`
when they are done.  Two consumers may both see a batch as TRANSFERRED
before either marks it, so processing must tolerate a repeat.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

from wharf.errors import GuardError
from wharf.fs import Filesystem, LocalFilesystem

logger = logging.getLogger(__name__)

TRANSFERRED_FLAG = "_INGESTION_COMPLETE"
PROCESSED_FLAG = "_PROCESSED"

MARKER_FILES = frozenset({TRANSFERRED_FLAG, PROCESSED_FLAG})

#: Suffix of in-flight copies written next to their landing path.
PARTIAL_SUFFIX = ".part"


class BatchState(Enum):
    UNMARKED = "unmarked"
    TRANSFERRED = "transferred"
    PROCESSED = "processed"


def _fs(fs: Filesystem | None) -> Filesystem:
    return fs if fs is not None else LocalFilesystem()


def batch_state(directory: str, *, fs: Filesystem | None = None) -> BatchState:
    """Read the state of one batch directory from its markers."""
    fs = _fs(fs)
    try:
        if fs.exists(fs.join(directory, PROCESSED_FLAG)):
            return BatchState.PROCESSED
        if fs.exists(fs.join(directory, TRANSFERRED_FLAG)):
            return BatchState.TRANSFERRED
    except OSError as exc:
        raise GuardError(f"Cannot read markers in '{directory}': {exc}") from exc
    return BatchState.UNMARKED


def _expand(pattern: str, fs: Filesystem, wanted: set[BatchState]) -> list[str]:
    try:
        matches = fs.glob(pattern)
    except OSError as exc:
        raise GuardError(f"Cannot expand '{pattern}': {exc}") from exc

    paths: list[str] = []
    for path in matches:
        try:
            is_dir = fs.isdir(path)
        except OSError as exc:
            raise GuardError(f"Cannot stat '{path}': {exc}") from exc
        if not is_dir:
            logger.debug("skipping %s: not a directory", path)
            continue
        state = batch_state(path, fs=fs)
        if state not in wanted:
            logger.debug("skipping %s: %s", path, state.value)
            continue
        paths.append(path)
    return paths


def expand_paths(pattern: str, *, fs: Filesystem | None = None) -> list[str]:
    """Directories matching *pattern* that have not been processed.

    Results follow the filesystem's listing order; sort them if you need a
    stable order.
    """
    return _expand(pattern, _fs(fs), {BatchState.UNMARKED, BatchState.TRANSFERRED})


def expand_transferred_paths(pattern: str, *, fs: Filesystem | None = None) -> list[str]:
    """Directories matching *pattern* that are transferred but not processed."""
    return _expand(pattern, _fs(fs), {BatchState.TRANSFERRED})


def list_non_empty_files(
    directories: Iterable[str], *, fs: Filesystem | None = None
) -> list[str]:
    """Regular files directly inside *directories* with a size above zero.

    Marker files and subdirectories are never returned, nor are in-flight
    copies ending in `PARTIAL_SUFFIX`.
    """
    fs = _fs(fs)
    files: list[str] = []
    for directory in directories:
        try:
            for path in fs.listdir(directory):
                name = fs.basename(path)
                if name in MARKER_FILES or name.endswith(PARTIAL_SUFFIX):
                    continue
                if fs.isfile(path) and fs.size(path) > 0:
                    files.append(path)
        except OSError as exc:
            raise GuardError(f"Cannot list '{directory}': {exc}") from exc
    return files


def create_flag_file(directories: Iterable[str], *, fs: Filesystem | None = None) -> None:
    """Mark each of *directories* as processed.

    Directories that already carry the marker are left alone.
    """
    fs = _fs(fs)
    for directory in directories:
        flag = fs.join(directory, PROCESSED_FLAG)
        try:
            created = fs.create_new(flag)
        except OSError as exc:
            raise GuardError(f"Cannot create '{flag}': {exc}") from exc
        if created:
            logger.info("marked %s as processed", directory)
        else:
            logger.debug("%s already processed", directory)
