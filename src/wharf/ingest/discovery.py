"""Find the control and data files for one table in a source directory."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from wharf.fs import Filesystem
from wharf.ingest.control import FileKind, classify
from wharf.ingest.pattern import FilePattern, TimestampFields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveredFile:
    """A file found in the source directory, with its classification."""

    path: str
    name: str
    kind: FileKind
    fields: TimestampFields | None = None


@dataclass(frozen=True)
class InputFiles:
    """Result of one discovery pass."""

    controls: list[DiscoveredFile] = field(default_factory=list)
    data: list[DiscoveredFile] = field(default_factory=list)


def find_files(
    fs: Filesystem,
    directory: str,
    table: str,
    file_pattern: FilePattern,
    control_pattern: re.Pattern | None = None,
) -> InputFiles:
    """Scan the immediate entries of *directory*.

    Control files are returned whether or not they match *file_pattern*.
    Other files are data files if they match *file_pattern* and are skipped
    silently otherwise.  Subdirectories are never returned.

    Raises
    ------
    PatternError
        If a matching name carries an invalid or inconsistent timestamp.
    OSError
        If the directory cannot be listed.
    """
    controls: list[DiscoveredFile] = []
    data: list[DiscoveredFile] = []

    for path in fs.listdir(directory):
        if not fs.isfile(path):
            continue
        name = fs.basename(path)
        if classify(name, control_pattern) is FileKind.CONTROL:
            controls.append(DiscoveredFile(path, name, FileKind.CONTROL))
            continue
        fields = file_pattern.match(name, table)
        if fields is None:
            logger.debug("ignoring %s: does not match %s", name, file_pattern.pattern)
            continue
        data.append(DiscoveredFile(path, name, FileKind.DATA, fields))

    return InputFiles(controls=controls, data=data)
