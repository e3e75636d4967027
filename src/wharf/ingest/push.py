"""Copy one discovered data file to its landing path and archive it.

Step order for each file:

1. refuse if the landing path, its directory markers, or either archive
   copy already exist;
2. copy the bytes to the landing path (via a uniquely named temporary
   sibling that is renamed into place, and removed if the copy or the
   rename fails);
3. write a compressed copy to the local archive;
4. write a compressed copy to the distributed archive.

The landing path is the commit point.  A failure after step 2 leaves the
landing file in place, so a re-run reports `DestinationExistsError` for it
instead of copying it twice.  Nothing is rolled back.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass

from wharf.errors import DestinationExistsError, TransferError
from wharf.fs import Filesystem
from wharf.guard import PARTIAL_SUFFIX, PROCESSED_FLAG, TRANSFERRED_FLAG
from wharf.ingest.codecs import Codec, get_codec
from wharf.ingest.discovery import DiscoveredFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadLayout:
    """The four directories one upload reads from and writes to."""

    ingest_dir: str
    local_archive_dir: str
    dfs_archive_dir: str
    dfs_landing_dir: str


@dataclass(frozen=True)
class Destinations:
    landing: str
    local_archive: str
    dfs_archive: str


@dataclass(frozen=True)
class TransferRecord:
    """Outcome of pushing one file."""

    source: str
    dest: str
    local_archive: str
    dfs_archive: str


def destinations(
    file: DiscoveredFile,
    layout: UploadLayout,
    *,
    local_fs: Filesystem,
    remote_fs: Filesystem,
    codec: Codec,
) -> Destinations:
    """Compute where *file* lands and is archived.

    Date directories come from the file's timestamp fields and are left out
    when the pattern has none.
    """
    date_dirs = file.fields.date_dirs if file.fields is not None else []
    archive_name = file.name + codec.suffix
    return Destinations(
        landing=remote_fs.join(layout.dfs_landing_dir, *date_dirs, file.name),
        local_archive=local_fs.join(layout.local_archive_dir, *date_dirs, archive_name),
        dfs_archive=remote_fs.join(layout.dfs_archive_dir, *date_dirs, archive_name),
    )


def _check_free(
    file: DiscoveredFile,
    dests: Destinations,
    local_fs: Filesystem,
    remote_fs: Filesystem,
) -> None:
    landing_dir = remote_fs.dirname(dests.landing)
    taken = [
        (remote_fs, dests.landing),
        (remote_fs, remote_fs.join(landing_dir, TRANSFERRED_FLAG)),
        (remote_fs, remote_fs.join(landing_dir, PROCESSED_FLAG)),
        (local_fs, dests.local_archive),
        (remote_fs, dests.dfs_archive),
    ]
    for fs, path in taken:
        try:
            exists = fs.exists(path)
        except OSError as exc:
            raise TransferError(path, exc) from exc
        if exists:
            raise DestinationExistsError(path, source=file.path)


def _discard(fs: Filesystem, path: str) -> None:
    try:
        if fs.exists(path):
            fs.delete(path)
    except OSError as exc:
        logger.warning("could not remove partial file %s: %s", path, exc)


def _copy_to_landing(
    file: DiscoveredFile, landing: str, local_fs: Filesystem, remote_fs: Filesystem
) -> None:
    # Unique per push so concurrent runs never share a temporary file.
    tmp = f"{landing}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}"
    try:
        remote_fs.makedirs(remote_fs.dirname(landing))
        with local_fs.open_read(file.path) as src, remote_fs.open_write(tmp) as dest:
            shutil.copyfileobj(src, dest)
    except OSError as exc:
        _discard(remote_fs, tmp)
        raise TransferError(landing, exc) from exc

    try:
        remote_fs.rename(tmp, landing)
    except FileExistsError as exc:
        _discard(remote_fs, tmp)
        raise DestinationExistsError(landing, source=file.path) from exc
    except OSError as exc:
        _discard(remote_fs, tmp)
        raise TransferError(landing, exc) from exc


def _archive(
    file: DiscoveredFile,
    target: str,
    local_fs: Filesystem,
    target_fs: Filesystem,
    codec: Codec,
) -> None:
    try:
        target_fs.makedirs(target_fs.dirname(target))
        with local_fs.open_read(file.path) as src, target_fs.open_write(target) as dest:
            codec.compress(src, dest)
    except OSError as exc:
        raise TransferError(target, exc) from exc


def push(
    file: DiscoveredFile,
    layout: UploadLayout,
    *,
    local_fs: Filesystem,
    remote_fs: Filesystem,
    codec: Codec | str | None = None,
) -> TransferRecord:
    """Land *file* on the remote filesystem and archive it in both places.

    Raises
    ------
    DestinationExistsError
        If any destination, or a batch marker in the landing directory,
        is already present.  Nothing is written in that case.
    TransferError
        If a read, write or rename fails.
    CompressionError
        If the codec fails while compressing an archive copy.
    """
    codec = get_codec(codec)
    dests = destinations(file, layout, local_fs=local_fs, remote_fs=remote_fs, codec=codec)

    _check_free(file, dests, local_fs, remote_fs)

    _copy_to_landing(file, dests.landing, local_fs, remote_fs)
    logger.debug("landed %s at %s", file.name, dests.landing)

    _archive(file, dests.local_archive, local_fs, local_fs, codec)
    _archive(file, dests.dfs_archive, local_fs, remote_fs, codec)
    logger.debug("archived %s to %s and %s", file.name, dests.local_archive, dests.dfs_archive)

    return TransferRecord(
        source=file.path,
        dest=dests.landing,
        local_archive=dests.local_archive,
        dfs_archive=dests.dfs_archive,
    )
