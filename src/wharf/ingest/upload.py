"""Push a table's source files to the distributed filesystem and archive them.

For a given ``source``, ``domain`` and ``table``, :func:`upload` uses the
standard layout:

- files are read from ``{local_ingest_dir}/dataFeed/{source}/{domain}``;
- each file lands at ``{dfs_root}/source/{source}/{domain}/{table}/<date dirs>/<name>``;
- compressed copies go to ``{local_archive_dir}/{source}/{domain}/{table}/<date dirs>/<name>.bz2``
  and ``{dfs_root}/archive/{source}/{domain}/{table}/<date dirs>/<name>.bz2``.

:func:`custom_upload` takes the four directories explicitly.  Only use it
for non-standard layouts.

Control files are skipped (and logged).  The first failure stops the whole
upload; files landed before it stay landed, and running the upload again
after fixing the cause copies the rest while refusing the ones already
there.
"""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from wharf.errors import IngestError, NoSourcesError, TransferError, WharfError
from wharf.fs import Filesystem, LocalFilesystem, open_filesystem
from wharf.ingest.codecs import Codec, get_codec
from wharf.ingest.control import ControlPattern
from wharf.ingest.discovery import DiscoveredFile, find_files
from wharf.ingest.pattern import compile_pattern
from wharf.ingest.push import TransferRecord, UploadLayout, push

if TYPE_CHECKING:
    from wharf.config import FeedConfig, WharfConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    """What an upload landed and what it skipped."""

    records: list[TransferRecord] = field(default_factory=list)
    control_files: list[str] = field(default_factory=list)

    @property
    def files(self) -> list[str]:
        """Landing paths of every copied file."""
        return [r.dest for r in self.records]

    def with_sources(self) -> list[str]:
        """Return the landed files, raising `NoSourcesError` if there are none."""
        if not self.records:
            raise NoSourcesError("No files were uploaded")
        return self.files


def standard_layout(
    source: str,
    domain: str,
    table: str,
    local_ingest_dir: str,
    local_archive_dir: str,
    dfs_root: str,
    *,
    local_fs: Filesystem,
    remote_fs: Filesystem,
) -> UploadLayout:
    return UploadLayout(
        ingest_dir=local_fs.join(local_ingest_dir, "dataFeed", source, domain),
        local_archive_dir=local_fs.join(local_archive_dir, source, domain, table),
        dfs_archive_dir=remote_fs.join(dfs_root, "archive", source, domain, table),
        dfs_landing_dir=remote_fs.join(dfs_root, "source", source, domain, table),
    )


def _annotate(exc: Exception, context: str) -> WharfError:
    """Attach *context* to *exc*, wrapping foreign errors in `IngestError`."""
    if isinstance(exc, WharfError):
        exc.context = context
        return exc
    error = IngestError(f"{type(exc).__name__}: {exc}")
    error.context = context
    return error


def _log_params(title: str, params: dict[str, object]) -> None:
    logger.info(title)
    width = max(len(k) for k in params)
    for key, value in params.items():
        logger.info("%s = %s", key.ljust(width), value)


def upload(
    source: str,
    domain: str,
    table: str,
    pattern: str,
    local_ingest_dir: str | os.PathLike,
    local_archive_dir: str | os.PathLike,
    dfs_root: str | os.PathLike,
    *,
    control_pattern: str | re.Pattern | None = None,
    codec: Codec | str | None = None,
    workers: int = 1,
    local_fs: Filesystem | None = None,
    remote_fs: Filesystem | None = None,
) -> UploadResult:
    """Push a table's data files using the standard layout.

    Parameters
    ----------
    source:
        Source system.
    domain:
        Database or project within the source.
    table:
        Table (or file) name; substituted for ``{table}`` in *pattern*.
    pattern:
        File name pattern, see :mod:`wharf.ingest.pattern`.
    local_ingest_dir, local_archive_dir:
        Roots of the incoming files and of the local archive.
    dfs_root:
        Root of the distributed filesystem, as a URL (``hdfs://nn/data``) or
        a path on *remote_fs*.
    control_pattern:
        Regex identifying control files.  Defaults to `ControlPattern.DEFAULT`.
    codec:
        Compression codec for archive copies (default ``bz2``).
    workers:
        Number of files pushed concurrently.
    local_fs, remote_fs:
        Filesystems for the local and distributed roles.  *remote_fs*
        defaults to the one *dfs_root* names.

    Returns
    -------
    UploadResult

    Raises
    ------
    WharfError
        The first failure, with ``context`` set to ``source/domain/table``.
        Exceptions that are not `WharfError` arrive wrapped in `IngestError`
        and chained to the original.
    """
    local_fs = local_fs or LocalFilesystem()
    dfs_root = os.fspath(dfs_root)
    context = f"{source}/{domain}/{table}"

    _log_params(
        "Start of upload",
        {
            "source": source,
            "domain": domain,
            "tableName": table,
            "filePattern": pattern,
            "localIngestDir": local_ingest_dir,
            "localArchiveDir": local_archive_dir,
            "dfsRoot": dfs_root,
        },
    )

    try:
        if remote_fs is None:
            remote_fs, dfs_root = open_filesystem(dfs_root)
        layout = standard_layout(
            source,
            domain,
            table,
            os.fspath(local_ingest_dir),
            os.fspath(local_archive_dir),
            dfs_root,
            local_fs=local_fs,
            remote_fs=remote_fs,
        )
        result = upload_files(
            table,
            pattern,
            layout,
            control_pattern=control_pattern,
            codec=codec,
            workers=workers,
            local_fs=local_fs,
            remote_fs=remote_fs,
        )
    except Exception as exc:
        error = _annotate(exc, context)
        logger.error("Upload failed for %s", error, exc_info=error is not exc)
        if error is exc:
            raise
        raise error from exc

    logger.info("Upload ended for %s", context)
    return result


def custom_upload(
    table: str,
    pattern: str,
    ingest_path: str | os.PathLike,
    local_archive_path: str | os.PathLike,
    dfs_archive_path: str | os.PathLike,
    dfs_landing_path: str | os.PathLike,
    *,
    control_pattern: str | re.Pattern | None = None,
    codec: Codec | str | None = None,
    workers: int = 1,
    local_fs: Filesystem | None = None,
    remote_fs: Filesystem | None = None,
) -> UploadResult:
    """As :func:`upload`, with every directory given explicitly.

    Files land at ``{dfs_landing_path}/<date dirs>/<name>`` and are archived
    under ``local_archive_path`` and ``dfs_archive_path``.  The distributed
    paths may be URLs; both must name the same filesystem.
    """
    local_fs = local_fs or LocalFilesystem()
    context = os.fspath(ingest_path)
    dfs_archive_path = os.fspath(dfs_archive_path)
    dfs_landing_path = os.fspath(dfs_landing_path)

    _log_params(
        "Start of custom upload",
        {
            "tableName": table,
            "filePattern": pattern,
            "localIngestPath": ingest_path,
            "localArchivePath": local_archive_path,
            "dfsArchivePath": dfs_archive_path,
            "dfsLandingPath": dfs_landing_path,
        },
    )

    try:
        if remote_fs is None:
            remote_fs, dfs_landing_path = open_filesystem(dfs_landing_path)
            _, dfs_archive_path = open_filesystem(dfs_archive_path)
        layout = UploadLayout(
            ingest_dir=os.fspath(ingest_path),
            local_archive_dir=os.fspath(local_archive_path),
            dfs_archive_dir=dfs_archive_path,
            dfs_landing_dir=dfs_landing_path,
        )
        result = upload_files(
            table,
            pattern,
            layout,
            control_pattern=control_pattern,
            codec=codec,
            workers=workers,
            local_fs=local_fs,
            remote_fs=remote_fs,
        )
    except Exception as exc:
        error = _annotate(exc, context)
        logger.error("Custom upload failed from %s", error, exc_info=error is not exc)
        if error is exc:
            raise
        raise error from exc

    logger.info("Custom upload ended from %s", context)
    return result


def upload_files(
    table: str,
    pattern: str,
    layout: UploadLayout,
    *,
    control_pattern: str | re.Pattern | None,
    codec: Codec | str | None,
    workers: int,
    local_fs: Filesystem,
    remote_fs: Filesystem,
) -> UploadResult:
    """Shared implementation of :func:`upload` and :func:`custom_upload`."""
    # Configuration errors surface before any I/O.
    file_pattern = compile_pattern(pattern)
    control_regex = ControlPattern.compile(control_pattern)
    resolved_codec = get_codec(codec)

    try:
        found = find_files(local_fs, layout.ingest_dir, table, file_pattern, control_regex)
    except OSError as exc:
        raise TransferError(layout.ingest_dir, exc) from exc

    for ctrl in found.controls:
        logger.info("skipping control file %s", ctrl.name)

    def push_one(file: DiscoveredFile) -> TransferRecord:
        record = push(
            file, layout, local_fs=local_fs, remote_fs=remote_fs, codec=resolved_codec
        )
        logger.info("copied %s to %s", file.name, record.dest)
        return record

    records = _push_all(found.data, push_one, workers)
    return UploadResult(records=records, control_files=[c.path for c in found.controls])


def _push_all(
    files: list[DiscoveredFile],
    push_one: Callable[[DiscoveredFile], TransferRecord],
    workers: int,
) -> list[TransferRecord]:
    if workers <= 1:
        return [push_one(f) for f in files]

    records: list[TransferRecord] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(push_one, f) for f in files]
        try:
            for future in as_completed(futures):
                records.append(future.result())
        except BaseException:
            # Stop anything not yet started; running pushes finish on exit.
            for future in futures:
                future.cancel()
            raise
    return records


def ingest_feed(
    config: WharfConfig,
    feed: FeedConfig,
    *,
    local_fs: Filesystem | None = None,
    remote_fs: Filesystem | None = None,
) -> UploadResult:
    """Run the upload a configured feed describes."""
    options = dict(
        control_pattern=feed.control_pattern,
        codec=feed.codec,
        workers=feed.workers,
        local_fs=local_fs,
        remote_fs=remote_fs,
    )
    if feed.is_custom:
        return custom_upload(
            feed.table,
            feed.pattern,
            config.resolve(feed.ingest_path),
            config.resolve(feed.archive_path),
            config.resolve(feed.dfs_archive_path),
            config.resolve(feed.landing_path),
            **options,
        )
    return upload(
        feed.source,
        feed.domain,
        feed.table,
        feed.pattern,
        config.ingest_dir,
        config.archive_dir,
        config.dfs_root,
        **options,
    )
