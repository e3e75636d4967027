"""Filesystem abstraction over local disk and distributed stores.

Every storage role in Wharf (the local ingest directory, the local archive,
the distributed landing tree and the distributed archive) is addressed
through a `Filesystem`.  Paths are plain strings in the filesystem's own
notation; `open_filesystem` turns a root URL into a filesystem plus the
root path to hand to it.

Implementations raise :class:`OSError` (or a subclass) on storage failures.
Callers decide how to wrap them.
"""

from __future__ import annotations

import glob as _glob
import os
import posixpath
from abc import ABC, abstractmethod
from typing import IO, ClassVar
from urllib.parse import urlparse

from wharf.errors import FilesystemError


# ---------------------------------------------------------------------------
# Abstract filesystem
# ---------------------------------------------------------------------------


class Filesystem(ABC):
    """The storage operations the ingest pipeline and batch guard rely on."""

    #: URL schemes this filesystem handles, e.g. ``("hdfs",)``.
    schemes: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def isdir(self, path: str) -> bool: ...

    @abstractmethod
    def isfile(self, path: str) -> bool: ...

    @abstractmethod
    def size(self, path: str) -> int: ...

    @abstractmethod
    def listdir(self, path: str) -> list[str]:
        """Return the full paths of the immediate entries of *path*."""

    @abstractmethod
    def glob(self, pattern: str) -> list[str]:
        """Return the paths matching a shell-style *pattern*."""

    @abstractmethod
    def makedirs(self, path: str) -> None: ...

    @abstractmethod
    def open_read(self, path: str) -> IO[bytes]: ...

    @abstractmethod
    def open_write(self, path: str) -> IO[bytes]:
        """Open *path* for writing, truncating any existing file."""

    @abstractmethod
    def create_new(self, path: str) -> bool:
        """Create an empty file at *path* unless something is already there.

        Returns ``True`` if this call created the file, ``False`` if it was
        already present.
        """

    @abstractmethod
    def rename(self, src: str, dest: str) -> None:
        """Move *src* to *dest*, raising :class:`FileExistsError` if *dest* exists."""

    @abstractmethod
    def delete(self, path: str) -> None: ...

    def join(self, *parts: str) -> str:
        return posixpath.join(*parts)

    def basename(self, path: str) -> str:
        return posixpath.basename(path.rstrip("/"))

    def dirname(self, path: str) -> str:
        return posixpath.dirname(path.rstrip("/"))


# ---------------------------------------------------------------------------
# Local disk
# ---------------------------------------------------------------------------


class LocalFilesystem(Filesystem):
    """The machine's own disk, accessed through :mod:`os`."""

    schemes: ClassVar[tuple[str, ...]] = ("", "file")

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def isdir(self, path: str) -> bool:
        return os.path.isdir(path)

    def isfile(self, path: str) -> bool:
        return os.path.isfile(path)

    def size(self, path: str) -> int:
        return os.stat(path).st_size

    def listdir(self, path: str) -> list[str]:
        with os.scandir(path) as entries:
            return [entry.path for entry in entries]

    def glob(self, pattern: str) -> list[str]:
        return _glob.glob(pattern)

    def makedirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def open_read(self, path: str) -> IO[bytes]:
        return open(path, "rb")

    def open_write(self, path: str) -> IO[bytes]:
        return open(path, "wb")

    def create_new(self, path: str) -> bool:
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        os.close(fd)
        return True

    def rename(self, src: str, dest: str) -> None:
        # link() refuses to replace an existing file, unlike rename().
        os.link(src, dest)
        os.unlink(src)

    def delete(self, path: str) -> None:
        os.unlink(path)

    def join(self, *parts: str) -> str:
        return os.path.join(*parts)

    def basename(self, path: str) -> str:
        return os.path.basename(path.rstrip(os.sep))

    def dirname(self, path: str) -> str:
        return os.path.dirname(path.rstrip(os.sep))


# ---------------------------------------------------------------------------
# fsspec-backed stores (HDFS, object stores, in-memory)
# ---------------------------------------------------------------------------


class FsspecFilesystem(Filesystem):
    """Any store :mod:`fsspec` can open.

    ``hdfs://`` needs ``pyarrow`` (``pip install 'wharf-ingest[hdfs]'``);
    object stores need their fsspec plugin (``s3fs``, ``gcsfs``, ``adlfs``).
    """

    schemes: ClassVar[tuple[str, ...]] = (
        "hdfs",
        "viewfs",
        "s3",
        "s3a",
        "gs",
        "gcs",
        "abfs",
        "abfss",
        "memory",
    )

    def __init__(self, fs) -> None:
        self._fs = fs

    @classmethod
    def from_url(cls, url: str, **storage_options) -> tuple["FsspecFilesystem", str]:
        from fsspec.core import url_to_fs

        try:
            fs, root = url_to_fs(url, **storage_options)
        except (ImportError, ValueError) as exc:
            raise FilesystemError(f"Cannot open filesystem for '{url}': {exc}") from exc
        return cls(fs), root

    def exists(self, path: str) -> bool:
        return self._fs.exists(path)

    def isdir(self, path: str) -> bool:
        return self._fs.isdir(path)

    def isfile(self, path: str) -> bool:
        return self._fs.isfile(path)

    def size(self, path: str) -> int:
        return self._fs.size(path)

    def listdir(self, path: str) -> list[str]:
        return self._fs.ls(path, detail=False)

    def glob(self, pattern: str) -> list[str]:
        return self._fs.glob(pattern)

    def makedirs(self, path: str) -> None:
        self._fs.makedirs(path, exist_ok=True)

    def open_read(self, path: str) -> IO[bytes]:
        return self._fs.open(path, "rb")

    def open_write(self, path: str) -> IO[bytes]:
        return self._fs.open(path, "wb")

    def create_new(self, path: str) -> bool:
        # Only as atomic as the store's own exists/create pair.
        if self._fs.exists(path):
            return False
        self._fs.touch(path, truncate=True)
        return True

    def rename(self, src: str, dest: str) -> None:
        if self._fs.exists(dest):
            raise FileExistsError(dest)
        self._fs.mv(src, dest)

    def delete(self, path: str) -> None:
        self._fs.rm(path)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTIN_FILESYSTEMS: list[type[Filesystem]] = [LocalFilesystem, FsspecFilesystem]


class FilesystemRegistry:
    """Maps URL schemes to `Filesystem` classes."""

    def __init__(self) -> None:
        self._classes: dict[str, type[Filesystem]] = {}

    def register(self, fs_cls: type[Filesystem]) -> None:
        """Register a filesystem class for all of its declared schemes."""
        for scheme in fs_cls.schemes:
            self._classes[scheme.lower()] = fs_cls

    def get(self, scheme: str) -> type[Filesystem]:
        """Look up the class for *scheme*, raising `FilesystemError` if unknown."""
        try:
            return self._classes[scheme.lower()]
        except KeyError:
            supported = ", ".join(sorted(s for s in self._classes if s)) or "(none)"
            raise FilesystemError(
                f"No filesystem registered for scheme '{scheme}'. "
                f"Supported schemes: {supported}"
            )

    @classmethod
    def default(cls) -> "FilesystemRegistry":
        """Return a registry pre-loaded with the built-in filesystems."""
        reg = cls()
        for fs_cls in _BUILTIN_FILESYSTEMS:
            reg.register(fs_cls)
        return reg


def _scheme(url: str) -> str:
    # Windows drive letters parse as a one-letter scheme.
    scheme = urlparse(url).scheme
    return "" if len(scheme) == 1 else scheme


def open_filesystem(
    url: str,
    *,
    registry: FilesystemRegistry | None = None,
    **storage_options,
) -> tuple[Filesystem, str]:
    """Return ``(filesystem, root_path)`` for a root *url* or plain local path."""
    reg = registry or FilesystemRegistry.default()
    fs_cls = reg.get(_scheme(url))
    if fs_cls is LocalFilesystem:
        path = urlparse(url).path if url.startswith("file:") else url
        return LocalFilesystem(), path
    if issubclass(fs_cls, FsspecFilesystem):
        return fs_cls.from_url(url, **storage_options)
    return fs_cls(), url
