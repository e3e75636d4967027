"""Compression codecs for archive copies.

Supported codecs: gzip, bzip2 (the default), xz and zstd.  Each codec wraps
an already-open binary output stream, so archives can be written to any
`~wharf.fs.Filesystem`.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from typing import IO, ClassVar

from wharf.errors import CompressionError

DEFAULT_CODEC = "bz2"


class Codec(ABC):
    """A streaming compressor with a conventional file suffix."""

    name: ClassVar[str] = ""
    suffix: ClassVar[str] = ""
    #: Alternative names accepted in configuration.
    aliases: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def writer(self, raw: IO[bytes]) -> IO[bytes]:
        """Wrap *raw*; closing the wrapper must flush it but leave *raw* open."""

    def compress(self, src: IO[bytes], dest: IO[bytes], chunk_size: int = 1 << 20) -> None:
        """Copy *src* into *dest* through this codec.

        I/O errors from either stream propagate unchanged; any other failure
        inside the codec is raised as `CompressionError`.
        """
        try:
            with self.writer(dest) as out:
                shutil.copyfileobj(src, out, chunk_size)
        except (OSError, CompressionError):
            raise
        except Exception as exc:
            raise CompressionError(f"{self.name} compression failed: {exc}") from exc


class GzipCodec(Codec):
    name: ClassVar[str] = "gzip"
    suffix: ClassVar[str] = ".gz"
    aliases: ClassVar[tuple[str, ...]] = ("gz",)

    def writer(self, raw: IO[bytes]) -> IO[bytes]:
        import gzip

        return gzip.GzipFile(fileobj=raw, mode="wb")  # type: ignore[return-value]


class Bz2Codec(Codec):
    name: ClassVar[str] = "bz2"
    suffix: ClassVar[str] = ".bz2"
    aliases: ClassVar[tuple[str, ...]] = ("bzip2",)

    def writer(self, raw: IO[bytes]) -> IO[bytes]:
        import bz2

        return bz2.BZ2File(raw, mode="wb")  # type: ignore[return-value]


class XzCodec(Codec):
    name: ClassVar[str] = "xz"
    suffix: ClassVar[str] = ".xz"
    aliases: ClassVar[tuple[str, ...]] = ("lzma",)

    def writer(self, raw: IO[bytes]) -> IO[bytes]:
        import lzma

        return lzma.LZMAFile(raw, mode="wb")  # type: ignore[return-value]


class ZstdCodec(Codec):
    name: ClassVar[str] = "zstd"
    suffix: ClassVar[str] = ".zst"
    aliases: ClassVar[tuple[str, ...]] = ("zst",)

    def writer(self, raw: IO[bytes]) -> IO[bytes]:
        try:
            import zstandard
        except ImportError as exc:
            raise CompressionError(
                "zstandard is required for zstd archives.  Install it with: "
                "pip install 'wharf-ingest[zstd]'"
            ) from exc
        return zstandard.ZstdCompressor().stream_writer(raw, closefd=False)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTIN_CODECS: list[type[Codec]] = [GzipCodec, Bz2Codec, XzCodec, ZstdCodec]


class CodecRegistry:
    """Maps codec names and aliases to `Codec` instances."""

    def __init__(self) -> None:
        self._codecs: dict[str, Codec] = {}

    def register(self, codec: Codec) -> None:
        for key in (codec.name, *codec.aliases):
            self._codecs[key.lower()] = codec

    def get(self, name: str) -> Codec:
        try:
            return self._codecs[name.lower()]
        except KeyError:
            supported = ", ".join(sorted(self._codecs)) or "(none)"
            raise CompressionError(
                f"Unknown compression codec '{name}'. Supported codecs: {supported}"
            )

    @classmethod
    def default(cls) -> "CodecRegistry":
        reg = cls()
        for codec_cls in _BUILTIN_CODECS:
            reg.register(codec_cls())
        return reg


def get_codec(codec: Codec | str | None = None) -> Codec:
    """Resolve a codec instance from a name (``None`` means the default)."""
    if isinstance(codec, Codec):
        return codec
    return CodecRegistry.default().get(codec or DEFAULT_CODEC)
