"""Tests for archive compression codecs."""

from __future__ import annotations

import bz2
import gzip
import io
import lzma

import pytest

from wharf.errors import CompressionError
from wharf.ingest.codecs import (
    DEFAULT_CODEC,
    Bz2Codec,
    Codec,
    CodecRegistry,
    GzipCodec,
    XzCodec,
    ZstdCodec,
    get_codec,
)

PAYLOAD = b"id|name\n1|Alice\n2|Bob\n" * 100


def _compress(codec: Codec) -> tuple[bytes, io.BytesIO]:
    dest = io.BytesIO()
    codec.compress(io.BytesIO(PAYLOAD), dest)
    return dest.getvalue(), dest


class TestCodecs:
    @pytest.mark.parametrize(
        "codec, decompress",
        [
            (GzipCodec(), gzip.decompress),
            (Bz2Codec(), bz2.decompress),
            (XzCodec(), lzma.decompress),
        ],
    )
    def test_stdlib_codecs(self, codec: Codec, decompress):
        data, _ = _compress(codec)
        assert decompress(data) == PAYLOAD

    def test_zstd(self):
        zstandard = pytest.importorskip("zstandard")
        data, _ = _compress(ZstdCodec())
        assert zstandard.ZstdDecompressor().decompressobj().decompress(data) == PAYLOAD

    def test_leaves_destination_open(self):
        _, dest = _compress(GzipCodec())
        assert not dest.closed

    def test_suffixes(self):
        assert GzipCodec.suffix == ".gz"
        assert Bz2Codec.suffix == ".bz2"
        assert XzCodec.suffix == ".xz"
        assert ZstdCodec.suffix == ".zst"

    def test_write_failure_is_not_a_codec_error(self):
        class Broken(io.BytesIO):
            def write(self, b):
                raise OSError("disk full")

        with pytest.raises(OSError, match="disk full") as excinfo:
            GzipCodec().compress(io.BytesIO(PAYLOAD), Broken())
        assert not isinstance(excinfo.value, CompressionError)

    def test_codec_failure(self):
        class Exploding(Codec):
            name = "exploding"
            suffix = ".x"

            def writer(self, raw):
                return _Failing()

        with pytest.raises(CompressionError, match="exploding compression failed: bad block"):
            Exploding().compress(io.BytesIO(PAYLOAD), io.BytesIO())


class TestCodecRegistry:
    def test_default_codec(self):
        assert get_codec().name == DEFAULT_CODEC == "bz2"

    def test_aliases(self):
        assert get_codec("gz").name == "gzip"
        assert get_codec("bzip2").name == "bz2"
        assert get_codec("LZMA").name == "xz"

    def test_instances_pass_through(self):
        codec = GzipCodec()
        assert get_codec(codec) is codec

    def test_unknown_codec(self):
        with pytest.raises(CompressionError, match="Unknown compression codec"):
            get_codec("rar")

    def test_custom_codec(self):
        class IdentityCodec(Codec):
            name = "none"
            suffix = ""

            def writer(self, raw):
                return _NoClose(raw)

        reg = CodecRegistry()
        reg.register(IdentityCodec())
        data, _ = _compress(reg.get("none"))
        assert data == PAYLOAD


class _NoClose(io.RawIOBase):
    def __init__(self, raw):
        self._raw = raw

    def writable(self):
        return True

    def write(self, b):
        return self._raw.write(b)


class _Failing(io.RawIOBase):
    def writable(self):
        return True

    def write(self, b):
        raise ValueError("bad block")
