"""Data ingest: file patterns, discovery, push/archive and the upload orchestrator."""

from wharf.ingest.codecs import Codec, CodecRegistry, get_codec
from wharf.ingest.control import ControlPattern, FileKind, classify
from wharf.ingest.discovery import DiscoveredFile, InputFiles, find_files
from wharf.ingest.pattern import DateField, FilePattern, TimestampFields, compile_pattern
from wharf.ingest.push import TransferRecord, UploadLayout, push
from wharf.ingest.upload import UploadResult, custom_upload, upload

__all__ = [
    # codecs
    "Codec",
    "CodecRegistry",
    "get_codec",
    # control
    "ControlPattern",
    "FileKind",
    "classify",
    # discovery
    "DiscoveredFile",
    "InputFiles",
    "find_files",
    # pattern
    "DateField",
    "FilePattern",
    "TimestampFields",
    "compile_pattern",
    # push
    "TransferRecord",
    "UploadLayout",
    "push",
    # upload
    "UploadResult",
    "custom_upload",
    "upload",
]
