"""Shared test fixtures."""

from __future__ import annotations

import textwrap
import uuid
from pathlib import Path

import fsspec
import pytest

from wharf.config import WharfConfig
from wharf.fs import FsspecFilesystem, LocalFilesystem


@pytest.fixture
def local_fs() -> LocalFilesystem:
    return LocalFilesystem()


@pytest.fixture
def memory_root():
    """A private root in fsspec's in-memory filesystem, removed afterwards."""
    fs = fsspec.filesystem("memory")
    root = f"/wharf-{uuid.uuid4().hex[:8]}"
    fs.makedirs(root, exist_ok=True)
    yield root
    if fs.exists(root):
        fs.rm(root, recursive=True)


@pytest.fixture
def memory_fs(memory_root: str) -> FsspecFilesystem:
    return FsspecFilesystem(fsspec.filesystem("memory"))


@pytest.fixture
def feed_dirs(tmp_path: Path) -> dict[str, Path]:
    """Local ingest/archive/dfs roots with the customer feed's source directory."""
    dirs = {
        "ingest": tmp_path / "ingest",
        "archive": tmp_path / "archive",
        "dfs": tmp_path / "dfs",
    }
    for d in dirs.values():
        d.mkdir()
    dirs["source"] = dirs["ingest"] / "dataFeed" / "customer" / "customer"
    dirs["source"].mkdir(parents=True)
    return dirs


@pytest.fixture
def customer_files(feed_dirs: dict[str, Path]) -> Path:
    """One customer data file (10 bytes) and its control file."""
    source = feed_dirs["source"]
    (source / "customer20141010.DAT").write_bytes(b"0123456789")
    (source / "customer.ctl").write_text("")
    return source


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal wharf project with one customer feed."""
    (tmp_path / "ingest" / "dataFeed" / "customer" / "customer").mkdir(parents=True)
    (tmp_path / "archive").mkdir()
    (tmp_path / "dfs").mkdir()

    config_content = textwrap.dedent("""\
        [project]
        name = "test-feeds"

        [paths]
        local_ingest_dir = "ingest"
        local_archive_dir = "archive"
        dfs_root = "dfs"

        [[feeds]]
        source = "customer"
        domain = "customer"
        table = "customer"
        pattern = "{table}{yyyyMMdd}.DAT"
    """)
    (tmp_path / "wharf.toml").write_text(config_content)

    return tmp_path


@pytest.fixture
def config(tmp_project: Path) -> WharfConfig:
    """Load a WharfConfig from the temp project."""
    from wharf.config import load_config

    return load_config(tmp_project)
