"""Project configuration for Wharf."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import toml

from wharf.errors import ConfigError, ProjectNotInitializedError
from wharf.ingest.codecs import DEFAULT_CODEC

CONFIG_FILENAME = "wharf.toml"
DEFAULT_INGEST_PATH = "ingest"
DEFAULT_ARCHIVE_PATH = "archive"
DEFAULT_DFS_ROOT = "dfs"

_CUSTOM_PATH_KEYS = ("ingest_path", "archive_path", "dfs_archive_path", "landing_path")


@dataclass
class PathsConfig:
    local_ingest_dir: str = DEFAULT_INGEST_PATH
    local_archive_dir: str = DEFAULT_ARCHIVE_PATH
    dfs_root: str = DEFAULT_DFS_ROOT

    def __post_init__(self) -> None:
        self.local_ingest_dir = os.environ.get("WHARF_LOCAL_INGEST_DIR", self.local_ingest_dir)
        self.local_archive_dir = os.environ.get("WHARF_LOCAL_ARCHIVE_DIR", self.local_archive_dir)
        self.dfs_root = os.environ.get("WHARF_DFS_ROOT", self.dfs_root)


@dataclass
class FeedConfig:
    """One ingestion unit: a table fed by a source system."""

    source: str
    domain: str
    table: str
    pattern: str
    control_pattern: str | None = None
    codec: str = DEFAULT_CODEC
    workers: int = 1
    ingest_path: str | None = None
    archive_path: str | None = None
    dfs_archive_path: str | None = None
    landing_path: str | None = None

    @property
    def is_custom(self) -> bool:
        """True when the feed overrides the standard directory layout."""
        return any(getattr(self, key) is not None for key in _CUSTOM_PATH_KEYS)

    def validate(self) -> None:
        if self.is_custom:
            missing = [key for key in _CUSTOM_PATH_KEYS if getattr(self, key) is None]
            if missing:
                raise ConfigError(
                    f"Feed '{self.table}' overrides its layout but is missing: "
                    + ", ".join(missing)
                )
        if self.workers < 1:
            raise ConfigError(f"Feed '{self.table}': workers must be at least 1")

    def to_dict(self) -> dict:
        data = {
            "source": self.source,
            "domain": self.domain,
            "table": self.table,
            "pattern": self.pattern,
            "codec": self.codec,
            "workers": self.workers,
        }
        if self.control_pattern is not None:
            data["control_pattern"] = self.control_pattern
        for key in _CUSTOM_PATH_KEYS:
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def is_url(value: str) -> bool:
    return "://" in value


@dataclass
class WharfConfig:
    project_name: str = "my-feeds"
    paths: PathsConfig = field(default_factory=PathsConfig)
    feeds: list[FeedConfig] = field(default_factory=list)
    project_root: Path = field(default_factory=lambda: Path.cwd())

    def resolve(self, value: str) -> str:
        """Anchor a relative local path at the project root; URLs pass through."""
        if is_url(value):
            return value
        return str(self.project_root / value)

    @property
    def ingest_dir(self) -> str:
        return self.resolve(self.paths.local_ingest_dir)

    @property
    def archive_dir(self) -> str:
        return self.resolve(self.paths.local_archive_dir)

    @property
    def dfs_root(self) -> str:
        return self.resolve(self.paths.dfs_root)

    def feed(self, table: str) -> FeedConfig:
        for feed in self.feeds:
            if feed.table == table:
                return feed
        known = ", ".join(f.table for f in self.feeds) or "(none)"
        raise ConfigError(f"No feed configured for table '{table}'. Known tables: {known}")

    def to_dict(self) -> dict:
        return {
            "project": {
                "name": self.project_name,
            },
            "paths": {
                "local_ingest_dir": self.paths.local_ingest_dir,
                "local_archive_dir": self.paths.local_archive_dir,
                "dfs_root": self.paths.dfs_root,
            },
            "feeds": [feed.to_dict() for feed in self.feeds],
        }

    def save(self, path: Path | None = None) -> None:
        target = path or (self.project_root / CONFIG_FILENAME)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            toml.dump(self.to_dict(), f)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from *start* looking for wharf.toml."""
    current = (start or Path.cwd()).resolve()
    while True:
        if (current / CONFIG_FILENAME).exists():
            return current
        parent = current.parent
        if parent == current:
            raise ProjectNotInitializedError(str(start or Path.cwd()))
        current = parent


def _load_feed(raw: dict, index: int) -> FeedConfig:
    required = ("source", "domain", "table", "pattern")
    missing = [key for key in required if key not in raw]
    if missing:
        raise ConfigError(f"Feed #{index + 1} is missing: {', '.join(missing)}")
    known = set(required) | {"control_pattern", "codec", "workers", *_CUSTOM_PATH_KEYS}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Feed '{raw['table']}' has unknown keys: {', '.join(unknown)}")
    try:
        workers = int(raw.get("workers", 1))
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Feed '{raw['table']}': workers must be an integer, got {raw['workers']!r}"
        ) from exc

    feed = FeedConfig(
        source=raw["source"],
        domain=raw["domain"],
        table=raw["table"],
        pattern=raw["pattern"],
        control_pattern=raw.get("control_pattern"),
        codec=raw.get("codec", DEFAULT_CODEC),
        workers=workers,
        ingest_path=raw.get("ingest_path"),
        archive_path=raw.get("archive_path"),
        dfs_archive_path=raw.get("dfs_archive_path"),
        landing_path=raw.get("landing_path"),
    )
    feed.validate()
    return feed


def load_config(project_root: Path | None = None) -> WharfConfig:
    """Load and return the project configuration."""
    root = project_root or find_project_root()
    config_path = root / CONFIG_FILENAME
    if not config_path.exists():
        raise ProjectNotInitializedError(str(root))

    try:
        data = toml.load(config_path)
    except Exception as exc:
        raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc

    proj = data.get("project", {})
    paths = data.get("paths", {})

    paths_config = PathsConfig(
        local_ingest_dir=paths.get("local_ingest_dir", DEFAULT_INGEST_PATH),
        local_archive_dir=paths.get("local_archive_dir", DEFAULT_ARCHIVE_PATH),
        dfs_root=paths.get("dfs_root", DEFAULT_DFS_ROOT),
    )

    feeds = [_load_feed(raw, i) for i, raw in enumerate(data.get("feeds", []))]
    tables = [f.table for f in feeds]
    duplicates = sorted({t for t in tables if tables.count(t) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate feeds for table(s): {', '.join(duplicates)}")

    return WharfConfig(
        project_name=proj.get("name", "my-feeds"),
        paths=paths_config,
        feeds=feeds,
        project_root=root,
    )
