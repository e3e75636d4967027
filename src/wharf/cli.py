"""Wharf command line: land file batches and manage batch markers."""

from __future__ import annotations

from pathlib import Path

import click

from wharf import __version__
from wharf.config import FeedConfig, WharfConfig, is_url, load_config
from wharf.errors import WharfError
from wharf.fs import Filesystem, open_filesystem
from wharf.log import configure_logging


def _get_config(ctx: click.Context) -> WharfConfig:
    """Load config, attaching it to the Click context."""
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config()
        except WharfError as exc:
            raise click.ClickException(str(exc)) from exc
    return ctx.obj["config"]


def _open(paths: tuple[str, ...]) -> tuple[Filesystem, list[str]]:
    """Resolve the filesystem named by the first path; strip URLs to paths on it."""
    try:
        fs, _ = open_filesystem(paths[0])
        return fs, [open_filesystem(p)[1] for p in paths]
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc


# ======================================================================
# Root group
# ======================================================================


@click.group()
@click.version_option(__version__, prog_name="wharf")
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Wharf: land external file batches and coordinate their consumers."""
    ctx.ensure_object(dict)
    configure_logging(verbose)


# ======================================================================
# new-project
# ======================================================================


@main.command("new-project")
@click.option("--name", default="my-feeds", help="Project name.")
@click.option(
    "--path",
    type=click.Path(),
    default=".",
    help="Directory to initialize (default: current directory).",
)
def new_project(name: str, path: str) -> None:
    """Initialize a new Wharf project."""
    root = Path(path).resolve()

    config = WharfConfig(project_name=name, project_root=root)
    config.save()

    Path(config.ingest_dir, "dataFeed").mkdir(parents=True, exist_ok=True)
    Path(config.archive_dir).mkdir(parents=True, exist_ok=True)
    if not is_url(config.dfs_root):
        Path(config.dfs_root).mkdir(parents=True, exist_ok=True)

    click.echo(f"Initialized wharf project '{name}' at {root}")
    click.echo(f"  config:  {root / 'wharf.toml'}")
    click.echo(f"  ingest:  {config.ingest_dir}")
    click.echo(f"  archive: {config.archive_dir}")
    click.echo(f"  dfs:     {config.dfs_root}")


# ======================================================================
# ingest
# ======================================================================


@main.command()
@click.argument("tables", nargs=-1)
@click.option("--require-files", is_flag=True, help="Fail if a feed lands no files.")
@click.pass_context
def ingest(ctx: click.Context, tables: tuple[str, ...], require_files: bool) -> None:
    """Land the files of the given tables (default: every configured feed)."""
    from wharf.ingest.upload import ingest_feed

    config = _get_config(ctx)
    try:
        feeds: list[FeedConfig] = (
            [config.feed(t) for t in tables] if tables else list(config.feeds)
        )
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc

    if not feeds:
        click.echo("No feeds configured.")
        return

    for feed in feeds:
        label = f"{feed.source}/{feed.domain}/{feed.table}"
        try:
            result = ingest_feed(config, feed)
            if require_files:
                result.with_sources()
        except WharfError as exc:
            if exc.context is None:
                exc.context = label
            raise click.ClickException(str(exc)) from exc

        click.echo(f"{label}: {len(result.files)} file(s) landed")
        for dest in result.files:
            click.echo(f"  + {dest}")
        for ctrl in result.control_files:
            click.echo(f"  ~ {Path(ctrl).name} (control, skipped)")


# ======================================================================
# check-pattern
# ======================================================================


@main.command("check-pattern")
@click.argument("pattern")
@click.argument("filenames", nargs=-1)
@click.option("--table", required=True, help="Table name substituted for {table}.")
def check_pattern(pattern: str, filenames: tuple[str, ...], table: str) -> None:
    """Compile PATTERN and test FILENAMES against it."""
    from wharf.ingest.control import FileKind, classify
    from wharf.ingest.pattern import compile_pattern

    try:
        compiled = compile_pattern(pattern)
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Pattern: {pattern}")
    click.echo(f"Regex:   {compiled.regex(table).pattern}")
    click.echo(f"Example: {compiled.render(table)}")

    failed = False
    for name in filenames:
        if classify(name) is FileKind.CONTROL:
            click.echo(f"  CONTROL  {name}")
            continue
        try:
            fields = compiled.match(name, table)
        except WharfError as exc:
            click.echo(f"  INVALID  {name}  ({exc})")
            failed = True
            continue
        if fields is None:
            click.echo(f"  NO MATCH {name}")
            failed = True
        else:
            click.echo(f"  MATCH    {name}  -> {fields.date_path or '(no date)'}")
    if failed:
        raise SystemExit(1)


# ======================================================================
# guard
# ======================================================================


@main.group()
def guard() -> None:
    """Inspect and mark batch directories."""


@guard.command("list")
@click.argument("pattern")
@click.option("--transferred", is_flag=True, help="Only directories marked as transferred.")
def guard_list(pattern: str, transferred: bool) -> None:
    """List unprocessed directories matching the glob PATTERN."""
    from wharf.guard import expand_paths, expand_transferred_paths

    fs, (glob,) = _open((pattern,))
    expand = expand_transferred_paths if transferred else expand_paths
    try:
        paths = expand(glob, fs=fs)
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc
    for path in sorted(paths):
        click.echo(path)


@guard.command("files")
@click.argument("directories", nargs=-1, required=True)
def guard_files(directories: tuple[str, ...]) -> None:
    """List the non-empty files in DIRECTORIES."""
    from wharf.guard import list_non_empty_files

    fs, dirs = _open(directories)
    try:
        files = list_non_empty_files(dirs, fs=fs)
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc
    for path in files:
        click.echo(path)


@guard.command("state")
@click.argument("directories", nargs=-1, required=True)
def guard_state(directories: tuple[str, ...]) -> None:
    """Show the batch state of DIRECTORIES."""
    from wharf.guard import batch_state

    fs, dirs = _open(directories)
    for directory in dirs:
        try:
            state = batch_state(directory, fs=fs)
        except WharfError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"{state.value:<12} {directory}")


@guard.command("mark-processed")
@click.argument("directories", nargs=-1, required=True)
def guard_mark_processed(directories: tuple[str, ...]) -> None:
    """Mark DIRECTORIES as processed."""
    from wharf.guard import create_flag_file

    fs, dirs = _open(directories)
    try:
        create_flag_file(dirs, fs=fs)
    except WharfError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Marked {len(dirs)} director(y/ies) as processed.")


if __name__ == "__main__":
    main()
