"""Tests for the CLI interface."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from wharf.cli import main
from wharf.guard import PROCESSED_FLAG, TRANSFERRED_FLAG


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project_dir(tmp_project: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_project)
    return tmp_project


class TestNewProject:
    def test_creates_structure(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, ["new-project", "--name", "feeds", "--path", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "wharf.toml").exists()
        assert (tmp_path / "ingest" / "dataFeed").is_dir()
        assert (tmp_path / "archive").is_dir()
        assert (tmp_path / "dfs").is_dir()
        assert "Initialized wharf project 'feeds'" in result.output


class TestIngest:
    def test_lands_files(self, runner: CliRunner, project_dir: Path):
        source = project_dir / "ingest/dataFeed/customer/customer"
        (source / "customer20141010.DAT").write_text("x")
        (source / "customer.ctl").write_text("")

        result = runner.invoke(main, ["ingest"])
        assert result.exit_code == 0, result.output
        assert "customer/customer/customer: 1 file(s) landed" in result.output
        assert "customer.ctl (control, skipped)" in result.output
        assert (project_dir / "dfs/source/customer/customer/customer/2014/10/10/customer20141010.DAT").exists()

    def test_rerun_fails(self, runner: CliRunner, project_dir: Path):
        source = project_dir / "ingest/dataFeed/customer/customer"
        (source / "customer20141010.DAT").write_text("x")

        assert runner.invoke(main, ["ingest"]).exit_code == 0
        result = runner.invoke(main, ["ingest", "customer"])
        assert result.exit_code == 1
        assert "customer/customer/customer: Destination" in result.output
        assert "already exists" in result.output

    def test_require_files(self, runner: CliRunner, project_dir: Path):
        result = runner.invoke(main, ["ingest", "--require-files"])
        assert result.exit_code == 1
        assert "No files were uploaded" in result.output

    def test_unknown_table(self, runner: CliRunner, project_dir: Path):
        result = runner.invoke(main, ["ingest", "account"])
        assert result.exit_code == 1
        assert "No feed configured for table 'account'" in result.output

    def test_outside_project(self, runner: CliRunner, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(main, ["ingest"])
        assert result.exit_code == 1
        assert "wharf new-project" in result.output


class TestCheckPattern:
    def test_reports_each_file(self, runner: CliRunner):
        result = runner.invoke(
            main,
            [
                "check-pattern",
                "{table}{yyyyMMdd}.DAT",
                "--table",
                "customer",
                "customer20141010.DAT",
                "customer.ctl",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Example: customer" in result.output
        assert "MATCH    customer20141010.DAT  -> 2014/10/10" in result.output
        assert "CONTROL  customer.ctl" in result.output

    def test_failures_exit_nonzero(self, runner: CliRunner):
        result = runner.invoke(
            main,
            ["check-pattern", "{table}{yyyyMMdd}.DAT", "--table", "customer", "customer20141310.DAT", "other.DAT"],
        )
        assert result.exit_code == 1
        assert "INVALID  customer20141310.DAT" in result.output
        assert "NO MATCH other.DAT" in result.output

    def test_bad_pattern(self, runner: CliRunner):
        result = runner.invoke(main, ["check-pattern", "{table}{yyyyQQ}", "--table", "t"])
        assert result.exit_code == 1
        assert "unsupported timestamp field 'Q'" in result.output


class TestGuard:
    @pytest.fixture
    def batches(self, tmp_path: Path) -> Path:
        for name in ("a", "a_transferred", "a_processed"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "part-0000").write_text("data")
        (tmp_path / "a_transferred" / TRANSFERRED_FLAG).touch()
        (tmp_path / "a_processed" / PROCESSED_FLAG).touch()
        return tmp_path

    def test_list(self, runner: CliRunner, batches: Path):
        result = runner.invoke(main, ["guard", "list", str(batches / "a*")])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [str(batches / "a"), str(batches / "a_transferred")]

    def test_list_transferred(self, runner: CliRunner, batches: Path):
        result = runner.invoke(main, ["guard", "list", "--transferred", str(batches / "a*")])
        assert result.output.splitlines() == [str(batches / "a_transferred")]

    def test_files(self, runner: CliRunner, batches: Path):
        result = runner.invoke(main, ["guard", "files", str(batches / "a_transferred")])
        assert result.output.splitlines() == [str(batches / "a_transferred" / "part-0000")]

    def test_state(self, runner: CliRunner, batches: Path):
        result = runner.invoke(
            main, ["guard", "state", str(batches / "a"), str(batches / "a_processed")]
        )
        lines = result.output.splitlines()
        assert lines[0].split() == ["unmarked", str(batches / "a")]
        assert lines[1].split() == ["processed", str(batches / "a_processed")]

    def test_mark_processed(self, runner: CliRunner, batches: Path):
        result = runner.invoke(
            main, ["guard", "mark-processed", f"file://{batches / 'a_transferred'}"]
        )
        assert result.exit_code == 0, result.output
        assert "Marked 1 director(y/ies) as processed." in result.output
        assert (batches / "a_transferred" / PROCESSED_FLAG).exists()

    def test_missing_directory(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, ["guard", "files", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Cannot list" in result.output
