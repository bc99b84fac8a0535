"""CliRunner tests for the Typer CLI."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from orgview import logging_config
from orgview.cli import app


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    yield
    logging_config.configure_logging(False)


def test_cli_runner_query_org(vault_dir: Path) -> None:
    """CliRunner should execute a LIST query."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "LIST FROM #puzzle", "--no-color", str(vault_dir)])

    assert result.exit_code == 0
    assert result.stdout.strip() == "- [[file:games/tetris.org]]"


def test_cli_runner_query_json(vault_dir: Path) -> None:
    """CliRunner should render JSON output."""
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "query",
            "TABLE rating FROM #game SORT rating DESC LIMIT 1",
            "--no-color",
            "--out",
            "json",
            str(vault_dir),
        ],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["names"] == ["File", "rating"]
    assert payload["rows"][0]["rating"] == 5
    assert payload["rows"][0]["File"]["path"] == "games/elden.org"


def test_cli_runner_query_table(vault_dir: Path) -> None:
    """CliRunner should render a Rich table with a result count."""
    runner = CliRunner()

    result = runner.invoke(
        app, ["query", "TABLE rating FROM #game", "--no-color", "--out", "table", str(vault_dir)]
    )

    assert result.exit_code == 0
    assert "rating" in result.stdout
    assert "3 results" in result.stdout


def test_cli_runner_query_syntax_error(vault_dir: Path) -> None:
    """Syntax errors should exit with a usage error."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "SELECT x", "--no-color", str(vault_dir)])

    assert result.exit_code == 2
    assert "Invalid query syntax" in result.output


def test_cli_runner_query_root_and_this(vault_dir: Path) -> None:
    """--root and --this should place documents and bind the origin."""
    runner = CliRunner()
    this = str(vault_dir / "notes" / "2024-01-05.org")

    result = runner.invoke(
        app,
        [
            "query",
            "LIST FROM outgoing([[2024-01-05]]) WHERE file.name != this.file.name",
            "--no-color",
            "--root",
            str(vault_dir),
            "--this",
            this,
            str(vault_dir / "games"),
            str(vault_dir / "notes"),
        ],
    )

    assert result.exit_code == 0
    assert result.stdout.strip() == "- [[file:games/tetris.org]]"


def test_cli_runner_eval(vault_dir: Path) -> None:
    """CliRunner should evaluate expressions."""
    runner = CliRunner()

    expression = "length(filter([[reviews]].file.outlinks, (l) => l.rating > 4))"

    result = runner.invoke(app, ["eval", expression, "--no-color", str(vault_dir)])

    assert result.exit_code == 0
    assert result.stdout.strip() == "1"


def test_cli_runner_sources(vault_dir: Path) -> None:
    """CliRunner should list matching documents."""
    runner = CliRunner()

    result = runner.invoke(app, ["sources", '"notes"', "--no-color", str(vault_dir)])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["notes/2024-01-05.org", "notes/reviews.org"]


def test_cli_runner_custom_task_keys(tmp_path: Path) -> None:
    """Custom task keys should be used when parsing documents."""
    (tmp_path / "a.org").write_text("* WAIT Reply\n* GONE Old\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "query",
            "TASK",
            "--no-color",
            "--todo-keys",
            "WAIT",
            "--done-keys",
            "GONE",
            str(tmp_path),
        ],
    )

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["* [[file:a.org]]", "- [ ] WAIT Reply", "- [X] GONE Old"]


def test_cli_runner_rejects_pipe_in_keys(vault_dir: Path) -> None:
    """Task keys containing pipes should be rejected."""
    runner = CliRunner()

    result = runner.invoke(
        app, ["sources", "#game", "--no-color", "--todo-keys", "A|B", str(vault_dir)]
    )

    assert result.exit_code == 2
    assert "pipe character" in result.output


def test_cli_runner_malformed_config(vault_dir: Path, tmp_path: Path) -> None:
    """A malformed config file should be reported."""
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app, ["eval", "1", "--no-color", "--config", "broken.json", str(vault_dir)]
    )

    assert result.exit_code == 2
    assert "Malformed config" in result.output


def test_cli_runner_missing_path() -> None:
    """Missing input paths should be reported."""
    runner = CliRunner()

    result = runner.invoke(app, ["sources", "#game", "--no-color", "missing-dir"])

    assert result.exit_code == 2
    assert "Path 'missing-dir' not found" in result.output


def test_cli_runner_verbose_logs_progress(vault_dir: Path) -> None:
    """--verbose should print progress messages."""
    runner = CliRunner()

    result = runner.invoke(app, ["--verbose", "sources", "#puzzle", "--no-color", str(vault_dir)])

    assert result.exit_code == 0
    assert "Loaded 5 documents" in result.stdout
    assert "games/tetris.org" in result.stdout
