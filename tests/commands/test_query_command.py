"""Tests for query command behavior and output formatting."""

from __future__ import annotations

import json
from pathlib import Path

import click
import pytest

from orgview.commands.query import QueryArgs, run_query
from orgview.output_format import DEFAULT_OUTPUT_THEME, OutputFormat


def _make_args(files: list[str], query: str, **overrides: object) -> QueryArgs:
    args = QueryArgs(
        query=query,
        files=files,
        config=".orgview.json",
        root=None,
        this=None,
        todo_keys="TODO",
        done_keys="DONE",
        color_flag=False,
        out=OutputFormat.ORG,
        out_theme=DEFAULT_OUTPUT_THEME,
    )
    for key, value in overrides.items():
        setattr(args, key, value)
    return args


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def test_run_query_list(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """LIST queries should print one org list item per document."""
    run_query(_make_args([str(vault_dir)], "LIST FROM #game SORT rating DESC"))

    assert capsys.readouterr().out.splitlines() == [
        "- [[file:games/elden.org]]",
        "- [[file:games/hollow.org]]",
        "- [[file:games/tetris.org]]",
    ]


def test_run_query_json(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """JSON output should carry column names and keyed rows."""
    run_query(
        _make_args(
            [str(vault_dir)], "TABLE WITHOUT ID file.name, rating FROM #game", out=OutputFormat.JSON
        )
    )

    payload = json.loads(capsys.readouterr().out)
    assert payload["type"] == "table"
    assert payload["names"] == ["file.name", "rating"]
    assert payload["rows"] == [
        {"file.name": "elden", "rating": 5},
        {"file.name": "hollow", "rating": 4},
        {"file.name": "tetris", "rating": 2},
    ]


def test_run_query_tasks(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """TASK queries should print checkboxes grouped by document."""
    run_query(_make_args([str(vault_dir)], 'TASK FROM "notes"'))

    assert capsys.readouterr().out.splitlines() == [
        "* [[file:notes/reviews.org]]",
        "- [ ] TODO Write the Tetris review",
    ]


def test_run_query_uses_this(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """--this should bind the origin document."""
    run_query(
        _make_args(
            [str(vault_dir)],
            "LIST WHERE contains(file.outlinks, this.file.link)",
            this="games/elden.org",
        )
    )

    assert capsys.readouterr().out.splitlines() == [
        "- [[file:games/hollow.org]]",
        "- [[file:notes/reviews.org]]",
    ]


def test_run_query_uses_config_settings(
    vault_dir: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Rendering settings should be read from the config file."""
    (tmp_path / ".orgview.json").write_text('{"render_null_as": "n/a"}', encoding="utf-8")

    run_query(_make_args([str(vault_dir)], 'TABLE playtime FROM "games/elden"'))

    assert "| [[file:games/elden.org]] | n/a |" in capsys.readouterr().out


def test_run_query_no_results(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Empty results should print a notice."""
    run_query(_make_args([str(vault_dir)], "LIST FROM #missing"))

    assert capsys.readouterr().out.strip() == "No results"


def test_query_syntax_error_shows_pointer(vault_dir: Path) -> None:
    """Syntax errors should become usage errors with a position pointer."""
    with pytest.raises(click.UsageError, match="Invalid query syntax") as exc_info:
        run_query(_make_args([str(vault_dir)], "LIST FROM"))

    assert "^" in exc_info.value.message


def test_query_runtime_error_is_usage_error(vault_dir: Path) -> None:
    """Queries failing on every row should be reported as usage errors."""
    with pytest.raises(click.UsageError, match="Every row during operation 'where'"):
        run_query(_make_args([str(vault_dir)], "LIST WHERE 1 / 0"))


def test_query_rejects_unknown_output(vault_dir: Path) -> None:
    """Unknown output formats should be usage errors."""
    with pytest.raises(click.UsageError, match="Unsupported output format"):
        run_query(_make_args([str(vault_dir)], "LIST", out="pandoc"))
