"""Tests for the sources command."""

from __future__ import annotations

from pathlib import Path

import click
import pytest

from orgview.commands.sources import SourcesArgs, run_sources


def _make_args(files: list[str], source: str, **overrides: object) -> SourcesArgs:
    args = SourcesArgs(
        source=source,
        files=files,
        root=None,
        this=None,
        todo_keys="TODO",
        done_keys="DONE",
        color_flag=False,
    )
    for key, value in overrides.items():
        setattr(args, key, value)
    return args


def test_run_sources(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Matched documents should be printed in path order."""
    run_sources(_make_args([str(vault_dir)], "#game and -#puzzle"))

    assert capsys.readouterr().out.splitlines() == ["games/elden.org", "games/hollow.org"]


def test_run_sources_relative_to_this(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Link sources should resolve relative to the --this document."""
    run_sources(
        _make_args([str(vault_dir)], "outgoing([[reviews]])", this="notes/2024-01-05.org")
    )

    assert capsys.readouterr().out.splitlines() == ["games/elden.org", "games/hollow.org"]


def test_run_sources_no_results(vault_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Sources matching nothing should print a notice."""
    run_sources(_make_args([str(vault_dir)], "#missing"))

    assert capsys.readouterr().out.strip() == "No results"


@pytest.mark.parametrize(
    ("source", "message"),
    [
        ("bare words", "Invalid query syntax"),
        ("[[nosuch]]", "Could not resolve link 'nosuch'"),
    ],
)
def test_run_sources_errors(vault_dir: Path, source: str, message: str) -> None:
    """Bad sources should be usage errors."""
    with pytest.raises(click.UsageError, match=message):
        run_sources(_make_args([str(vault_dir)], source))
