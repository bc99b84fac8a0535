"""Query command: run a LIST/TABLE/TASK query against org files."""

from __future__ import annotations

from dataclasses import dataclass

import click
import typer

from orgview import config as config_module
from orgview.cli_common import load_settings, load_vault_data, resolve_origin
from orgview.color import should_use_color
from orgview.output_format import (
    DEFAULT_OUTPUT_THEME,
    OutputFormat,
    OutputFormatError,
    build_console,
    get_query_formatter,
    print_prepared_output,
)
from orgview.query_language import Failure, compile_query_text


@dataclass
class QueryArgs:
    """Arguments for the query command."""

    query: str
    files: list[str] | None
    config: str
    root: str | None
    this: str | None
    todo_keys: str
    done_keys: str
    color_flag: bool | None
    out: str
    out_theme: str


def run_query(args: QueryArgs) -> None:
    """Run the query command."""
    color_enabled = should_use_color(args.color_flag)
    console = build_console(color_enabled)
    settings = load_settings(args.config)
    try:
        formatter = get_query_formatter(args.out)
    except OutputFormatError as exc:
        raise click.UsageError(str(exc)) from exc

    compiled = compile_query_text(args.query, settings)
    if isinstance(compiled, Failure):
        raise click.UsageError(compiled.message)

    vault = load_vault_data(args)
    origin = resolve_origin(vault, args.this, args)
    result = compiled.value(vault, origin)
    if isinstance(result, Failure):
        raise click.UsageError(result.message)

    prepared_output = formatter.prepare(result.value, settings, color_enabled, args.out_theme)
    print_prepared_output(console, prepared_output)


def register(app: typer.Typer) -> None:
    """Register the query command."""

    @app.command("query")
    def query_command(  # noqa: PLR0913
        query: str = typer.Argument(
            ..., metavar="QUERY", help="Query such as 'TABLE rating FROM #game SORT rating DESC'"
        ),
        files: list[str] | None = typer.Argument(  # noqa: B008
            None, metavar="PATH", help="Org-mode files or directories to index"
        ),
        config: str = typer.Option(
            config_module.DEFAULT_CONFIG_NAME,
            "--config",
            metavar="FILE",
            help="Config file name to load from current directory",
        ),
        root: str | None = typer.Option(
            None,
            "--root",
            metavar="DIR",
            help="Directory document paths are relative to",
        ),
        this: str | None = typer.Option(
            None,
            "--this",
            metavar="FILE",
            help="Document bound to 'this' and used to resolve relative links",
        ),
        todo_keys: str = typer.Option(
            "TODO",
            "--todo-keys",
            metavar="KEYS",
            help="Comma-separated list of incomplete task states",
        ),
        done_keys: str = typer.Option(
            "DONE",
            "--done-keys",
            metavar="KEYS",
            help="Comma-separated list of completed task states",
        ),
        color_flag: bool | None = typer.Option(
            None,
            "--color/--no-color",
            help="Force colored output",
        ),
        out: str = typer.Option(
            OutputFormat.ORG,
            "--out",
            help="Output format: org, json, or table",
        ),
        out_theme: str = typer.Option(
            DEFAULT_OUTPUT_THEME,
            "--out-theme",
            help="Syntax theme for highlighted output blocks",
        ),
    ) -> None:
        """Run a LIST, TABLE, or TASK query over org documents."""
        args = QueryArgs(
            query=query,
            files=files,
            config=config,
            root=root,
            this=this,
            todo_keys=todo_keys,
            done_keys=done_keys,
            color_flag=color_flag,
            out=out,
            out_theme=out_theme,
        )
        config_module.log_command_arguments(args, "query")
        run_query(args)
