"""Sources command: list the documents a source expression selects."""

from __future__ import annotations

from dataclasses import dataclass

import click
import typer

from orgview import config as config_module
from orgview.cli_common import load_vault_data, resolve_origin
from orgview.color import identifier, should_use_color
from orgview.output_format import (
    OutputOperation,
    PreparedOutput,
    build_console,
    print_prepared_output,
)
from orgview.query_language import Failure, parse_source, resolve_source


@dataclass
class SourcesArgs:
    """Arguments for the sources command."""

    source: str
    files: list[str] | None
    root: str | None
    this: str | None
    todo_keys: str
    done_keys: str
    color_flag: bool | None


def run_sources(args: SourcesArgs) -> None:
    """Run the sources command."""
    color_enabled = should_use_color(args.color_flag)
    console = build_console(color_enabled)

    source = parse_source(args.source)
    if isinstance(source, Failure):
        raise click.UsageError(source.message)

    vault = load_vault_data(args)
    origin = resolve_origin(vault, args.this, args)
    paths = resolve_source(source.value, vault, origin)
    if isinstance(paths, Failure):
        raise click.UsageError(paths.message)

    if not paths.value:
        operations = (OutputOperation(kind="console_print", text="No results", markup=False),)
    else:
        operations = tuple(
            OutputOperation(
                kind="console_print", text=identifier(path, color_enabled), markup=color_enabled
            )
            for path in sorted(paths.value)
        )
    print_prepared_output(console, PreparedOutput(operations=operations))


def register(app: typer.Typer) -> None:
    """Register the sources command."""

    @app.command("sources")
    def sources_command(  # noqa: PLR0913
        source: str = typer.Argument(
            ..., metavar="SOURCE", help="Source such as '#project and -\"archive\"'"
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
            help="Document used to resolve relative links",
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
    ) -> None:
        """Print the documents matched by a source expression."""
        del config
        args = SourcesArgs(
            source=source,
            files=files,
            root=root,
            this=this,
            todo_keys=todo_keys,
            done_keys=done_keys,
            color_flag=color_flag,
        )
        config_module.log_command_arguments(args, "sources")
        run_sources(args)
