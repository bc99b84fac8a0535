"""Eval command: evaluate one expression, optionally against a document."""

from __future__ import annotations

from dataclasses import dataclass

import click
import typer

from orgview import config as config_module
from orgview.cli_common import load_settings, load_vault_data, resolve_origin
from orgview.color import should_use_color
from orgview.output_format import (
    OutputFormat,
    OutputFormatError,
    build_console,
    prepare_value,
    print_prepared_output,
)
from orgview.query_language import Context, Failure, parse_field
from orgview.query_language.engine import IndexLinkHandler


@dataclass
class EvalArgs:
    """Arguments for the eval command."""

    expression: str
    files: list[str] | None
    config: str
    root: str | None
    this: str | None
    todo_keys: str
    done_keys: str
    color_flag: bool | None
    out: str


def run_eval(args: EvalArgs) -> None:
    """Run the eval command."""
    color_enabled = should_use_color(args.color_flag)
    console = build_console(color_enabled)
    settings = load_settings(args.config)

    field = parse_field(args.expression)
    if isinstance(field, Failure):
        raise click.UsageError(field.message)

    vault = load_vault_data(args)
    origin = resolve_origin(vault, args.this, args)
    this = vault.document_fields(origin) if origin is not None else None
    context = Context(IndexLinkHandler(vault, origin), settings=settings)
    context.set("this", dict(this) if this is not None else {})

    value = context.evaluate(field.value, this)
    if isinstance(value, Failure):
        raise click.UsageError(value.message)

    try:
        prepared_output = prepare_value(value.value, args.out, settings, color_enabled, "")
    except OutputFormatError as exc:
        raise click.UsageError(str(exc)) from exc
    print_prepared_output(console, prepared_output)


def register(app: typer.Typer) -> None:
    """Register the eval command."""

    @app.command("eval")
    def eval_command(  # noqa: PLR0913
        expression: str = typer.Argument(
            ..., metavar="EXPRESSION", help="Expression such as 'this.rating * 2'"
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
            help="Document whose fields are in scope and bound to 'this'",
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
            OutputFormat.TABLE,
            "--out",
            help="Output format: org, json, or table (plain text)",
        ),
    ) -> None:
        """Evaluate an expression and print the resulting value."""
        args = EvalArgs(
            expression=expression,
            files=files,
            config=config,
            root=root,
            this=this,
            todo_keys=todo_keys,
            done_keys=done_keys,
            color_flag=color_flag,
            out=out,
        )
        config_module.log_command_arguments(args, "eval")
        run_eval(args)
