#!/usr/bin/env python
"""CLI interface for orgview - dataview-style queries over Org-mode notes."""

from __future__ import annotations

import sys

import typer

from orgview import config, logging_config
from orgview.commands import eval as eval_command
from orgview.commands import query, sources


app = typer.Typer(
    help="Query Emacs Org-mode notes with LIST, TABLE, and TASK queries.",
    no_args_is_help=True,
)


DEFAULT_VERBOSE: dict[str, bool] = {"value": False}


def _resolve_verbose(verbose: bool | None) -> bool:
    if verbose is None:
        return DEFAULT_VERBOSE["value"]
    return verbose


@app.callback()
def main_callback(
    verbose: bool | None = typer.Option(
        None,
        "--verbose",
        "-v",
        help="Enable verbose logging output",
    ),
) -> None:
    """Global CLI options."""
    if verbose is None and not DEFAULT_VERBOSE["value"]:
        return
    logging_config.configure_logging(_resolve_verbose(verbose))


query.register(app)
eval_command.register(app)
sources.register(app)


def main() -> None:
    """Main CLI entry point."""
    loaded_config = config.load_cli_config(sys.argv)
    DEFAULT_VERBOSE["value"] = loaded_config.verbose

    command = typer.main.get_command(app)
    defaults = loaded_config.defaults
    default_map = config.build_default_map(defaults) if defaults else None
    command.main(
        args=sys.argv[1:],
        prog_name="orgview",
        standalone_mode=True,
        default_map=default_map,
    )


if __name__ == "__main__":
    main()
