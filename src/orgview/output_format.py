"""Output format abstraction and format-specific renderers for query results."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Protocol

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from orgview import color
from orgview.query_language.ast import QueryType
from orgview.query_language.dates import Duration, render_duration
from orgview.query_language.engine import RowResult
from orgview.query_language.settings import QuerySettings
from orgview.query_language.values import Kind, Link, Task, to_string, type_of


DEFAULT_OUTPUT_THEME = "github-dark"


class OutputFormat(StrEnum):
    """Supported output formats."""

    ORG = "org"
    JSON = "json"
    TABLE = "table"


class QueryOutputFormatter(Protocol):
    """Formatter interface for query results."""

    def prepare(
        self, result: RowResult, settings: QuerySettings, color_enabled: bool, out_theme: str
    ) -> PreparedOutput:
        """Prepare a query result for rendering."""
        ...


@dataclass(frozen=True)
class OutputOperation:
    """One prepared output operation."""

    kind: str
    text: str | None = None
    renderable: object | None = None
    markup: bool = False


@dataclass(frozen=True)
class PreparedOutput:
    """Prepared output operations ready for console rendering."""

    operations: tuple[OutputOperation, ...]


class OutputFormatError(RuntimeError):
    """Raised when output formatting fails."""


def build_console(color_enabled: bool) -> Console:
    """Build the console used for command output."""
    return Console(
        no_color=not color_enabled,
        force_terminal=True if color_enabled else None,
        highlight=False,
        soft_wrap=not color_enabled,
    )


def _write_plain_output(console: Console, text: str) -> None:
    """Write plain output directly to console stream."""
    console.file.write(f"{text}\n")
    console.file.flush()


def print_prepared_output(console: Console, prepared_output: PreparedOutput) -> None:
    """Print already prepared output operations."""
    for operation in prepared_output.operations:
        if operation.kind == "plain_write":
            if operation.text is not None:
                _write_plain_output(console, operation.text)
            continue
        if operation.renderable is not None:
            console.print(operation.renderable)
            continue
        console.print(operation.text if operation.text is not None else "", markup=operation.markup)


def _normalize_syntax_theme(out_theme: str) -> str:
    """Return a valid theme name for syntax rendering."""
    normalized_theme = out_theme.strip()
    if normalized_theme:
        return normalized_theme
    return DEFAULT_OUTPUT_THEME


def _prepare_output(
    text: str, color_enabled: bool, language: str, out_theme: str
) -> PreparedOutput:
    """Prepare output with syntax highlighting when color is enabled."""
    if color_enabled:
        return PreparedOutput(
            operations=(
                OutputOperation(
                    kind="console_print",
                    renderable=Syntax(
                        text,
                        language,
                        theme=_normalize_syntax_theme(out_theme),
                        line_numbers=False,
                        word_wrap=True,
                    ),
                ),
            )
        )
    return PreparedOutput(operations=(OutputOperation(kind="plain_write", text=text),))


def _no_results() -> PreparedOutput:
    return PreparedOutput(
        operations=(OutputOperation(kind="console_print", text="No results", markup=False),)
    )


def org_link(link: Link) -> str:
    """Render a link in org syntax, e.g. ``[[file:notes/a.org::*Header][A]]``."""
    target = f"file:{link.path}"
    if link.subpath is not None:
        target += f"::*{link.subpath}" if link.type == "header" else f"::{link.subpath}"
    if link.display:
        return f"[[{target}][{link.display}]]"
    return f"[[{target}]]"


def org_value(value: object, settings: QuerySettings, depth: int = 0) -> str:
    """Render a value as org text, links in org syntax."""
    if isinstance(value, Link):
        return org_link(value)
    if isinstance(value, list):
        if depth >= settings.max_recursive_render_depth:
            return "..."
        inner = ", ".join(org_value(item, settings, depth + 1) for item in value)
        return f"[{inner}]" if depth else inner
    return to_string(value, settings, depth)


def _org_list(result: RowResult, settings: QuerySettings) -> list[str]:
    lines: list[str] = []
    for row in result.rows:
        rendered = [org_value(value, settings) for value in row]
        lines.append("- " + ": ".join(rendered))
    return lines


def _org_table_cell(value: object, settings: QuerySettings) -> str:
    return org_value(value, settings).replace("|", "\\vert{}").replace("\n", " ")


def _org_table(result: RowResult, settings: QuerySettings) -> list[str]:
    lines = ["| " + " | ".join(result.names) + " |"]
    lines.append("|" + "+".join("-" * (len(name) + 2) for name in result.names) + "|")
    lines.extend(
        "| " + " | ".join(_org_table_cell(value, settings) for value in row) + " |"
        for row in result.rows
    )
    return lines


def _org_task_line(task: Task) -> str:
    checkbox = "[X]" if task.completed else "[ ]"
    return f"- {checkbox} {task.status} {task.text}".rstrip()


def _org_tasks(result: RowResult, settings: QuerySettings) -> list[str]:
    lines: list[str] = []
    current: object = object()
    for identifier, task in result.rows:
        if identifier != current:
            lines.append(f"* {org_value(identifier, settings)}")
            current = identifier
        if isinstance(task, Task):
            lines.append(_org_task_line(task))
    return lines


class OrgQueryOutputFormatter:
    """Org output formatter: lists as org lists, tables as org tables, tasks as checkboxes."""

    def prepare(
        self, result: RowResult, settings: QuerySettings, color_enabled: bool, out_theme: str
    ) -> PreparedOutput:
        if not result.rows:
            return _no_results()
        if result.type == QueryType.TABLE:
            lines = _org_table(result, settings)
        elif result.type == QueryType.TASK:
            lines = _org_tasks(result, settings)
        else:
            lines = _org_list(result, settings)
        return _prepare_output("\n".join(lines), color_enabled, "org", out_theme)


def _table_cell(value: object, settings: QuerySettings, color_enabled: bool) -> Text:
    if value is None:
        return Text(settings.render_null_as, style="dim" if color_enabled else "")
    if isinstance(value, Task):
        style = ("green" if value.completed else "red") if color_enabled else ""
        return Text(f"{value.status} {value.text}".strip(), style=style)
    return Text(to_string(value, settings))


class TableQueryOutputFormatter:
    """Rich table output formatter."""

    def prepare(
        self, result: RowResult, settings: QuerySettings, color_enabled: bool, out_theme: str
    ) -> PreparedOutput:
        del out_theme
        if not result.rows:
            return _no_results()

        caption = f"{len(result.rows)} results" if settings.display_result_count else None
        table = Table(
            header_style=color.header_style(color_enabled) or "",
            caption=caption,
            show_lines=False,
        )
        for name in result.names:
            table.add_column(name)
        for row in result.rows:
            table.add_row(*(_table_cell(value, settings, color_enabled) for value in row))
        return PreparedOutput(operations=(OutputOperation(kind="console_print", renderable=table),))


def _task_to_json(task: Task, settings: QuerySettings) -> dict[str, object]:
    return {
        "text": task.text,
        "path": task.path,
        "line": task.line,
        "status": task.status,
        "completed": task.completed,
        "fully_completed": task.fully_completed,
        "tags": list(task.tags),
        "created": _to_json_compatible(task.created, settings),
        "due": _to_json_compatible(task.due, settings),
        "scheduled": _to_json_compatible(task.scheduled, settings),
        "completion": _to_json_compatible(task.completion, settings),
        "extra": _to_json_compatible(dict(task.extra), settings),
        "children": [_task_to_json(child, settings) for child in task.children],
    }


def _to_json_compatible(value: object, settings: QuerySettings) -> object:
    """Convert query values to JSON-serializable structures."""
    result: object
    if value is None or isinstance(value, bool | int | float | str):
        result = value
    elif isinstance(value, datetime | date):
        result = value.isoformat()
    elif isinstance(value, Duration):
        result = render_duration(value)
    elif isinstance(value, Link):
        result = {
            "path": value.path,
            "type": value.type,
            "subpath": value.subpath,
            "display": value.display,
            "embed": value.embed,
        }
    elif isinstance(value, Task):
        result = _task_to_json(value, settings)
    elif isinstance(value, Mapping):
        result = {str(key): _to_json_compatible(item, settings) for key, item in value.items()}
    elif isinstance(value, list | tuple):
        result = [_to_json_compatible(item, settings) for item in value]
    elif type_of(value) is Kind.FUNCTION:
        result = to_string(value, settings)
    else:
        result = str(value)
    return result


def json_payload(result: RowResult, settings: QuerySettings) -> dict[str, object]:
    """Query result as a JSON object with its type, column names, and keyed rows."""
    return {
        "type": str(result.type),
        "names": list(result.names),
        "rows": [
            {name: _to_json_compatible(value, settings) for name, value in zip(result.names, row)}
            for row in result.rows
        ],
    }


class JsonQueryOutputFormatter:
    """JSON output formatter for query results."""

    def prepare(
        self, result: RowResult, settings: QuerySettings, color_enabled: bool, out_theme: str
    ) -> PreparedOutput:
        return _prepare_output(
            json.dumps(json_payload(result, settings), ensure_ascii=True),
            color_enabled,
            OutputFormat.JSON,
            out_theme,
        )


_ORG_QUERY_FORMATTER = OrgQueryOutputFormatter()
_JSON_QUERY_FORMATTER = JsonQueryOutputFormatter()
_TABLE_QUERY_FORMATTER = TableQueryOutputFormatter()


def get_query_formatter(output_format: str) -> QueryOutputFormatter:
    """Return query formatter for selected output format.

    Raises:
        OutputFormatError: If the format is not supported.
    """
    normalized_output = output_format.strip().lower()
    if normalized_output == OutputFormat.ORG:
        return _ORG_QUERY_FORMATTER
    if normalized_output == OutputFormat.JSON:
        return _JSON_QUERY_FORMATTER
    if normalized_output == OutputFormat.TABLE:
        return _TABLE_QUERY_FORMATTER
    raise OutputFormatError(
        f"Unsupported output format '{output_format}' (expected org, json, or table)"
    )


def prepare_value(
    value: object, output_format: str, settings: QuerySettings, color_enabled: bool, out_theme: str
) -> PreparedOutput:
    """Prepare a single evaluated value for rendering."""
    normalized_output = output_format.strip().lower()
    if normalized_output == OutputFormat.JSON:
        return _prepare_output(
            json.dumps(_to_json_compatible(value, settings), ensure_ascii=True),
            color_enabled,
            OutputFormat.JSON,
            out_theme,
        )
    if normalized_output == OutputFormat.ORG:
        return PreparedOutput(
            operations=(OutputOperation(kind="plain_write", text=org_value(value, settings)),)
        )
    if normalized_output == OutputFormat.TABLE:
        if value is None:
            text = color.null_value(settings.render_null_as, color_enabled)
            return PreparedOutput(
                operations=(OutputOperation(kind="console_print", text=text, markup=True),)
            )
        return PreparedOutput(
            operations=(OutputOperation(kind="plain_write", text=to_string(value, settings)),)
        )
    raise OutputFormatError(
        f"Unsupported output format '{output_format}' (expected org, json, or table)"
    )
