"""Query pipeline: source resolution, row operations, and final projection."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key

from orgview.query_language.ast import (
    FlattenStep,
    GroupStep,
    LimitStep,
    NamedField,
    Operation,
    Query,
    QueryType,
    SortByStep,
    WhereStep,
)
from orgview.query_language.binary_ops import BinaryOpRegistry
from orgview.query_language.errors import QueryRuntimeError
from orgview.query_language.functions import FunctionRegistry
from orgview.query_language.result import Failure, Result, Success
from orgview.query_language.runtime import Context
from orgview.query_language.settings import DEFAULT_SETTINGS, QuerySettings
from orgview.query_language.sources import DocumentIndex, resolve_source
from orgview.query_language.values import Link, Task, canonical_key, is_truthy, type_of


logger = logging.getLogger("orgview")

MAX_REPORTED_ERRORS = 3


@dataclass(slots=True)
class Row:
    """One row flowing through the pipeline: its identifier and its bindings."""

    id: object
    data: dict[str, object]


@dataclass(frozen=True, slots=True)
class IdentifierMeaning:
    """What a row identifier denotes: a document path, or a group key over an inner meaning."""

    kind: str = "path"
    name: str = ""
    on: IdentifierMeaning | None = None


@dataclass(frozen=True, slots=True)
class OperationDiagnostics:
    operation: str
    incoming_rows: int
    outgoing_rows: int
    errors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CoreExecution:
    """Rows left after every operation ran, plus per-operation diagnostics."""

    rows: list[Row]
    id_meaning: IdentifierMeaning
    diagnostics: tuple[OperationDiagnostics, ...] = ()


@dataclass(frozen=True, slots=True)
class RowResult:
    """Column names and per-row values ready for presentation."""

    type: QueryType
    names: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    id_meaning: IdentifierMeaning = field(default_factory=IdentifierMeaning)


class IndexLinkHandler:
    """Link handler resolving paths relative to an origin document in an index."""

    def __init__(self, index: DocumentIndex, origin: str | None = None) -> None:
        self.index = index
        self.origin = origin

    def resolve(self, path: str) -> Mapping[str, object] | None:
        return self.index.resolve_link(self.normalize(path))

    def normalize(self, path: str) -> str:
        return self.index.normalize(path, self.origin)

    def exists(self, path: str) -> bool:
        return self.index.exists(self.normalize(path))


def _operation_name(operation: Operation) -> str:
    names: dict[type[Operation], str] = {
        WhereStep: "where",
        SortByStep: "sort",
        LimitStep: "limit",
        FlattenStep: "flatten",
        GroupStep: "group",
    }
    return names.get(type(operation), type(operation).__name__)


def _all_failed_error(operation: str, errors: list[str]) -> QueryRuntimeError:
    shown = "\n".join(f"- {message}" for message in errors[:MAX_REPORTED_ERRORS])
    return QueryRuntimeError(
        f"Every row during operation '{operation}' failed with an error; "
        f"first {min(MAX_REPORTED_ERRORS, len(errors))}:\n{shown}"
    )


def _where(rows: list[Row], step: WhereStep, context: Context, errors: list[str]) -> list[Row]:
    kept: list[Row] = []
    for row in rows:
        value = context.evaluate(step.clause, row.data)
        if isinstance(value, Failure):
            errors.append(value.message)
        elif is_truthy(value.value):
            kept.append(row)
    return kept


def _ordering(context: Context) -> Callable[[object, object], int]:
    """Three-way comparison through the context's `<` and `>` operators."""

    def compare(left: object, right: object) -> int:
        if is_truthy(context.binary_ops.evaluate(left, "<", right, context).unwrap_or(False)):
            return -1
        if is_truthy(context.binary_ops.evaluate(left, ">", right, context).unwrap_or(False)):
            return 1
        return 0

    return compare


def _sort(rows: list[Row], step: SortByStep, context: Context, errors: list[str]) -> list[Row]:
    """Sort by each key in turn; rows whose keys fail to evaluate go last."""
    keyed: list[tuple[list[object], Row]] = []
    failed: list[Row] = []
    for row in rows:
        keys: list[object] = []
        for sort_by in step.fields:
            value = context.evaluate(sort_by.field, row.data)
            if isinstance(value, Failure):
                errors.append(value.message)
                failed.append(row)
                break
            keys.append(value.value)
        else:
            keyed.append((keys, row))

    compare = _ordering(context)

    def compare_rows(left: tuple[list[object], Row], right: tuple[list[object], Row]) -> int:
        for position, sort_by in enumerate(step.fields):
            factor = 1 if sort_by.direction == "ascending" else -1
            result = compare(left[0][position], right[0][position])
            if result != 0:
                return factor * result
        return 0

    keyed.sort(key=cmp_to_key(compare_rows))
    return [row for _keys, row in keyed] + failed


def _limit(rows: list[Row], step: LimitStep, context: Context) -> list[Row]:
    """Truncate rows; the amount is evaluated once against the root context."""
    amount = context.evaluate(step.amount)
    if isinstance(amount, Failure):
        raise QueryRuntimeError(f"Failed to execute 'limit' statement: {amount.message}")
    value = amount.value
    if (
        not isinstance(value, int | float)
        or isinstance(value, bool)
        or not math.isfinite(value)
    ):
        kind = type_of(value)
        raise QueryRuntimeError(
            "Failed to execute 'limit' statement: limit should be a number, but got "
            f"'{kind.value if kind else 'unknown'}' ({value})"
        )
    return rows[: int(value)]


def _flatten(rows: list[Row], step: FlattenStep, context: Context, errors: list[str]) -> list[Row]:
    flattened: list[Row] = []
    for row in rows:
        value = context.evaluate(step.field.field, row.data)
        if isinstance(value, Failure):
            errors.append(value.message)
            continue
        items = value.value if isinstance(value.value, list) else [value.value]
        for item in items:
            flattened.append(Row(row.id, {**row.data, step.field.name: item}))
    return flattened


def _group(rows: list[Row], step: GroupStep, context: Context, errors: list[str]) -> list[Row]:
    """Bucket rows by the structural key of the grouped value."""
    buckets: dict[str, tuple[object, list[dict[str, object]]]] = {}
    failed: list[dict[str, object]] = []
    first_error = ""
    for row in rows:
        value = context.evaluate(step.field.field, row.data)
        if isinstance(value, Failure):
            errors.append(value.message)
            first_error = first_error or value.message
            failed.append(row.data)
            continue
        bucket = buckets.setdefault(canonical_key(value.value), (value.value, []))
        bucket[1].append(row.data)

    compare = _ordering(context)
    ordered = sorted(buckets.values(), key=cmp_to_key(lambda a, b: compare(a[0], b[0])))
    grouped = [
        Row(key, {"key": key, "rows": members, step.field.name: key}) for key, members in ordered
    ]
    if failed:
        grouped.append(
            Row(None, {"key": None, "rows": failed, step.field.name: None, "error": first_error})
        )
    return grouped


def execute_core(
    rows: list[Row], context: Context, operations: Iterable[Operation]
) -> Result[CoreExecution]:
    """Apply operations strictly in order to the given rows."""
    id_meaning = IdentifierMeaning()
    diagnostics: list[OperationDiagnostics] = []

    for operation in operations:
        name = _operation_name(operation)
        incoming = len(rows)
        errors: list[str] = []
        try:
            if isinstance(operation, WhereStep):
                rows = _where(rows, operation, context, errors)
            elif isinstance(operation, SortByStep):
                rows = _sort(rows, operation, context, errors)
            elif isinstance(operation, LimitStep):
                rows = _limit(rows, operation, context)
            elif isinstance(operation, FlattenStep):
                rows = _flatten(rows, operation, context, errors)
                if id_meaning.kind == "group" and id_meaning.name == operation.field.name:
                    id_meaning = id_meaning.on or IdentifierMeaning()
            elif isinstance(operation, GroupStep):
                rows = _group(rows, operation, context, errors)
                id_meaning = IdentifierMeaning("group", operation.field.name, id_meaning)
            else:
                return Failure(QueryRuntimeError(f"Unrecognized query operation '{name}'"))
        except QueryRuntimeError as exc:
            return Failure(exc)

        if incoming > 0 and len(errors) >= incoming:
            return Failure(_all_failed_error(name, errors))

        logger.info("Operation %s: %d -> %d rows", name, incoming, len(rows))
        diagnostics.append(OperationDiagnostics(name, incoming, len(rows), tuple(errors)))

    return Success(CoreExecution(rows, id_meaning, tuple(diagnostics)))


def _extract(
    core: CoreExecution, context: Context, fields: list[NamedField]
) -> Result[list[tuple[object, list[object]]]]:
    """Evaluate projected fields on every row, dropping rows that fail."""
    extracted: list[tuple[object, list[object]]] = []
    errors: list[str] = []
    for row in core.rows:
        values: list[object] = []
        for named in fields:
            value = context.evaluate(named.field, row.data)
            if isinstance(value, Failure):
                errors.append(value.message)
                break
            values.append(value.value)
        else:
            extracted.append((row.id, values))

    if core.rows and len(errors) >= len(core.rows):
        return Failure(_all_failed_error("extract", errors))
    return Success(extracted)


def _row_tasks(data: Mapping[str, object]) -> list[Task]:
    """Tasks of a document row, or of every member row of a group."""
    file_fields = data.get("file")
    if isinstance(file_fields, dict):
        tasks = file_fields.get("tasks")
        if isinstance(tasks, list):
            return [task for task in tasks if isinstance(task, Task)]
    members = data.get("rows")
    collected: list[Task] = []
    if isinstance(members, list):
        for member in members:
            if isinstance(member, dict):
                collected.extend(_row_tasks(member))
    return collected


def document_rows(paths: Iterable[str], index: DocumentIndex) -> list[Row]:
    """Build one row per document, identified by its file link."""
    rows: list[Row] = []
    for path in sorted(paths):
        fields = index.document_fields(path)
        if fields is None:
            continue
        data = dict(fields)
        file_fields = data.get("file")
        identifier = file_fields.get("link") if isinstance(file_fields, dict) else None
        rows.append(Row(identifier if identifier is not None else Link.file(path), data))
    return rows


def _id_column(core: CoreExecution, settings: QuerySettings) -> str:
    if core.id_meaning.kind == "group":
        return core.id_meaning.name or settings.group_id_column
    return settings.table_id_column


def _project(query: Query, core: CoreExecution, context: Context) -> Result[RowResult]:
    header = query.header
    settings = context.settings
    id_column = _id_column(core, settings)

    if header.type == QueryType.TASK:
        task_rows = tuple((row.id, task) for row in core.rows for task in _row_tasks(row.data))
        return Success(RowResult(QueryType.TASK, (id_column, "Task"), task_rows, core.id_meaning))

    if header.type == QueryType.LIST:
        fields = [NamedField("Value", header.format)] if header.format is not None else []
    else:
        fields = list(header.fields)

    extracted = _extract(core, context, fields)
    if isinstance(extracted, Failure):
        return extracted

    names = tuple(named.name for named in fields)
    if header.show_id or not fields:
        names = (id_column, *names)
        rows = tuple((identifier, *values) for identifier, values in extracted.value)
    else:
        rows = tuple(tuple(values) for _identifier, values in extracted.value)
    return Success(RowResult(header.type, names, rows, core.id_meaning))


def execute_query(  # noqa: PLR0913
    query: Query,
    index: DocumentIndex,
    origin: str | None = None,
    settings: QuerySettings = DEFAULT_SETTINGS,
    binary_ops: BinaryOpRegistry | None = None,
    functions: FunctionRegistry | None = None,
    now: datetime | None = None,
) -> Result[RowResult]:
    """Resolve the query source, run its operations, and project the result."""
    paths = resolve_source(query.source, index, origin)
    if isinstance(paths, Failure):
        return paths
    logger.info("Source resolved to %d documents", len(paths.value))

    this = index.document_fields(origin) if origin is not None else None
    context = Context(
        IndexLinkHandler(index, origin),
        {"this": dict(this) if this is not None else {}},
        binary_ops,
        functions,
        settings,
        now,
    )
    rows = document_rows(paths.value, index)
    core = execute_core(rows, context, query.operations)
    if isinstance(core, Failure):
        return core
    return _project(query, core.value, context)
