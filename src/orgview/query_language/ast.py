"""AST nodes for expressions, sources, and queries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


@dataclass(frozen=True, slots=True)
class Field:
    """Base expression node."""


@dataclass(frozen=True, slots=True)
class LiteralField(Field):
    """Constant literal value."""

    value: object


@dataclass(frozen=True, slots=True)
class DateShorthand(Field):
    """Named date such as ``today``, resolved when evaluated."""

    name: str


@dataclass(frozen=True, slots=True)
class Variable(Field):
    """Variable lookup expression."""

    name: str


@dataclass(frozen=True, slots=True)
class BinaryOp(Field):
    """Binary operation expression."""

    left: Field
    op: str
    right: Field


@dataclass(frozen=True, slots=True)
class Negated(Field):
    """Boolean negation ``!expr``."""

    child: Field


@dataclass(frozen=True, slots=True)
class Index(Field):
    """Indexing expression, covering both ``obj.field`` and ``obj[expr]``."""

    object: Field
    index: Field


@dataclass(frozen=True, slots=True)
class FunctionCall(Field):
    """Function invocation; the callee is usually a variable naming a built-in."""

    func: Field
    arguments: tuple[Field, ...]


@dataclass(frozen=True, slots=True)
class Lambda(Field):
    """Lambda expression ``(a, b) => body``."""

    arguments: tuple[str, ...]
    body: Field


@dataclass(frozen=True, slots=True)
class ListField(Field):
    """List literal ``[a, b]``."""

    values: tuple[Field, ...]


@dataclass(frozen=True, slots=True)
class ObjectField(Field):
    """Object literal ``{key: value}``."""

    values: tuple[tuple[str, Field], ...]


@dataclass(frozen=True, slots=True)
class Source:
    """Base source node."""


@dataclass(frozen=True, slots=True)
class EmptySource(Source):
    """Source selecting no documents."""


@dataclass(frozen=True, slots=True)
class TagSource(Source):
    """Documents carrying an exact tag (``#tag``)."""

    tag: str


@dataclass(frozen=True, slots=True)
class FolderSource(Source):
    """Documents under a folder prefix (``"folder"``)."""

    folder: str


@dataclass(frozen=True, slots=True)
class LinkSource(Source):
    """Documents linking to a document, or linked from it."""

    file: str
    direction: str = "incoming"


@dataclass(frozen=True, slots=True)
class NegatedSource(Source):
    """Every document not selected by the child source."""

    child: Source


@dataclass(frozen=True, slots=True)
class BinaryOpSource(Source):
    """Intersection (``&``/``and``) or union (``|``/``or``) of two sources."""

    left: Source
    op: str
    right: Source


class QueryType(StrEnum):
    """Output shapes a query can produce."""

    LIST = "list"
    TABLE = "table"
    TASK = "task"


@dataclass(frozen=True, slots=True)
class NamedField:
    """Expression paired with the column name it produces."""

    name: str
    field: Field


@dataclass(frozen=True, slots=True)
class QuerySortBy:
    """One sort key and its direction."""

    field: Field
    direction: str = "ascending"


@dataclass(frozen=True, slots=True)
class QueryHeader:
    """Output shape of a query plus the fields it projects."""

    type: QueryType
    fields: tuple[NamedField, ...] = ()
    show_id: bool = True
    format: Field | None = None


@dataclass(frozen=True, slots=True)
class Operation:
    """Base pipeline operation."""


@dataclass(frozen=True, slots=True)
class WhereStep(Operation):
    clause: Field


@dataclass(frozen=True, slots=True)
class SortByStep(Operation):
    fields: tuple[QuerySortBy, ...]


@dataclass(frozen=True, slots=True)
class LimitStep(Operation):
    amount: Field


@dataclass(frozen=True, slots=True)
class FlattenStep(Operation):
    field: NamedField


@dataclass(frozen=True, slots=True)
class GroupStep(Operation):
    field: NamedField


@dataclass(frozen=True, slots=True)
class Query:
    """Parsed query: header, source, and operations in textual order."""

    header: QueryHeader
    source: Source
    operations: tuple[Operation, ...] = ()
