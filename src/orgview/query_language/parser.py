"""Parsers for expressions, sources, and queries."""

from __future__ import annotations

import re
from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import cast
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parsy import (
    ParseError,
    Parser,
    Result as ParsyResult,
    eof,
    fail,
    forward_declaration,
    generate,
    regex,
    seq,
    string,
    success,
)

from orgview.query_language.ast import (
    BinaryOp,
    BinaryOpSource,
    DateShorthand,
    Field,
    FlattenStep,
    FolderSource,
    FunctionCall,
    GroupStep,
    Index,
    Lambda,
    LimitStep,
    LinkSource,
    ListField,
    LiteralField,
    NamedField,
    Negated,
    NegatedSource,
    ObjectField,
    Operation,
    Query,
    QueryHeader,
    QuerySortBy,
    QueryType,
    SortByStep,
    Source,
    TagSource,
    Variable,
    WhereStep,
)
from orgview.query_language.dates import DATE_SHORTHANDS, DURATION_UNITS, Duration
from orgview.query_language.errors import QueryParseError
from orgview.query_language.result import Failure, Result, Success
from orgview.query_language.values import Link


KEYWORDS = ("FROM", "WHERE", "LIMIT", "GROUP", "FLATTEN")

_DATE_PATTERN = (
    r"(?P<year>\d{4})-(?P<month>\d{2})"
    r"(?:-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2})(?::(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.(?P<ms>\d{3}))?)?)?)?)?"
    r"(?:(?P<utc>Z)|(?P<offset>[+-]\d{1,2}(?::\d{2})?)|\[(?P<zone>[0-9A-Za-z+\-/_]+)\])?"
)
_TAG_PATTERN = r"#[^\u2000-\u206F\u2E00-\u2E7F'!\"#$%&()*+,.:;<=>?@^`{|}~\[\]\\\s]*"
_STRING_ESCAPE = re.compile(r"\\([\"\\])")


def _parse_line_and_column(line_info: str) -> tuple[int, int]:
    """Parse line and column from parsy line info string."""
    line_text, sep, column_text = line_info.partition(":")
    if sep == "":
        return (0, 0)
    if not line_text.isdigit() or not column_text.isdigit():
        return (0, 0)
    return (int(line_text), int(column_text))


def _format_parse_error(text: str, exc: ParseError) -> QueryParseError:
    """Build a parse error carrying position, expectations, and a text pointer."""
    line_number, column_number = _parse_line_and_column(exc.line_info())
    text_lines = text.splitlines()
    if not text_lines:
        text_lines = [text]

    error_line = text_lines[line_number] if 0 <= line_number < len(text_lines) else text
    pointer = " " * max(column_number, 0) + "^"
    expected = tuple(sorted(exc.expected))
    message = f"Invalid query syntax: {exc}\n\n{error_line}\n{pointer}"
    return QueryParseError(
        message,
        position=exc.index,
        line=line_number,
        column=column_number,
        expected=expected,
    )


def _decode_string(token_value: str) -> str:
    """Decode a double-quoted string token; only quote and backslash escapes are decoded."""
    return _STRING_ESCAPE.sub(r"\1", token_value[1:-1])


def _split_on_unescaped_pipe(inner: str) -> tuple[str, str | None]:
    """Split link text into target and display on the first unescaped pipe."""
    pipe = inner.find("|")
    while pipe >= 0:
        if pipe > 0 and inner[pipe - 1] == "\\":
            pipe = inner.find("|", pipe + 1)
            continue
        return inner[:pipe].replace("\\|", "|"), inner[pipe + 1 :]
    return inner.replace("\\|", "|"), None


def parse_inner_link(inner: str) -> Link:
    """Build a link from the text between ``[[`` and ``]]``."""
    target, display = _split_on_unescaped_pipe(inner)
    return Link.infer(target, False, display)


def _build_date(match_text: str) -> Parser:
    """Turn a matched date literal into a datetime, failing on impossible dates."""
    match = re.fullmatch(_DATE_PATTERN, match_text)
    if match is None:
        return fail("date in format YYYY-MM[-DDTHH:MM:SS.MS]")
    parts = match.groupdict()
    try:
        value = datetime(
            int(parts["year"]),
            int(parts["month"]),
            int(parts["day"] or 1),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            int(parts["ms"] or 0) * 1000,
        )
        if parts["utc"]:
            value = value.replace(tzinfo=timezone.utc)
        elif parts["offset"]:
            value = value.replace(tzinfo=_offset_zone(parts["offset"]))
        elif parts["zone"]:
            value = value.replace(tzinfo=ZoneInfo(parts["zone"]))
    except (ValueError, ZoneInfoNotFoundError):
        return fail("valid date")
    return success(value)


def _offset_zone(offset: str) -> timezone:
    sign = -1 if offset.startswith("-") else 1
    hours, _sep, minutes = offset[1:].partition(":")
    return timezone(sign * timedelta(hours=int(hours), minutes=int(minutes or 0)))


def _keyword(name: str) -> Parser:
    """Build a case-insensitive keyword parser with identifier boundary."""
    return regex(rf"(?i:{name})(?![\w-])").desc(name)


def _lexeme(parser: Parser) -> Parser:
    """Consume optional whitespace after parser."""
    ws = regex(r"\s*")
    return parser << ws


def _symbol(value: str) -> Parser:
    """Build a symbol token parser."""
    return _lexeme(string(value))


def _capture_raw(parser: Parser) -> Parser:
    """Run parser and also return the exact text it consumed."""

    @Parser
    def captured(stream: str, index: int) -> ParsyResult:
        result = parser(stream, index)
        if not result.status:
            return result
        return ParsyResult.success(
            result.index, (result.value, stream[index : result.index])
        ).aggregate(result)

    return captured


def _strip_newlines(text: str) -> str:
    """Collapse the raw text of a field into a single-line column name."""
    return "".join(part.strip() for part in re.split(r"[\r\n]+", text)).strip()


def _binary_builder(operator: str, left: Field, right: Field) -> Field:
    """Construct binary operation expression."""
    return BinaryOp(left, _normalize_boolean_op(operator), right)


def _source_builder(operator: str, left: Source, right: Source) -> Source:
    """Construct binary source expression."""
    return BinaryOpSource(left, _normalize_boolean_op(operator), right)


def _normalize_boolean_op(operator: str) -> str:
    lowered = operator.lower()
    if lowered == "and":
        return "&"
    if lowered == "or":
        return "|"
    return operator


def _chain_left[T](
    term: Parser,
    op: Parser,
    builder: Callable[[str, T, T], T],
) -> Parser:
    """Build a left-associative parser from term and operator parsers."""

    @generate
    def parser() -> Generator[Parser, object, T]:
        left_result = yield term
        rest_result = yield seq(op, term).many()
        if not isinstance(rest_result, list):
            raise QueryParseError("Invalid operator chain")

        current = cast(T, left_result)
        rest = cast(list[tuple[str, T]], rest_result)
        for operator, right in rest:
            current = builder(operator, current, right)
        return current

    return parser


@dataclass(frozen=True, slots=True)
class _Grammar:
    """Top-level parsers shared by the public parse functions."""

    field: Parser
    source: Parser
    query: Parser
    date: Parser
    duration: Parser


def _build_literal_parsers(identifier: Parser) -> dict[str, Parser]:
    """Build parsers for literal tokens and their field wrappers."""
    number_token = regex(r"-?[0-9]+(?:\.[0-9]+)?").desc("number")
    number = number_token.map(lambda v: float(v) if "." in v else int(v))
    string_token = regex(r'"(?:[^"\\]|\\.)*"').desc("string").map(_decode_string)
    boolean = regex(r"(?i:true|false)(?![\w-])").desc("boolean").map(lambda v: v.lower() == "true")
    null = regex(r"null(?![\w-])").desc("null")
    link = regex(r"\[\[([^\[\]]*?)\]\]", group=1).desc("file link").map(parse_inner_link)
    embed_link = (string("!") >> link).map(lambda value: value.to_embed())

    unit_names = sorted(DURATION_UNITS, key=len, reverse=True)
    unit = regex("|".join(re.escape(name) for name in unit_names)).desc("duration unit")
    duration_part = seq(number << regex(r"\s*"), unit).combine(
        lambda amount, unit_name: Duration.of(unit_name, amount)
    )
    duration_separator = regex(r"\s*,\s*") | regex(r"\s*")
    duration = duration_part.sep_by(duration_separator, min=1).map(_sum_durations)

    date = regex(_DATE_PATTERN).bind(_build_date).desc("date in format YYYY-MM[-DDTHH:MM:SS.MS]")
    shorthand_names = sorted(DATE_SHORTHANDS, key=len, reverse=True)
    shorthand = regex(
        "(?:" + "|".join(re.escape(name) for name in shorthand_names) + r")(?![\w-])"
    ).map(DateShorthand)
    date_plus = shorthand | date.map(LiteralField)

    return {
        "number": number,
        "string": string_token,
        "boolean": boolean,
        "null": null,
        "link": link,
        "embed_link": embed_link,
        "duration": duration,
        "date": date,
        "date_plus": date_plus,
        "identifier": identifier,
    }


def _sum_durations(parts: list[Duration]) -> Duration:
    total = parts[0]
    for part in parts[1:]:
        total = total.plus(part)
    return total


def _variable_or_fail(name: str) -> Parser:
    """Reject reserved query keywords as bare variables."""
    if name.upper() in KEYWORDS:
        return fail("variable (not a keyword such as " + " or ".join(KEYWORDS) + ")")
    return success(Variable(name))


def _build_postfix_chain_parser(atom: Parser, field: Parser, identifier: Parser) -> Parser:
    """Build parser applying `.field`, `[index]` and `(args)` postfixes to an atom."""
    comma = _symbol(",")
    dot_postfix = (_symbol(".") >> _lexeme(identifier)).map(
        lambda name: ("dot", LiteralField(name))
    )
    index_postfix = (_symbol("[") >> field << _symbol("]")).map(lambda value: ("index", value))
    call_postfix = (_symbol("(") >> field.sep_by(comma) << _symbol(")")).map(
        lambda values: ("call", tuple(values))
    )
    postfix = dot_postfix | index_postfix | call_postfix

    @generate
    def with_postfix() -> Generator[Parser, object, Field]:
        current = cast(Field, (yield atom))
        rest = cast(list[tuple[str, object]], (yield postfix.many()))
        for kind, payload in rest:
            if kind == "call":
                current = FunctionCall(current, cast(tuple[Field, ...], payload))
            else:
                current = Index(current, cast(Field, payload))
        return current

    return with_postfix


def _build_field_parser(tokens: dict[str, Parser]) -> Parser:
    """Create the expression parser."""
    field = forward_declaration()
    postfixed = forward_declaration()
    identifier = tokens["identifier"]
    comma = _symbol(",")

    embed_link_field = _lexeme(tokens["embed_link"]).map(LiteralField)
    negated_field = (_symbol("!") >> postfixed).map(Negated)
    link_field = _lexeme(tokens["link"]).map(LiteralField)
    list_field = (_symbol("[") >> field.sep_by(comma) << _symbol("]")).map(
        lambda values: ListField(tuple(values))
    )
    object_entry = seq(
        _lexeme(identifier | tokens["string"]) << _symbol(":"),
        field,
    )
    object_field = (_symbol("{") >> object_entry.sep_by(comma) << _symbol("}")).map(
        lambda entries: ObjectField(tuple((name, value) for name, value in entries))
    )
    lambda_field = seq(
        _symbol("(") >> _lexeme(identifier).sep_by(comma) << _symbol(")") << _symbol("=>"),
        field,
    ).combine(lambda names, body: Lambda(tuple(names), body))
    parens_field = _symbol("(") >> field << _symbol(")")
    bool_field = _lexeme(tokens["boolean"]).map(LiteralField)
    number_field = _lexeme(tokens["number"]).map(LiteralField)
    string_field = _lexeme(tokens["string"]).map(LiteralField)
    date_field = _symbol("date(") >> _lexeme(tokens["date_plus"]) << _symbol(")")
    duration_field = (_symbol("dur(") >> _lexeme(tokens["duration"]) << _symbol(")")).map(
        LiteralField
    )
    null_field = _lexeme(tokens["null"]).result(LiteralField(None))
    variable_field = _lexeme(identifier).bind(_variable_or_fail).desc("variable")

    atom = (
        embed_link_field
        | negated_field
        | link_field
        | list_field
        | object_field
        | lambda_field
        | parens_field
        | bool_field
        | number_field
        | string_field
        | date_field
        | duration_field
        | null_field
        | variable_field
    )
    postfixed.become(_build_postfix_chain_parser(atom, field, identifier))

    mul_op = _lexeme(regex(r"[*/%]")).desc("'*' or '/' or '%'")
    add_op = _lexeme(regex(r"[+-]")).desc("'+' or '-'")
    compare_op = _lexeme(regex(r">=|<=|!=|>|<|=(?!>)")).desc("comparison operator")
    bool_op = _lexeme(_keyword("and") | _keyword("or") | regex(r"[&|]")).desc("'and' or 'or'")

    multiply = _chain_left(postfixed, mul_op, _binary_builder)
    additive = _chain_left(multiply, add_op, _binary_builder)
    comparison = _chain_left(additive, compare_op, _binary_builder)
    boolean = _chain_left(comparison, bool_op, _binary_builder)
    field.become(boolean)
    return field


def _build_source_parser(tokens: dict[str, Parser]) -> Parser:
    """Create the source parser."""
    source = forward_declaration()
    atom_source = forward_declaration()

    tag_source = _lexeme(regex(_TAG_PATTERN).desc("tag ('#hello/stuff')")).map(TagSource)
    folder_source = _lexeme(tokens["string"]).map(FolderSource)
    incoming_source = _lexeme(tokens["link"]).map(lambda link: LinkSource(link.path, "incoming"))
    outgoing_source = (_symbol("outgoing(") >> _lexeme(tokens["link"]) << _symbol(")")).map(
        lambda link: LinkSource(link.path, "outgoing")
    )
    parens_source = _symbol("(") >> source << _symbol(")")
    negate_source = (_lexeme(regex(r"[-!]")) >> atom_source).map(NegatedSource)

    atom_source.become(
        parens_source
        | negate_source
        | outgoing_source
        | incoming_source
        | folder_source
        | tag_source
    )
    bool_op = _lexeme(_keyword("and") | _keyword("or") | regex(r"[&|]")).desc("'and' or 'or'")
    source.become(_chain_left(atom_source, bool_op, _source_builder))
    return source


def _build_query_parser(field: Parser, source: Parser, identifier: Parser) -> Parser:
    """Create the full query parser on top of expression and source parsers."""
    comment = regex(r"//[^\n]*")
    gap = (regex(r"\s+") | comment).many()
    comma = _symbol(",")
    quoted_alias = regex(r'"(?:[^"\\]|\\.)*"').map(_decode_string)
    alias = _lexeme(_keyword("AS")) >> _lexeme(identifier | quoted_alias)

    @generate
    def named_field() -> Generator[Parser, object, NamedField]:
        captured = cast(tuple[Field, str], (yield _capture_raw(field)))
        value, raw_text = captured
        name = yield alias.optional()
        if name is None:
            return NamedField(_strip_newlines(raw_text), value)
        return NamedField(cast(str, name), value)

    without_id = _lexeme(regex(r"(?i:WITHOUT\s+ID)(?![\w-])")).optional().map(lambda v: v is None)

    table_header = seq(
        _lexeme(_keyword("TABLE")) >> without_id,
        named_field.sep_by(comma),
    ).combine(lambda show_id, fields: QueryHeader(QueryType.TABLE, tuple(fields), show_id))
    list_header = seq(
        _lexeme(_keyword("LIST")) >> without_id,
        field.optional(),
    ).combine(lambda show_id, fmt: QueryHeader(QueryType.LIST, (), show_id, fmt))
    task_header = _lexeme(_keyword("TASK")).result(QueryHeader(QueryType.TASK))
    header = (table_header | list_header | task_header).desc("TABLE or LIST or TASK")

    from_clause = _lexeme(_keyword("FROM")) >> source
    sort_direction = _lexeme(
        regex(r"(?i:ASCENDING|DESCENDING|ASC|DESC)(?![\w-])")
    ).optional()
    sort_field = seq(field, sort_direction).combine(
        lambda value, direction: QuerySortBy(value, _normalize_direction(direction))
    )

    where_clause = (_lexeme(_keyword("WHERE")) >> field).map(WhereStep).desc("WHERE <expression>")
    sort_clause = (
        (_lexeme(_keyword("SORT")) >> sort_field.sep_by(comma, min=1))
        .map(lambda fields: SortByStep(tuple(fields)))
        .desc("SORT field [ASC/DESC]")
    )
    limit_clause = (_lexeme(_keyword("LIMIT")) >> field).map(LimitStep).desc("LIMIT <value>")
    flatten_clause = (
        (_lexeme(_keyword("FLATTEN")) >> named_field)
        .map(FlattenStep)
        .desc("FLATTEN <value> [AS <name>]")
    )
    group_clause = (
        (_lexeme(regex(r"(?i:GROUP\s+BY)(?![\w-])")) >> named_field)
        .map(GroupStep)
        .desc("GROUP BY <value> [AS <name>]")
    )
    clause = where_clause | sort_clause | limit_clause | flatten_clause | group_clause

    @generate
    def query() -> Generator[Parser, object, Query]:
        yield gap
        query_header = cast(QueryHeader, (yield header))
        yield gap
        query_source = yield (from_clause << gap).optional()
        operations = cast(list[Operation], (yield (clause << gap).many()))
        return Query(
            query_header,
            cast(Source, query_source) if query_source is not None else FolderSource(""),
            tuple(operations),
        )

    return query


def _normalize_direction(direction: object) -> str:
    if not isinstance(direction, str):
        return "ascending"
    lowered = direction.lower()
    if lowered.startswith("desc"):
        return "descending"
    return "ascending"


def _make_grammar() -> _Grammar:
    """Create all parsers."""
    ws = regex(r"\s*")
    identifier = regex(r"[^\W\d_][\w-]*").desc("variable identifier")
    tokens = _build_literal_parsers(identifier)
    field = _build_field_parser(tokens)
    source = _build_source_parser(tokens)
    query = _build_query_parser(field, source, identifier)
    return _Grammar(
        field=ws >> field << ws << eof,
        source=ws >> source << ws << eof,
        query=query << eof,
        date=tokens["date"] << eof,
        duration=ws >> tokens["duration"] << ws << eof,
    )


GRAMMAR = _make_grammar()


def _run[T](parser: Parser, text: str, kind: type[T]) -> Result[T]:
    """Run a top-level parser, returning a failure value instead of raising."""
    try:
        value = parser.parse(text)
    except ParseError as exc:
        return Failure(_format_parse_error(text, exc))
    except QueryParseError as exc:
        return Failure(exc)
    if isinstance(value, kind):
        return Success(value)
    return Failure(QueryParseError(f"Parser did not produce a {kind.__name__}"))


def parse_field(text: str) -> Result[Field]:
    """Parse expression text into a field AST."""
    return _run(GRAMMAR.field, text, Field)


def parse_source(text: str) -> Result[Source]:
    """Parse source text such as ``#tag and "folder"``."""
    return _run(GRAMMAR.source, text, Source)


def parse_query(text: str) -> Result[Query]:
    """Parse a full ``TABLE``/``LIST``/``TASK`` query."""
    return _run(GRAMMAR.query, text, Query)


def parse_date_text(text: str) -> datetime | None:
    """Parse a date literal such as ``2021-04-18T10:30``; None when text is not a date."""
    result = _run(GRAMMAR.date, text.strip(), datetime)
    return result.value if isinstance(result, Success) else None


def parse_duration_text(text: str) -> Duration | None:
    """Parse a duration such as ``3 days, 2h``; None when text is not a duration."""
    result = _run(GRAMMAR.duration, text, Duration)
    return result.value if isinstance(result, Success) else None
