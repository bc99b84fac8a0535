"""Tests for expression, source, and query parsing."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from orgview.query_language import (
    Failure,
    QueryParseError,
    Success,
    parse_field,
    parse_query,
    parse_source,
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
    QuerySortBy,
    QueryType,
    SortByStep,
    TagSource,
    Variable,
    WhereStep,
)
from orgview.query_language.dates import Duration
from orgview.query_language.parser import parse_date_text, parse_duration_text, parse_inner_link
from orgview.query_language.values import Link


def _field(text: str) -> Field:
    result = parse_field(text)
    assert isinstance(result, Success), getattr(result, "message", "")
    return result.value


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("42", LiteralField(42)),
        ("-1.5", LiteralField(-1.5)),
        ('"say \\"hi\\""', LiteralField('say "hi"')),
        ("true", LiteralField(True)),
        ("null", LiteralField(None)),
        ("rating", Variable("rating")),
        ("my-field", Variable("my-field")),
        ("today", Variable("today")),
        ("date(today)", DateShorthand("today")),
        ("date(end-of-month)", DateShorthand("end-of-month")),
        ("date(2024-01-05)", LiteralField(datetime(2024, 1, 5))),
        ("dur(3 days, 2h)", LiteralField(Duration(days=3, hours=2))),
        ("date(x)", FunctionCall(Variable("date"), (Variable("x"),))),
    ],
)
def test_parse_field_atoms(text: str, expected: Field) -> None:
    """Atoms should parse into literals, variables, and date shorthands."""
    assert _field(text) == expected


def test_parse_field_precedence() -> None:
    """Multiplication should bind tighter than addition, comparisons tighter than booleans."""
    assert _field("1 + 2 * 3") == BinaryOp(
        LiteralField(1), "+", BinaryOp(LiteralField(2), "*", LiteralField(3))
    )
    assert _field("x > 3 and !done") == BinaryOp(
        BinaryOp(Variable("x"), ">", LiteralField(3)), "&", Negated(Variable("done"))
    )
    assert _field("a - b - c") == BinaryOp(
        BinaryOp(Variable("a"), "-", Variable("b")), "-", Variable("c")
    )


def test_parse_field_postfix_chain() -> None:
    """Dot access, bracket indexing, and calls should chain left to right."""
    assert _field("file.tags[0]") == Index(
        Index(Variable("file"), LiteralField("tags")), LiteralField(0)
    )
    assert _field("length(file.tags)") == FunctionCall(
        Variable("length"), (Index(Variable("file"), LiteralField("tags")),)
    )


def test_parse_field_collections_and_lambdas() -> None:
    """Lists, objects, and lambdas should parse into their nodes."""
    assert _field("[1, x]") == ListField((LiteralField(1), Variable("x")))
    assert _field('{a: 1, "b c": 2}') == ObjectField(
        (("a", LiteralField(1)), ("b c", LiteralField(2)))
    )
    assert _field("(x) => x * 2") == Lambda(
        ("x",), BinaryOp(Variable("x"), "*", LiteralField(2))
    )
    assert _field("(1 + 2)") == BinaryOp(LiteralField(1), "+", LiteralField(2))


def test_parse_field_links() -> None:
    """Wiki links should become link literals keeping display and embed flags."""
    link = _field("[[notes/a#Intro|Read me]]")
    embed = _field("![[pic.org]]")

    assert isinstance(link, LiteralField)
    assert link.value == Link.header("notes/a", "Intro")
    assert isinstance(link.value, Link)
    assert link.value.display == "Read me"
    assert isinstance(embed, LiteralField)
    assert isinstance(embed.value, Link)
    assert embed.value.embed is True


@pytest.mark.parametrize("text", ["where", "1 +", "(a", "FROM"])
def test_parse_field_rejects_invalid_text(text: str) -> None:
    """Keywords and incomplete expressions should fail to parse."""
    assert isinstance(parse_field(text), Failure)


def test_parse_field_error_has_pointer() -> None:
    """Parse failures should carry a caret pointing at the error column."""
    result = parse_field("1 + * 2")

    assert isinstance(result, Failure)
    assert isinstance(result.error, QueryParseError)
    assert result.message.startswith("Invalid query syntax")
    assert result.message.endswith("^")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("#game", TagSource("#game")),
        ("#area/sub", TagSource("#area/sub")),
        ('"games"', FolderSource("games")),
        ("[[elden]]", LinkSource("elden", "incoming")),
        ("outgoing([[notes/reviews]])", LinkSource("notes/reviews", "outgoing")),
        (
            '#game and -"notes"',
            BinaryOpSource(TagSource("#game"), "&", NegatedSource(FolderSource("notes"))),
        ),
        (
            "(#a or #b) & #c",
            BinaryOpSource(
                BinaryOpSource(TagSource("#a"), "|", TagSource("#b")), "&", TagSource("#c")
            ),
        ),
    ],
)
def test_parse_source(text: str, expected: object) -> None:
    """Sources should parse into tag, folder, link, and boolean nodes."""
    result = parse_source(text)

    assert isinstance(result, Success)
    assert result.value == expected


def test_parse_source_rejects_bare_words() -> None:
    """A bare word is not a valid source."""
    assert isinstance(parse_source("games"), Failure)


def test_parse_table_query() -> None:
    """A full TABLE query should keep its fields, source, and operations in order."""
    result = parse_query(
        'TABLE file.name AS "Name", rating FROM #game WHERE rating > 3 SORT rating DESC LIMIT 2'
    )

    assert isinstance(result, Success)
    query = result.value
    assert query.header.type == QueryType.TABLE
    assert query.header.show_id is True
    assert query.header.fields == (
        NamedField("Name", Index(Variable("file"), LiteralField("name"))),
        NamedField("rating", Variable("rating")),
    )
    assert query.source == TagSource("#game")
    assert query.operations == (
        WhereStep(BinaryOp(Variable("rating"), ">", LiteralField(3))),
        SortByStep((QuerySortBy(Variable("rating"), "descending"),)),
        LimitStep(LiteralField(2)),
    )


def test_parse_list_query_defaults() -> None:
    """A bare LIST query should read every document."""
    result = parse_query("LIST")

    assert isinstance(result, Success)
    assert result.value.header.type == QueryType.LIST
    assert result.value.header.format is None
    assert result.value.source == FolderSource("")
    assert result.value.operations == ()


def test_parse_list_without_id_and_format() -> None:
    """LIST WITHOUT ID should hide the identifier and keep the format expression."""
    result = parse_query('list without id file.name from "games"')

    assert isinstance(result, Success)
    header = result.value.header
    assert header.show_id is False
    assert header.format == Index(Variable("file"), LiteralField("name"))
    assert result.value.source == FolderSource("games")


def test_parse_task_query_with_comments() -> None:
    """Comments and newlines between clauses should be ignored."""
    text = "TASK\n// only games\nFROM #game\nWHERE !completed\n"
    result = parse_query(text)

    assert isinstance(result, Success)
    assert result.value.header.type == QueryType.TASK
    assert result.value.operations == (WhereStep(Negated(Variable("completed"))),)


def test_parse_flatten_and_group() -> None:
    """FLATTEN and GROUP BY should accept aliases."""
    result = parse_query("TABLE rows FLATTEN file.tags AS tag GROUP BY tag")

    assert isinstance(result, Success)
    assert result.value.operations == (
        FlattenStep(NamedField("tag", Index(Variable("file"), LiteralField("tags")))),
        GroupStep(NamedField("tag", Variable("tag"))),
    )


def test_parse_query_failure_reports_expected_header() -> None:
    """Unknown query types should fail with the expected header names."""
    result = parse_query("SELECT x")

    assert isinstance(result, Failure)
    assert isinstance(result.error, QueryParseError)
    assert "TABLE or LIST or TASK" in result.message
    assert result.error.position == 0


def test_parse_date_text() -> None:
    """Date text should parse with optional time and zone."""
    assert parse_date_text("2024-01-05T10:30") == datetime(2024, 1, 5, 10, 30)
    assert parse_date_text("2024-01") == datetime(2024, 1, 1)
    assert parse_date_text("2024-01-05T10:30Z") == datetime(2024, 1, 5, 10, 30, tzinfo=timezone.utc)
    assert parse_date_text("2024-02-30") is None
    assert parse_date_text("hello") is None


def test_parse_duration_text() -> None:
    """Duration text should sum its parts."""
    assert parse_duration_text("1 week 2 days") == Duration(weeks=1, days=2)
    assert parse_duration_text("90min") == Duration(minutes=90)
    assert parse_duration_text("soon") is None


def test_parse_inner_link_escaped_pipe() -> None:
    """Escaped pipes should stay in the target; the first bare pipe starts the display."""
    link = parse_inner_link("a\\|b.org|Shown")

    assert link.path == "a|b.org"
    assert link.display == "Shown"


def _literal_text(value: object) -> str:
    """Write a number, string, boolean, or date back as query literal text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return repr(value)
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(value, datetime):
        return f"date({value.strftime('%Y-%m-%dT%H:%M:%S')})"
    raise TypeError(f"No literal syntax for {value!r}")


@pytest.mark.parametrize(
    "value",
    [
        0,
        42,
        -7,
        2.5,
        -0.125,
        "",
        "plain",
        'say "hi"',
        "back\\slash",
        "trailing\\",
        True,
        False,
        datetime(2024, 1, 5),
        datetime(2024, 1, 5, 10, 30, 15),
    ],
)
def test_literals_read_back_as_written(value: object) -> None:
    """Printing a literal and parsing it again should give the same value and type."""
    field = _field(_literal_text(value))

    assert isinstance(field, LiteralField)
    assert field.value == value
    assert type(field.value) is type(value)
