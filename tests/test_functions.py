"""Tests for built-in functions and the function registry."""

from __future__ import annotations

from datetime import datetime

import pytest

from orgview.query_language import (
    Context,
    Failure,
    FunctionBuilder,
    FunctionRegistry,
    QueryConfigurationError,
    Success,
    default_functions,
    parse_field,
)
from orgview.query_language.dates import Duration
from orgview.query_language.values import Link


def _eval(text: str, context: Context | None = None) -> object:
    field = parse_field(text).or_raise()
    result = (context or Context()).evaluate(field)
    assert isinstance(result, Success), getattr(result, "message", "")
    return result.value


def _fail(text: str, context: Context | None = None) -> str:
    field = parse_field(text).or_raise()
    result = (context or Context()).evaluate(field)
    assert isinstance(result, Failure)
    return result.message


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("round(2.5)", 3),
        ("round(-2.5)", -2),
        ("round(1.2345, 2)", 1.23),
        ("round(null)", None),
        ("trunc(-2.7)", -2),
        ("floor(2.7)", 2),
        ("ceil(2.1)", 3),
        ("abs(-4)", 4),
        ("min(3, 1, 2)", 1),
        ("max([1, 5, 2])", 5),
        ("minby([3, 1, 2], (x) => 0 - x)", 3),
        ("maxby([], (x) => x)", None),
        ("average([1, 2, 3])", 2),
        ("sum([1, 2, 3])", 6),
        ("product([2, 3, 4])", 24),
        ('reduce([10, 2, 3], "-")', 5),
        ("reduce([1, 2, 3], (a, b) => a * b)", 6),
        ("sum([null, 1])", 1),
        ("sum([1, null, 2])", 3),
        ("sum([null, null])", None),
        ('reduce([null, 4, 2], "/")', 2),
        ("reduce([null, 2, null, 3], (a, b) => a * b)", 6),
    ],
)
def test_numeric_functions(text: str, expected: object) -> None:
    """Numeric helpers should round half up and fold arrays."""
    assert _eval(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('lower("AbC")', "abc"),
        ('upper("abc")', "ABC"),
        ('replace("aaa", "a", "b")', "bbb"),
        ('regextest("b.", "abc")', True),
        ('regexmatch("b.", "abc")', False),
        ('regexmatch("a.*", "abc")', True),
        ('regexreplace("a1b2", "[0-9]", "#")', "a#b#"),
        ('regexreplace("ab", "(a)(b)", "$2$1")', "ba"),
        ('split("a,b,,c", ",")', ["a", "b", "", "c"]),
        ('split("a1b2c", "[0-9]", 2)', ["a", "b"]),
        ('startswith("hello", "he")', True),
        ('endswith("hello", "lo")', True),
        ('padleft("7", 3, "0")', "007"),
        ('padright("a", 3)', "a  "),
        ('substring("hello", 1, 3)', "el"),
        ('substring("hello", 3, 1)', "el"),
        ('truncate("hello world", 8)', "hello..."),
        ('containsword("Hello world", "WORLD")', True),
        ('display("[[notes/a.org|A]] and [b](http://x)")', "A and b"),
        ("display([[notes/daily.org]])", "daily"),
        ("string(1.0)", "1"),
        ('number("abc 12.5 kg")', 12.5),
        ('number("none")', None),
    ],
)
def test_string_functions(text: str, expected: object) -> None:
    """String helpers should transform text and match patterns."""
    assert _eval(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("length([1, 2])", 2),
        ('length("abc")', 3),
        ("length(null)", 0),
        ("contains([1, 2, 3], 2)", True),
        ('contains("hello", "ell")', True),
        ('contains({a: 1}, "a")', True),
        ("contains([ [1, 2] ], 2)", True),
        ("econtains([ [1, 2] ], 2)", False),
        ('icontains("Hello", "hELLO")', True),
        ("reverse([1, 2, 3])", [3, 2, 1]),
        ("sort([3, 1, 2])", [1, 2, 3]),
        ('sort(["bb", "a", "ccc"], (x) => length(x))', ["a", "bb", "ccc"]),
        ("flat([1, [2, [3]]])", [1, 2, [3]]),
        ("flat([1, [2, [3]]], 2)", [1, 2, 3]),
        ("slice([1, 2, 3, 4], 1, 3)", [2, 3]),
        ('unique([1, 1.0, "1"])', [1, "1"]),
        ("nonnull([1, null, 2])", [1, 2]),
        ("firstvalue(null, 2)", 2),
        ("map([1, 2], (x) => x * 2)", [2, 4]),
        ("filter([1, 2, 3], (x) => x > 1)", [2, 3]),
        ('join(["a", "b"])', "a, b"),
        ('join(["a", "b"], "-")', "a-b"),
        ("any(false, 1)", True),
        ("all([1, 0])", False),
        ("none([])", True),
        ("all([2, 4], (x) => x % 2 = 0)", True),
        ('extract({a: 1, b: 2}, "a")', {"a": 1}),
    ],
)
def test_list_functions(text: str, expected: object) -> None:
    """List helpers should search, reorder, and fold arrays."""
    assert _eval(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("typeof(1)", "number"),
        ("typeof(null)", "null"),
        ("typeof(date(2024-01-05))", "date"),
        ("default(null, 5)", 5),
        ("default(3, 5)", 3),
        ("choice(true, \"a\", \"b\")", "a"),
        ("list(1, 2)", [1, 2]),
        ('object("a", 1)', {"a": 1}),
        ('date("2024-01-05")', datetime(2024, 1, 5)),
        ('date("05/01/2024", "%d/%m/%Y")', datetime(2024, 1, 5)),
        ("date(null)", None),
        ('dur("3 days")', Duration(days=3)),
        ("striptime(date(2024-01-05T10:30))", datetime(2024, 1, 5)),
        ('dateformat(date(2024-01-05), "%Y")', "2024"),
        ('elink("https://x.com", "X")', "[X](https://x.com)"),
        (
            "meta([[a#b]])",
            {"display": None, "embed": False, "path": "a", "subpath": "b", "type": "header"},
        ),
    ],
)
def test_constructor_and_control_functions(text: str, expected: object) -> None:
    """Constructors should build values; control helpers should pick between them."""
    assert _eval(text) == expected


def test_link_constructor() -> None:
    """link should build file links with optional display text."""
    link = _eval('link("a.org", "A")')

    assert link == Link.file("a.org")
    assert isinstance(link, Link)
    assert link.display == "A"
    assert _eval('link("notes/a.org")') == Link.file("notes/a.org")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('lower(["A", "B"])', ["a", "b"]),
        ('startswith(["ab", "cd", "ef"], ["a", "c"])', [True, True]),
        ('contains(["a", "b"], ["a", "z"])', [True, False]),
        ("default([1, null], 0)", [1, 0]),
        ("round([1.4, 1.6])", [1, 2]),
    ],
)
def test_vectorized_calls(text: str, expected: object) -> None:
    """Vectorized positions should broadcast, zipping to the shortest array."""
    assert _eval(text) == expected


def test_function_errors() -> None:
    """Bad calls should become evaluation failures with readable messages."""
    assert _fail("nosuch(1)") == "Unrecognized function name 'nosuch'"
    assert _fail('round("x")') == "No implementation of 'round' found for arguments: string"
    assert "even number of arguments" in _fail('object("a")')


def test_function_names_take_precedence_over_variables() -> None:
    """A registered function should be called even when a variable shares its name."""
    context = Context(globals={"length": 5, "f": 1})

    assert _eval("length([1, 2])", context) == 2
    assert _fail("f(2)", context) == "Cannot call type 'number' as a function"


def test_builder_rejects_bad_configuration() -> None:
    """Builders should reject unknown kinds and out-of-range vectorized positions."""
    with pytest.raises(QueryConfigurationError):
        FunctionBuilder("bad").add1("decimal", lambda _, v: v)
    with pytest.raises(QueryConfigurationError):
        FunctionBuilder("bad").vectorize(1, [1])


def test_custom_function_registry() -> None:
    """Custom registries should expose functions by name in sorted order."""
    double = (
        FunctionBuilder("double").add1("number", lambda _, n: n * 2).vectorize(1, [0]).build()
    )
    registry = FunctionRegistry([double]).register(double, "twice")
    context = Context(functions=registry)

    assert list(registry) == ["double", "twice"]
    assert "twice" in registry
    assert _eval("twice([1, 2])", context) == [2, 4]
    assert _fail("length([1])", context) == "Unrecognized function name 'length'"


def test_default_functions_registry() -> None:
    """The default registry should contain the documented built-ins."""
    registry = default_functions()

    for name in ("contains", "date", "dur", "filter", "map", "regexreplace", "round", "sum"):
        assert name in registry
    assert registry.get("nosuch") is None


def test_date_shorthand_string_uses_context_clock() -> None:
    """date("today") should agree with the bare today shorthand under a pinned clock."""
    context = Context(now=datetime(2024, 2, 10, 9, 30))

    assert _eval('date("today")', context) == datetime(2024, 2, 10)
    assert _eval('date("today") = today', context) is True
    assert _eval('date(" eom ")', context) == _eval("eom", context)
