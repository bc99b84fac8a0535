"""Built-in functions: overload resolution, vectorization, and the default registry."""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any

from orgview.query_language.dates import DATE_SHORTHANDS, resolve_date_shorthand, strip_time
from orgview.query_language.errors import QueryConfigurationError, QueryRuntimeError
from orgview.query_language.parser import parse_date_text, parse_duration_text
from orgview.query_language.values import (
    Kind,
    Link,
    canonical_key,
    compare_values,
    file_title,
    is_truthy,
    type_of,
)


if TYPE_CHECKING:
    from orgview.query_language.runtime import Context


type FunctionImpl = Callable[..., object]

WILDCARD = "*"
_KIND_NAMES = frozenset(kind.value for kind in Kind) | {WILDCARD}
_NUMBER_PATTERN = re.compile(r"-?[0-9]+(\.[0-9]+)?")
_REDUCE_OPS = ("+", "-", "*", "/", "&", "|")
_WIKI_LINK = re.compile(r"\[\[([^\[\]|]*?)(?:\|([^\[\]]*?))?\]\]")
_MARKDOWN_LINK = re.compile(r"\[([^\[\]]*?)\]\(([^()]*?)\)")
_JS_GROUP_REFERENCE = re.compile(r"\$(\d+|&)")


@dataclass(frozen=True, slots=True)
class _Variant:
    kinds: tuple[str, ...]
    impl: FunctionImpl
    varargs: bool = False

    def matches(self, kinds: list[str]) -> bool:
        if self.varargs:
            return True
        if len(self.kinds) != len(kinds):
            return False
        return all(
            expected in (WILDCARD, kind) for expected, kind in zip(self.kinds, kinds, strict=True)
        )


class BuiltinFunction:
    """A named, overloaded function callable as ``func(context, *args)``."""

    def __init__(
        self, name: str, variants: tuple[_Variant, ...], vectorized: dict[int, tuple[int, ...]]
    ) -> None:
        self.name = name
        self._variants = variants
        self._vectorized = vectorized

    def __repr__(self) -> str:
        return f"<function {self.name}>"

    def __call__(self, context: Context, *args: object) -> object:
        kinds: list[str] = []
        for arg in args:
            kind = type_of(arg)
            if kind is None:
                raise QueryRuntimeError(f"Unrecognized argument type for argument '{arg!r}'")
            kinds.append(kind.value)

        positions = [
            index for index in self._vectorized.get(len(args), ()) if kinds[index] == "array"
        ]
        if positions:
            return self._broadcast(context, args, positions)

        for variant in self._variants:
            if variant.matches(kinds):
                return variant.impl(context, *args)

        raise QueryRuntimeError(
            f"No implementation of '{self.name}' found for arguments: {', '.join(kinds)}"
        )

    def _broadcast(
        self, context: Context, args: tuple[object, ...], positions: list[int]
    ) -> list[object]:
        """Apply the whole function element-wise over the shortest vectorized array."""
        arrays = {index: _as_list(args[index]) for index in positions}
        length = min(len(values) for values in arrays.values())
        results: list[object] = []
        for item in range(length):
            call_args = list(args)
            for index, values in arrays.items():
                call_args[index] = values[item]
            results.append(self(context, *call_args))
        return results


class FunctionBuilder:
    """Fluent builder collecting typed overloads for one built-in function."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._variants: list[_Variant] = []
        self._vectorized: dict[int, tuple[int, ...]] = {}

    def add(self, kinds: tuple[str, ...], impl: FunctionImpl) -> FunctionBuilder:
        """Register a variant matching exactly these argument kinds."""
        for kind in kinds:
            if kind not in _KIND_NAMES:
                raise QueryConfigurationError(
                    f"Unknown argument kind '{kind}' in function '{self.name}'"
                )
        self._variants.append(_Variant(kinds, impl))
        return self

    def add1(self, kind: str, impl: FunctionImpl) -> FunctionBuilder:
        return self.add((kind,), impl)

    def add2(self, first: str, second: str, impl: FunctionImpl) -> FunctionBuilder:
        return self.add((first, second), impl)

    def add3(self, first: str, second: str, third: str, impl: FunctionImpl) -> FunctionBuilder:
        return self.add((first, second, third), impl)

    def vararg(self, impl: FunctionImpl) -> FunctionBuilder:
        """Register a catch-all accepting any number of arguments of any kind."""
        self._variants.append(_Variant((), impl, varargs=True))
        return self

    def vectorize(self, arg_count: int, positions: Iterable[int]) -> FunctionBuilder:
        """Broadcast over array arguments at positions when called with arg_count arguments."""
        indexes = tuple(positions)
        if any(index < 0 or index >= arg_count for index in indexes):
            raise QueryConfigurationError(
                f"Vectorized positions {indexes} out of range for {arg_count} arguments"
                f" in function '{self.name}'"
            )
        self._vectorized[arg_count] = indexes
        return self

    def build(self) -> BuiltinFunction:
        return BuiltinFunction(self.name, tuple(self._variants), dict(self._vectorized))


class FunctionRegistry:
    """Name to function table handed to an evaluation context."""

    def __init__(self, functions: Iterable[BuiltinFunction] = ()) -> None:
        self._functions: dict[str, BuiltinFunction] = {}
        for func in functions:
            self.register(func)

    def register(self, func: BuiltinFunction, name: str | None = None) -> FunctionRegistry:
        self._functions[name or func.name] = func
        return self

    def get(self, name: str) -> BuiltinFunction | None:
        return self._functions.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._functions))


def _as_list(value: object) -> list[object]:
    if isinstance(value, list):
        return value
    return [value]


def _null(*_args: object) -> None:
    return None


def _identity(_context: Context, value: object) -> object:
    return value


def _js_round(value: float, precision: float = 0) -> float:
    """Round half up, keeping integers for zero precision."""
    if precision <= 0:
        return math.floor(value + 0.5)
    factor = 10 ** int(precision)
    return round(math.floor(value * factor + 0.5) / factor, int(precision))


def _parse_date_or_shorthand(context: Context, text: str) -> datetime | None:
    stripped = text.strip()
    if stripped in DATE_SHORTHANDS:
        return resolve_date_shorthand(stripped, context.now)
    return parse_date_text(stripped)


def _date_from_link(context: Context, link: Link) -> object:
    """Read a date from the link display, then its path, then the linked document's day."""
    if link.display:
        parsed = parse_date_text(link.display)
        if parsed is not None:
            return parsed
    parsed = parse_date_text(file_title(link.path))
    if parsed is not None:
        return parsed
    resolved = context.link_handler.resolve(link.path)
    if resolved is not None:
        file_fields = resolved.get("file")
        if isinstance(file_fields, dict):
            return file_fields.get("day")
    return None


def _date_with_format(_context: Context, text: str, fmt: str) -> datetime | None:
    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        return None


def _number_from_string(_context: Context, text: str) -> float | None:
    match = _NUMBER_PATTERN.search(text)
    if match is None:
        return None
    value = match.group(0)
    return float(value) if "." in value else int(value)


def _make_object(_context: Context, *args: object) -> dict[str, object]:
    if len(args) % 2 != 0:
        raise QueryRuntimeError("object() requires an even number of arguments")
    result: dict[str, object] = {}
    for index in range(0, len(args), 2):
        key = args[index]
        if not isinstance(key, str):
            raise QueryRuntimeError("object() keys must be strings")
        result[key] = args[index + 1]
    return result


def _link_from_path(context: Context, path: str, display: str | None = None) -> Link:
    return Link.file(context.link_handler.normalize(path), False, display)


def _link_without_display(context: Context, target: object) -> object:
    if isinstance(target, str):
        return _link_from_path(context, target)
    if isinstance(target, Link):
        return target
    raise QueryRuntimeError(f"Cannot build a link from a {(type_of(target) or Kind.NULL).value}")


def _elink(_context: Context, url: str, display: str | None = None) -> str:
    return f"[{display if display is not None else url}]({url})"


def _compare(context: Context, left: object, right: object) -> int:
    return compare_values(left, right, context.link_handler.normalize)


def _extreme(context: Context, values: list[object], sign: int) -> object:
    """Return the smallest (sign=-1) or largest (sign=1) value, or null when empty."""
    if not values:
        return None
    best = values[0]
    for value in values[1:]:
        if _compare(context, value, best) * sign > 0:
            best = value
    return best


def _extreme_by(context: Context, values: list[object], key: object, sign: int) -> object:
    if not values:
        return None
    best = values[0]
    best_key = context.call(key, [best])
    for value in values[1:]:
        value_key = context.call(key, [value])
        if _compare(context, value_key, best_key) * sign > 0:
            best, best_key = value, value_key
    return best


def _reduce(context: Context, values: list[object], op: object) -> object:
    """Fold the non-null values left to right with an operator symbol or a function."""
    if isinstance(op, str) and op not in _REDUCE_OPS:
        raise QueryRuntimeError("reduce(array, op) supports '+', '-', '/', '*', '&', and '|'")

    present = [value for value in values if value is not None]
    if not present:
        return None
    current = present[0]
    for value in present[1:]:
        if isinstance(op, str):
            current = context.binary(current, op, value)
        else:
            current = context.call(op, [current, value])
    return current


def _average(context: Context, values: list[object]) -> object:
    present = [value for value in values if value is not None]
    if not present:
        return None
    total = _reduce(context, present, "+")
    return context.binary(total, "/", len(present))


def _contains(context: Context, haystack: object, needle: object, *, recursive: bool) -> bool:
    if isinstance(haystack, list):
        if recursive:
            return any(_contains(context, item, needle, recursive=True) for item in haystack)
        return any(is_truthy(context.binary(item, "=", needle)) for item in haystack)
    if isinstance(haystack, str) and isinstance(needle, str):
        return needle in haystack
    if isinstance(haystack, dict) and isinstance(needle, str):
        return needle in haystack
    return is_truthy(context.binary(haystack, "=", needle))


def _icontains(context: Context, haystack: object, needle: object) -> bool:
    if isinstance(haystack, list):
        return any(_icontains(context, item, needle) for item in haystack)
    if isinstance(haystack, str) and isinstance(needle, str):
        return needle.lower() in haystack.lower()
    return _contains(context, haystack, needle, recursive=True)


def _contains_word(_context: Context, text: str, word: str) -> bool:
    pattern = r"(?<!\w)" + re.escape(word.lower()) + r"(?!\w)"
    return re.search(pattern, text.lower()) is not None


def _extract(context: Context, *args: object) -> object:
    if not args:
        raise QueryRuntimeError("extract(object, key1, ...) requires at least 1 argument")
    target = args[0]
    if isinstance(target, list):
        return [_extract(context, item, *args[1:]) for item in target]

    result: dict[str, object] = {}
    for key in args[1:]:
        if not isinstance(key, str):
            raise QueryRuntimeError("extract(object, key1, ...) must be called with string keys")
        result[key] = context.index(target, key)
    return result


def _sort(context: Context, values: list[object], key: object = None) -> list[object]:
    if key is None:
        keyed = [(value, value) for value in values]
    else:
        keyed = [(context.call(key, [value]), value) for value in values]
    ordered = sorted(keyed, key=_pair_sort_key(context))
    return [value for _key, value in ordered]


def _pair_sort_key(context: Context) -> Callable[[tuple[object, object]], Any]:
    return cmp_to_key(lambda left, right: _compare(context, left[0], right[0]))


def _regex(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        return None


def _regextest(_context: Context, pattern: str, text: str) -> bool:
    compiled = _regex(pattern)
    return compiled is not None and compiled.search(text) is not None


def _regexmatch(_context: Context, pattern: str, text: str) -> bool:
    if not pattern.startswith("^") and not pattern.endswith("$"):
        pattern = "^" + pattern + "$"
    compiled = _regex(pattern)
    return compiled is not None and compiled.search(text) is not None


def _regexreplace(_context: Context, text: str, pattern: str, replacement: str) -> str:
    compiled = _regex(pattern)
    if compiled is None:
        return text
    python_replacement = _JS_GROUP_REFERENCE.sub(
        lambda match: r"\g<0>" if match.group(1) == "&" else rf"\g<{match.group(1)}>",
        replacement.replace("\\", "\\\\"),
    )
    return compiled.sub(python_replacement, text)


def _split(_context: Context, text: str, pattern: str, limit: float | None = None) -> list[str]:
    compiled = _regex(pattern)
    if compiled is None:
        raise QueryRuntimeError(f"Invalid regular expression '{pattern}'")
    parts = [part if part is not None else "" for part in compiled.split(text)]
    if limit is not None:
        parts = parts[: max(int(limit), 0)]
    return parts


def _pad(text: str, length: float, padding: str, *, left: bool) -> str:
    missing = int(length) - len(text)
    if missing <= 0 or not padding:
        return text
    fill = (padding * (missing // len(padding) + 1))[:missing]
    return fill + text if left else text + fill


def _substring(_context: Context, text: str, start: float, end: float | None = None) -> str:
    """Slice with clamped, order-insensitive bounds."""
    begin = min(max(int(start), 0), len(text))
    finish = len(text) if end is None else min(max(int(end), 0), len(text))
    if begin > finish:
        begin, finish = finish, begin
    return text[begin:finish]


def _truncate(_context: Context, text: str, length: float, suffix: str = "...") -> str:
    limit = int(length)
    if len(text) <= limit:
        return text
    return text[: max(limit - len(suffix), 0)] + suffix


def _display(context: Context, value: object) -> str:
    """Plain display text: links collapse to their label, markdown links to their text."""
    if value is None:
        return ""
    if isinstance(value, str):
        stripped = _WIKI_LINK.sub(
            lambda match: match.group(2) or file_title(match.group(1)), value
        )
        return _MARKDOWN_LINK.sub(lambda match: match.group(1), stripped)
    if isinstance(value, Link):
        if value.display:
            return value.display
        if value.type in {"header", "block"}:
            return f"{value.file_name()} > {value.subpath or ''}"
        return value.file_name()
    if isinstance(value, list):
        return ", ".join(_display(context, item) for item in value)
    return context.to_string(value)


def _flat(_context: Context, values: list[object], depth: float = 1) -> list[object]:
    result: list[object] = []
    for value in values:
        if isinstance(value, list) and depth > 0:
            result.extend(_flat(_context, value, depth - 1))
        else:
            result.append(value)
    return result


def _slice(
    _context: Context, values: list[object], start: float = 0, end: float | None = None
) -> list[object]:
    return values[int(start) : None if end is None else int(end)]


def _unique(_context: Context, values: list[object]) -> list[object]:
    seen: set[str] = set()
    result: list[object] = []
    for value in values:
        key = canonical_key(value)
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


def _join(context: Context, values: list[object], separator: str = ", ") -> str:
    return separator.join(context.to_string(value) for value in values)


def _meta(_context: Context, link: Link) -> dict[str, object]:
    return {
        "display": link.display,
        "embed": link.embed,
        "path": link.path,
        "subpath": link.subpath,
        "type": link.type,
    }


def _with_nulls(builder: FunctionBuilder, arity: int) -> FunctionBuilder:
    """Return null whenever any argument is null."""
    for position in range(arity):
        kinds = tuple("null" if index == position else WILDCARD for index in range(arity))
        builder.add(kinds, _null)
    return builder


def _numeric(name: str, func: Callable[[float], float]) -> BuiltinFunction:
    return (
        FunctionBuilder(name)
        .add1("number", lambda _, n: func(n))
        .add1("null", _null)
        .vectorize(1, [0])
        .build()
    )


def _string_transform(name: str, func: Callable[[str], str]) -> BuiltinFunction:
    return (
        FunctionBuilder(name)
        .add1("string", lambda _, s: func(s))
        .add1("null", _null)
        .vectorize(1, [0])
        .build()
    )


def _constructors() -> list[BuiltinFunction]:
    return [
        FunctionBuilder("list").vararg(lambda _, *args: list(args)).build(),
        FunctionBuilder("array").vararg(lambda _, *args: list(args)).build(),
        FunctionBuilder("object").vararg(_make_object).build(),
        FunctionBuilder("typeof")
        .add1(WILDCARD, lambda _, v: (type_of(v) or Kind.NULL).value)
        .build(),
        FunctionBuilder("link")
        .add1("string", _link_from_path)
        .add1("link", _identity)
        .add1("null", _null)
        .vectorize(1, [0])
        .add2("string", "string", _link_from_path)
        .add2("link", "string", lambda _, link, display: link.with_display(display))
        .add2("null", WILDCARD, _null)
        .add2(WILDCARD, "null", lambda ctx, target, _: _link_without_display(ctx, target))
        .vectorize(2, [0])
        .build(),
        FunctionBuilder("elink")
        .add2("string", "string", _elink)
        .add2("string", "null", lambda ctx, url, _: _elink(ctx, url))
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .add1("string", _elink)
        .add1("null", _null)
        .vectorize(1, [0])
        .build(),
        FunctionBuilder("date")
        .add1("string", _parse_date_or_shorthand)
        .add1("date", _identity)
        .add1("link", _date_from_link)
        .add1("null", _null)
        .vectorize(1, [0])
        .add2("string", "string", _date_with_format)
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .build(),
        FunctionBuilder("dur")
        .add1("duration", _identity)
        .add1("string", lambda _, s: parse_duration_text(s))
        .add1("null", _null)
        .vectorize(1, [0])
        .build(),
        FunctionBuilder("number")
        .add1("number", _identity)
        .add1("string", _number_from_string)
        .add1("null", _null)
        .vectorize(1, [0])
        .build(),
        FunctionBuilder("string")
        .add1(WILDCARD, lambda ctx, v: ctx.to_string(v))
        .vectorize(1, [0])
        .build(),
    ]


def _numeric_functions() -> list[BuiltinFunction]:
    return [
        FunctionBuilder("round")
        .add1("number", lambda _, n: _js_round(n))
        .add1("null", _null)
        .vectorize(1, [0])
        .add2("number", "number", lambda _, n, p: _js_round(n, p))
        .add2("number", "null", lambda _, n, __: _js_round(n))
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .build(),
        _numeric("trunc", math.trunc),
        _numeric("floor", math.floor),
        _numeric("ceil", math.ceil),
        _numeric("abs", abs),
        FunctionBuilder("min")
        .add1("array", lambda ctx, values: _extreme(ctx, values, -1))
        .vararg(lambda ctx, *args: _extreme(ctx, list(args), -1))
        .build(),
        FunctionBuilder("max")
        .add1("array", lambda ctx, values: _extreme(ctx, values, 1))
        .vararg(lambda ctx, *args: _extreme(ctx, list(args), 1))
        .build(),
        FunctionBuilder("minby")
        .add2("array", "function", lambda ctx, values, key: _extreme_by(ctx, values, key, -1))
        .add2("null", WILDCARD, _null)
        .build(),
        FunctionBuilder("maxby")
        .add2("array", "function", lambda ctx, values, key: _extreme_by(ctx, values, key, 1))
        .add2("null", WILDCARD, _null)
        .build(),
        FunctionBuilder("average")
        .add1("array", _average)
        .add1("null", _null)
        .add1(WILDCARD, _identity)
        .build(),
    ]


def _string_functions() -> list[BuiltinFunction]:
    return [
        _with_nulls(
            FunctionBuilder("regextest").add2("string", "string", _regextest), 2
        )
        .vectorize(2, [0, 1])
        .build(),
        FunctionBuilder("regexmatch")
        .add2("string", "string", _regexmatch)
        .add2("null", WILDCARD, lambda *_: False)
        .add2(WILDCARD, "null", lambda *_: False)
        .vectorize(2, [0, 1])
        .build(),
        _with_nulls(
            FunctionBuilder("regexreplace").add3("string", "string", "string", _regexreplace), 3
        )
        .vectorize(3, [0, 1, 2])
        .build(),
        _with_nulls(
            FunctionBuilder("replace").add3(
                "string", "string", "string", lambda _, s, old, new: s.replace(old, new)
            ),
            3,
        )
        .vectorize(3, [0, 1, 2])
        .build(),
        _string_transform("lower", str.lower),
        _string_transform("upper", str.upper),
        FunctionBuilder("split")
        .add2("string", "string", _split)
        .add3("string", "string", "number", _split)
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .vectorize(3, [0])
        .build(),
        _with_nulls(
            FunctionBuilder("startswith").add2(
                "string", "string", lambda _, s, prefix: s.startswith(prefix)
            ),
            2,
        )
        .vectorize(2, [0, 1])
        .build(),
        _with_nulls(
            FunctionBuilder("endswith").add2(
                "string", "string", lambda _, s, suffix: s.endswith(suffix)
            ),
            2,
        )
        .vectorize(2, [0, 1])
        .build(),
        FunctionBuilder("padleft")
        .add2("string", "number", lambda _, s, n: _pad(s, n, " ", left=True))
        .add3("string", "number", "string", lambda _, s, n, p: _pad(s, n, p, left=True))
        .vectorize(2, [0])
        .vectorize(3, [0])
        .build(),
        FunctionBuilder("padright")
        .add2("string", "number", lambda _, s, n: _pad(s, n, " ", left=False))
        .add3("string", "number", "string", lambda _, s, n, p: _pad(s, n, p, left=False))
        .vectorize(2, [0])
        .vectorize(3, [0])
        .build(),
        FunctionBuilder("substring")
        .add2("string", "number", _substring)
        .add3("string", "number", "number", _substring)
        .vectorize(2, [0])
        .vectorize(3, [0])
        .build(),
        FunctionBuilder("truncate")
        .add2("string", "number", _truncate)
        .add3("string", "number", "string", _truncate)
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .vectorize(3, [0])
        .build(),
        FunctionBuilder("containsword")
        .add2("string", "string", _contains_word)
        .add2("null", WILDCARD, lambda *_: False)
        .vectorize(2, [0])
        .build(),
        FunctionBuilder("display").add1(WILDCARD, _display).build(),
        FunctionBuilder("striptime")
        .add1("date", lambda _, d: strip_time(d))
        .add1("null", _null)
        .vectorize(1, [0])
        .build(),
        FunctionBuilder("dateformat")
        .add2("date", "string", lambda _, d, fmt: d.strftime(fmt))
        .add2("null", WILDCARD, _null)
        .vectorize(2, [0])
        .build(),
        FunctionBuilder("meta").add1("link", _meta).add1("null", _null).build(),
    ]


def _list_functions() -> list[BuiltinFunction]:
    return [
        FunctionBuilder("length")
        .add1("array", lambda _, a: len(a))
        .add1("object", lambda _, o: len(o))
        .add1("string", lambda _, s: len(s))
        .add1("null", lambda _, __: 0)
        .add1(WILDCARD, lambda _, __: 0)
        .build(),
        FunctionBuilder("contains")
        .add2(WILDCARD, WILDCARD, lambda ctx, h, n: _contains(ctx, h, n, recursive=True))
        .vectorize(2, [1])
        .build(),
        FunctionBuilder("icontains")
        .add2(WILDCARD, WILDCARD, _icontains)
        .vectorize(2, [1])
        .build(),
        FunctionBuilder("econtains")
        .add2(WILDCARD, WILDCARD, lambda ctx, h, n: _contains(ctx, h, n, recursive=False))
        .vectorize(2, [1])
        .build(),
        FunctionBuilder("extract").vararg(_extract).build(),
        FunctionBuilder("reverse")
        .add1("array", lambda _, a: list(reversed(a)))
        .add1("string", lambda _, s: s[::-1])
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("sort")
        .add1("array", _sort)
        .add2("array", "function", _sort)
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("flat")
        .add1("array", _flat)
        .add2("array", "number", _flat)
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("slice")
        .add1("array", _slice)
        .add2("array", "number", _slice)
        .add3("array", "number", "number", _slice)
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("unique").add1("array", _unique).add1(WILDCARD, _identity).build(),
        FunctionBuilder("nonnull")
        .add1("array", lambda _, a: [v for v in a if v is not None])
        .vararg(lambda _, *args: [v for v in args if v is not None])
        .build(),
        FunctionBuilder("firstvalue")
        .add1("array", lambda _, a: next((v for v in a if v is not None), None))
        .vararg(lambda _, *args: next((v for v in args if v is not None), None))
        .build(),
        FunctionBuilder("map")
        .add2("array", "function", lambda ctx, a, f: [ctx.call(f, [v]) for v in a])
        .add2("null", WILDCARD, _null)
        .build(),
        FunctionBuilder("filter")
        .add2(
            "array", "function", lambda ctx, a, f: [v for v in a if is_truthy(ctx.call(f, [v]))]
        )
        .add2("null", WILDCARD, _null)
        .build(),
        FunctionBuilder("reduce")
        .add2("array", "string", _reduce)
        .add2("array", "function", _reduce)
        .add2("null", WILDCARD, _null)
        .add2(WILDCARD, "null", _null)
        .vectorize(2, [1])
        .build(),
        FunctionBuilder("sum")
        .add1("array", lambda ctx, a: _reduce(ctx, a, "+"))
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("product")
        .add1("array", lambda ctx, a: _reduce(ctx, a, "*"))
        .add1(WILDCARD, _identity)
        .build(),
        FunctionBuilder("join")
        .add2("array", "string", _join)
        .add2("array", "null", lambda ctx, a, _: _join(ctx, a))
        .add2(WILDCARD, "string", lambda ctx, v, _: ctx.to_string(v))
        .add1("array", _join)
        .add1(WILDCARD, lambda ctx, v: ctx.to_string(v))
        .vectorize(2, [1])
        .build(),
        FunctionBuilder("any")
        .add1("array", lambda _, a: any(is_truthy(v) for v in a))
        .add2("array", "function", lambda ctx, a, f: any(is_truthy(ctx.call(f, [v])) for v in a))
        .vararg(lambda _, *args: any(is_truthy(v) for v in args))
        .build(),
        FunctionBuilder("all")
        .add1("array", lambda _, a: all(is_truthy(v) for v in a))
        .add2("array", "function", lambda ctx, a, f: all(is_truthy(ctx.call(f, [v])) for v in a))
        .vararg(lambda _, *args: all(is_truthy(v) for v in args))
        .build(),
        FunctionBuilder("none")
        .add1("array", lambda _, a: not any(is_truthy(v) for v in a))
        .add2(
            "array", "function", lambda ctx, a, f: not any(is_truthy(ctx.call(f, [v])) for v in a)
        )
        .vararg(lambda _, *args: not any(is_truthy(v) for v in args))
        .build(),
    ]


def _control_functions() -> list[BuiltinFunction]:
    return [
        FunctionBuilder("default")
        .add2(WILDCARD, WILDCARD, lambda _, v, fallback: fallback if v is None else v)
        .vectorize(2, [0, 1])
        .build(),
        FunctionBuilder("ldefault")
        .add2(WILDCARD, WILDCARD, lambda _, v, fallback: fallback if v is None else v)
        .build(),
        FunctionBuilder("choice")
        .add3(WILDCARD, WILDCARD, WILDCARD, lambda _, c, a, b: a if is_truthy(c) else b)
        .vectorize(3, [0])
        .build(),
    ]


def default_functions() -> FunctionRegistry:
    """Build a registry holding every built-in function."""
    return FunctionRegistry(
        [
            *_constructors(),
            *_numeric_functions(),
            *_string_functions(),
            *_list_functions(),
            *_control_functions(),
        ]
    )
