"""Literal value model: kinds, truthiness, total ordering, and rendering."""

from __future__ import annotations

import json
import locale
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from functools import cmp_to_key
from typing import TYPE_CHECKING

from orgview.query_language.dates import (
    Duration,
    date_key,
    has_time,
    render_duration,
)
from orgview.query_language.settings import DEFAULT_SETTINGS, QuerySettings


if TYPE_CHECKING:
    from orgview.query_language.ast import Field


class Kind(StrEnum):
    """Discriminator for every literal value the engine understands."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    DATE = "date"
    DURATION = "duration"
    LINK = "link"
    ARRAY = "array"
    OBJECT = "object"
    TASK = "task"
    FUNCTION = "function"


_HEADER_CLEANUP = re.compile(r"[^\w\s]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_header(header: str) -> str:
    """Normalize a header so links to it compare equal regardless of punctuation."""
    return _WHITESPACE_RUN.sub(" ", _HEADER_CLEANUP.sub(" ", header)).strip()


def file_title(path: str) -> str:
    """Return the file name of a path without folders or extension."""
    name = path.rsplit("/", 1)[-1]
    if "." in name:
        name = name[: name.rindex(".")]
    return name


@dataclass(frozen=True, slots=True)
class Link:
    """Reference to a document, optionally narrowed to a header or block."""

    path: str
    type: str = "file"
    subpath: str | None = None
    display: str | None = field(default=None, compare=False)
    embed: bool = field(default=False, compare=False)

    @classmethod
    def file(cls, path: str, embed: bool = False, display: str | None = None) -> Link:
        return cls(path, "file", None, display, embed)

    @classmethod
    def header(
        cls, path: str, header: str, embed: bool = False, display: str | None = None
    ) -> Link:
        return cls(path, "header", normalize_header(header), display, embed)

    @classmethod
    def block(
        cls, path: str, block_id: str, embed: bool = False, display: str | None = None
    ) -> Link:
        return cls(path, "block", block_id, display, embed)

    @classmethod
    def infer(cls, link_path: str, embed: bool = False, display: str | None = None) -> Link:
        """Build a link from ``path``, ``path#header`` or ``path#^block`` text."""
        if "#^" in link_path:
            path, block_id = link_path.split("#^", 1)
            return cls.block(path, block_id, embed, display)
        if "#" in link_path:
            path, header = link_path.split("#", 1)
            return cls.header(path, header, embed, display)
        return cls.file(link_path, embed, display)

    def with_display(self, display: str | None) -> Link:
        return replace(self, display=display)

    def to_embed(self) -> Link:
        return self if self.embed else replace(self, embed=True)

    def obsidian_link(self) -> str:
        """Return the inner ``[[...]]`` target text with pipes escaped."""
        escaped = self.path.replace("|", "\\|")
        subpath = (self.subpath or "").replace("|", "\\|")
        if self.type == "header":
            return f"{escaped}#{subpath}"
        if self.type == "block":
            return f"{escaped}#^{subpath}"
        return escaped

    def file_name(self) -> str:
        return file_title(self.path)

    def markdown(self) -> str:
        result = ("!" if self.embed else "") + "[[" + self.obsidian_link()
        if self.display:
            result += "|" + self.display
        else:
            result += "|" + file_title(self.path)
            if self.type in {"header", "block"}:
                result += " > " + (self.subpath or "")
        return result + "]]"

    def __str__(self) -> str:
        return self.markdown()


@dataclass(frozen=True, slots=True)
class Task:
    """A to-do item parsed from a document, with its subtasks."""

    text: str
    path: str
    line: int
    status: str = ""
    completed: bool = False
    fully_completed: bool = False
    children: tuple[Task, ...] = ()
    tags: tuple[str, ...] = ()
    created: datetime | None = None
    due: datetime | None = None
    scheduled: datetime | None = None
    completion: datetime | None = None
    extra: Mapping[str, object] = field(default_factory=dict, hash=False)

    def get(self, key: str) -> object:
        """Field accessor used by indexing expressions such as ``task.due``."""
        match key:
            case "text" | "status" | "completed" | "line" | "path":
                return getattr(self, key)
            case "fullyCompleted" | "fully_completed":
                return self.fully_completed
            case "children" | "subtasks":
                return list(self.children)
            case "tags":
                return list(self.tags)
            case "link":
                return Link.file(self.path)
            case "created" | "due" | "scheduled" | "completion":
                return getattr(self, key)
        return self.extra.get(key)


@dataclass(frozen=True, slots=True)
class LambdaValue:
    """A user lambda: parameter names, body, and the bindings it closed over."""

    params: tuple[str, ...]
    body: Field
    captured: Mapping[str, object] = field(default_factory=dict, hash=False)


type Literal = (
    None
    | bool
    | int
    | float
    | str
    | datetime
    | Duration
    | Link
    | list[Literal]
    | dict[str, Literal]
    | Task
    | LambdaValue
    | Callable[..., object]
)


def type_of(value: object) -> Kind | None:
    """Classify a runtime value, returning None for values outside the model."""
    result: Kind | None = None
    if value is None:
        result = Kind.NULL
    elif isinstance(value, bool):
        result = Kind.BOOLEAN
    elif isinstance(value, int | float):
        result = Kind.NUMBER
    elif isinstance(value, str):
        result = Kind.STRING
    elif isinstance(value, datetime):
        result = Kind.DATE
    elif isinstance(value, Duration):
        result = Kind.DURATION
    elif isinstance(value, Link):
        result = Kind.LINK
    elif isinstance(value, list):
        result = Kind.ARRAY
    elif isinstance(value, dict):
        result = Kind.OBJECT
    elif isinstance(value, Task):
        result = Kind.TASK
    elif isinstance(value, LambdaValue) or callable(value):
        result = Kind.FUNCTION
    return result


def is_truthy(value: object) -> bool:
    """Return the truthiness of a literal under query semantics."""
    if value is None:
        return False
    if isinstance(value, bool | int | float):
        return value != 0
    if isinstance(value, str | list | dict):
        return len(value) > 0
    if isinstance(value, Link):
        return bool(value.path)
    if isinstance(value, datetime):
        return date_key(value) != 0
    if isinstance(value, Duration):
        return value.as_milliseconds() != 0
    return type_of(value) is not None


def _sign(value: float) -> int:
    if value < 0:
        return -1
    if value > 0:
        return 1
    return 0


def _compare_strings(left: str, right: str) -> int:
    collated = _sign(locale.strcoll(left, right))
    if collated != 0:
        return collated
    return _sign((left > right) - (left < right))


def _compare_links(left: Link, right: Link, normalize: Callable[[str], str]) -> int:
    path_compare = _compare_strings(normalize(left.path), normalize(right.path))
    if path_compare != 0:
        return path_compare
    type_compare = _compare_strings(left.type, right.type)
    if type_compare != 0:
        return type_compare
    if left.subpath and not right.subpath:
        return 1
    if not left.subpath and right.subpath:
        return -1
    return _compare_strings(left.subpath or "", right.subpath or "")


def _compare_sequences(
    left: list[object], right: list[object], normalize: Callable[[str], str] | None
) -> int:
    for left_item, right_item in zip(left, right, strict=False):
        result = compare_values(left_item, right_item, normalize)
        if result != 0:
            return result
    return _sign(len(left) - len(right))


def _compare_objects(
    left: dict[str, object], right: dict[str, object], normalize: Callable[[str], str] | None
) -> int:
    left_keys: list[object] = sorted(left)
    right_keys: list[object] = sorted(right)
    key_compare = _compare_sequences(left_keys, right_keys, normalize)
    if key_compare != 0:
        return key_compare
    for key in sorted(left):
        result = compare_values(left[key], right[key], normalize)
        if result != 0:
            return result
    return 0


def _compare_same_kind(
    left: object, right: object, link_normalizer: Callable[[str], str] | None
) -> int:
    """Compare two non-null values already known to share a kind."""
    result = 0
    if isinstance(left, str) and isinstance(right, str):
        result = _compare_strings(left, right)
    elif isinstance(left, bool | int | float) and isinstance(right, bool | int | float):
        result = _sign((left > right) - (left < right))
    elif isinstance(left, Link) and isinstance(right, Link):
        result = _compare_links(left, right, link_normalizer or (lambda path: path))
    elif isinstance(left, datetime) and isinstance(right, datetime):
        result = _sign(date_key(left) - date_key(right))
    elif isinstance(left, Duration) and isinstance(right, Duration):
        result = _sign(left.as_milliseconds() - right.as_milliseconds())
    elif isinstance(left, list) and isinstance(right, list):
        result = _compare_sequences(left, right, link_normalizer)
    elif isinstance(left, dict) and isinstance(right, dict):
        result = _compare_objects(left, right, link_normalizer)
    elif isinstance(left, Task) and isinstance(right, Task):
        result = _compare_sequences(
            [left.path, left.line, left.text], [right.path, right.line, right.text], None
        )
    return result


def compare_values(
    left: object, right: object, link_normalizer: Callable[[str], str] | None = None
) -> int:
    """Total order over all literals, returning -1, 0, or 1.

    Nulls sort first. Values of different kinds order by kind name. Within a kind the natural
    order applies; links compare by target only, never by display text. Functions always
    compare equal to each other.
    """
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1

    left_kind = type_of(left)
    right_kind = type_of(right)
    if left_kind is None and right_kind is None:
        return 0
    if left_kind is None:
        return -1
    if right_kind is None:
        return 1
    if left_kind != right_kind:
        return _compare_strings(left_kind.value, right_kind.value)
    if left is right:
        return 0
    return _compare_same_kind(left, right, link_normalizer)


def sort_key(link_normalizer: Callable[[str], str] | None = None) -> Callable[[object], object]:
    """Build a ``sorted`` key function ordering values by compare_values."""
    return cmp_to_key(lambda left, right: compare_values(left, right, link_normalizer))


def deep_copy(value: object) -> object:
    """Clone arrays and objects recursively; every other value is shared."""
    if isinstance(value, list):
        return [deep_copy(item) for item in value]
    if isinstance(value, dict):
        return {key: deep_copy(item) for key, item in value.items()}
    return value


def format_number(value: float) -> str:
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    return str(value)


def render_date(value: datetime, settings: QuerySettings = DEFAULT_SETTINGS) -> str:
    date_format = settings.datetime_format if has_time(value) else settings.date_format
    return value.strftime(date_format)


def to_string(value: object, settings: QuerySettings = DEFAULT_SETTINGS, depth: int = 0) -> str:
    """Render a value into markdown-friendly text.

    Arrays and objects nested deeper than ``settings.max_recursive_render_depth`` render as
    ``...``; nested arrays are bracketed, the outermost one is not.
    """
    if value is None:
        return settings.render_null_as
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return format_number(value)
    if isinstance(value, Link):
        return value.markdown()
    if isinstance(value, Task):
        return value.text
    if isinstance(value, datetime):
        return render_date(value, settings)
    if isinstance(value, Duration):
        return render_duration(value)
    if isinstance(value, list | dict) and depth >= settings.max_recursive_render_depth:
        return "..."
    if isinstance(value, list):
        inner = ", ".join(to_string(item, settings, depth + 1) for item in value)
        return f"[{inner}]" if depth else inner
    if isinstance(value, dict):
        entries = ", ".join(
            f"{key}: {to_string(item, settings, depth + 1)}" for key, item in value.items()
        )
        return "{ " + entries + " }"
    if type_of(value) is Kind.FUNCTION:
        return "<function>"
    return settings.render_null_as


def canonical_key(value: object) -> str:
    """Deterministic structural key: equal values produce equal keys."""
    return json.dumps(_canonical_form(value), sort_keys=True, ensure_ascii=True)


def _canonical_form(value: object) -> object:
    result: object
    if value is None:
        result = None
    elif isinstance(value, bool):
        result = ["boolean", value]
    elif isinstance(value, int | float):
        result = ["number", float(value)]
    elif isinstance(value, str):
        result = ["string", value]
    elif isinstance(value, datetime):
        result = ["date", date_key(value)]
    elif isinstance(value, Duration):
        result = ["duration", value.as_milliseconds()]
    elif isinstance(value, Link):
        result = ["link", value.path, value.type, value.subpath or ""]
    elif isinstance(value, list):
        result = ["array", [_canonical_form(item) for item in value]]
    elif isinstance(value, dict):
        result = ["object", {key: _canonical_form(item) for key, item in value.items()}]
    elif isinstance(value, Task):
        result = ["task", value.path, value.line, value.text]
    else:
        result = ["function", id(value)]
    return result
