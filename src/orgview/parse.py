"""Parsing org-mode files into document fields, links, and task trees."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import cast

import orgparse
import typer
from orgparse.date import OrgDate
from orgparse.node import OrgNode, OrgRootNode

from orgview.query_language.parser import parse_date_text, parse_duration_text, parse_inner_link
from orgview.query_language.values import Task


logger = logging.getLogger("orgview")

DEFAULT_TODO_KEYS = ["TODO"]
DEFAULT_DONE_KEYS = ["DONE"]
# Lines added in front of every file by _prepend_todo_config.
TODO_CONFIG_LINES = 2

_KEYWORD_LINE = re.compile(r"^#\+([A-Za-z0-9_-]+):[ \t]*(.*?)[ \t]*$", re.MULTILINE)
_PROPERTY_LINE = re.compile(r"^[ \t]*:([A-Za-z0-9_-]+):[ \t]*(.*?)[ \t]*$")
_ORG_LINK = re.compile(r"\[\[([^\[\]]+?)\](?:\[([^\[\]]*)\])?\]")
_ORG_TIMESTAMP = re.compile(
    r"[<\[](\d{4}-\d{2}-\d{2})(?: [A-Za-z]+)?(?: (\d{1,2}:\d{2}))?[^>\]]*[>\]]"
)
_NUMBER = re.compile(r"-?[0-9]+(\.[0-9]+)?")
_DAY_IN_NAME = re.compile(r"(\d{4}-\d{2}-\d{2})")
_RESERVED_KEYWORDS = {"TODO", "SEQ_TODO", "TYP_TODO", "STARTUP"}


@dataclass
class OrgDocument:
    """One parsed org file, before it is placed in a vault."""

    path: str
    title: str
    keywords: dict[str, str] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    link_targets: list[tuple[str, str | None]] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)


def _read_org_file(name: str) -> str:
    """Read one org file and normalize unsupported time values."""
    try:
        with open(name, encoding="utf-8") as f:
            logger.info("Processing %s...", name)
            return f.read().replace("24:00", "00:00")
    except FileNotFoundError as err:
        raise typer.BadParameter(f"File '{name}' not found") from err
    except PermissionError as err:
        raise typer.BadParameter(f"Permission denied for '{name}'") from err


def _prepend_todo_config(contents: str, todo_keys: list[str], done_keys: list[str]) -> str:
    """Prepend TODO keyword configuration to file contents."""
    todo_config = f"#+TODO: {' '.join(todo_keys)} | {' '.join(done_keys)}\n\n"
    return todo_config + contents


def infer_value(text: str) -> object:
    """Read a keyword or property value as a number, boolean, date, duration, link, or string."""
    stripped = text.strip()
    if _NUMBER.fullmatch(stripped):
        return float(stripped) if "." in stripped else int(stripped)
    if stripped.lower() in {"true", "false"}:
        return stripped.lower() == "true"
    link_match = _ORG_LINK.fullmatch(stripped)
    if link_match is not None:
        target = link_match.group(1).removeprefix("file:")
        return parse_inner_link(target).with_display(link_match.group(2))
    timestamp = _ORG_TIMESTAMP.fullmatch(stripped)
    if timestamp is not None:
        return _timestamp_value(timestamp)
    parsed_date = parse_date_text(stripped)
    if parsed_date is not None:
        return parsed_date
    if any(ch.isalpha() for ch in stripped) and any(ch.isdigit() for ch in stripped):
        duration = parse_duration_text(stripped)
        if duration is not None:
            return duration
    return stripped


def _timestamp_value(match: re.Match[str]) -> datetime | None:
    text = match.group(1)
    if match.group(2):
        hour, minute = match.group(2).split(":")
        text = f"{text}T{int(hour):02d}:{minute}"
    return parse_date_text(text)


def _to_datetime(value: OrgDate | None) -> datetime | None:
    """Convert an org date into a datetime, or None when unset."""
    if value is None or not bool(value):
        return None
    start = value.start
    if isinstance(start, datetime):
        return start
    if isinstance(start, date):
        return datetime(start.year, start.month, start.day)
    return None


def _parse_keywords(contents: str) -> dict[str, str]:
    keywords: dict[str, str] = {}
    for match in _KEYWORD_LINE.finditer(contents):
        key = match.group(1).upper()
        if key in _RESERVED_KEYWORDS:
            continue
        keywords.setdefault(key, match.group(2))
    return keywords


def _parse_file_properties(contents: str) -> dict[str, str]:
    """Read the property drawer placed before the first heading."""
    properties: dict[str, str] = {}
    in_drawer = False
    for line in contents.splitlines():
        stripped = line.strip()
        if stripped.startswith("*") and not in_drawer:
            break
        if stripped.upper() == ":PROPERTIES:":
            in_drawer = True
            continue
        if stripped.upper() == ":END:":
            if in_drawer:
                break
            continue
        if in_drawer:
            match = _PROPERTY_LINE.match(line)
            if match is not None:
                properties[match.group(1)] = match.group(2)
    return properties


def _split_tags(value: str) -> list[str]:
    return [tag for tag in re.split(r"[:\s]+", value) if tag]


def _link_targets(contents: str) -> list[tuple[str, str | None]]:
    """Collect links pointing at other org files."""
    targets: list[tuple[str, str | None]] = []
    for match in _ORG_LINK.finditer(contents):
        target = match.group(1)
        if "://" in target or target.startswith(("id:", "#", "*", "mailto:", "http")):
            continue
        if target.startswith("file:"):
            target = target.removeprefix("file:")
        targets.append((target.split("::", 1)[0], match.group(2)))
    return targets


def _build_task(node: OrgNode, path: str, done_keys: list[str]) -> Task:
    """Build a task and its subtasks; completion is propagated bottom-up."""
    children = tuple(_collect_tasks(node.children, path, done_keys))
    completed = node.todo in done_keys
    extra: dict[str, object] = {
        key.lower(): infer_value(str(value)) for key, value in node.properties.items()
    }
    created = extra.pop("created", None)
    return Task(
        text=node.heading,
        path=path,
        line=node.linenumber - TODO_CONFIG_LINES,
        status=node.todo or "",
        completed=completed,
        fully_completed=completed and all(child.fully_completed for child in children),
        children=children,
        tags=tuple(sorted(node.shallow_tags)),
        created=created if isinstance(created, datetime) else None,
        due=_to_datetime(node.deadline),
        scheduled=_to_datetime(node.scheduled),
        completion=_to_datetime(node.closed),
        extra=extra,
    )


def _collect_tasks(nodes: list[OrgNode], path: str, done_keys: list[str]) -> list[Task]:
    """Tasks among nodes; tasks below plain headings are lifted to this level."""
    tasks: list[Task] = []
    for node in nodes:
        if node.todo:
            tasks.append(_build_task(node, path, done_keys))
        else:
            tasks.extend(_collect_tasks(node.children, path, done_keys))
    return tasks


def flatten_tasks(tasks: list[Task] | tuple[Task, ...]) -> list[Task]:
    """All tasks of a tree in document order."""
    result: list[Task] = []
    for task in tasks:
        result.append(task)
        result.extend(flatten_tasks(task.children))
    return result


def parse_org_document(
    path: str,
    contents: str,
    todo_keys: list[str] | None = None,
    done_keys: list[str] | None = None,
) -> OrgDocument:
    """Parse org text into keywords, properties, tags, links, and tasks."""
    todo = todo_keys or DEFAULT_TODO_KEYS
    done = done_keys or DEFAULT_DONE_KEYS
    root = cast(
        OrgRootNode, orgparse.loads(_prepend_todo_config(contents, todo, done), filename=path)
    )
    all_done_keys = list(set(done).union(root.env.done_keys))

    keywords = _parse_keywords(contents)
    tags = _split_tags(keywords.get("FILETAGS", ""))
    for node in root[1:]:
        for tag in sorted(node.shallow_tags):
            if tag not in tags:
                tags.append(tag)

    return OrgDocument(
        path=path,
        title=keywords.get("TITLE", ""),
        keywords=keywords,
        properties=_parse_file_properties(contents),
        tags=tags,
        link_targets=_link_targets(contents),
        tasks=_collect_tasks(list(root.children), path, all_done_keys),
    )


def load_org_document(
    filename: str, path: str, todo_keys: list[str] | None = None, done_keys: list[str] | None = None
) -> OrgDocument:
    """Read and parse one org file stored under a vault-relative path."""
    return parse_org_document(path, _read_org_file(filename), todo_keys, done_keys)


def day_from_name(name: str) -> datetime | None:
    """Date embedded in a file name such as ``2024-01-05-notes``."""
    match = _DAY_IN_NAME.search(name)
    if match is None:
        return None
    return parse_date_text(match.group(1))
