"""Resolution of source expressions into sets of document paths."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Protocol

from orgview.query_language.ast import (
    BinaryOpSource,
    EmptySource,
    FolderSource,
    LinkSource,
    NegatedSource,
    Source,
    TagSource,
)
from orgview.query_language.errors import QueryRuntimeError
from orgview.query_language.result import Result, capture


logger = logging.getLogger("orgview")


class DocumentIndex(Protocol):
    """Read-only snapshot of indexed documents consulted by queries."""

    def all_paths(self) -> Iterable[str]: ...

    def tagged(self, tag: str) -> Iterable[str]: ...

    def in_folder(self, prefix: str) -> Iterable[str]: ...

    def outgoing(self, path: str) -> Iterable[str]: ...

    def normalize(self, path: str, origin: str | None = None) -> str: ...

    def exists(self, path: str) -> bool: ...

    def resolve_link(self, path: str) -> Mapping[str, object] | None: ...

    def document_fields(self, path: str) -> Mapping[str, object] | None: ...


def resolve_source(
    source: Source, index: DocumentIndex, origin: str | None = None
) -> Result[set[str]]:
    """Resolve a source to the set of matching document paths."""
    return capture(lambda: _resolve(source, index, origin))


def _resolve(source: Source, index: DocumentIndex, origin: str | None) -> set[str]:
    result: set[str]
    if isinstance(source, EmptySource):
        result = set()
    elif isinstance(source, TagSource):
        result = set(index.tagged(source.tag))
    elif isinstance(source, FolderSource):
        result = set(index.in_folder(source.folder))
    elif isinstance(source, LinkSource):
        result = _resolve_link_source(source, index, origin)
    elif isinstance(source, NegatedSource):
        excluded = _resolve(source.child, index, origin)
        result = {path for path in index.all_paths() if path not in excluded}
    elif isinstance(source, BinaryOpSource):
        result = _resolve_binary(source, index, origin)
    else:
        raise QueryRuntimeError(f"Unsupported source type: {type(source).__name__}")
    return result


def _resolve_link_source(source: LinkSource, index: DocumentIndex, origin: str | None) -> set[str]:
    target = index.normalize(source.file, origin)
    if not index.exists(target):
        raise QueryRuntimeError(f"Could not resolve link '{source.file}' during link lookup")

    if source.direction == "outgoing":
        return set(index.outgoing(target))
    if source.direction == "incoming":
        return {path for path in index.all_paths() if target in set(index.outgoing(path))}
    raise QueryRuntimeError(f"Unrecognized link direction '{source.direction}'")


def _resolve_binary(source: BinaryOpSource, index: DocumentIndex, origin: str | None) -> set[str]:
    left = _resolve(source.left, index, origin)
    right = _resolve(source.right, index, origin)
    if source.op == "&":
        return left & right
    if source.op == "|":
        return left | right
    raise QueryRuntimeError(f"Unrecognized operator '{source.op}' in source expression")
