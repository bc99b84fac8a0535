"""Compiler entrypoints for query language."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from orgview.query_language.ast import Query
from orgview.query_language.engine import RowResult, execute_query
from orgview.query_language.parser import parse_query
from orgview.query_language.result import Result
from orgview.query_language.settings import DEFAULT_SETTINGS, QuerySettings
from orgview.query_language.sources import DocumentIndex


type CompiledQuery = Callable[[DocumentIndex, str | None], Result[RowResult]]


def compile_query(
    query: Query, settings: QuerySettings = DEFAULT_SETTINGS, now: datetime | None = None
) -> CompiledQuery:
    """Compile a parsed query into a callable run against an index and origin document."""

    def _compiled(index: DocumentIndex, origin: str | None = None) -> Result[RowResult]:
        return execute_query(query, index, origin, settings, now=now)

    return _compiled


def compile_query_text(
    text: str, settings: QuerySettings = DEFAULT_SETTINGS, now: datetime | None = None
) -> Result[CompiledQuery]:
    """Parse and compile query text."""
    return parse_query(text).map(lambda query: compile_query(query, settings, now))
