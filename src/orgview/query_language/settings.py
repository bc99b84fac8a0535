"""Presentation settings shared by value rendering and query output."""

from __future__ import annotations

from dataclasses import dataclass


DEFAULT_DATE_FORMAT = "%B %d, %Y"
DEFAULT_DATETIME_FORMAT = "%I:%M %p - %B %d, %Y"


@dataclass(frozen=True, slots=True)
class QuerySettings:
    """Settings controlling how values and results are rendered."""

    render_null_as: str = "\\-"
    date_format: str = DEFAULT_DATE_FORMAT
    datetime_format: str = DEFAULT_DATETIME_FORMAT
    table_id_column: str = "File"
    group_id_column: str = "Group"
    display_result_count: bool = True
    max_recursive_render_depth: int = 4


DEFAULT_SETTINGS = QuerySettings()
