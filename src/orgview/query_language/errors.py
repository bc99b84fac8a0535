"""Errors for query language parsing and execution."""

from __future__ import annotations


class QueryLanguageError(Exception):
    """Base exception for query language failures."""


class QueryParseError(QueryLanguageError):
    """Raised when expression, source, or query text cannot be parsed."""

    def __init__(
        self,
        message: str,
        position: int = 0,
        line: int = 0,
        column: int = 0,
        expected: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.position = position
        self.line = line
        self.column = column
        self.expected = expected


class QueryRuntimeError(QueryLanguageError):
    """Raised when query evaluation fails at runtime."""


class QueryConfigurationError(QueryLanguageError):
    """Raised when an operator or function registry is built incorrectly."""
