"""Explicit success/failure values returned by the parser, evaluator, and pipeline."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar

from orgview.query_language.errors import QueryLanguageError


T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """A successful computation carrying its value."""

    value: T

    @property
    def successful(self) -> bool:
        return True

    def map(self, func: Callable[[T], U]) -> Success[U]:
        return Success(func(self.value))

    def flat_map(self, func: Callable[[T], Result[U]]) -> Result[U]:
        return func(self.value)

    def or_raise(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        del default
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    """A failed computation carrying the error that stopped it."""

    error: QueryLanguageError

    @property
    def successful(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)

    def map(self, func: Callable[[object], object]) -> Failure:
        del func
        return self

    def flat_map(self, func: Callable[[object], object]) -> Failure:
        del func
        return self

    def or_raise(self) -> NoReturn:
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default


type Result[T] = Success[T] | Failure


def capture(func: Callable[[], T]) -> Result[T]:
    """Run func, converting query language errors into a failure value."""
    try:
        return Success(func())
    except QueryLanguageError as exc:
        return Failure(exc)
