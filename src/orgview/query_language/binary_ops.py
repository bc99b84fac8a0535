"""Binary operator dispatch keyed by operand kinds, with wildcard fallback."""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from orgview.query_language.dates import Duration, add_duration, date_diff
from orgview.query_language.errors import (
    QueryConfigurationError,
    QueryLanguageError,
    QueryRuntimeError,
)
from orgview.query_language.result import Failure, Result, Success
from orgview.query_language.values import Kind, compare_values, is_truthy, type_of


if TYPE_CHECKING:
    from orgview.query_language.runtime import Context


type BinaryOpImpl = Callable[[Any, Any, Context], object]
type Comparator = Callable[[Any, Any, Context], int]

WILDCARD = "*"
ARITHMETIC_OPS = ("+", "-", "*", "/", "%")
COMPARISON_OPS = ("<", "<=", ">", ">=", "=", "!=")
BOOLEAN_OPS = ("&", "|")
BINARY_OPS = ARITHMETIC_OPS + COMPARISON_OPS + BOOLEAN_OPS

_KIND_NAMES = frozenset(kind.value for kind in Kind) | {WILDCARD}


class BinaryOpRegistry:
    """Table of operator implementations keyed by ``(left kind, op, right kind)``."""

    def __init__(self) -> None:
        self._table: dict[tuple[str, str, str], BinaryOpImpl] = {}

    def register(
        self, left: str, op: str, right: str, impl: BinaryOpImpl
    ) -> BinaryOpRegistry:
        """Install one implementation; malformed registrations fail immediately."""
        if op not in BINARY_OPS:
            raise QueryConfigurationError(f"Unknown binary operator '{op}'")
        for kind in (left, right):
            if kind not in _KIND_NAMES:
                raise QueryConfigurationError(f"Unknown value kind '{kind}' for operator '{op}'")
        self._table[(left, op, right)] = impl
        return self

    def register_comm(
        self, left: str, op: str, right: str, impl: BinaryOpImpl
    ) -> BinaryOpRegistry:
        """Install an implementation for both operand orders."""
        self.register(left, op, right, impl)
        return self.register(right, op, left, lambda a, b, ctx: impl(b, a, ctx))

    def compare(self, kind: str, comparator: Comparator) -> BinaryOpRegistry:
        """Derive all six comparison operators from a ternary comparator."""
        self.register(kind, "<", kind, lambda a, b, ctx: comparator(a, b, ctx) < 0)
        self.register(kind, "<=", kind, lambda a, b, ctx: comparator(a, b, ctx) <= 0)
        self.register(kind, ">", kind, lambda a, b, ctx: comparator(a, b, ctx) > 0)
        self.register(kind, ">=", kind, lambda a, b, ctx: comparator(a, b, ctx) >= 0)
        self.register(kind, "=", kind, lambda a, b, ctx: comparator(a, b, ctx) == 0)
        return self.register(kind, "!=", kind, lambda a, b, ctx: comparator(a, b, ctx) != 0)

    def lookup(self, left: str, op: str, right: str) -> BinaryOpImpl | None:
        """Find the most specific implementation for a kind pair."""
        for key in (
            (left, op, right),
            (left, op, WILDCARD),
            (WILDCARD, op, right),
            (WILDCARD, op, WILDCARD),
        ):
            impl = self._table.get(key)
            if impl is not None:
                return impl
        return None

    def evaluate(self, left: object, op: str, right: object, context: Context) -> Result[object]:
        """Apply an operator, returning a failure when no implementation matches."""
        left_kind = type_of(left)
        right_kind = type_of(right)
        if left_kind is None or right_kind is None:
            return Failure(QueryRuntimeError(f"Unrecognized value in operands of '{op}'"))

        impl = self.lookup(left_kind.value, op, right_kind.value)
        if impl is None:
            return Failure(
                QueryRuntimeError(
                    f"No implementation found for '{left_kind.value} {op} {right_kind.value}'"
                )
            )
        try:
            return Success(impl(left, right, context))
        except QueryLanguageError as exc:
            return Failure(exc)
        except (ArithmeticError, ValueError, TypeError) as exc:
            return Failure(QueryRuntimeError(str(exc)))


def _divide(left: float, right: float) -> float:
    if right == 0:
        raise QueryRuntimeError("Division by zero")
    return left / right


def _remainder(left: float, right: float) -> float:
    """Remainder keeping the sign of the dividend."""
    if right == 0:
        raise QueryRuntimeError("Division by zero")
    if isinstance(left, int) and isinstance(right, int):
        return int(math.fmod(left, right))
    return math.fmod(left, right)


def _repeat(text: str, times: float) -> str:
    if times <= 0:
        return ""
    return text * math.floor(times)


def _scale_duration(duration: Duration, factor: float) -> Duration:
    return duration.scale(factor)


def _divide_duration(duration: Duration, divisor: float) -> Duration:
    if divisor == 0:
        raise QueryRuntimeError("Division by zero")
    return duration.scale(1 / divisor)


def _null_result(_left: object, _right: object, _context: Context) -> None:
    return None


def _link_comparator(left: object, right: object, context: Context) -> int:
    return compare_values(left, right, context.link_handler.normalize)


def default_binary_ops() -> BinaryOpRegistry:
    """Build the standard operator table."""
    registry = BinaryOpRegistry()
    registry.compare(WILDCARD, _link_comparator)

    registry.register(WILDCARD, "&", WILDCARD, lambda a, b, _: is_truthy(a) and is_truthy(b))
    registry.register(WILDCARD, "|", WILDCARD, lambda a, b, _: is_truthy(a) or is_truthy(b))

    registry.register("number", "+", "number", lambda a, b, _: a + b)
    registry.register("number", "-", "number", lambda a, b, _: a - b)
    registry.register("number", "*", "number", lambda a, b, _: a * b)
    registry.register("number", "/", "number", lambda a, b, _: _divide(a, b))
    registry.register("number", "%", "number", lambda a, b, _: _remainder(a, b))

    registry.register("string", "+", WILDCARD, lambda a, b, ctx: a + ctx.to_string(b))
    registry.register(WILDCARD, "+", "string", lambda a, b, ctx: ctx.to_string(a) + b)
    registry.register_comm("string", "*", "number", lambda a, b, _: _repeat(a, b))

    registry.register("date", "-", "date", lambda a, b, _: date_diff(a, b))
    registry.register("date", "-", "duration", lambda a, b, _: add_duration(a, b.negate()))
    registry.register_comm("date", "+", "duration", lambda a, b, _: add_duration(a, b))

    registry.register("duration", "+", "duration", lambda a, b, _: a.plus(b))
    registry.register("duration", "-", "duration", lambda a, b, _: a.plus(b.negate()))
    registry.register_comm("duration", "*", "number", lambda a, b, _: _scale_duration(a, b))
    registry.register("duration", "/", "number", lambda a, b, _: _divide_duration(a, b))

    registry.register("array", "+", "array", lambda a, b, _: [*a, *b])
    registry.register("object", "+", "object", lambda a, b, _: {**a, **b})

    for op in ARITHMETIC_OPS:
        registry.register("null", op, "null", _null_result)

    return registry
