"""Runtime evaluation of expression fields against row bindings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Protocol

from orgview.query_language.ast import (
    BinaryOp,
    DateShorthand,
    Field,
    FunctionCall,
    Index,
    Lambda,
    ListField,
    LiteralField,
    Negated,
    ObjectField,
    Variable,
)
from orgview.query_language.binary_ops import BinaryOpRegistry, default_binary_ops
from orgview.query_language.dates import Duration, date_component, resolve_date_shorthand
from orgview.query_language.errors import QueryLanguageError, QueryRuntimeError
from orgview.query_language.functions import FunctionRegistry, default_functions
from orgview.query_language.result import Result, capture
from orgview.query_language.settings import DEFAULT_SETTINGS, QuerySettings
from orgview.query_language.values import (
    LambdaValue,
    Link,
    Task,
    is_truthy,
    to_string,
    type_of,
)


logger = logging.getLogger("orgview")

# Errors from function implementations that are reported as evaluation failures.
_IMPLEMENTATION_ERRORS = (ArithmeticError, ValueError, TypeError, KeyError, IndexError)


class LinkHandler(Protocol):
    """Link resolution capability injected into a context."""

    def resolve(self, path: str) -> Mapping[str, object] | None: ...

    def normalize(self, path: str) -> str: ...

    def exists(self, path: str) -> bool: ...


class NullLinkHandler:
    """Link handler for contexts without a document index."""

    def resolve(self, path: str) -> Mapping[str, object] | None:
        del path
        return None

    def normalize(self, path: str) -> str:
        return path

    def exists(self, path: str) -> bool:
        del path
        return False


class Context:
    """Evaluation environment: global bindings, link resolution, and operator tables."""

    def __init__(
        self,
        link_handler: LinkHandler | None = None,
        globals: Mapping[str, object] | None = None,  # noqa: A002
        binary_ops: BinaryOpRegistry | None = None,
        functions: FunctionRegistry | None = None,
        settings: QuerySettings = DEFAULT_SETTINGS,
        now: datetime | None = None,
    ) -> None:
        self.link_handler: LinkHandler = link_handler or NullLinkHandler()
        self.globals: dict[str, object] = dict(globals or {})
        self.binary_ops = binary_ops or default_binary_ops()
        self.functions = functions or default_functions()
        self.settings = settings
        self.now = now

    def set(self, name: str, value: object) -> Context:
        """Bind a global variable."""
        self.globals[name] = value
        return self

    def get(self, name: str) -> object:
        return self.globals.get(name)

    def evaluate(self, field: Field, data: Mapping[str, object] | None = None) -> Result[object]:
        """Evaluate a field against the globals extended by data."""
        return capture(lambda: self.evaluate_or_raise(field, data))

    def evaluate_or_raise(self, field: Field, data: Mapping[str, object] | None = None) -> object:
        """Evaluate a field, raising QueryRuntimeError on failure."""
        bindings = data if data is not None else {}
        return self._evaluate(field, bindings)

    def to_string(self, value: object) -> str:
        return to_string(value, self.settings)

    def binary(self, left: object, op: str, right: object) -> object:
        """Apply a binary operator, raising on failure."""
        return self.binary_ops.evaluate(left, op, right, self).or_raise()

    def call(self, func: object, args: list[object]) -> object:
        """Invoke a lambda or built-in function value with evaluated arguments."""
        if isinstance(func, LambdaValue):
            bindings = dict(func.captured)
            for index, name in enumerate(func.params):
                bindings[name] = args[index] if index < len(args) else None
            return self._evaluate(func.body, bindings)
        if callable(func):
            return self._call_builtin(func, args)
        kind = type_of(func)
        raise QueryRuntimeError(
            f"Cannot call type '{kind.value if kind else 'unknown'}' as a function"
        )

    def index(self, target: object, key: object) -> object:
        """Index into a value with a string or number key."""
        if key is None:
            return None
        if not isinstance(key, str) and (not isinstance(key, int | float) or isinstance(key, bool)):
            kind = type_of(key)
            kind_name = kind.value if kind else "unknown"
            raise QueryRuntimeError(f"Can only index with a string or number (not a {kind_name})")
        return self._index_value(target, key)

    def _call_builtin(self, func: Callable[..., object], args: list[object]) -> object:
        try:
            return func(self, *args)
        except QueryLanguageError:
            raise
        except _IMPLEMENTATION_ERRORS as exc:
            name = getattr(func, "name", "function")
            raise QueryRuntimeError(f"Error in function '{name}': {exc}") from exc

    def _lookup(self, name: str, bindings: Mapping[str, object]) -> object:
        if name in bindings:
            return bindings[name]
        if name in self.globals:
            return self.globals[name]
        if name == "row":
            return {**self.globals, **bindings}
        return None

    def _evaluate(self, field: Field, bindings: Mapping[str, object]) -> object:
        result: object
        if isinstance(field, LiteralField):
            result = field.value
        elif isinstance(field, Variable):
            result = self._lookup(field.name, bindings)
        elif isinstance(field, DateShorthand):
            result = resolve_date_shorthand(field.name, self.now)
        elif isinstance(field, Negated):
            result = not is_truthy(self._evaluate(field.child, bindings))
        elif isinstance(field, BinaryOp):
            left = self._evaluate(field.left, bindings)
            right = self._evaluate(field.right, bindings)
            result = self.binary(left, field.op, right)
        elif isinstance(field, ListField):
            result = [self._evaluate(value, bindings) for value in field.values]
        elif isinstance(field, ObjectField):
            result = {name: self._evaluate(value, bindings) for name, value in field.values}
        elif isinstance(field, Lambda):
            result = LambdaValue(field.arguments, field.body, {**self.globals, **bindings})
        elif isinstance(field, FunctionCall):
            result = self._evaluate_call(field, bindings)
        elif isinstance(field, Index):
            key = self._evaluate(field.index, bindings)
            target = self._evaluate(field.object, bindings)
            result = self.index(target, key)
        else:
            raise QueryRuntimeError(f"Unsupported expression type: {type(field).__name__}")
        return result

    def _evaluate_call(self, field: FunctionCall, bindings: Mapping[str, object]) -> object:
        func: object
        if isinstance(field.func, Variable) and field.func.name in self.functions:
            func = self.functions.get(field.func.name)
        else:
            func = self._evaluate(field.func, bindings)
            if func is None and isinstance(field.func, Variable):
                raise QueryRuntimeError(f"Unrecognized function name '{field.func.name}'")

        args = [self._evaluate(arg, bindings) for arg in field.arguments]
        return self.call(func, args)

    def _index_value(self, target: object, key: str | float) -> object:
        result: object = None
        if isinstance(key, str):
            result = self._index_by_name(target, key)
        elif isinstance(target, list):
            if float(key).is_integer() and 0 <= key < len(target):
                result = target[int(key)]
        elif isinstance(target, str):
            if float(key).is_integer() and 0 <= key < len(target):
                result = target[int(key)]
        return result

    def _index_by_name(self, target: object, key: str) -> object:
        result: object = None
        if isinstance(target, dict):
            result = target.get(key)
        elif isinstance(target, Link):
            resolved = self.link_handler.resolve(target.path)
            result = resolved.get(key) if resolved is not None else None
        elif isinstance(target, list):
            result = self._broadcast_index(target, key)
        elif isinstance(target, Task):
            result = target.get(key)
        elif isinstance(target, datetime):
            result = date_component(target, key)
        elif isinstance(target, Duration):
            result = target.get(key)
        return result

    def _broadcast_index(self, values: list[object], key: str) -> list[object]:
        """Project a string index over every element, dropping elements that fail."""
        projected: list[object] = []
        for value in values:
            try:
                projected.append(self._index_value(value, key))
            except QueryRuntimeError as exc:
                logger.debug("Skipping element while indexing '%s': %s", key, exc)
        return projected
