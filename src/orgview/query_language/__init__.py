"""Public API for query language parser/compiler/runtime."""

from orgview.query_language.binary_ops import BinaryOpRegistry, default_binary_ops
from orgview.query_language.compiler import CompiledQuery, compile_query, compile_query_text
from orgview.query_language.engine import RowResult, execute_core, execute_query
from orgview.query_language.errors import (
    QueryConfigurationError,
    QueryLanguageError,
    QueryParseError,
    QueryRuntimeError,
)
from orgview.query_language.functions import FunctionBuilder, FunctionRegistry, default_functions
from orgview.query_language.parser import parse_field, parse_query, parse_source
from orgview.query_language.result import Failure, Result, Success
from orgview.query_language.runtime import Context, LinkHandler
from orgview.query_language.settings import QuerySettings
from orgview.query_language.sources import DocumentIndex, resolve_source


__all__ = [
    "BinaryOpRegistry",
    "CompiledQuery",
    "Context",
    "DocumentIndex",
    "Failure",
    "FunctionBuilder",
    "FunctionRegistry",
    "LinkHandler",
    "QueryConfigurationError",
    "QueryLanguageError",
    "QueryParseError",
    "QueryRuntimeError",
    "QuerySettings",
    "Result",
    "RowResult",
    "Success",
    "compile_query",
    "compile_query_text",
    "default_binary_ops",
    "default_functions",
    "execute_core",
    "execute_query",
    "parse_field",
    "parse_query",
    "parse_source",
    "resolve_source",
]
