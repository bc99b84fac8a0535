"""orgview - Query Emacs Org-mode notes with a dataview-style query language."""

from orgview.query_language import (
    Context,
    RowResult,
    compile_query_text,
    execute_query,
    parse_field,
    parse_query,
    parse_source,
)
from orgview.vault import Vault, load_vault


__version__ = "0.1.0"

__all__ = [
    "Context",
    "RowResult",
    "Vault",
    "__version__",
    "compile_query_text",
    "execute_query",
    "load_vault",
    "parse_field",
    "parse_query",
    "parse_source",
]
