"""Source adapters turning external tender boards into raw records."""

from .base import (
    FunctionAdapter,
    SourceAdapter,
    builtin_adapters,
    register_adapter,
    resolve_adapter,
)
from .html_table import HtmlTableAdapter, HtmlTableOptions

register_adapter("html_table", HtmlTableAdapter)

__all__ = [
    "FunctionAdapter",
    "HtmlTableAdapter",
    "HtmlTableOptions",
    "SourceAdapter",
    "builtin_adapters",
    "register_adapter",
    "resolve_adapter",
]
