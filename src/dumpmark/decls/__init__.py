"""Type declaration support."""

from dumpmark.decls.cparser import (
    DeclKind,
    Declaration,
    ParseResult,
    parse_declaration,
    parse_declarations,
)
from dumpmark.decls.preloader import preload_declarations

__all__ = [
    "DeclKind",
    "Declaration",
    "ParseResult",
    "parse_declaration",
    "parse_declarations",
    "preload_declarations",
]
