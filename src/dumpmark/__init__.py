"""dumpmark - replay managed-runtime metadata dumps as disassembly annotations."""

from dumpmark.errors import DumpmarkError, ConfigError, DumpFormatError, DeclarationError
from dumpmark.dump import AnnotationDocument, Category, load_document, parse_document
from dumpmark.engine import AnnotationEngine, Report, StringNamer, apply_document, resolve
from dumpmark.host import NameFlags, HostDatabase, ProjectHost
from dumpmark.project import ProjectDatabase
from dumpmark.pipeline import RunResult, run

__version__ = "0.1.0"
__all__ = [
    "AnnotationDocument",
    "AnnotationEngine",
    "Category",
    "ConfigError",
    "DeclarationError",
    "DumpFormatError",
    "DumpmarkError",
    "HostDatabase",
    "NameFlags",
    "ProjectDatabase",
    "ProjectHost",
    "Report",
    "RunResult",
    "StringNamer",
    "apply_document",
    "load_document",
    "parse_document",
    "resolve",
    "run",
]


def main() -> None:
    """Entry point for CLI."""
    from dumpmark.cli import main as cli_main

    cli_main()
