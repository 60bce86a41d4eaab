"""Annotation engine: relocation, naming and per-category application."""

from dumpmark.engine.names import StringNamer
from dumpmark.engine.report import Report, OutcomeKind, StepOutcome, CategoryTally
from dumpmark.engine.resolver import resolve
from dumpmark.engine.annotator import AnnotationEngine, apply_document

__all__ = [
    "AnnotationEngine",
    "CategoryTally",
    "OutcomeKind",
    "Report",
    "StepOutcome",
    "StringNamer",
    "apply_document",
    "resolve",
]
