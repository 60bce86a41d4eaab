"""Decoding of script dump documents."""

import json
from dataclasses import field, dataclass
from pathlib import Path
from typing import Any

from dumpmark.errors import DumpFormatError
from dumpmark.dump.records import Category


@dataclass(frozen=True)
class AnnotationDocument:
    """Decoded dump, one raw record list per category.

    A category maps to None when its key is missing or is not an array.
    Records are kept raw; each is validated when the engine reaches it.
    """

    categories: dict[Category, list[Any] | None]
    problems: dict[Category, str] = field(default_factory=dict)

    def records(self, category: Category) -> list[Any] | None:
        """Raw records for a category, None if the category is absent."""
        return self.categories.get(category)

    def problem(self, category: Category) -> str | None:
        """Why a category was dropped, None if it is present."""
        return self.problems.get(category)

    @property
    def diagnostics(self) -> tuple[str, ...]:
        return tuple(self.problems[c] for c in Category if c in self.problems)

    def __contains__(self, category: Category) -> bool:
        return self.categories.get(category) is not None

    @property
    def total_records(self) -> int:
        return sum(len(r) for r in self.categories.values() if r is not None)


def parse_document(data: bytes | str) -> AnnotationDocument:
    """Decode dump bytes into an AnnotationDocument.

    Raises:
        DumpFormatError: if the data is not valid JSON or the root is not an object
    """
    try:
        root = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise DumpFormatError(f"Document is not valid JSON: {e}") from e

    if not isinstance(root, dict):
        raise DumpFormatError("Document is not an object")

    categories: dict[Category, list[Any] | None] = {}
    problems: dict[Category, str] = {}

    for category in Category:
        value = root.get(category.value)
        if value is None:
            categories[category] = None
            problems[category] = f"Document does not contain {category}"
        elif not isinstance(value, list):
            categories[category] = None
            problems[category] = (
                f"Document {category} is {type(value).__name__}, expected array"
            )
        else:
            categories[category] = value

    return AnnotationDocument(categories=categories, problems=problems)


def load_document(path: str | Path) -> AnnotationDocument:
    """Read and decode a dump file.

    Raises:
        DumpFormatError: if the file cannot be read or decoded
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DumpFormatError(f"Cannot read {path}: {e}") from e
    return parse_document(data)
