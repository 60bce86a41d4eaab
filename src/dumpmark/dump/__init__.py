"""Script dump decoding."""

from dumpmark.dump.parser import AnnotationDocument, load_document, parse_document
from dumpmark.dump.records import (
    Category,
    MethodRecord,
    StringRecord,
    MetadataRecord,
    MetadataMethodRecord,
    decode_record,
)

__all__ = [
    "AnnotationDocument",
    "Category",
    "MethodRecord",
    "StringRecord",
    "MetadataRecord",
    "MetadataMethodRecord",
    "decode_record",
    "load_document",
    "parse_document",
]
