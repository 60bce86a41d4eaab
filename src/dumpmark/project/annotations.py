"""Annotations stored at an address."""

from dataclasses import dataclass
from enum import IntEnum, auto


class AnnotationType(IntEnum):
    """Kind of annotation at an address."""

    FUNCTION = auto()  # Function start
    NAME = auto()  # Symbol name
    COMMENT = auto()  # Regular comment
    REPEATABLE_COMMENT = auto()  # Comment shown at every reference
    SIGNATURE = auto()  # Applied type declaration


@dataclass(frozen=True)
class Annotation:
    """One piece of information attached to an address."""

    address: int
    annotation_type: AnnotationType
    value: str

    def __repr__(self) -> str:
        type_str = self.annotation_type.name.lower()
        return f"Annotation({self.address:#x}, {type_str}, {self.value!r})"
