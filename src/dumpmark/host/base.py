"""Capabilities the annotation engine needs from a disassembly database."""

from enum import IntFlag
from typing import Protocol, runtime_checkable


class NameFlags(IntFlag):
    """Options for binding a name to an address."""

    NONE = 0
    NOWARN = 1  # Do not prompt or warn on failure
    NOCHECK = 2  # Replace invalid characters instead of rejecting the name


@runtime_checkable
class HostDatabase(Protocol):
    """A loaded disassembly database the engine can annotate.

    Every mutating call returns True on success. Addresses are absolute.
    """

    def function_exists_at(self, address: int) -> bool: ...

    def is_code(self, address: int) -> bool: ...

    def convert_to_code(self, address: int) -> bool: ...

    def create_function_at(self, address: int) -> bool: ...

    def bind_name(self, address: int, name: str, flags: NameFlags = NameFlags.NONE) -> bool: ...

    def apply_declared_signature(self, address: int, signature: str) -> bool: ...

    def set_comment(self, address: int, text: str, repeatable: bool) -> bool: ...

    def merge_declarations(self, text: str) -> int:
        """Parse declarations into the type library, returning the error count."""
        ...

    def image_base(self) -> int: ...
