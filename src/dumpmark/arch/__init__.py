"""Architecture support."""

from dumpmark.arch.decoder import Arch, CodeDecoder, Instruction

__all__ = [
    "Arch",
    "CodeDecoder",
    "Instruction",
]
