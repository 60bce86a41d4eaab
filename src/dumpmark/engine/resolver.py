"""Relocation of dump offsets to absolute addresses."""

ADDRESS_MASK = (1 << 64) - 1


def resolve(offset: int, base: int) -> int:
    """Add an image base to a dump offset with 64-bit wraparound."""
    if not 0 <= offset <= ADDRESS_MASK:
        raise ValueError(f"Offset {offset:#x} is not an unsigned 64-bit value")
    if not 0 <= base <= ADDRESS_MASK:
        raise ValueError(f"Image base {base:#x} is not an unsigned 64-bit value")
    return (offset + base) & ADDRESS_MASK
