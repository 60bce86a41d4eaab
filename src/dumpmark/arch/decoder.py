"""Instruction decoding using capstone."""

from dataclasses import dataclass
from enum import Enum

import capstone


class Arch(str, Enum):
    """Architectures a project can be decoded as."""

    ARM64 = "arm64"
    ARM = "arm"
    THUMB = "thumb"
    X86_64 = "x86_64"
    X86 = "x86"

    def __str__(self) -> str:
        return self.value


_CS_MODES = {
    Arch.ARM64: (capstone.CS_ARCH_ARM64, capstone.CS_MODE_ARM),
    Arch.ARM: (capstone.CS_ARCH_ARM, capstone.CS_MODE_ARM),
    Arch.THUMB: (capstone.CS_ARCH_ARM, capstone.CS_MODE_THUMB),
    Arch.X86_64: (capstone.CS_ARCH_X86, capstone.CS_MODE_64),
    Arch.X86: (capstone.CS_ARCH_X86, capstone.CS_MODE_32),
}

# Longest encoding per architecture
_MAX_INSN_SIZE = {
    Arch.ARM64: 4,
    Arch.ARM: 4,
    Arch.THUMB: 4,
    Arch.X86_64: 15,
    Arch.X86: 15,
}


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction head."""

    address: int
    size: int
    mnemonic: str
    op_str: str
    bytes: bytes

    def __str__(self) -> str:
        if self.op_str:
            return f"{self.mnemonic} {self.op_str}"
        return self.mnemonic


class CodeDecoder:
    """Decodes single instructions for one architecture."""

    def __init__(self, arch: Arch | str = Arch.ARM64) -> None:
        self.arch = Arch(arch)
        cs_arch, cs_mode = _CS_MODES[self.arch]
        self._cs = capstone.Cs(cs_arch, cs_mode)

    @property
    def max_size(self) -> int:
        return _MAX_INSN_SIZE[self.arch]

    def decode_one(self, data: bytes, address: int) -> Instruction | None:
        """Decode the instruction at the start of data, None if invalid."""
        for insn in self._cs.disasm(data[: self.max_size], address, count=1):
            return Instruction(
                address=insn.address,
                size=insn.size,
                mnemonic=insn.mnemonic,
                op_str=insn.op_str,
                bytes=bytes(insn.bytes),
            )
        return None
