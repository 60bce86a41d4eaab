"""HostDatabase backed by a dumpmark project database."""

import re
import sqlite3

from dumpmark.arch.decoder import Arch, CodeDecoder
from dumpmark.decls.cparser import parse_declaration, parse_declarations
from dumpmark.errors import DeclarationError
from dumpmark.host.base import NameFlags
from dumpmark.project.database import ProjectDatabase
from dumpmark.utils.logging import get_logger

log = get_logger("dumpmark.host")

_VALID_NAME_RE = re.compile(r"[A-Za-z_$?@.][\w$?@.]*$")
_INVALID_CHAR_RE = re.compile(r"[^\w$?@.]")


def is_valid_name(name: str) -> bool:
    """Whether a name can be bound without NOCHECK."""
    return bool(_VALID_NAME_RE.match(name)) and name.isascii()


def sanitize_name(name: str) -> str:
    """Replace characters a name may not contain with underscores."""
    clean = _INVALID_CHAR_RE.sub("_", name.encode("ascii", "replace").decode("ascii"))
    if clean and clean[0].isdigit():
        clean = "_" + clean
    return clean


class ProjectHost:
    """Annotates a ProjectDatabase.

    Code conversion decodes one instruction with capstone from the loaded
    region bytes, so only addresses inside executable regions can become
    code.
    """

    def __init__(self, db: ProjectDatabase, decoder: CodeDecoder | None = None) -> None:
        self.db = db
        if decoder is None:
            info = db.get_binary_info()
            decoder = CodeDecoder(info["arch"] if info else Arch.ARM64)
        self.decoder = decoder
        self._types: set[str] | None = None

    def function_exists_at(self, address: int) -> bool:
        return self.db.get_function(address) is not None

    def is_code(self, address: int) -> bool:
        return self.db.get_item(address) is not None

    def convert_to_code(self, address: int) -> bool:
        region = self.db.region_at(address)
        if region is None or not region.executable:
            return False

        insn = self.decoder.decode_one(region.read(address, self.decoder.max_size), address)
        if insn is None:
            return False

        self.db.add_item(insn.address, insn.size, insn.mnemonic, insn.op_str)
        return True

    def create_function_at(self, address: int) -> bool:
        if self.function_exists_at(address) or not self.is_code(address):
            return False
        self.db.add_function(address)
        return True

    def bind_name(self, address: int, name: str, flags: NameFlags = NameFlags.NONE) -> bool:
        if not is_valid_name(name):
            if not flags & NameFlags.NOCHECK:
                return False
            name = sanitize_name(name)
            if not name:
                return False

        owner = self.db.address_of(name)
        if owner is not None and owner != address:
            return False

        try:
            self.db.set_name(address, name)
        except sqlite3.IntegrityError:
            return False
        return True

    def apply_declared_signature(self, address: int, signature: str) -> bool:
        try:
            decl = parse_declaration(signature, self._known_types())
        except DeclarationError as e:
            log.debug("Declaration rejected", address=f"{address:#x}", error=str(e))
            return False
        self.db.set_signature(address, decl.text)
        return True

    def set_comment(self, address: int, text: str, repeatable: bool) -> bool:
        self.db.set_comment(address, text, repeatable)
        return True

    def merge_declarations(self, text: str) -> int:
        result = parse_declarations(text, self._known_types())
        with self.db.batch():
            for decl in result.declarations:
                for name in decl.defines:
                    self.db.add_type(name, decl.kind.name.lower(), decl.text)
        for error in result.errors:
            log.debug("Declaration error", error=error)
        self._types = None
        return result.error_count

    def image_base(self) -> int:
        info = self.db.get_binary_info()
        return info["image_base"] if info else 0

    def _known_types(self) -> set[str]:
        if self._types is None:
            self._types = self.db.type_names()
        return self._types
