"""HostDatabase over the IDA Pro database currently open."""

import ida_ua
import ida_name
import ida_nalt
import ida_bytes
import ida_funcs
import ida_typeinf

from dumpmark.host.base import NameFlags


def _sn_flags(flags: NameFlags) -> int:
    value = 0
    if flags & NameFlags.NOWARN:
        value |= ida_name.SN_NOWARN
    if flags & NameFlags.NOCHECK:
        value |= ida_name.SN_NOCHECK
    return value


class IdaHost:
    """Forwards every capability to the IDA SDK."""

    def function_exists_at(self, address: int) -> bool:
        return ida_funcs.get_func(address) is not None

    def is_code(self, address: int) -> bool:
        return bool(ida_bytes.is_code(ida_bytes.get_flags(address)))

    def convert_to_code(self, address: int) -> bool:
        return ida_ua.create_insn(address) > 0

    def create_function_at(self, address: int) -> bool:
        return bool(ida_funcs.add_func(address))

    def bind_name(self, address: int, name: str, flags: NameFlags = NameFlags.NONE) -> bool:
        return bool(ida_name.set_name(address, name, _sn_flags(flags)))

    def apply_declared_signature(self, address: int, signature: str) -> bool:
        return bool(ida_typeinf.apply_cdecl(None, address, signature))

    def set_comment(self, address: int, text: str, repeatable: bool) -> bool:
        return bool(ida_bytes.set_cmt(address, text, repeatable))

    def merge_declarations(self, text: str) -> int:
        # Parses into the local type library, returns the number of errors
        return int(ida_typeinf.idc_parse_types(text, 0))

    def image_base(self) -> int:
        return int(ida_nalt.get_imagebase())
