"""Shared test fixtures."""

import json

import pytest

from dumpmark.host.base import NameFlags


class RecordingHost:
    """In-memory HostDatabase that logs every capability call in order.

    Steps listed in ``fail`` return False: either for every address (True)
    or for the addresses in the given set.
    """

    def __init__(self, image_base: int = 0) -> None:
        self.base = image_base
        self.calls: list[tuple] = []
        self.functions: set[int] = set()
        self.code: set[int] = set()
        self.names: dict[int, str] = {}
        self.comments: dict[tuple[int, bool], str] = {}
        self.signatures: dict[int, str] = {}
        self.declarations: list[str] = []
        self.fail: dict[str, bool | set[int]] = {}
        self.raise_on: dict[str, Exception] = {}
        self.declaration_errors = 0

    def _check(self, step: str, address: int | None = None) -> bool:
        if step in self.raise_on:
            raise self.raise_on[step]
        rule = self.fail.get(step)
        if rule is True:
            return False
        if isinstance(rule, set) and address in rule:
            return False
        return True

    @property
    def mutations(self) -> list[tuple]:
        """Calls other than the read-only queries."""
        return [c for c in self.calls if c[0] not in ("function_exists_at", "is_code")]

    def function_exists_at(self, address: int) -> bool:
        self.calls.append(("function_exists_at", address))
        self._check("function_exists_at", address)
        return address in self.functions

    def is_code(self, address: int) -> bool:
        self.calls.append(("is_code", address))
        return address in self.code

    def convert_to_code(self, address: int) -> bool:
        self.calls.append(("convert_to_code", address))
        if not self._check("convert_to_code", address):
            return False
        self.code.add(address)
        return True

    def create_function_at(self, address: int) -> bool:
        self.calls.append(("create_function_at", address))
        if not self._check("create_function_at", address):
            return False
        self.functions.add(address)
        return True

    def bind_name(self, address: int, name: str, flags: NameFlags = NameFlags.NONE) -> bool:
        self.calls.append(("bind_name", address, name, flags))
        if not self._check("bind_name", address):
            return False
        self.names[address] = name
        return True

    def apply_declared_signature(self, address: int, signature: str) -> bool:
        self.calls.append(("apply_declared_signature", address, signature))
        if not self._check("apply_declared_signature", address):
            return False
        self.signatures[address] = signature
        return True

    def set_comment(self, address: int, text: str, repeatable: bool) -> bool:
        self.calls.append(("set_comment", address, text, repeatable))
        if not self._check("set_comment", address):
            return False
        self.comments[(address, repeatable)] = text
        return True

    def merge_declarations(self, text: str) -> int:
        self.calls.append(("merge_declarations", text))
        self._check("merge_declarations")
        self.declarations.append(text)
        return self.declaration_errors

    def image_base(self) -> int:
        return self.base


@pytest.fixture
def host():
    """Recording host with image base 0."""
    return RecordingHost()


@pytest.fixture
def sample_dump() -> dict:
    """A small dump touching every category."""
    return {
        "Addresses": [0x1000, 0x2000],
        "ScriptMethod": [
            {
                "Address": 0x1000,
                "Name": "Player$$Update",
                "Signature": "void Player__Update (Player_o* __this, const MethodInfo* method);",
                "TypeSignature": "vii",
            }
        ],
        "ScriptString": [
            {"Address": 0x8000, "Value": "Hello"},
            {"Address": 0x8010, "Value": "World"},
        ],
        "ScriptMetadata": [
            {"Address": 0x9000, "Name": "Player_TypeInfo", "Signature": "Player_c*"},
            {"Address": 0x9008, "Name": "StringLiteral_1"},
        ],
        "ScriptMetadataMethod": [
            {"Address": 0x9100, "Name": "Method$Player.Update()", "MethodAddress": 0x1000},
        ],
    }


@pytest.fixture
def dump_file(tmp_path, sample_dump):
    """The sample dump written to disk."""
    path = tmp_path / "script.json"
    path.write_text(json.dumps(sample_dump))
    return path
