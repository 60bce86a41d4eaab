"""Tests for the project database and its host adapter."""

import json
import sqlite3

import pytest

from dumpmark.arch.decoder import Arch, CodeDecoder
from dumpmark.dump.parser import parse_document
from dumpmark.dump.records import Category
from dumpmark.engine.annotator import apply_document
from dumpmark.host.base import HostDatabase, NameFlags
from dumpmark.host.project import ProjectHost, is_valid_name, sanitize_name
from dumpmark.project.database import ProjectDatabase
from dumpmark.project.annotations import Annotation, AnnotationType

# mov x0, #0 ; ret
ARM64_CODE = bytes.fromhex("000080d2c0035fd6")


class TestProjectDatabase:
    """Tests for ProjectDatabase."""

    @pytest.fixture
    def db(self):
        """Create in-memory database."""
        return ProjectDatabase()

    def test_binary_info(self, db):
        """Test storing and retrieving binary info."""
        db.set_binary_info(path="/path/to/libil2cpp.so", arch="arm64", image_base=0x7100000000)

        info = db.get_binary_info()

        assert info is not None
        assert info["path"] == "/path/to/libil2cpp.so"
        assert info["arch"] == "arm64"
        assert info["image_base"] == 0x7100000000

    def test_high_addresses_round_trip(self, db):
        """Test that addresses above the signed range survive storage."""
        address = 0xFFFFFFF007004000

        db.add_function(address)
        db.set_name(address, "kernel_entry")
        db.set_binary_info("/k", "arm64", address)

        assert db.get_function(address).address == address
        assert db.address_of("kernel_entry") == address
        assert db.get_binary_info()["image_base"] == address

    def test_functions_sorted(self, db):
        db.add_function(0x2000)
        db.add_function(0x1000, size=8)

        assert [f.address for f in db.get_all_functions()] == [0x1000, 0x2000]
        assert db.get_function(0x1000).size == 8
        assert db.get_function(0x3000) is None

    def test_name_rebinding(self, db):
        """Test that an address takes a new name and frees the old one."""
        db.set_name(0x1000, "old")
        db.set_name(0x1000, "new")

        assert db.get_name(0x1000) == "new"
        assert db.address_of("old") is None

    def test_name_collision(self, db):
        """Test that a name cannot be bound to two addresses."""
        db.set_name(0x1000, "dup")

        with pytest.raises(sqlite3.IntegrityError):
            db.set_name(0x2000, "dup")
        assert db.address_of("dup") == 0x1000

    def test_comments(self, db):
        """Test that regular and repeatable comments are kept apart."""
        db.set_comment(0x1000, "plain")
        db.set_comment(0x1000, "shared", repeatable=True)

        assert db.get_comment(0x1000) == "plain"
        assert db.get_comment(0x1000, repeatable=True) == "shared"

    def test_empty_comment_removes(self, db):
        db.set_comment(0x1000, "plain")
        db.set_comment(0x1000, "")

        assert db.get_comment(0x1000) is None

    def test_regions(self, db):
        db.add_region(0x2000, b"\x00" * 16, executable=False)
        db.add_region(0x1000, ARM64_CODE)

        assert [r.address for r in db.get_regions()] == [0x1000, 0x2000]
        assert db.region_at(0x1004).read(0x1004, 4) == ARM64_CODE[4:]
        assert db.region_at(0x1008) is None
        assert not db.region_at(0x2000).executable

    def test_region_read_outside(self, db):
        db.add_region(0x1000, ARM64_CODE)

        with pytest.raises(ValueError):
            db.region_at(0x1000).read(0x3000, 4)

    def test_types(self, db):
        db.add_type("Foo", "struct", "struct Foo;")

        assert db.get_type("Foo") == {"name": "Foo", "kind": "struct", "declaration": "struct Foo;"}
        assert db.type_names() == {"Foo"}

    def test_annotations(self, db):
        """Test collecting everything stored at an address."""
        db.add_function(0x1000)
        db.set_name(0x1000, "main")
        db.set_comment(0x1000, "entry", repeatable=True)
        db.set_signature(0x1000, "int main ( );")

        annotations = db.get_annotations(0x1000)

        assert [a.annotation_type for a in annotations] == [
            AnnotationType.FUNCTION,
            AnnotationType.NAME,
            AnnotationType.REPEATABLE_COMMENT,
            AnnotationType.SIGNATURE,
        ]
        assert repr(annotations[1]) == "Annotation(0x1000, name, 'main')"

    def test_annotation_frozen(self):
        annotation = Annotation(0x10, AnnotationType.NAME, "x")

        with pytest.raises(AttributeError):
            annotation.value = "y"

    def test_batch_defers_commit(self, tmp_path):
        """Test that batched writes reach disk when the batch exits."""
        path = tmp_path / "project.db"
        db = ProjectDatabase(path)

        with db.batch():
            db.add_function(0x1000)
            db.add_function(0x2000)

        db.close()
        with ProjectDatabase(path) as reopened:
            assert len(reopened.get_all_functions()) == 2

    def test_counts(self, db):
        db.add_function(0x1000)
        db.set_name(0x1000, "a")

        counts = db.counts()

        assert counts["functions"] == 1
        assert counts["names"] == 1
        assert counts["types"] == 0


class TestCodeDecoder:
    """Tests for single-instruction decoding."""

    def test_decode_arm64(self):
        decoder = CodeDecoder(Arch.ARM64)

        insn = decoder.decode_one(ARM64_CODE[4:], 0x1004)

        assert insn.mnemonic == "ret"
        assert insn.size == 4
        assert str(insn) == "ret"

    def test_truncated(self):
        """Test that too few bytes decode to nothing."""
        assert CodeDecoder("arm64").decode_one(b"\xc0\x03", 0) is None

    def test_x86_64_max_size(self):
        assert CodeDecoder("x86_64").max_size == 15


class TestProjectHost:
    """Tests for ProjectHost."""

    @pytest.fixture
    def db(self):
        db = ProjectDatabase()
        db.set_binary_info("libil2cpp.so", "arm64", 0x0)
        db.add_region(0x1000, ARM64_CODE)
        db.add_region(0x2000, b"\x00" * 16, executable=False)
        db.add_region(0x3000, b"\xc0\x03")
        return db

    @pytest.fixture
    def project_host(self, db):
        return ProjectHost(db)

    def test_is_host_database(self, project_host):
        assert isinstance(project_host, HostDatabase)

    def test_convert_and_create(self, project_host, db):
        """Test converting bytes to code and then adding a function."""
        assert not project_host.create_function_at(0x1000)
        assert project_host.convert_to_code(0x1000)
        assert project_host.is_code(0x1000)
        assert db.get_item(0x1000).mnemonic == "mov"

        assert project_host.create_function_at(0x1000)
        assert project_host.function_exists_at(0x1000)
        assert not project_host.create_function_at(0x1000)

    @pytest.mark.parametrize("address", [0x2000, 0x3000, 0x9000])
    def test_convert_rejected(self, project_host, address):
        """Test data regions, truncated code and unmapped addresses."""
        assert not project_host.convert_to_code(address)

    def test_bind_name(self, project_host, db):
        assert project_host.bind_name(0x1000, "Player$$Update")
        assert db.get_name(0x1000) == "Player$$Update"

    def test_bind_invalid_name(self, project_host, db):
        """Test that invalid names need NOCHECK and are then sanitized."""
        assert not project_host.bind_name(0x1000, "Method$Player.Update()")
        assert project_host.bind_name(0x1000, "Method$Player.Update()", NameFlags.NOCHECK)
        assert db.get_name(0x1000) == "Method$Player.Update__"

    def test_bind_collision(self, project_host):
        """Test that a name held by another address is refused."""
        assert project_host.bind_name(0x1000, "String_0")
        assert not project_host.bind_name(0x1004, "String_0", NameFlags.NOWARN)
        assert project_host.bind_name(0x1000, "String_0")

    def test_signature_needs_known_types(self, project_host, db):
        assert not project_host.apply_declared_signature(0x1000, "Player_c*")
        assert project_host.merge_declarations("struct Player_c;") == 0
        assert project_host.apply_declared_signature(0x1000, "Player_c*")
        assert db.get_signature(0x1000) == "Player_c *;"

    def test_merge_declarations(self, project_host, db):
        errors = project_host.merge_declarations(
            "typedef struct Foo { int x; } Foo;\nBogus y;\n"
        )

        assert errors == 1
        assert db.get_type("Foo")["kind"] == "typedef"

    def test_comment(self, project_host, db):
        assert project_host.set_comment(0x1000, "System.Void", True)
        assert db.get_comment(0x1000, repeatable=True) == "System.Void"

    def test_image_base(self, db):
        db.set_binary_info("libil2cpp.so", "arm64", 0x7100000000)

        assert ProjectHost(db).image_base() == 0x7100000000

    def test_apply_document(self, project_host, db):
        """Test a full run and a repeat run against a project."""
        project_host.merge_declarations("struct Player_o;")
        doc = parse_document(
            json.dumps(
                {
                    "Addresses": [0x1000],
                    "ScriptMethod": [
                        {
                            "Address": 0x1000,
                            "Name": "Player$$Update",
                            "Signature": "void Player__Update (Player_o* __this);",
                            "TypeSignature": "vi",
                        }
                    ],
                    "ScriptString": [{"Address": 0x2000, "Value": "Hello"}],
                }
            )
        )

        report = apply_document(doc, 0, project_host)

        assert report.skipped == 0
        assert db.get_function(0x1000) is not None
        assert db.get_name(0x1000) == "Player$$Update"
        assert db.get_comment(0x1000, repeatable=True) == "vi"
        assert db.get_name(0x2000) == "String_0"

        again = apply_document(doc, 0, project_host)

        assert again.tally(Category.ADDRESSES).skipped == 1
        assert again.tally(Category.SCRIPT_METHOD).applied == 1


class TestNames:
    """Tests for name validation."""

    @pytest.mark.parametrize("name", ["main", "_start", "Foo$$Bar", "a.b", "?x@@"])
    def test_valid(self, name):
        assert is_valid_name(name)

    @pytest.mark.parametrize("name", ["", "1abc", "a b", "f()", "naïve"])
    def test_invalid(self, name):
        assert not is_valid_name(name)

    def test_sanitize(self):
        assert sanitize_name("f(int)") == "f_int_"
        assert sanitize_name("1up") == "_1up"
