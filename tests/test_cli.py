"""Tests for the command-line interface."""

import json
import logging

import pytest
import structlog
from click.testing import CliRunner

from dumpmark.cli import main
from dumpmark.project import ProjectDatabase

# mov x0, #0 ; ret
ARM64_CODE = bytes.fromhex("000080d2c0035fd6")


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Keep config lookup and logging handlers local to each test."""
    monkeypatch.delenv("DUMPMARK_CONFIG", raising=False)
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(runner, tmp_path):
    """Project with eight bytes of ARM64 code at 0x1000."""
    image = tmp_path / "image.bin"
    image.write_bytes(ARM64_CODE)
    path = tmp_path / "game.db"

    result = runner.invoke(
        main, ["init", str(path), "--image", str(image), "--load-address", "0x1000"]
    )

    assert result.exit_code == 0, result.output
    return path


class TestInit:
    """Tests for the init command."""

    def test_creates_project(self, project):
        with ProjectDatabase(project) as db:
            info = db.get_binary_info()
            region = db.region_at(0x1000)

        assert info["arch"] == "arm64"
        assert info["image_base"] == 0
        assert region.executable
        assert region.size == 8

    def test_image_base_and_arch(self, runner, tmp_path):
        path = tmp_path / "x.db"

        result = runner.invoke(
            main, ["init", str(path), "--image-base", "0x140000000", "--arch", "x86_64"]
        )

        assert result.exit_code == 0
        with ProjectDatabase(path) as db:
            info = db.get_binary_info()
        assert info["image_base"] == 0x140000000
        assert info["arch"] == "x86_64"

    def test_refuses_overwrite(self, runner, project):
        result = runner.invoke(main, ["init", str(project)])

        assert result.exit_code == 1
        assert "--force" in result.output

    def test_force(self, runner, project):
        result = runner.invoke(main, ["init", str(project), "--force"])

        assert result.exit_code == 0
        with ProjectDatabase(project) as db:
            assert db.get_regions() == []

    def test_bad_address(self, runner, tmp_path):
        result = runner.invoke(main, ["init", str(tmp_path / "x.db"), "--image-base", "zz"])

        assert result.exit_code == 2
        assert "not an address" in result.output


class TestApply:
    """Tests for the apply command."""

    def test_apply(self, runner, project, dump_file):
        result = runner.invoke(main, ["apply", str(project), str(dump_file)])

        assert result.exit_code == 0, result.output
        assert "ScriptMetadataMethod" in result.output
        with ProjectDatabase(project) as db:
            assert db.get_function(0x1000) is not None
            assert db.get_function(0x2000) is None
            assert db.get_name(0x1000) == "Player$$Update"
            assert db.get_name(0x8000) == "String_0"
            assert db.get_comment(0x9100, repeatable=True) == "1000"

    def test_diagnostics(self, runner, project, dump_file):
        result = runner.invoke(main, ["apply", str(project), str(dump_file), "-d"])

        assert "Found 2 addresses" in result.output
        assert "Addresses: Cannot convert data to code at 0x0000000000002000" in result.output

    def test_declarations_and_prefix(self, runner, project, dump_file, tmp_path):
        header = tmp_path / "il2cpp.h"
        header.write_text("struct Player_o;\nstruct MethodInfo;\n")

        result = runner.invoke(
            main,
            ["apply", str(project), str(dump_file), "--decls", str(header), "--prefix", "Lit_"],
        )

        assert result.exit_code == 0, result.output
        with ProjectDatabase(project) as db:
            assert db.get_signature(0x1000) is not None
            assert db.get_name(0x8010) == "Lit_1"

    def test_image_base_override(self, runner, project, dump_file):
        result = runner.invoke(
            main, ["apply", str(project), str(dump_file), "--image-base", "0x100"]
        )

        assert result.exit_code == 0
        with ProjectDatabase(project) as db:
            assert db.get_name(0x8100) == "String_0"

    def test_invalid_dump(self, runner, project, tmp_path):
        dump = tmp_path / "bad.json"
        dump.write_text(json.dumps([1, 2]))

        result = runner.invoke(main, ["apply", str(project), str(dump)])

        assert result.exit_code == 1
        assert "not an object" in result.output


class TestOtherCommands:
    """Tests for decls, info and show."""

    def test_decls(self, runner, project, tmp_path):
        header = tmp_path / "il2cpp.h"
        header.write_text("struct A { int x; };\ntypedef A B;\nMissing c;\n")

        result = runner.invoke(main, ["decls", str(project), str(header)])

        assert result.exit_code == 0
        assert "2 type(s) added, 1 error(s)" in result.output

    def test_info(self, runner, project):
        result = runner.invoke(main, ["info", str(project)])

        assert result.exit_code == 0
        assert "arm64" in result.output
        assert "0x1000" in result.output

    def test_show(self, runner, project, dump_file):
        runner.invoke(main, ["apply", str(project), str(dump_file)])

        by_name = runner.invoke(main, ["show", str(project), "Player$$Update"])
        by_address = runner.invoke(main, ["show", str(project), "0x1000"])

        assert by_name.exit_code == 0
        assert "vii" in by_name.output
        assert "mov" in by_address.output

    def test_show_unknown_name(self, runner, project):
        result = runner.invoke(main, ["show", str(project), "nope"])

        assert result.exit_code == 1
        assert "Name not found" in result.output

    def test_bad_config(self, runner, project, tmp_path):
        config = tmp_path / "dumpmark.yaml"
        config.write_text("project:\n  arch: mips\n")

        result = runner.invoke(main, ["-C", str(config), "info", str(project)])

        assert result.exit_code == 1
        assert "Invalid config" in result.output
