"""SQLite-based project database for persistence."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import field, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from dumpmark.project.annotations import Annotation, AnnotationType

_SIGN_BIT = 1 << 63
_WRAP = 1 << 64


def _to_db(address: int) -> int:
    """Store unsigned 64-bit addresses in SQLite's signed INTEGER."""
    return address - _WRAP if address >= _SIGN_BIT else address


def _from_db(value: int) -> int:
    return value + _WRAP if value < 0 else value


@dataclass
class Region:
    """A span of loaded image bytes."""

    address: int
    data: bytes = field(repr=False)
    executable: bool = True

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_address(self) -> int:
        return self.address + self.size

    def contains_address(self, addr: int) -> bool:
        return self.address <= addr < self.end_address

    def read(self, addr: int, size: int) -> bytes:
        """Read up to size bytes starting at a virtual address."""
        if not self.contains_address(addr):
            raise ValueError(f"Address {addr:#x} not in region at {self.address:#x}")
        offset = addr - self.address
        return self.data[offset : offset + size]


@dataclass
class FunctionRecord:
    """Stored function start."""

    address: int
    size: int


@dataclass
class ItemRecord:
    """Stored instruction head."""

    address: int
    size: int
    mnemonic: str
    operands: str


class ProjectDatabase:
    """SQLite database for project persistence."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str | None = None) -> None:
        """Initialize database, in-memory if no path given."""
        if db_path:
            self._path: Path | None = Path(db_path)
            self._conn = sqlite3.connect(str(self._path))
        else:
            self._path = None
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._batch_depth = 0
        self._regions: list[Region] | None = None
        self._init_schema()

    @property
    def path(self) -> Path | None:
        return self._path

    def _init_schema(self) -> None:
        """Create database schema."""
        cursor = self._conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS binary_info (
                id INTEGER PRIMARY KEY,
                path TEXT,
                arch TEXT,
                image_base INTEGER,
                loaded_at TEXT
            )
        """)

        # Loaded image bytes
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS regions (
                address INTEGER PRIMARY KEY,
                data BLOB,
                executable INTEGER
            )
        """)

        # Decoded instruction heads
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS items (
                address INTEGER PRIMARY KEY,
                size INTEGER,
                mnemonic TEXT,
                operands TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS functions (
                address INTEGER PRIMARY KEY,
                size INTEGER
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS names (
                address INTEGER PRIMARY KEY,
                name TEXT NOT NULL UNIQUE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS comments (
                address INTEGER,
                repeatable INTEGER,
                text TEXT,
                PRIMARY KEY (address, repeatable)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS signatures (
                address INTEGER PRIMARY KEY,
                declaration TEXT
            )
        """)

        # Type library
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS types (
                name TEXT PRIMARY KEY,
                kind TEXT,
                declaration TEXT
            )
        """)

        cursor.execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
            ("schema_version", str(self.SCHEMA_VERSION)),
        )

        self._conn.commit()

    def _commit(self) -> None:
        if self._batch_depth == 0:
            self._conn.commit()

    @contextmanager
    def batch(self) -> Iterator["ProjectDatabase"]:
        """Defer commits until the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self._conn.close()

    def __enter__(self) -> "ProjectDatabase":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Binary info methods

    def set_binary_info(self, path: str, arch: str, image_base: int) -> None:
        """Store binary metadata."""
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT OR REPLACE INTO binary_info (id, path, arch, image_base, loaded_at)
            VALUES (1, ?, ?, ?, ?)
            """,
            (path, arch, _to_db(image_base), datetime.now().isoformat()),
        )
        self._commit()

    def get_binary_info(self) -> dict[str, Any] | None:
        """Get stored binary metadata."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT * FROM binary_info WHERE id = 1")
        row = cursor.fetchone()
        if row:
            info = dict(row)
            info["image_base"] = _from_db(info["image_base"])
            return info
        return None

    # Region methods

    def add_region(self, address: int, data: bytes, executable: bool = True) -> None:
        """Add or replace a span of image bytes."""
        cursor = self._conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO regions (address, data, executable) VALUES (?, ?, ?)",
            (_to_db(address), data, int(executable)),
        )
        self._regions = None
        self._commit()

    def get_regions(self) -> list[Region]:
        """Get all regions, ordered by address."""
        if self._regions is None:
            cursor = self._conn.cursor()
            cursor.execute("SELECT address, data, executable FROM regions")
            self._regions = sorted(
                (
                    Region(
                        address=_from_db(row["address"]),
                        data=bytes(row["data"]),
                        executable=bool(row["executable"]),
                    )
                    for row in cursor.fetchall()
                ),
                key=lambda r: r.address,
            )
        return self._regions

    def region_at(self, address: int) -> Region | None:
        """Find the region containing an address."""
        for region in self.get_regions():
            if region.contains_address(address):
                return region
        return None

    # Item methods

    def add_item(self, address: int, size: int, mnemonic: str, operands: str) -> None:
        """Record a decoded instruction head."""
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT OR REPLACE INTO items (address, size, mnemonic, operands)
            VALUES (?, ?, ?, ?)
            """,
            (_to_db(address), size, mnemonic, operands),
        )
        self._commit()

    def get_item(self, address: int) -> ItemRecord | None:
        """Get instruction head at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT address, size, mnemonic, operands FROM items WHERE address = ?",
            (_to_db(address),),
        )
        row = cursor.fetchone()
        if row:
            return ItemRecord(
                address=_from_db(row["address"]),
                size=row["size"],
                mnemonic=row["mnemonic"],
                operands=row["operands"],
            )
        return None

    # Function methods

    def add_function(self, address: int, size: int = 0) -> None:
        """Add or update a function."""
        cursor = self._conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO functions (address, size) VALUES (?, ?)",
            (_to_db(address), size),
        )
        self._commit()

    def get_function(self, address: int) -> FunctionRecord | None:
        """Get function by address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT address, size FROM functions WHERE address = ?",
            (_to_db(address),),
        )
        row = cursor.fetchone()
        if row:
            return FunctionRecord(address=_from_db(row["address"]), size=row["size"])
        return None

    def get_all_functions(self) -> list[FunctionRecord]:
        """Get all functions."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT address, size FROM functions")
        return sorted(
            (
                FunctionRecord(address=_from_db(row["address"]), size=row["size"])
                for row in cursor.fetchall()
            ),
            key=lambda f: f.address,
        )

    # Name methods

    def set_name(self, address: int, name: str) -> None:
        """Bind a name to an address, replacing the address's previous name.

        Raises:
            sqlite3.IntegrityError: if the name is bound to another address
        """
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT INTO names (address, name) VALUES (?, ?)
            ON CONFLICT(address) DO UPDATE SET name = excluded.name
            """,
            (_to_db(address), name),
        )
        self._commit()

    def get_name(self, address: int) -> str | None:
        """Get name bound at address."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT name FROM names WHERE address = ?", (_to_db(address),))
        row = cursor.fetchone()
        return row["name"] if row else None

    def address_of(self, name: str) -> int | None:
        """Get address a name is bound to."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT address FROM names WHERE name = ?", (name,))
        row = cursor.fetchone()
        return _from_db(row["address"]) if row else None

    # Comment methods

    def set_comment(self, address: int, comment: str, repeatable: bool = False) -> None:
        """Set or remove the comment at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "DELETE FROM comments WHERE address = ? AND repeatable = ?",
            (_to_db(address), int(repeatable)),
        )
        if comment:
            cursor.execute(
                "INSERT INTO comments (address, repeatable, text) VALUES (?, ?, ?)",
                (_to_db(address), int(repeatable), comment),
            )
        self._commit()

    def get_comment(self, address: int, repeatable: bool = False) -> str | None:
        """Get comment at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT text FROM comments WHERE address = ? AND repeatable = ?",
            (_to_db(address), int(repeatable)),
        )
        row = cursor.fetchone()
        return row["text"] if row else None

    # Signature methods

    def set_signature(self, address: int, declaration: str) -> None:
        """Store the declaration applied at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO signatures (address, declaration) VALUES (?, ?)",
            (_to_db(address), declaration),
        )
        self._commit()

    def get_signature(self, address: int) -> str | None:
        """Get declaration applied at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT declaration FROM signatures WHERE address = ?", (_to_db(address),)
        )
        row = cursor.fetchone()
        return row["declaration"] if row else None

    # Type library methods

    def add_type(self, name: str, kind: str, declaration: str) -> None:
        """Add or replace a named type."""
        cursor = self._conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO types (name, kind, declaration) VALUES (?, ?, ?)",
            (name, kind, declaration),
        )
        self._commit()

    def get_type(self, name: str) -> dict[str, str] | None:
        """Get a named type."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT name, kind, declaration FROM types WHERE name = ?", (name,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def type_names(self) -> set[str]:
        """Names of every type in the library."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT name FROM types")
        return {row["name"] for row in cursor.fetchall()}

    # Summary methods

    def get_annotations(self, address: int) -> list[Annotation]:
        """Get everything recorded at an address."""
        annotations = []
        if self.get_function(address):
            annotations.append(Annotation(address, AnnotationType.FUNCTION, ""))
        name = self.get_name(address)
        if name is not None:
            annotations.append(Annotation(address, AnnotationType.NAME, name))
        for repeatable, kind in (
            (False, AnnotationType.COMMENT),
            (True, AnnotationType.REPEATABLE_COMMENT),
        ):
            comment = self.get_comment(address, repeatable)
            if comment is not None:
                annotations.append(Annotation(address, kind, comment))
        signature = self.get_signature(address)
        if signature is not None:
            annotations.append(Annotation(address, AnnotationType.SIGNATURE, signature))
        return annotations

    def counts(self) -> dict[str, int]:
        """Row counts per annotation table."""
        result = {}
        cursor = self._conn.cursor()
        for table in ("regions", "items", "functions", "names", "comments", "signatures", "types"):
            cursor.execute(f"SELECT COUNT(*) FROM {table}")
            result[table] = cursor.fetchone()[0]
        return result
