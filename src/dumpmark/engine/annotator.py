"""Replays dump records onto a host database."""

import threading
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from dumpmark.dump.parser import AnnotationDocument
from dumpmark.dump.records import (
    Category,
    MethodRecord,
    StringRecord,
    MetadataRecord,
    MetadataMethodRecord,
    raw_offset,
    decode_record,
)
from dumpmark.engine.names import DEFAULT_STRING_PREFIX, StringNamer
from dumpmark.engine.report import (
    Report,
    StepOutcome,
    format_address,
    format_diagnostic,
)
from dumpmark.engine.resolver import ADDRESS_MASK, resolve
from dumpmark.host.base import NameFlags, HostDatabase
from dumpmark.utils.logging import get_logger

log = get_logger("dumpmark.engine")

METHOD_NAME_FLAGS = NameFlags.NOWARN | NameFlags.NOCHECK
DATA_NAME_FLAGS = NameFlags.NOWARN


def _validation_detail(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "value"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class AnnotationEngine:
    """Applies each record category of a dump to a host database.

    Categories run in a fixed order and records in document order. A failing
    record never stops the batch: the failure is reported once and the next
    record is processed. Nothing is rolled back.
    """

    def __init__(
        self,
        host: HostDatabase,
        *,
        string_prefix: str = DEFAULT_STRING_PREFIX,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.host = host
        self.string_prefix = string_prefix
        self.cancel_event = cancel_event

        self._handlers: dict[Category, Callable[[Any, int], bool]] = {
            Category.ADDRESSES: self._apply_address,
            Category.SCRIPT_METHOD: self._apply_method,
            Category.SCRIPT_STRING: self._apply_string,
            Category.SCRIPT_METADATA: self._apply_metadata,
            Category.SCRIPT_METADATA_METHOD: self._apply_metadata_method,
        }
        self._report = Report()
        self._namer = StringNamer(string_prefix)

    def apply(self, document: AnnotationDocument, base: int) -> Report:
        """Apply every present category of the document at the given image base.

        Raises:
            ValueError: if base is not an unsigned 64-bit value
        """
        if not 0 <= base <= ADDRESS_MASK:
            raise ValueError(f"Image base {base:#x} is not an unsigned 64-bit value")

        self._report = Report()
        self._namer = StringNamer(self.string_prefix)

        log.info("Applying dump", image_base=format_address(base))

        for category in Category:
            records = document.records(category)
            if records is None:
                reason = document.problem(category) or f"Document does not contain {category}"
                self._emit(reason, level="info")
                continue

            if not self._apply_category(category, records, base):
                break

        log.info(
            "Dump applied",
            seen=self._report.seen,
            applied=self._report.applied,
            skipped=self._report.skipped,
            cancelled=self._report.cancelled,
        )
        return self._report

    def _apply_category(self, category: Category, records: list[Any], base: int) -> bool:
        """Run one category. Returns False if the run was cancelled."""
        tally = self._report.tally(category)
        tally.present = True
        self._emit(f"Found {len(records)} {category.label}", level="info")

        handler = self._handlers[category]
        for index, raw in enumerate(records):
            if self.cancel_event is not None and self.cancel_event.is_set():
                self._report.cancelled = True
                self._emit(format_diagnostic(category, f"Cancelled before record #{index}"))
                return False

            tally.seen += 1
            try:
                record = decode_record(category, raw)
            except ValidationError as e:
                offset = raw_offset(raw)
                address = resolve(offset, base) if offset is not None else None
                self._skip(
                    category,
                    "decode",
                    address,
                    f"Malformed record #{index}",
                    _validation_detail(e),
                )
                tally.skipped += 1
                continue

            try:
                applied = handler(record, base)
            except Exception as e:
                # Host queries (function/code lookups) raising end the record
                offset = record if isinstance(record, int) else record.offset
                self._skip(
                    category,
                    "query",
                    resolve(offset, base),
                    f"Record #{index} failed",
                    f"{type(e).__name__}: {e}",
                )
                applied = False

            if applied:
                tally.applied += 1
            else:
                tally.skipped += 1

        return True

    # Per-category policies

    def _apply_address(self, offset: int, base: int) -> bool:
        category = Category.ADDRESSES
        address = resolve(offset, base)

        if self.host.function_exists_at(address):
            self._report.record(
                StepOutcome.skipped(category, "create_function", address, "function exists")
            )
            self._emit(format_diagnostic(category, "Function already exists", address), "info")
            return False

        if not self.host.is_code(address):
            if not self._step(
                category,
                "convert_to_code",
                address,
                lambda: self.host.convert_to_code(address),
                "Cannot convert data to code",
            ):
                return False

        return self._step(
            category,
            "create_function",
            address,
            lambda: self.host.create_function_at(address),
            "Failed to add function",
        )

    def _apply_method(self, record: MethodRecord, base: int) -> bool:
        category = Category.SCRIPT_METHOD
        address = resolve(record.offset, base)

        if not self._step(
            category,
            "bind_name",
            address,
            lambda: self.host.bind_name(address, record.name, METHOD_NAME_FLAGS),
            "Failed to set method name",
            record.name,
        ):
            return False

        self._step(
            category,
            "apply_signature",
            address,
            lambda: self.host.apply_declared_signature(address, record.signature),
            "Cannot apply signature",
            record.signature,
            soft=True,
        )
        self._step(
            category,
            "set_comment",
            address,
            lambda: self.host.set_comment(address, record.type_signature, True),
            "Cannot add comment",
            record.type_signature,
            soft=True,
        )
        return True

    def _apply_string(self, record: StringRecord, base: int) -> bool:
        category = Category.SCRIPT_STRING
        address = resolve(record.offset, base)
        name = self._namer.next()

        if not self._step(
            category,
            "bind_name",
            address,
            lambda: self.host.bind_name(address, name, DATA_NAME_FLAGS),
            "Cannot set string name",
            name,
        ):
            return False

        self._step(
            category,
            "set_comment",
            address,
            lambda: self.host.set_comment(address, record.value, True),
            "Cannot set string value comment",
            record.value,
            soft=True,
        )
        return True

    def _apply_metadata(self, record: MetadataRecord, base: int) -> bool:
        category = Category.SCRIPT_METADATA
        address = resolve(record.offset, base)

        if not self._step(
            category,
            "bind_name",
            address,
            lambda: self.host.bind_name(address, record.name, DATA_NAME_FLAGS),
            "Cannot set metadata name",
            record.name,
        ):
            return False

        signature = record.signature
        if signature is not None:
            self._step(
                category,
                "apply_signature",
                address,
                lambda: self.host.apply_declared_signature(address, signature),
                "Cannot apply metadata signature",
                signature,
                soft=True,
            )
        return True

    def _apply_metadata_method(self, record: MetadataMethodRecord, base: int) -> bool:
        category = Category.SCRIPT_METADATA_METHOD
        address = resolve(record.offset, base)
        method_address = resolve(record.method_offset, base)
        name = f"MethodRef_{method_address:x}"
        comment = format(method_address, "x")

        if not self._step(
            category,
            "bind_name",
            address,
            lambda: self.host.bind_name(address, name, METHOD_NAME_FLAGS),
            "Cannot set metadata method name",
            name,
        ):
            return False

        self._step(
            category,
            "set_comment",
            address,
            lambda: self.host.set_comment(address, comment, True),
            "Cannot set metadata method comment",
            comment,
            soft=True,
        )
        return True

    # Outcome plumbing

    def _step(
        self,
        category: Category,
        step: str,
        address: int,
        action: Callable[[], bool],
        message: str,
        detail: str | None = None,
        soft: bool = False,
    ) -> bool:
        """Run one host mutation and record its outcome."""
        try:
            ok = bool(action())
            error = None
        except Exception as e:
            ok = False
            error = f"{type(e).__name__}: {e}"

        if ok:
            self._report.record(StepOutcome.applied(category, step, address))
            return True

        if error is not None:
            detail = f"{detail} ({error})" if detail is not None else error
        line = format_diagnostic(category, message, address, detail)
        self._report.record(StepOutcome.failed(category, step, address, line))
        if soft:
            self._report.tally(category).failed_steps += 1
        self._emit(line)
        return False

    def _skip(
        self,
        category: Category,
        step: str,
        address: int | None,
        message: str,
        detail: str | None = None,
    ) -> None:
        line = format_diagnostic(category, message, address, detail)
        self._report.record(StepOutcome.skipped(category, step, address, line))
        self._emit(line)

    def _emit(self, line: str, level: str = "warning") -> None:
        self._report.note(line)
        getattr(log, level)(line)


def apply_document(
    document: AnnotationDocument, base: int, host: HostDatabase, **kwargs: Any
) -> Report:
    """Apply a document with a fresh engine."""
    return AnnotationEngine(host, **kwargs).apply(document, base)

