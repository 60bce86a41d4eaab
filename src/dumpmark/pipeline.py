"""End-to-end run: declarations, dump decoding, annotation."""

import threading
from dataclasses import dataclass
from pathlib import Path

from dumpmark.errors import DumpFormatError
from dumpmark.dump.parser import AnnotationDocument, load_document, parse_document
from dumpmark.engine.names import DEFAULT_STRING_PREFIX
from dumpmark.engine.report import Report, format_address
from dumpmark.engine.annotator import AnnotationEngine
from dumpmark.host.base import HostDatabase
from dumpmark.decls.preloader import preload_declarations
from dumpmark.utils.logging import get_logger

log = get_logger("dumpmark.pipeline")


@dataclass
class RunResult:
    """Outcome of one pipeline run."""

    ran: bool
    report: Report | None = None
    image_base: int | None = None
    declaration_errors: int | None = None
    error: str | None = None


def _decode(dump: AnnotationDocument | bytes | str | Path) -> AnnotationDocument:
    if isinstance(dump, AnnotationDocument):
        return dump
    if isinstance(dump, bytes):
        return parse_document(dump)
    log.info("Parsing JSON file", path=str(dump))
    return load_document(dump)


def run(
    host: HostDatabase,
    dump: AnnotationDocument | bytes | str | Path,
    *,
    declarations: str | Path | None = None,
    image_base: int | None = None,
    string_prefix: str = DEFAULT_STRING_PREFIX,
    cancel_event: threading.Event | None = None,
) -> RunResult:
    """Preload declarations, decode the dump and apply it to the host.

    Args:
        host: Database to annotate
        dump: Decoded document, raw JSON bytes, or a path to the dump file
        declarations: Optional header text or path, merged before annotating
        image_base: Overrides the host's image base
        string_prefix: Prefix for synthesized string literal names
        cancel_event: Stops the run between records once set

    Returns:
        RunResult whose ran flag is False only when the dump could not be decoded
    """
    result = RunResult(ran=False)

    if declarations is not None:
        result.declaration_errors = preload_declarations(host, declarations)

    try:
        document = _decode(dump)
    except DumpFormatError as e:
        log.error("Cannot load dump", error=str(e))
        result.error = str(e)
        return result

    base = image_base if image_base is not None else host.image_base()
    result.image_base = base
    log.info("Using image base", image_base=format_address(base))

    engine = AnnotationEngine(host, string_prefix=string_prefix, cancel_event=cancel_event)
    result.report = engine.apply(document, base)
    result.ran = True
    return result
