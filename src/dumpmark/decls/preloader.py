"""Merging of an auxiliary declaration file before annotation."""

from pathlib import Path

from dumpmark.host.base import HostDatabase
from dumpmark.utils.logging import get_logger

log = get_logger("dumpmark.decls")


def read_declarations(path: str | Path) -> str | None:
    """Read a declaration file, None if it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.warning("Cannot read declarations", path=str(path), error=str(e))
        return None


def preload_declarations(host: HostDatabase, source: str | Path) -> int | None:
    """Merge declarations into the host's type library.

    Args:
        host: Database whose type library receives the declarations
        source: Declaration text, or a path to a header file

    Returns:
        The host's error count, or None if the declarations were not merged.
        Failures are logged and never raised.
    """
    if isinstance(source, Path):
        log.info("Parsing declaration file", path=str(source))
        text = read_declarations(source)
        if text is None:
            return None
    else:
        text = source

    try:
        errors = host.merge_declarations(text)
    except Exception as e:
        log.warning("Cannot parse declarations", error=f"{type(e).__name__}: {e}")
        return None

    if errors:
        log.warning("Cannot parse declarations", errors=errors)
    else:
        log.info("Declarations merged")
    return errors
