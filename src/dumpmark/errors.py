"""Exception hierarchy."""


class DumpmarkError(Exception):
    """Base class for all dumpmark errors."""


class DumpFormatError(DumpmarkError):
    """The dump is unreadable, not JSON, or not a JSON object."""


class DeclarationError(DumpmarkError):
    """A C declaration could not be parsed or resolved."""


class ConfigError(DumpmarkError):
    """Configuration file could not be loaded."""
