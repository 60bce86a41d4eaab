"""Default configuration values and paths."""

from pathlib import Path

CONFIG_FILE_NAMES = [
    "dumpmark.yaml",
    "dumpmark.yml",
    ".dumpmark.yaml",
    ".dumpmark.yml",
]

CONFIG_SEARCH_PATHS = [
    Path.cwd(),
    Path.home() / ".config" / "dumpmark",
    Path.home(),
]

ENV_CONFIG_PATH = "DUMPMARK_CONFIG"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ARCH = "arm64"
