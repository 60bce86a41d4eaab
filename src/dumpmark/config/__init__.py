"""Configuration."""

from dumpmark.config.loader import load_config, find_config_file
from dumpmark.config.models import (
    LoggingConfig,
    ProjectConfig,
    AnnotateConfig,
    DumpmarkConfig,
)

__all__ = [
    "AnnotateConfig",
    "DumpmarkConfig",
    "LoggingConfig",
    "ProjectConfig",
    "find_config_file",
    "load_config",
]
