"""Host databases the engine can annotate."""

from dumpmark.host.base import NameFlags, HostDatabase
from dumpmark.host.project import ProjectHost

__all__ = [
    "HostDatabase",
    "NameFlags",
    "ProjectHost",
]
