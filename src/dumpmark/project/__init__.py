"""Project persistence."""

from dumpmark.project.database import Region, ItemRecord, FunctionRecord, ProjectDatabase
from dumpmark.project.annotations import Annotation, AnnotationType

__all__ = [
    "ProjectDatabase",
    "Region",
    "ItemRecord",
    "FunctionRecord",
    "Annotation",
    "AnnotationType",
]
