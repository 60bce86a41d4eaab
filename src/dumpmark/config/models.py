"""Pydantic configuration models."""

from pathlib import Path

from pydantic import Field, BaseModel, field_validator

from dumpmark.arch.decoder import Arch
from dumpmark.config.defaults import DEFAULT_ARCH, DEFAULT_LOG_LEVEL
from dumpmark.engine.names import DEFAULT_STRING_PREFIX
from dumpmark.engine.resolver import ADDRESS_MASK


def _parse_address(value: object) -> object:
    # YAML reads 0x140000000 as an int already; strings may carry a prefix
    if isinstance(value, str):
        return int(value, 0)
    return value


class LoggingConfig(BaseModel):
    level: str = DEFAULT_LOG_LEVEL
    json_output: bool = False


class AnnotateConfig(BaseModel):
    image_base: int | None = Field(default=None, ge=0, le=ADDRESS_MASK)
    string_prefix: str = DEFAULT_STRING_PREFIX
    declarations: Path | None = None

    @field_validator("image_base", mode="before")
    @classmethod
    def _image_base(cls, value: object) -> object:
        return _parse_address(value)


class ProjectConfig(BaseModel):
    arch: Arch = Arch(DEFAULT_ARCH)


class DumpmarkConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    annotate: AnnotateConfig = Field(default_factory=AnnotateConfig)
    project: ProjectConfig = Field(default_factory=ProjectConfig)
