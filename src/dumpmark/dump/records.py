"""Record models for each dump category."""

from enum import Enum
from typing import Annotated, Any

from pydantic import (
    Field,
    BaseModel,
    ConfigDict,
    StrictInt,
    StrictStr,
    TypeAdapter,
    AliasChoices,
)

U64_MAX = (1 << 64) - 1

# Unsigned 64-bit offset; rejects bools, floats and strings
U64 = Annotated[StrictInt, Field(ge=0, le=U64_MAX)]


class Category(str, Enum):
    """Top-level dump keys, in application order."""

    ADDRESSES = "Addresses"
    SCRIPT_METHOD = "ScriptMethod"
    SCRIPT_STRING = "ScriptString"
    SCRIPT_METADATA = "ScriptMetadata"
    SCRIPT_METADATA_METHOD = "ScriptMetadataMethod"

    @property
    def label(self) -> str:
        """Plural noun used in progress lines."""
        return _LABELS[self]

    def __str__(self) -> str:
        return self.value


_LABELS = {
    Category.ADDRESSES: "addresses",
    Category.SCRIPT_METHOD: "script methods",
    Category.SCRIPT_STRING: "script strings",
    Category.SCRIPT_METADATA: "script metadatas",
    Category.SCRIPT_METADATA_METHOD: "script metadata methods",
}


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    offset: U64 = Field(validation_alias=AliasChoices("Address", "offset"))


class MethodRecord(_Record):
    """Managed method recovered at a native address."""

    name: StrictStr = Field(validation_alias=AliasChoices("Name", "name"))
    signature: StrictStr = Field(validation_alias=AliasChoices("Signature", "signature"))
    type_signature: StrictStr = Field(
        validation_alias=AliasChoices("TypeSignature", "typeSignature", "type_signature")
    )


class StringRecord(_Record):
    """String literal storage address and its decoded value."""

    value: StrictStr = Field(validation_alias=AliasChoices("Value", "value"))


class MetadataRecord(_Record):
    """Metadata table entry; signature is optional."""

    name: StrictStr = Field(validation_alias=AliasChoices("Name", "name"))
    signature: StrictStr | None = Field(
        default=None, validation_alias=AliasChoices("Signature", "signature")
    )


class MetadataMethodRecord(_Record):
    """Metadata slot pointing at the method it describes."""

    method_offset: U64 = Field(
        validation_alias=AliasChoices("MethodAddress", "methodOffset", "method_offset")
    )


Record = int | MethodRecord | StringRecord | MetadataRecord | MetadataMethodRecord

_offset_adapter: TypeAdapter[int] = TypeAdapter(U64)

_MODELS: dict[Category, type[_Record]] = {
    Category.SCRIPT_METHOD: MethodRecord,
    Category.SCRIPT_STRING: StringRecord,
    Category.SCRIPT_METADATA: MetadataRecord,
    Category.SCRIPT_METADATA_METHOD: MetadataMethodRecord,
}


def decode_record(category: Category, raw: Any) -> Record:
    """Validate one raw JSON value as a record of the given category.

    Raises:
        pydantic.ValidationError: if the value does not have the category's shape
    """
    if category == Category.ADDRESSES:
        return _offset_adapter.validate_python(raw)
    return _MODELS[category].model_validate(raw)


def raw_offset(raw: Any) -> int | None:
    """Best-effort offset of a raw record, for diagnostics on malformed input."""
    value = raw.get("Address", raw.get("offset")) if isinstance(raw, dict) else raw
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U64_MAX:
        return value
    return None
