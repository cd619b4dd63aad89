"""Type definitions for the proto3 file model used by parsing and synthesis."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class OptionDef(DataClassJsonMixin):
    """Represents an `option name = value;` statement.

    String constants are stored unquoted. `literal` marks values written
    verbatim (identifiers, numbers, aggregates).
    """

    name: str
    value: Any
    literal: bool = False


@dataclass
class FieldDef(DataClassJsonMixin):
    """Represents a message field.

    - label: "repeated", "optional" or None
    - key_type: map key type for `map<K, V>` fields, None otherwise
    - type: scalar name or a (possibly dotted) message/enum reference
    """

    name: str
    type: str
    number: int
    label: str | None = None
    key_type: str | None = None

    @property
    def is_map(self) -> bool:
        return self.key_type is not None


@dataclass
class EnumValueDef(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int


@dataclass
class EnumDef(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    values: list[EnumValueDef] = field(default_factory=list)


@dataclass
class MessageDef(DataClassJsonMixin):
    """Represents a message definition with its nested types."""

    name: str
    fields: list[FieldDef] = field(default_factory=list)
    messages: list["MessageDef"] = field(default_factory=list)
    enums: list[EnumDef] = field(default_factory=list)


@dataclass
class MethodEntry(DataClassJsonMixin):
    """Represents an RPC. Type names are dotted paths without a leading dot."""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False


@dataclass
class ServiceDef(DataClassJsonMixin):
    """Represents a service definition."""

    name: str
    methods: list[MethodEntry] = field(default_factory=list)


@dataclass
class ProtoFile(DataClassJsonMixin):
    """Represents a complete .proto file."""

    package: str | None = None
    syntax: str = "proto3"
    imports: list[str] = field(default_factory=list)
    options: list[OptionDef] = field(default_factory=list)
    messages: list[MessageDef] = field(default_factory=list)
    enums: list[EnumDef] = field(default_factory=list)
    services: list[ServiceDef] = field(default_factory=list)


@dataclass(frozen=True)
class SynthesizedFile:
    """Generated proto source and where it belongs in the output tree."""

    namespace: str
    filename: str
    text: str

    @property
    def path(self) -> PurePosixPath:
        """Path relative to the output root, one directory per namespace segment."""
        return PurePosixPath(*self.namespace.split("."), self.filename)


SCALAR_TYPES = frozenset(
    [
        "double",
        "float",
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "bool",
        "string",
        "bytes",
    ]
)


def is_scalar(type_name: str) -> bool:
    """Check if a type name is a proto3 scalar type."""
    return type_name in SCALAR_TYPES


def split_name(full_name: str) -> tuple[str, str]:
    """Split a dotted name into (namespace, last segment).

    Leading dots and type-URL slashes are dropped, so "/pkg.v1.Msg" and
    ".pkg.v1.Msg" both give ("pkg.v1", "Msg").
    """
    name = full_name.rsplit("/", 1)[-1].lstrip(".")
    namespace, _, short = name.rpartition(".")
    return namespace, short


def short_name(full_name: str) -> str:
    """Return the last segment of a dotted name."""
    return split_name(full_name)[1]
