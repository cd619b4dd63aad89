"""Catalog of everything discovered on a reflection endpoint."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dataclasses_json import DataClassJsonMixin

from .types import EnumDef, MessageDef, MethodEntry, OptionDef

# Package of the Cosmos service serving the named descriptors
DESCRIPTORS_PACKAGE = "cosmos.base.reflection.v2alpha1"


class DescriptorKind(StrEnum):
    """Named descriptors served by the Cosmos reflection service."""

    AUTHN = "authn"
    CHAIN = "chain"
    CODEC = "codec"
    CONFIGURATION = "configuration"
    QUERY_SERVICES = "query_services"
    TX = "tx"

    @property
    def message_name(self) -> str:
        """Name of the synthesized message, e.g. "QueryServicesDescriptor"."""
        return "".join(part.capitalize() for part in self.value.split("_")) + "Descriptor"


@dataclass(frozen=True)
class StringValue(DataClassJsonMixin):
    value: str


@dataclass(frozen=True)
class IntegerValue(DataClassJsonMixin):
    """Any numeric payload value; floats are synthesized as int64 too."""

    value: int | float


@dataclass(frozen=True)
class BooleanValue(DataClassJsonMixin):
    value: bool


@dataclass(frozen=True)
class MappingValue(DataClassJsonMixin):
    """Ordered mapping of key to nested descriptor value."""

    entries: dict[str, "DescriptorValue"]


@dataclass(frozen=True)
class OtherValue(DataClassJsonMixin):
    """Any payload value that is not a string, number, boolean or mapping."""

    value: Any


DescriptorValue = StringValue | IntegerValue | BooleanValue | MappingValue | OtherValue


def to_value(obj: Any) -> DescriptorValue:
    """Classify an arbitrary decoded payload into a DescriptorValue."""
    # bool must be tested before int, it is a subclass
    if isinstance(obj, bool):
        return BooleanValue(obj)
    if isinstance(obj, (int, float)):
        return IntegerValue(obj)
    if isinstance(obj, str):
        return StringValue(obj)
    if isinstance(obj, Mapping):
        return MappingValue({str(key): to_value(value) for key, value in obj.items()})
    return OtherValue(obj)


@dataclass
class ServiceEntry(DataClassJsonMixin):
    """A service found through the generic reflection dialect."""

    name: str
    methods: list[MethodEntry] = field(default_factory=list)
    messages: list[MessageDef] = field(default_factory=list)
    enums: list[EnumDef] = field(default_factory=list)
    options: list[OptionDef] = field(default_factory=list)


@dataclass
class InterfaceBinding(DataClassJsonMixin):
    """An interface and the implementation names registered for it."""

    interface: str
    implementations: list[str] = field(default_factory=list)


@dataclass
class NamedDescriptor(DataClassJsonMixin):
    """A named descriptor payload; value is None when the server lacks it."""

    kind: DescriptorKind
    value: DescriptorValue | None = None


@dataclass
class CallFailure(DataClassJsonMixin):
    """A reflection call or decode step that produced no data."""

    call: str
    detail: str


@dataclass
class Catalog(DataClassJsonMixin):
    """Result of a collection run, in server order."""

    services: list[ServiceEntry] = field(default_factory=list)
    bindings: list[InterfaceBinding] = field(default_factory=list)
    descriptors: list[NamedDescriptor] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)
    failures: list[CallFailure] = field(default_factory=list)
