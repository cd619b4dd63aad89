"""Reflection calls, their outcomes and connection settings.

Each supported remote call is its own frozen dataclass. ``ReflectionCall`` is
the closed union of them; ``ReflectionClient.call`` dispatches over it.
"""

from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Generic, TypeVar

from reflectgen.generator.catalog import DESCRIPTORS_PACKAGE, DescriptorKind

GRPC_REFLECTION_SERVICE = "grpc.reflection.v1alpha.ServerReflection"
COSMOS_INTERFACES_SERVICE = "cosmos.base.reflection.v1beta1.ReflectionService"
COSMOS_DESCRIPTORS_SERVICE = f"{DESCRIPTORS_PACKAGE}.ReflectionService"


class Transport(StrEnum):
    """Channel security."""

    PLAINTEXT = auto()
    TLS = auto()


class Dialect(StrEnum):
    """Reflection protocol dialects."""

    GRPC = auto()  # grpc.reflection ServerReflectionInfo stream
    COSMOS = auto()  # cosmos.base.reflection unary calls


@dataclass(frozen=True)
class Endpoint:
    """Address and transport of a reflection server."""

    address: str
    transport: Transport = Transport.TLS


class CallStatus(StrEnum):
    OK = auto()
    UNIMPLEMENTED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class ListServices:
    """List fully-qualified service names. Returns list[str]."""

    dialect = Dialect.GRPC

    @property
    def label(self) -> str:
        return f"{GRPC_REFLECTION_SERVICE}/ServerReflectionInfo(list_services)"


@dataclass(frozen=True)
class FileContainingSymbol:
    """Fetch the serialized file descriptors declaring a symbol. Returns list[bytes]."""

    symbol: str
    dialect = Dialect.GRPC

    @property
    def label(self) -> str:
        request = f"file_containing_symbol={self.symbol}"
        return f"{GRPC_REFLECTION_SERVICE}/ServerReflectionInfo({request})"


@dataclass(frozen=True)
class ListAllInterfaces:
    """List registered interface names. Returns list[str]."""

    dialect = Dialect.COSMOS

    @property
    def label(self) -> str:
        return f"{COSMOS_INTERFACES_SERVICE}/ListAllInterfaces"


@dataclass(frozen=True)
class ListImplementations:
    """List implementation names of one interface. Returns list[str]."""

    interface_name: str
    dialect = Dialect.COSMOS

    @property
    def label(self) -> str:
        return f"{COSMOS_INTERFACES_SERVICE}/ListImplementations({self.interface_name})"


@dataclass(frozen=True)
class GetDescriptor:
    """Fetch one named descriptor. Returns dict[str, Any]."""

    kind: DescriptorKind
    dialect = Dialect.COSMOS

    @property
    def method(self) -> str:
        return f"Get{self.kind.message_name}"

    @property
    def label(self) -> str:
        return f"{COSMOS_DESCRIPTORS_SERVICE}/{self.method}"


ReflectionCall = (
    ListServices | FileContainingSymbol | ListAllInterfaces | ListImplementations | GetDescriptor
)

T = TypeVar("T")


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Result of one reflection call.

    value is set only when status is OK; detail carries the server message
    for UNIMPLEMENTED and FAILED.
    """

    call: ReflectionCall
    status: CallStatus
    value: T | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == CallStatus.OK
