"""Message classes for the Cosmos reflection services.

No generated ``_pb2`` modules ship for these services. The ``.proto`` sources
are bundled with the package, parsed by :mod:`reflectgen.generator.parser` and
loaded into a private descriptor pool on first use.
"""

from functools import cache
from importlib import resources

from google.protobuf import descriptor_pool, message_factory
from google.protobuf.message import Message

from reflectgen.generator.catalog import DESCRIPTORS_PACKAGE
from reflectgen.generator.descriptors import to_descriptor
from reflectgen.generator.parser import parse

from .calls import COSMOS_INTERFACES_SERVICE

PROTO_FILES = [
    "cosmos_reflection_v1beta1.proto",
    "cosmos_reflection_v2alpha1.proto",
]

INTERFACES_PACKAGE = COSMOS_INTERFACES_SERVICE.rsplit(".", 1)[0]


def proto_sources() -> dict[str, str]:
    """Return the bundled proto files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in PROTO_FILES:
        path = resources.files("reflectgen.reflection").joinpath("protos").joinpath(filename)
        result[filename] = path.read_text(encoding="utf-8")
    return result


@cache
def pool() -> descriptor_pool.DescriptorPool:
    """Descriptor pool holding the bundled reflection protos."""
    result = descriptor_pool.DescriptorPool()
    for content in proto_sources().values():
        proto = parse(content)
        name = (proto.package or "").replace(".", "/") + "/reflection.proto"
        result.AddSerializedFile(to_descriptor(proto, name).SerializeToString())
    return result


@cache
def message_class(full_name: str) -> type[Message]:
    """Return the message class for a fully-qualified message name."""
    return message_factory.GetMessageClass(pool().FindMessageTypeByName(full_name))


def interfaces_message(name: str) -> type[Message]:
    return message_class(f"{INTERFACES_PACKAGE}.{name}")


def descriptors_message(name: str) -> type[Message]:
    return message_class(f"{DESCRIPTORS_PACKAGE}.{name}")
