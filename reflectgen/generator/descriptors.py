"""Conversion between protobuf file descriptors and the proto file model.

Reflection services hand out serialized ``FileDescriptorProto`` messages. The
decoding direction turns one of those into a :class:`ProtoFile` so it can be
synthesized back into ``.proto`` text. The encoding direction goes the other
way and is used to load the bundled reflection protos into a descriptor pool,
since no generated ``_pb2`` modules ship for them.
"""

from google.protobuf import descriptor_pb2

from .types import (
    EnumDef,
    EnumValueDef,
    FieldDef,
    MessageDef,
    MethodEntry,
    OptionDef,
    ProtoFile,
    ServiceDef,
    is_scalar,
)

FieldProto = descriptor_pb2.FieldDescriptorProto

# Map descriptor field types to proto3 scalar names
SCALAR_NAMES: dict[int, str] = {
    FieldProto.TYPE_DOUBLE: "double",
    FieldProto.TYPE_FLOAT: "float",
    FieldProto.TYPE_INT64: "int64",
    FieldProto.TYPE_UINT64: "uint64",
    FieldProto.TYPE_INT32: "int32",
    FieldProto.TYPE_FIXED64: "fixed64",
    FieldProto.TYPE_FIXED32: "fixed32",
    FieldProto.TYPE_BOOL: "bool",
    FieldProto.TYPE_STRING: "string",
    FieldProto.TYPE_BYTES: "bytes",
    FieldProto.TYPE_UINT32: "uint32",
    FieldProto.TYPE_SFIXED32: "sfixed32",
    FieldProto.TYPE_SFIXED64: "sfixed64",
    FieldProto.TYPE_SINT32: "sint32",
    FieldProto.TYPE_SINT64: "sint64",
}

SCALAR_TYPES: dict[str, int] = {name: number for number, name in SCALAR_NAMES.items()}

LABELS: dict[str, int] = {
    "repeated": FieldProto.LABEL_REPEATED,
    "required": FieldProto.LABEL_REQUIRED,
}


class DescriptorError(RuntimeError):
    """Raised when a decoded file descriptor is structurally invalid."""


def decode_file(blob: bytes) -> ProtoFile:
    """Decode a serialized FileDescriptorProto.

    Raises google.protobuf.message.DecodeError on malformed input and
    DescriptorError on a well-formed descriptor that cannot be converted.
    """
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.ParseFromString(blob)
    return from_descriptor(file_proto)


def _field_type_name(field: descriptor_pb2.FieldDescriptorProto) -> str:
    if field.type in SCALAR_NAMES:
        return SCALAR_NAMES[field.type]
    # Message, enum and group references
    return field.type_name.lstrip(".")


def _from_message(message: descriptor_pb2.DescriptorProto) -> MessageDef:
    map_entries = {
        nested.name: nested for nested in message.nested_type if nested.options.map_entry
    }

    fields: list[FieldDef] = []
    for field in message.field:
        type_name = _field_type_name(field)
        entry = map_entries.get(type_name.rsplit(".", 1)[-1])
        if field.label == FieldProto.LABEL_REPEATED and entry is not None:
            if len(entry.field) != 2:
                raise DescriptorError(
                    f"Map entry {message.name}.{entry.name} must declare a key and a value"
                )
            key, value = entry.field[0], entry.field[1]
            fields.append(
                FieldDef(
                    name=field.name,
                    type=_field_type_name(value),
                    number=field.number,
                    key_type=_field_type_name(key),
                )
            )
            continue

        label = None
        if field.label == FieldProto.LABEL_REPEATED:
            label = "repeated"
        elif field.proto3_optional:
            label = "optional"
        fields.append(FieldDef(name=field.name, type=type_name, number=field.number, label=label))

    return MessageDef(
        name=message.name,
        fields=fields,
        messages=[_from_message(n) for n in message.nested_type if not n.options.map_entry],
        enums=[_from_enum(e) for e in message.enum_type],
    )


def _from_enum(enum: descriptor_pb2.EnumDescriptorProto) -> EnumDef:
    return EnumDef(
        name=enum.name,
        values=[EnumValueDef(name=v.name, number=v.number) for v in enum.value],
    )


def _from_service(service: descriptor_pb2.ServiceDescriptorProto) -> ServiceDef:
    return ServiceDef(
        name=service.name,
        methods=[
            MethodEntry(
                name=method.name,
                input_type=method.input_type.lstrip("."),
                output_type=method.output_type.lstrip("."),
                client_streaming=method.client_streaming,
                server_streaming=method.server_streaming,
            )
            for method in service.method
        ],
    )


def from_descriptor(file_proto: descriptor_pb2.FileDescriptorProto) -> ProtoFile:
    """Convert a FileDescriptorProto into a ProtoFile."""
    options = []
    if file_proto.options.HasField("go_package"):
        options.append(OptionDef(name="go_package", value=file_proto.options.go_package))

    return ProtoFile(
        package=file_proto.package or None,
        syntax=file_proto.syntax or "proto2",
        imports=list(file_proto.dependency),
        options=options,
        messages=[_from_message(m) for m in file_proto.message_type],
        enums=[_from_enum(e) for e in file_proto.enum_type],
        services=[_from_service(s) for s in file_proto.service],
    )


class _Resolver:
    """Resolve type references to fully-qualified names within one file."""

    def __init__(self, proto: ProtoFile):
        self.kinds: dict[str, int] = {}
        prefix = proto.package or ""
        for enum in proto.enums:
            self.kinds[_join(prefix, enum.name)] = FieldProto.TYPE_ENUM
        for message in proto.messages:
            self._register(message, prefix)

    def _register(self, message: MessageDef, scope: str) -> None:
        path = _join(scope, message.name)
        self.kinds[path] = FieldProto.TYPE_MESSAGE
        for enum in message.enums:
            self.kinds[_join(path, enum.name)] = FieldProto.TYPE_ENUM
        for nested in message.messages:
            self._register(nested, path)

    def resolve(self, reference: str, scope: str) -> tuple[str, int]:
        """Return (".full.Name", field type) for a reference seen in scope.

        Lookup walks outwards from the innermost scope, as protoc does.
        Unknown references are assumed to be absolute message names.
        """
        if reference.startswith("."):
            name = reference[1:]
            return "." + name, self.kinds.get(name, FieldProto.TYPE_MESSAGE)

        parts = scope.split(".") if scope else []
        while True:
            candidate = _join(".".join(parts), reference)
            if candidate in self.kinds:
                return "." + candidate, self.kinds[candidate]
            if not parts:
                return "." + reference, FieldProto.TYPE_MESSAGE
            parts.pop()


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _to_field(
    field: FieldDef, scope: str, resolver: _Resolver
) -> descriptor_pb2.FieldDescriptorProto:
    result = FieldProto(name=field.name, number=field.number, json_name=_json_name(field.name))
    result.label = LABELS.get(field.label or "", FieldProto.LABEL_OPTIONAL)
    if is_scalar(field.type):
        result.type = SCALAR_TYPES[field.type]  # type: ignore[assignment]
    else:
        type_name, kind = resolver.resolve(field.type, scope)
        result.type = kind  # type: ignore[assignment]
        result.type_name = type_name
    if field.label == "optional":
        result.proto3_optional = True
    return result


def _json_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _entry_name(field_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in field_name.split("_")) + "Entry"


def _to_message(
    message: MessageDef, scope: str, resolver: _Resolver
) -> descriptor_pb2.DescriptorProto:
    path = _join(scope, message.name)
    result = descriptor_pb2.DescriptorProto(name=message.name)

    for field in message.fields:
        if not field.is_map:
            field_proto = _to_field(field, path, resolver)
            if field_proto.proto3_optional:
                # proto3 optional fields live in a synthetic oneof of their own
                field_proto.oneof_index = len(result.oneof_decl)
                result.oneof_decl.add(name=f"_{field.name}")
            result.field.append(field_proto)
            continue

        # Maps are encoded as a repeated synthetic entry message
        entry = result.nested_type.add(name=_entry_name(field.name))
        entry.options.map_entry = True
        key = FieldDef(name="key", type=field.key_type or "", number=1)
        value = FieldDef(name="value", type=field.type, number=2)
        entry.field.append(_to_field(key, path, resolver))
        entry.field.append(_to_field(value, path, resolver))
        result.field.append(
            FieldProto(
                name=field.name,
                number=field.number,
                json_name=_json_name(field.name),
                label=FieldProto.LABEL_REPEATED,
                type=FieldProto.TYPE_MESSAGE,
                type_name=f".{path}.{entry.name}",
            )
        )

    for nested in message.messages:
        result.nested_type.append(_to_message(nested, path, resolver))
    for enum in message.enums:
        result.enum_type.append(_to_enum(enum))
    return result


def _to_enum(enum: EnumDef) -> descriptor_pb2.EnumDescriptorProto:
    result = descriptor_pb2.EnumDescriptorProto(name=enum.name)
    for value in enum.values:
        result.value.add(name=value.name, number=value.number)
    return result


def to_descriptor(proto: ProtoFile, name: str) -> descriptor_pb2.FileDescriptorProto:
    """Convert a ProtoFile into a FileDescriptorProto registered under `name`."""
    resolver = _Resolver(proto)
    package = proto.package or ""

    result = descriptor_pb2.FileDescriptorProto(name=name, package=package)
    if proto.syntax == "proto3":
        result.syntax = "proto3"
    result.dependency.extend(proto.imports)
    for option in proto.options:
        if option.name == "go_package":
            result.options.go_package = option.value

    for enum in proto.enums:
        result.enum_type.append(_to_enum(enum))
    for message in proto.messages:
        result.message_type.append(_to_message(message, package, resolver))

    for service in proto.services:
        service_proto = result.service.add(name=service.name)
        for method in service.methods:
            service_proto.method.add(
                name=method.name,
                input_type=resolver.resolve(method.input_type, package)[0],
                output_type=resolver.resolve(method.output_type, package)[0],
                client_streaming=method.client_streaming,
                server_streaming=method.server_streaming,
            )
    return result
