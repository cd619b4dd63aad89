"""Synthesize .proto files from a reflection catalog.

Every output file is first built as a :class:`ProtoFile` model, checked with
:func:`reflectgen.generator.parser.validate` and then rendered through the
``file.proto.j2`` template. Nothing here performs I/O.
"""

import logging
import re
from collections.abc import Callable
from typing import TypeVar

from jinja2 import Environment, PackageLoader

from .catalog import (
    DESCRIPTORS_PACKAGE,
    BooleanValue,
    Catalog,
    DescriptorValue,
    IntegerValue,
    InterfaceBinding,
    MappingValue,
    NamedDescriptor,
    OtherValue,
    ServiceEntry,
    StringValue,
)
from .parser import ValidationError, validate
from .types import (
    EnumDef,
    FieldDef,
    MessageDef,
    MethodEntry,
    OptionDef,
    ProtoFile,
    ServiceDef,
    SynthesizedFile,
    is_scalar,
    short_name,
    split_name,
)

logger = logging.getLogger(__name__)

env = Environment(
    loader=PackageLoader("reflectgen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("file.proto.j2")

INDENT = "  "

ANY_TYPE = "google.protobuf.Any"
ANY_IMPORT = "google/protobuf/any.proto"

GO_PACKAGE_PREFIX = "github.com/cosmos/cosmos-sdk/"

# Output path -> template name of the files emitted on every run
COMMON_FILES = {
    "google/protobuf/any.proto": "common/any.proto",
    "cosmos/base/query/v1beta1/pagination.proto": "common/pagination.proto",
    "cosmos/base/v1beta1/coin.proto": "common/coin.proto",
}

_INVALID_IDENT_CHARS = re.compile(r"[^A-Za-z0-9_]")


class SynthesisError(RuntimeError):
    """Raised when a catalog entry cannot be turned into a proto file."""


def _identifier(name: str) -> str:
    """Make a string usable as a proto identifier."""
    name = _INVALID_IDENT_CHARS.sub("_", name)
    if not name:
        return "unknown"
    if name[0].isdigit():
        name = "_" + name
    return name


def _camel_case(name: str) -> str:
    result = "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)
    return result or "Value"


def _local_type(type_name: str) -> str:
    """Strip a type reference to its last segment; scalars pass through."""
    return type_name if is_scalar(type_name) else short_name(type_name)


def _field_decl(field: FieldDef) -> str:
    if field.is_map:
        type_decl = f"map<{field.key_type}, {field.type}>"
    elif field.label in ("repeated", "optional"):
        type_decl = f"{field.label} {field.type}"
    else:
        type_decl = field.type
    return f"{type_decl} {field.name} = {field.number};"


def _block(header: str, body: list[str]) -> list[str]:
    if not body:
        return [f"{header} {{}}"]
    return [f"{header} {{", *(INDENT + line if line else line for line in body), "}"]


def _enum_lines(enum: EnumDef) -> list[str]:
    return _block(f"enum {enum.name}", [f"{v.name} = {v.number};" for v in enum.values])


def _message_lines(message: MessageDef) -> list[str]:
    body = [_field_decl(f) for f in message.fields]
    for nested in [*map(_enum_lines, message.enums), *map(_message_lines, message.messages)]:
        if body:
            body.append("")
        body.extend(nested)
    return _block(f"message {message.name}", body)


def render_enum(enum: EnumDef) -> str:
    """Render an enum definition as proto text."""
    return "\n".join(_enum_lines(enum))


def render_message(message: MessageDef) -> str:
    """Render a message definition, nested types included, as proto text."""
    return "\n".join(_message_lines(message))


def render_constant(option: OptionDef) -> str:
    """Render an option value, quoting it unless it is a literal."""
    value = str(option.value)
    if option.literal:
        return value
    return f"'{value}'" if '"' in value else f'"{value}"'


def render(proto: ProtoFile, comment: str | None = None) -> str:
    """Validate a proto model and render it to .proto source."""
    validate(proto)
    return template.render(
        proto=proto,
        comment=comment,
        render_constant=render_constant,
        render_enum=render_enum,
        render_message=render_message,
    )


def _file_name(name: str) -> str:
    return f"{name.lower()}.proto"


def _namespace(full_name: str) -> tuple[str, str]:
    namespace, name = split_name(full_name)
    if not namespace:
        raise SynthesisError(f"{full_name} has no package")
    return namespace, name


def _localize(message: MessageDef) -> MessageDef:
    """Copy a decoded message with local type names and fields numbered from 1."""
    return MessageDef(
        name=message.name,
        fields=[
            FieldDef(
                name=field.name,
                type=_local_type(field.type),
                number=number,
                label=field.label if field.label != "required" else None,
                key_type=field.key_type,
            )
            for number, field in enumerate(message.fields, start=1)
        ],
        messages=[_localize(nested) for nested in message.messages],
        enums=message.enums,
    )


def service_file(entry: ServiceEntry) -> SynthesizedFile:
    """Synthesize the file for a service found via server reflection."""
    namespace, name = _namespace(entry.name)
    service = ServiceDef(
        name=name,
        methods=[
            MethodEntry(
                name=method.name,
                input_type=_local_type(method.input_type),
                output_type=_local_type(method.output_type),
                client_streaming=method.client_streaming,
                server_streaming=method.server_streaming,
            )
            for method in entry.methods
        ],
    )
    proto = ProtoFile(
        package=namespace,
        options=entry.options,
        services=[service],
        enums=entry.enums,
        messages=[_localize(m) for m in entry.messages],
    )
    return SynthesizedFile(namespace=namespace, filename=_file_name(name), text=render(proto))


def interface_file(binding: InterfaceBinding) -> SynthesizedFile:
    """Synthesize a placeholder service for an interface and its implementations.

    Reflection exposes only implementation names, so every RPC gets an empty
    request and a response carrying a single Any.
    """
    namespace, name = _namespace(binding.interface)
    service_name = _identifier(name)

    implementations: list[str] = []
    for implementation in binding.implementations:
        method = _identifier(short_name(implementation))
        if method not in implementations:
            implementations.append(method)

    messages: list[MessageDef] = []
    for method in implementations:
        messages.append(MessageDef(name=f"{method}Request"))
        messages.append(
            MessageDef(
                name=f"{method}Response",
                fields=[FieldDef(name="result", type=ANY_TYPE, number=1)],
            )
        )

    proto = ProtoFile(
        package=namespace,
        imports=[ANY_IMPORT],
        options=[OptionDef(name="go_package", value=GO_PACKAGE_PREFIX + namespace)],
        services=[
            ServiceDef(
                name=service_name,
                methods=[MethodEntry(m, f"{m}Request", f"{m}Response") for m in implementations],
            )
        ],
        messages=messages,
    )
    comment = f"{service_name} lists the implementations registered for {binding.interface}."
    return SynthesizedFile(
        namespace=namespace,
        filename=_file_name(service_name),
        text=render(proto, comment=comment),
    )


def _scalar_type(value: DescriptorValue) -> str:
    if isinstance(value, StringValue):
        return "string"
    if isinstance(value, BooleanValue):
        return "bool"
    if isinstance(value, IntegerValue):
        return "int64"
    if isinstance(value, OtherValue):
        return ANY_TYPE
    raise TypeError(f"Not a scalar descriptor value: {value!r}")


def _nested_name(field_name: str, taken: set[str]) -> str:
    base = _camel_case(field_name)
    name = base
    suffix = 1
    while name in taken:
        suffix += 1
        name = f"{base}{suffix}"
    taken.add(name)
    return name


def descriptor_message(name: str, value: MappingValue) -> MessageDef:
    """Flatten a mapping into a message; nested mappings become nested messages.

    Fields are numbered from 1 in mapping order at every nesting level.
    """
    message = MessageDef(name=name)
    # Nested type names share a scope with field names
    taken = {_identifier(key) for key in value.entries}

    for number, (key, item) in enumerate(value.entries.items(), start=1):
        field_name = _identifier(key)
        if isinstance(item, MappingValue):
            type_name = _nested_name(field_name, taken)
            message.messages.append(descriptor_message(type_name, item))
        else:
            type_name = _scalar_type(item)
        message.fields.append(FieldDef(name=field_name, type=type_name, number=number))

    return message


def _uses_any(message: MessageDef) -> bool:
    return any(f.type == ANY_TYPE for f in message.fields) or any(
        _uses_any(nested) for nested in message.messages
    )


def descriptor_file(descriptor: NamedDescriptor) -> SynthesizedFile:
    """Synthesize the message describing a named descriptor payload."""
    value = descriptor.value
    if value is None:
        raise SynthesisError(f"{descriptor.kind} descriptor has no payload")
    if not isinstance(value, MappingValue):
        value = MappingValue({"value": value})

    message = descriptor_message(descriptor.kind.message_name, value)
    proto = ProtoFile(
        package=DESCRIPTORS_PACKAGE,
        imports=[ANY_IMPORT] if _uses_any(message) else [],
        messages=[message],
    )
    return SynthesizedFile(
        namespace=DESCRIPTORS_PACKAGE,
        filename=_file_name(message.name),
        text=render(proto),
    )


def common_files() -> list[SynthesizedFile]:
    """Return the fixed bundle of well-known files emitted on every run."""
    result: list[SynthesizedFile] = []
    for path, template_name in COMMON_FILES.items():
        directory, _, filename = path.rpartition("/")
        text = env.get_template(template_name).render()
        namespace = directory.replace("/", ".")
        result.append(SynthesizedFile(namespace=namespace, filename=filename, text=text))
    return result


TEntry = TypeVar("TEntry")


def _build(
    label: str, build: Callable[[TEntry], SynthesizedFile], entry: TEntry
) -> SynthesizedFile | None:
    try:
        return build(entry)
    except (SynthesisError, ValidationError) as e:
        logger.warning("Skipping %s: %s", label, e)
        return None


def synthesize(catalog: Catalog) -> list[SynthesizedFile]:
    """Turn a catalog into proto files.

    Output order is services, interfaces, descriptors, then the common bundle,
    each in catalog order. An entry that cannot be synthesized is logged and
    skipped; the rest of the catalog is still emitted. Paths of the common
    bundle are reserved: an entry mapping to one of them is skipped.
    """
    candidates: list[SynthesizedFile | None] = []
    candidates.extend(_build(entry.name, service_file, entry) for entry in catalog.services)
    candidates.extend(_build(b.interface, interface_file, b) for b in catalog.bindings)
    candidates.extend(
        _build(f"{d.kind} descriptor", descriptor_file, d)
        for d in catalog.descriptors
        if d.value is not None
    )

    common = common_files()
    reserved = {str(f.path) for f in common}

    files: list[SynthesizedFile] = []
    seen: set[str] = set()
    for synthesized in candidates:
        if synthesized is None:
            continue
        path = str(synthesized.path)
        if path in reserved:
            logger.warning("Skipping %s, the path belongs to a common file", path)
            continue
        if path in seen:
            logger.warning("Skipping %s, a file with this path was already generated", path)
            continue
        seen.add(path)
        files.append(synthesized)
    return files + common
