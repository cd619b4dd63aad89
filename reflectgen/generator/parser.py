"""Proto3 subset parser using Lark."""

import os
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark
from lark.visitors import Transformer

from .types import (
    EnumDef,
    EnumValueDef,
    FieldDef,
    MessageDef,
    MethodEntry,
    OptionDef,
    ProtoFile,
    ServiceDef,
)

_g_parser: Lark | None = None


class ValidationError(RuntimeError):
    """Raised when proto file validation fails."""


@dataclass
class _Syntax:
    value: str


@dataclass
class _Package:
    value: str


@dataclass
class _Import:
    value: str


@dataclass
class _OptionName:
    value: str


@dataclass
class _Constant:
    value: Any
    literal: bool = False


@dataclass
class _FieldOptions:
    options: list[OptionDef]


@dataclass
class _Oneof:
    name: str
    fields: list[FieldDef]


@dataclass
class _Reserved:
    value: str


@dataclass
class _RpcType:
    name: str
    stream: bool


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise ValidationError(f"Found more than one {class_type.__name__.lstrip('_').lower()}")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


def _unquote(text: str) -> str:
    return text[1:-1]


class TreeTransformer(Transformer):
    """Transform parse tree into proto model types."""

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(value=_unquote(str(args[0])))

    def package(self, args: list[Any]) -> _Package:
        return _Package(value=str(args[0]))

    def import_(self, args: list[Any]) -> _Import:
        return _Import(value=_unquote(str(args[-1])))

    def plain_option_name(self, args: list[Any]) -> _OptionName:
        return _OptionName(value=str(args[0]))

    def custom_option_name(self, args: list[Any]) -> _OptionName:
        suffix = str(args[1]) if args[1] is not None else ""
        return _OptionName(value=f"({args[0]}){suffix}")

    def aggregate(self, args: list[Any]) -> str:
        body = str(args[0]).strip() if args[0] is not None else ""
        return "{" + body + "}"

    def constant(self, args: list[Any]) -> _Constant:
        value = str(args[0])
        if value[:1] in ("'", '"'):
            return _Constant(value=_unquote(value))
        return _Constant(value=value, literal=True)

    def option(self, args: list[Any]) -> OptionDef:
        constant = _filter(args, _Constant)[0]
        return OptionDef(
            name=_find_one(args, _OptionName), value=constant.value, literal=constant.literal
        )

    def field_option(self, args: list[Any]) -> OptionDef:
        return self.option(args)

    def field_options(self, args: list[Any]) -> _FieldOptions:
        return _FieldOptions(options=_find_many(args, OptionDef))

    def field(self, args: list[Any]) -> FieldDef:
        label, type_ref, name, number = args[:4]
        return FieldDef(
            name=str(name),
            type=str(type_ref),
            number=int(number),
            label=str(label) if label is not None else None,
        )

    def map_field(self, args: list[Any]) -> FieldDef:
        key_type, value_type, name, number = args[:4]
        return FieldDef(
            name=str(name),
            type=str(value_type),
            number=int(number),
            key_type=str(key_type),
        )

    def oneof(self, args: list[Any]) -> _Oneof:
        return _Oneof(name=str(args[0]), fields=_find_many(args, FieldDef))

    def reserved(self, args: list[Any]) -> _Reserved:
        return _Reserved(value=str(args[0]).strip())

    def message(self, args: list[Any]) -> MessageDef:
        fields: list[FieldDef] = []
        for item in args:
            if isinstance(item, FieldDef):
                fields.append(item)
            elif isinstance(item, _Oneof):
                # Oneof members are flattened into the enclosing message
                fields.extend(item.fields)
        return MessageDef(
            name=str(args[0]),
            fields=fields,
            messages=_find_many(args, MessageDef),
            enums=_find_many(args, EnumDef),
        )

    def enum_value(self, args: list[Any]) -> EnumValueDef:
        return EnumValueDef(name=str(args[0]), number=int(args[1]))

    def enum(self, args: list[Any]) -> EnumDef:
        return EnumDef(name=str(args[0]), values=_find_many(args, EnumValueDef))

    def rpc_type(self, args: list[Any]) -> _RpcType:
        return _RpcType(name=str(args[1]).lstrip("."), stream=args[0] is not None)

    def rpc(self, args: list[Any]) -> MethodEntry:
        request, response = _find_many(args, _RpcType)
        return MethodEntry(
            name=str(args[0]),
            input_type=request.name,
            output_type=response.name,
            client_streaming=request.stream,
            server_streaming=response.stream,
        )

    def service(self, args: list[Any]) -> ServiceDef:
        return ServiceDef(name=str(args[0]), methods=_find_many(args, MethodEntry))


def _duplicates(names: Iterable[Any]) -> list[Any]:
    return [name for name, count in Counter(names).items() if count > 1]


def _validate_message(message: MessageDef, scope: str) -> None:
    path = f"{scope}.{message.name}" if scope else message.name

    dups = _duplicates([m.name for m in message.messages] + [e.name for e in message.enums])
    if dups:
        raise ValidationError(f"{path} declares duplicate nested types: {', '.join(dups)}")

    dups = _duplicates(f.name for f in message.fields)
    if dups:
        raise ValidationError(f"{path} declares duplicate fields: {', '.join(dups)}")

    numbers = [f.number for f in message.fields]
    dups = _duplicates(numbers)
    if dups:
        raise ValidationError(f"{path} reuses field numbers: {', '.join(map(str, dups))}")
    if any(number < 1 for number in numbers):
        raise ValidationError(f"{path} has a field number below 1")

    for enum in message.enums:
        _validate_enum(enum, path)
    for nested in message.messages:
        _validate_message(nested, path)


def _validate_enum(enum: EnumDef, scope: str) -> None:
    path = f"{scope}.{enum.name}" if scope else enum.name
    if not enum.values:
        raise ValidationError(f"Enum {path} has no values")
    dups = _duplicates(v.name for v in enum.values)
    if dups:
        raise ValidationError(f"Enum {path} declares duplicate values: {', '.join(dups)}")


def validate(proto: ProtoFile) -> None:
    """Validate a parsed proto file."""
    if not proto.package:
        raise ValidationError("Missing package declaration")

    top_level = (
        [m.name for m in proto.messages]
        + [e.name for e in proto.enums]
        + [s.name for s in proto.services]
    )
    dups = _duplicates(top_level)
    if dups:
        raise ValidationError(f"Duplicate top-level names: {', '.join(dups)}")

    for enum in proto.enums:
        _validate_enum(enum, proto.package)
    for message in proto.messages:
        _validate_message(message, proto.package)

    for service in proto.services:
        dups = _duplicates(m.name for m in service.methods)
        if dups:
            names = ", ".join(dups)
            raise ValidationError(f"Service {service.name} declares duplicate rpcs: {names}")


def parse(text: str) -> ProtoFile:
    """Parse a proto file."""
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/protodef.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar)

    tree = _g_parser.parse(text)
    tree = TreeTransformer().transform(tree)

    items = next(iter(tree.iter_subtrees_topdown())).children

    proto = ProtoFile(
        package=_find_one(items, _Package),
        syntax=_find_one(items, _Syntax) or "proto2",
        imports=[i.value for i in _find_many(items, _Import)],
        options=_find_many(items, OptionDef),
        messages=_find_many(items, MessageDef),
        enums=_find_many(items, EnumDef),
        services=_find_many(items, ServiceDef),
    )

    validate(proto)

    return proto
