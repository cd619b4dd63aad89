"""Drive a reflection client through the full discovery sequence."""

import logging
from collections.abc import Iterable
from typing import Any

from google.protobuf.message import DecodeError

from reflectgen.reflection import CallOutcome, CallStatus, Dialect, ReflectionClient

from .catalog import (
    CallFailure,
    Catalog,
    DescriptorKind,
    InterfaceBinding,
    NamedDescriptor,
    ServiceEntry,
    to_value,
)
from .descriptors import DescriptorError, decode_file
from .types import split_name

logger = logging.getLogger(__name__)

ALL_DIALECTS = (Dialect.GRPC, Dialect.COSMOS)


def _record(catalog: Catalog, outcome: CallOutcome[Any]) -> bool:
    """Record an unsuccessful outcome in the catalog. Returns outcome.ok."""
    if outcome.ok:
        return True
    if outcome.status == CallStatus.UNIMPLEMENTED:
        catalog.unavailable.append(outcome.call.label)
    else:
        catalog.failures.append(CallFailure(call=outcome.call.label, detail=outcome.detail or ""))
    return False


def _collect_service(client: ReflectionClient, catalog: Catalog, name: str) -> ServiceEntry | None:
    outcome = client.file_containing_symbol(name)
    if not _record(catalog, outcome):
        return None

    try:
        files = [decode_file(blob) for blob in outcome.value or []]
    except (DecodeError, DescriptorError) as e:
        logger.warning("Malformed file descriptor for %s: %s", name, e)
        detail = f"malformed file descriptor: {e}"
        catalog.failures.append(CallFailure(call=outcome.call.label, detail=detail))
        return None

    namespace, service_name = split_name(name)
    for proto in files:
        if (proto.package or "") != namespace:
            continue
        for service in proto.services:
            if service.name == service_name:
                return ServiceEntry(
                    name=name,
                    methods=service.methods,
                    messages=proto.messages,
                    enums=proto.enums,
                    options=proto.options,
                )

    logger.warning("No file descriptor returned for %s declares it", name)
    detail = "service not declared in returned files"
    catalog.failures.append(CallFailure(call=outcome.call.label, detail=detail))
    return None


def collect_services(client: ReflectionClient, catalog: Catalog) -> None:
    """List services, then fetch and decode the file declaring each one."""
    outcome = client.list_services()
    if not _record(catalog, outcome):
        return

    for name in outcome.value or []:
        logger.debug("Fetching descriptor for service %s", name)
        entry = _collect_service(client, catalog, name)
        if entry is not None:
            catalog.services.append(entry)


def collect_bindings(client: ReflectionClient, catalog: Catalog) -> None:
    """List interfaces, then the implementations of each, one call at a time."""
    outcome = client.list_all_interfaces()
    if not _record(catalog, outcome):
        return

    interfaces: list[str] = list(outcome.value or [])
    for interface in interfaces:
        implementations = client.list_implementations(interface)
        if not _record(catalog, implementations):
            continue
        logger.debug("%s has %d implementations", interface, len(implementations.value or []))
        catalog.bindings.append(
            InterfaceBinding(interface=interface, implementations=list(implementations.value or []))
        )


def collect_descriptors(client: ReflectionClient, catalog: Catalog) -> None:
    """Fetch every named descriptor; absent ones are kept with no value."""
    for kind in DescriptorKind:
        outcome = client.get_descriptor(kind)
        value = to_value(outcome.value) if _record(catalog, outcome) else None
        catalog.descriptors.append(NamedDescriptor(kind=kind, value=value))


def collect(client: ReflectionClient, dialects: Iterable[Dialect] = ALL_DIALECTS) -> Catalog:
    """Build a catalog of everything the endpoint exposes.

    Calls are issued sequentially. A dialect the server does not implement
    leaves its part of the catalog empty and is listed in catalog.unavailable.
    """
    enabled = set(dialects)
    catalog = Catalog()

    if Dialect.GRPC in enabled:
        collect_services(client, catalog)
    if Dialect.COSMOS in enabled:
        collect_bindings(client, catalog)
        collect_descriptors(client, catalog)

    logger.info(
        "Collected %d services, %d interfaces, %d descriptors",
        len(catalog.services),
        len(catalog.bindings),
        sum(1 for d in catalog.descriptors if d.value is not None),
    )
    return catalog
