"""Client for the gRPC and Cosmos reflection dialects."""

import logging
from types import TracebackType
from typing import Any

import grpc
from google.protobuf import json_format
from google.protobuf.message import Message
from grpc_reflection.v1alpha import reflection_pb2, reflection_pb2_grpc

from reflectgen.generator.catalog import DescriptorKind

from . import stubs
from .calls import (
    COSMOS_DESCRIPTORS_SERVICE,
    COSMOS_INTERFACES_SERVICE,
    CallOutcome,
    CallStatus,
    Endpoint,
    FileContainingSymbol,
    GetDescriptor,
    ListAllInterfaces,
    ListImplementations,
    ListServices,
    ReflectionCall,
    Transport,
)

logger = logging.getLogger(__name__)


class ReflectionError(RuntimeError):
    """Raised when a reflection stream answers with an error response."""

    def __init__(self, code: grpc.StatusCode | None, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _status_code(number: int) -> grpc.StatusCode | None:
    for code in grpc.StatusCode:
        if code.value[0] == number:
            return code
    return None


def open_channel(endpoint: Endpoint, root_certificates: bytes | None = None) -> grpc.Channel:
    """Open a channel to the endpoint using its transport."""
    if endpoint.transport == Transport.PLAINTEXT:
        return grpc.insecure_channel(endpoint.address)
    credentials = grpc.ssl_channel_credentials(root_certificates=root_certificates)
    return grpc.secure_channel(endpoint.address, credentials)


class ReflectionClient:
    """Uniform call interface over both reflection dialects.

    Every call returns a CallOutcome instead of raising. A status of
    UNIMPLEMENTED means the server does not serve that method, which is a
    normal answer; any other remote error yields FAILED.

    Example:
        with ReflectionClient.connect(Endpoint("localhost:9090", Transport.PLAINTEXT)) as client:
            outcome = client.list_services()
            if outcome.ok:
                print(outcome.value)
    """

    def __init__(self, channel: grpc.Channel):
        self._channel = channel
        self._reflection = reflection_pb2_grpc.ServerReflectionStub(channel)

    @classmethod
    def connect(
        cls, endpoint: Endpoint, root_certificates: bytes | None = None
    ) -> "ReflectionClient":
        """Create a client owning a fresh channel to the endpoint."""
        return cls(open_channel(endpoint, root_certificates))

    def close(self) -> None:
        self._channel.close()

    def __enter__(self) -> "ReflectionClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def call(self, call: ReflectionCall) -> CallOutcome[Any]:
        """Perform one reflection call and classify its result."""
        try:
            value = self._dispatch(call)
        except ReflectionError as e:
            return self._failure(call, e.code, e.message)
        except grpc.RpcError as e:
            if isinstance(e, grpc.Call):
                return self._failure(call, e.code(), e.details() or str(e.code()))
            return self._failure(call, None, str(e))
        return CallOutcome(call=call, status=CallStatus.OK, value=value)

    def _failure(
        self, call: ReflectionCall, code: grpc.StatusCode | None, detail: str
    ) -> CallOutcome[Any]:
        if code == grpc.StatusCode.UNIMPLEMENTED:
            logger.info("%s is not implemented by the server", call.label)
            return CallOutcome(call=call, status=CallStatus.UNIMPLEMENTED, detail=detail)
        logger.warning("%s failed: %s", call.label, detail)
        return CallOutcome(call=call, status=CallStatus.FAILED, detail=detail)

    def _dispatch(self, call: ReflectionCall) -> Any:
        if isinstance(call, ListServices):
            return self._list_services()
        if isinstance(call, FileContainingSymbol):
            return self._file_containing_symbol(call.symbol)
        if isinstance(call, ListAllInterfaces):
            return self._list_all_interfaces()
        if isinstance(call, ListImplementations):
            return self._list_implementations(call.interface_name)
        if isinstance(call, GetDescriptor):
            return self._get_descriptor(call.kind)
        raise TypeError(f"Unsupported reflection call: {call!r}")

    # Typed entry points

    def list_services(self) -> CallOutcome[list[str]]:
        return self.call(ListServices())

    def file_containing_symbol(self, symbol: str) -> CallOutcome[list[bytes]]:
        return self.call(FileContainingSymbol(symbol))

    def list_all_interfaces(self) -> CallOutcome[list[str]]:
        return self.call(ListAllInterfaces())

    def list_implementations(self, interface_name: str) -> CallOutcome[list[str]]:
        return self.call(ListImplementations(interface_name))

    def get_descriptor(self, kind: DescriptorKind) -> CallOutcome[dict[str, Any]]:
        return self.call(GetDescriptor(kind))

    # gRPC server reflection

    def _reflect(
        self, request: reflection_pb2.ServerReflectionRequest
    ) -> reflection_pb2.ServerReflectionResponse:
        responses = list(self._reflection.ServerReflectionInfo(iter([request])))
        if not responses:
            raise ReflectionError(None, "reflection stream closed without a response")

        response = responses[0]
        if response.HasField("error_response"):
            error = response.error_response
            raise ReflectionError(_status_code(error.error_code), error.error_message)
        return response

    def _list_services(self) -> list[str]:
        response = self._reflect(reflection_pb2.ServerReflectionRequest(list_services=""))
        return [service.name for service in response.list_services_response.service]

    def _file_containing_symbol(self, symbol: str) -> list[bytes]:
        response = self._reflect(
            reflection_pb2.ServerReflectionRequest(file_containing_symbol=symbol)
        )
        return list(response.file_descriptor_response.file_descriptor_proto)

    # Cosmos reflection

    def _unary(
        self, service: str, method: str, request: Message, response_type: type[Message]
    ) -> Any:
        rpc = self._channel.unary_unary(
            f"/{service}/{method}",
            request_serializer=type(request).SerializeToString,
            response_deserializer=response_type.FromString,
        )
        return rpc(request)

    def _list_all_interfaces(self) -> list[str]:
        response = self._unary(
            COSMOS_INTERFACES_SERVICE,
            "ListAllInterfaces",
            stubs.interfaces_message("ListAllInterfacesRequest")(),
            stubs.interfaces_message("ListAllInterfacesResponse"),
        )
        return list(response.interface_names)

    def _list_implementations(self, interface_name: str) -> list[str]:
        response = self._unary(
            COSMOS_INTERFACES_SERVICE,
            "ListImplementations",
            stubs.interfaces_message("ListImplementationsRequest")(interface_name=interface_name),
            stubs.interfaces_message("ListImplementationsResponse"),
        )
        return list(response.implementation_message_names)

    def _get_descriptor(self, kind: DescriptorKind) -> dict[str, Any]:
        method = GetDescriptor(kind).method
        response = self._unary(
            COSMOS_DESCRIPTORS_SERVICE,
            method,
            stubs.descriptors_message(f"{method}Request")(),
            stubs.descriptors_message(f"{method}Response"),
        )
        return json_format.MessageToDict(response, preserving_proto_field_name=True)
