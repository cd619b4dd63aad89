"""Unit tests configuration file."""

from concurrent import futures

import grpc
import pytest
from google.protobuf import descriptor_pool, json_format
from grpc_reflection.v1alpha import reflection

from reflectgen.generator import parse
from reflectgen.generator.descriptors import to_descriptor
from reflectgen.reflection import stubs
from reflectgen.reflection.calls import COSMOS_DESCRIPTORS_SERVICE, COSMOS_INTERFACES_SERVICE

GREETER_PROTO = """
syntax = "proto3";

package example.v1;

option go_package = "example.com/greeter/v1";

service Greeter {
  rpc SayHello(HelloRequest) returns (HelloReply);
  rpc Chat(stream HelloRequest) returns (stream HelloReply);
}

enum Mood {
  MOOD_UNSPECIFIED = 0;
  MOOD_HAPPY = 1;
}

message HelloRequest {
  string name = 1;
  map<string, int32> tags = 2;
  repeated string aliases = 3;
}

message HelloReply {
  string message = 1;
  Mood mood = 2;
  Detail detail = 3;

  message Detail {
    int64 sent_at = 1;
  }
}
"""

GREETER_SERVICE = "example.v1.Greeter"

INTERFACES = {
    "cosmos.base.v1beta1.Msg": [
        "/cosmos.bank.v1beta1.MsgSend",
        "/cosmos.bank.v1beta1.MsgMultiSend",
    ],
    "cosmos.crypto.v1beta1.PubKey": ["/cosmos.crypto.secp256k1.PubKey"],
    "cosmos.broken.v1beta1.Iface": [],
}

# Interfaces whose implementation lookup fails on the server
BROKEN_INTERFACES = {"cosmos.broken.v1beta1.Iface"}

DESCRIPTORS = {
    "GetChainDescriptor": {"chain": {"id": "test-chain"}},
    "GetConfigurationDescriptor": {"config": {"bech32_account_address_prefix": "cosmos"}},
    "GetQueryServicesDescriptor": {
        "queries": {
            "query_services": [
                {
                    "fullname": "cosmos.bank.v1beta1.Query",
                    "is_module": True,
                    "methods": [{"name": "Balance", "full_query_path": "/bank/Balance"}],
                }
            ]
        }
    },
}


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


def _reflection_pool() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(
        to_descriptor(parse(GREETER_PROTO), "example/v1/greeter.proto").SerializeToString()
    )
    for content in stubs.proto_sources().values():
        proto = parse(content)
        name = (proto.package or "").replace(".", "/") + "/reflection.proto"
        pool.AddSerializedFile(to_descriptor(proto, name).SerializeToString())
    return pool


def _handler(request_name, response_name, behaviour, message):
    return grpc.unary_unary_rpc_method_handler(
        behaviour,
        request_deserializer=message(request_name).FromString,
        response_serializer=message(response_name).SerializeToString,
    )


def _interfaces_handler() -> grpc.GenericRpcHandler:
    response_type = stubs.interfaces_message("ListAllInterfacesResponse")
    implementations_type = stubs.interfaces_message("ListImplementationsResponse")

    def list_all_interfaces(request, context):
        return response_type(interface_names=list(INTERFACES))

    def list_implementations(request, context):
        if request.interface_name in BROKEN_INTERFACES:
            context.abort(grpc.StatusCode.INTERNAL, "registry unavailable")
        if request.interface_name not in INTERFACES:
            context.abort(grpc.StatusCode.NOT_FOUND, "unknown interface")
        names = INTERFACES[request.interface_name]
        return implementations_type(implementation_message_names=names)

    return grpc.method_handlers_generic_handler(
        COSMOS_INTERFACES_SERVICE,
        {
            "ListAllInterfaces": _handler(
                "ListAllInterfacesRequest",
                "ListAllInterfacesResponse",
                list_all_interfaces,
                stubs.interfaces_message,
            ),
            "ListImplementations": _handler(
                "ListImplementationsRequest",
                "ListImplementationsResponse",
                list_implementations,
                stubs.interfaces_message,
            ),
        },
    )


def _descriptors_handler() -> grpc.GenericRpcHandler:
    def respond(method, payload):
        response_type = stubs.descriptors_message(f"{method}Response")

        def behaviour(request, context):
            return json_format.ParseDict(payload, response_type())

        return behaviour

    handlers = {
        method: _handler(
            f"{method}Request",
            f"{method}Response",
            respond(method, payload),
            stubs.descriptors_message,
        )
        for method, payload in DESCRIPTORS.items()
    }
    return grpc.method_handlers_generic_handler(COSMOS_DESCRIPTORS_SERVICE, handlers)


@pytest.fixture
def reflection_server():
    """Address of a local server speaking both reflection dialects."""
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=4))
    server.add_generic_rpc_handlers((_interfaces_handler(), _descriptors_handler()))
    service_names = (GREETER_SERVICE, COSMOS_INTERFACES_SERVICE, COSMOS_DESCRIPTORS_SERVICE)
    reflection.enable_server_reflection(service_names, server, pool=_reflection_pool())
    port = server.add_insecure_port("localhost:0")
    server.start()
    yield f"localhost:{port}"
    server.stop(None)


@pytest.fixture
def bare_server():
    """Address of a local server that implements no reflection at all."""
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    port = server.add_insecure_port("localhost:0")
    server.start()
    yield f"localhost:{port}"
    server.stop(None)
