"""Tests for the reflection client."""

import pytest

from reflectgen.generator.catalog import DescriptorKind
from reflectgen.generator.descriptors import decode_file
from reflectgen.reflection import (
    CallStatus,
    Endpoint,
    FileContainingSymbol,
    GetDescriptor,
    ListImplementations,
    ListServices,
    ReflectionClient,
    Transport,
)


@pytest.fixture
def client(reflection_server):
    with ReflectionClient.connect(Endpoint(reflection_server, Transport.PLAINTEXT)) as client:
        yield client


@pytest.fixture
def bare_client(bare_server):
    with ReflectionClient.connect(Endpoint(bare_server, Transport.PLAINTEXT)) as client:
        yield client


def describe_calls():
    def labels_name_the_remote_method(expect):
        expect(ListServices().label) == (
            "grpc.reflection.v1alpha.ServerReflection/ServerReflectionInfo(list_services)"
        )
        expect(ListImplementations("pkg.Animal").label) == (
            "cosmos.base.reflection.v1beta1.ReflectionService/ListImplementations(pkg.Animal)"
        )
        expect(GetDescriptor(DescriptorKind.CHAIN).label) == (
            "cosmos.base.reflection.v2alpha1.ReflectionService/GetChainDescriptor"
        )

    def defaults_to_tls(expect):
        expect(Endpoint("localhost:9090").transport) == Transport.TLS


def describe_grpc_dialect():
    def lists_services(expect, client):
        outcome = client.list_services()
        expect(outcome.status) == CallStatus.OK
        expect(sorted(outcome.value)) == [
            "cosmos.base.reflection.v1beta1.ReflectionService",
            "cosmos.base.reflection.v2alpha1.ReflectionService",
            "example.v1.Greeter",
        ]

    def fetches_declaring_file(expect, client):
        outcome = client.file_containing_symbol("example.v1.Greeter")
        expect(outcome.ok) == True
        files = [decode_file(blob) for blob in outcome.value]
        expect([f.package for f in files]) == ["example.v1"]
        expect(files[0].services[0].name) == "Greeter"

    def reports_unknown_symbol_as_failure(expect, client):
        outcome = client.call(FileContainingSymbol("missing.v1.Nothing"))
        expect(outcome.status) == CallStatus.FAILED
        expect(outcome.value) == None
        expect(outcome.detail is not None) == True

    def reports_missing_reflection_as_unimplemented(expect, bare_client):
        outcome = bare_client.list_services()
        expect(outcome.status) == CallStatus.UNIMPLEMENTED
        expect(outcome.ok) == False


def describe_cosmos_dialect():
    def lists_interfaces_in_server_order(expect, client):
        outcome = client.list_all_interfaces()
        expect(outcome.value) == [
            "cosmos.base.v1beta1.Msg",
            "cosmos.crypto.v1beta1.PubKey",
            "cosmos.broken.v1beta1.Iface",
        ]

    def lists_implementations(expect, client):
        outcome = client.list_implementations("cosmos.base.v1beta1.Msg")
        expect(outcome.value) == [
            "/cosmos.bank.v1beta1.MsgSend",
            "/cosmos.bank.v1beta1.MsgMultiSend",
        ]

    def reports_server_errors_as_failures(expect, client):
        outcome = client.list_implementations("cosmos.broken.v1beta1.Iface")
        expect(outcome.status) == CallStatus.FAILED
        expect(outcome.detail) == "registry unavailable"

    def decodes_descriptor_payloads(expect, client):
        outcome = client.get_descriptor(DescriptorKind.CHAIN)
        expect(outcome.value) == {"chain": {"id": "test-chain"}}

    def reports_unserved_descriptors_as_unimplemented(expect, client):
        outcome = client.get_descriptor(DescriptorKind.AUTHN)
        expect(outcome.status) == CallStatus.UNIMPLEMENTED

    def reports_missing_service_as_unimplemented(expect, bare_client):
        expect(bare_client.list_all_interfaces().status) == CallStatus.UNIMPLEMENTED


def describe_call():
    def rejects_unknown_call_types(expect, client):
        with pytest.raises(TypeError):
            client.call(object())
