"""Tests for file descriptor conversion."""

import pytest
from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.message import DecodeError

from reflectgen.generator import parse
from reflectgen.generator.descriptors import DescriptorError, decode_file, to_descriptor

PROTO = """
syntax = "proto3";
package pkg.v1;
option go_package = "example.com/pkg/v1";

service Store {
  rpc Get(GetRequest) returns (stream GetResponse);
}

enum Kind {
  KIND_UNSPECIFIED = 0;
  KIND_A = 1;
}

message GetRequest {
  string id = 1;
  map<string, int64> counts = 2;
  optional Kind kind = 3;
}

message GetResponse {
  repeated Item items = 1;

  message Item {
    bytes data = 1;
  }
}
"""


def describe_to_descriptor():
    def loads_into_a_pool(expect):
        pool = descriptor_pool.DescriptorPool()
        pool.AddSerializedFile(to_descriptor(parse(PROTO), "pkg/v1/store.proto").SerializeToString())

        request = pool.FindMessageTypeByName("pkg.v1.GetRequest")
        expect(request.fields_by_name["kind"].enum_type.full_name) == "pkg.v1.Kind"
        expect(request.fields_by_name["counts"].message_type.GetOptions().map_entry) == True

        response = pool.FindMessageTypeByName("pkg.v1.GetResponse")
        item = response.fields_by_name["items"].message_type
        expect(item.full_name) == "pkg.v1.GetResponse.Item"

        method = pool.FindServiceByName("pkg.v1.Store").methods_by_name["Get"]
        expect(method.output_type.full_name) == "pkg.v1.GetResponse"

    def sets_json_names(expect):
        file_proto = to_descriptor(parse(PROTO), "pkg/v1/store.proto")
        request = file_proto.message_type[0]
        expect([f.json_name for f in request.field]) == ["id", "counts", "kind"]


def describe_decode_file():
    def restores_the_model(expect):
        blob = to_descriptor(parse(PROTO), "pkg/v1/store.proto").SerializeToString()
        proto = decode_file(blob)

        expect(proto.package) == "pkg.v1"
        expect(proto.syntax) == "proto3"
        request = proto.messages[0]
        expect([f.name for f in request.fields]) == ["id", "counts", "kind"]
        expect(request.fields[1].key_type) == "string"
        expect(request.fields[1].type) == "int64"
        expect(request.fields[2].label) == "optional"
        expect(request.fields[2].type) == "pkg.v1.Kind"
        expect(request.messages) == []

        method = proto.services[0].methods[0]
        expect(method.input_type) == "pkg.v1.GetRequest"
        expect(method.server_streaming) == True

    def raises_on_malformed_input(expect):
        with pytest.raises(DecodeError):
            decode_file(b"\x0a\x05ab")

    def keeps_go_package(expect):
        blob = to_descriptor(parse(PROTO), "pkg/v1/store.proto").SerializeToString()
        options = decode_file(blob).options
        expect([(o.name, o.value) for o in options]) == [("go_package", "example.com/pkg/v1")]

    def rejects_map_entry_without_value(expect):
        file_proto = descriptor_pb2.FileDescriptorProto(name="pkg/bad.proto", package="pkg")
        message = file_proto.message_type.add(name="Req")
        entry = message.nested_type.add(name="TagsEntry")
        entry.options.map_entry = True
        entry.field.add(
            name="key",
            number=1,
            label=descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL,
            type=descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
        )
        message.field.add(
            name="tags",
            number=1,
            label=descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED,
            type=descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE,
            type_name=".pkg.Req.TagsEntry",
        )

        with pytest.raises(DescriptorError, match="TagsEntry"):
            decode_file(file_proto.SerializeToString())
