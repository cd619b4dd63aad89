"""Tests for writing and archiving output."""

import tarfile

from reflectgen.generator import archive, write
from reflectgen.generator.types import SynthesizedFile
from reflectgen.generator.writer import archive_path

FILES = [
    SynthesizedFile("pkg.v1", "service.proto", 'syntax = "proto3";\n'),
    SynthesizedFile("pkg.v1", "other.proto", 'syntax = "proto3";\npackage pkg.v1;\n'),
    SynthesizedFile("google.protobuf", "any.proto", 'syntax = "proto3";\npackage google.protobuf;\n'),
]


def describe_write():
    def creates_namespace_directories(expect, tmp_path):
        written = write(FILES, tmp_path / "out")
        expect(written[0]) == tmp_path / "out" / "pkg" / "v1" / "service.proto"
        expect(written[0].read_text()) == 'syntax = "proto3";\n'
        expect((tmp_path / "out" / "google" / "protobuf" / "any.proto").exists()) == True

    def overwrites_existing_files(expect, tmp_path):
        write(FILES, tmp_path)
        write([SynthesizedFile("pkg.v1", "service.proto", "changed\n")], tmp_path)
        expect((tmp_path / "pkg" / "v1" / "service.proto").read_text()) == "changed\n"


def describe_archive():
    def packs_the_tree_relative_to_root(expect, tmp_path):
        root = tmp_path / "generated_protos"
        write(FILES, root)

        target = archive(root)

        expect(target) == tmp_path.resolve() / "generated_protos.tar.gz"
        extracted = tmp_path / "extracted"
        with tarfile.open(target, "r:gz") as tar:
            tar.extractall(extracted, filter="data")
        expect(_contents(extracted)) == _contents(root)
        expect(_contents(extracted)["pkg/v1/other.proto"]) == b'syntax = "proto3";\npackage pkg.v1;\n'

    def places_archive_beside_root(expect, tmp_path):
        expect(archive_path(tmp_path / "out")) == tmp_path / "out.tar.gz"


def _contents(root):
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in root.rglob("*") if p.is_file()}
