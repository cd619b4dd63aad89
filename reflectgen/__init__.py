"""reflectgen - Synthesize .proto files from a gRPC server's reflection services."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("reflectgen")
except PackageNotFoundError:
    __version__ = "(local)"
