"""Clients for the reflection dialects a gRPC server may expose."""

from .calls import CallOutcome as CallOutcome
from .calls import CallStatus as CallStatus
from .calls import Dialect as Dialect
from .calls import Endpoint as Endpoint
from .calls import FileContainingSymbol as FileContainingSymbol
from .calls import GetDescriptor as GetDescriptor
from .calls import ListAllInterfaces as ListAllInterfaces
from .calls import ListImplementations as ListImplementations
from .calls import ListServices as ListServices
from .calls import ReflectionCall as ReflectionCall
from .calls import Transport as Transport
from .client import ReflectionClient as ReflectionClient
from .client import ReflectionError as ReflectionError
from .client import open_channel as open_channel
