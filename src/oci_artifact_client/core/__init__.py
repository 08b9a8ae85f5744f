"""Registry transport and reference handling."""

from .reference import Reference, parse_reference
from .registry_client import RegistryClient
from .types import (
    LayerDescriptor,
    RegistryConfig,
    RegistryTransport,
    RemoteArtifact,
)

__all__ = [
    "Reference",
    "parse_reference",
    "RegistryClient",
    "RegistryConfig",
    "RegistryTransport",
    "LayerDescriptor",
    "RemoteArtifact",
]
