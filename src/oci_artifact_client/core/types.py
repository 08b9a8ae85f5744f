"""Transport boundary types and registry configuration."""

import os
from dataclasses import dataclass, field
from typing import AsyncIterator, Mapping, Protocol

from ..tar.models import CHUNK_SIZE
from .reference import Reference

OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
CONFIG_MEDIA_TYPE = "application/vnd.cncf.flux.config.v1+json"
TARBALL_MEDIA_TYPE = "application/vnd.cncf.flux.content.v1.tar+gzip"
STATIC_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class RegistryConfig:
    """Registry transport settings."""

    timeout: int = 300
    insecure: bool = False  # Use plain HTTP for every registry
    chunk_size: int = CHUNK_SIZE

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        """Build a config from OCI_ARTIFACT_TIMEOUT and OCI_ARTIFACT_INSECURE."""
        timeout = int(os.getenv("OCI_ARTIFACT_TIMEOUT", str(cls.timeout)))
        insecure = os.getenv("OCI_ARTIFACT_INSECURE", "false").lower() in ("1", "true", "yes")
        return cls(timeout=timeout, insecure=insecure)


@dataclass(frozen=True)
class LayerDescriptor:
    """A blob referenced from a manifest."""

    media_type: str
    digest: str
    size: int

    def to_dict(self) -> dict:
        return {"mediaType": self.media_type, "digest": self.digest, "size": self.size}

    @classmethod
    def from_dict(cls, data: Mapping) -> "LayerDescriptor":
        return cls(
            media_type=str(data.get("mediaType", "")),
            digest=str(data.get("digest", "")),
            size=int(data.get("size", 0)),
        )


@dataclass(frozen=True)
class RemoteArtifact:
    """What the transport reports about a pulled manifest."""

    digest: str
    annotations: Mapping[str, str] = field(default_factory=dict)
    layers: tuple[LayerDescriptor, ...] = ()


class RegistryTransport(Protocol):
    """Registry collaborator used by ArtifactClient.

    Implementations own authentication, retries and wire-level digest
    verification.
    """

    async def fetch_artifact(self, reference: Reference) -> RemoteArtifact: ...

    def stream_blob(
        self, reference: Reference, digest: str, chunk_size: int = CHUNK_SIZE
    ) -> AsyncIterator[bytes]: ...

    async def push_artifact(
        self,
        reference: Reference,
        layer: LayerDescriptor,
        chunks: AsyncIterator[bytes],
        annotations: Mapping[str, str],
    ) -> str: ...
