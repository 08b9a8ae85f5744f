"""OCI Registry API v2 async transport implementation."""

import hashlib
import json
import logging
from typing import AsyncIterator, Dict, Mapping, Optional, Union
from urllib.parse import urljoin

import aiohttp

from ..exceptions import (
    BlobDownloadError,
    BlobUploadError,
    ManifestError,
    RegistryConnectionError,
)
from ..tar.models import CHUNK_SIZE
from ..utils.digest import calculate_digest, validate_digest
from .reference import Reference
from .types import (
    CONFIG_MEDIA_TYPE,
    OCI_MANIFEST_MEDIA_TYPE,
    LayerDescriptor,
    RegistryConfig,
    RemoteArtifact,
)

logger = logging.getLogger(__name__)

EMPTY_CONFIG = b"{}"

MANIFEST_ACCEPT = ", ".join(
    [
        OCI_MANIFEST_MEDIA_TYPE,
        "application/vnd.docker.distribution.manifest.v2+json",
    ]
)

_PLAIN_HTTP_HOSTS = ("localhost", "127.0.0.1", "[::1]")


class RegistryClient:
    """OCI Registry API v2 async client for unauthenticated registries."""

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            config: Timeout and scheme settings
            connector: aiohttp connector for connection pooling
        """
        self.config = config or RegistryConfig()
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
        return self.session

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def base_url(self, reference: Reference) -> str:
        """Registry root URL for a reference."""
        registry = reference.registry
        if registry.startswith("["):
            host = registry.split("]", 1)[0] + "]"
        else:
            host = registry.split(":", 1)[0]
        scheme = "http" if self.config.insecure or host in _PLAIN_HTTP_HOSTS else "https"
        return f"{scheme}://{reference.registry}"

    def _repo_url(self, reference: Reference) -> str:
        return f"{self.base_url(reference)}/v2/{reference.repository}"

    async def check_registry_v2(self, reference: Reference) -> bool:
        """Check if the registry supports v2 API.

        Returns:
            True if v2 API is supported
        """
        session = self._ensure_session()
        try:
            async with session.get(f"{self.base_url(reference)}/v2/") as resp:
                return resp.status == 200
        except aiohttp.ClientError:
            return False

    async def check_blob_exists(self, reference: Reference, digest: str) -> bool:
        """Check if a blob exists in the registry.

        Args:
            reference: Artifact reference selecting the repository
            digest: Blob digest

        Returns:
            True if blob exists
        """
        session = self._ensure_session()
        try:
            url = f"{self._repo_url(reference)}/blobs/{digest}"
            async with session.head(url) as resp:
                return resp.status == 200
        except aiohttp.ClientError:
            return False

    def _location(self, resp: aiohttp.ClientResponse, reference: Reference) -> str:
        location = resp.headers.get("Location", "")
        if not location.startswith("http"):
            location = urljoin(self.base_url(reference), location)
        return location

    async def upload_blob(
        self,
        reference: Reference,
        data: Union[bytes, AsyncIterator[bytes]],
        digest: str,
    ) -> str:
        """Upload a blob to the registry.

        Args:
            reference: Artifact reference selecting the repository
            data: Blob data (bytes or async iterator)
            digest: Expected blob digest

        Returns:
            Blob digest

        Raises:
            BlobUploadError: If upload fails
        """
        # Validate digest format
        if not validate_digest(digest):
            raise ValueError(f"Invalid digest format: {digest}")

        session = self._ensure_session()
        try:
            # Start upload session
            async with session.post(f"{self._repo_url(reference)}/blobs/uploads/") as resp:
                resp.raise_for_status()
                upload_url = self._location(resp, reference)

            if isinstance(data, (bytes, bytearray)):
                chunks = [
                    data[i : i + self.config.chunk_size]
                    for i in range(0, len(data), self.config.chunk_size)
                ]
            else:
                chunks = data

            uploaded_bytes = 0
            if hasattr(chunks, "__aiter__"):
                async for chunk in chunks:
                    upload_url = await self._patch_chunk(upload_url, chunk, reference)
                    uploaded_bytes += len(chunk)
            else:
                for chunk in chunks:
                    upload_url = await self._patch_chunk(upload_url, chunk, reference)
                    uploaded_bytes += len(chunk)

            # Finalize upload
            final_url = (
                f"{upload_url}&digest={digest}"
                if "?" in upload_url
                else f"{upload_url}?digest={digest}"
            )
            async with session.put(final_url, headers={"Content-Length": "0"}) as resp:
                resp.raise_for_status()

            logger.debug("uploaded blob %s (%d bytes)", digest, uploaded_bytes)
            return digest

        except aiohttp.ClientError as e:
            raise BlobUploadError(f"Failed to upload blob {digest}: {e}") from e

    async def _patch_chunk(self, upload_url: str, chunk: bytes, reference: Reference) -> str:
        async with self._ensure_session().patch(
            upload_url,
            data=chunk,
            headers={
                "Content-Type": "application/octet-stream",
                "Content-Length": str(len(chunk)),
            },
        ) as resp:
            resp.raise_for_status()
            return self._location(resp, reference)

    async def stream_blob(
        self,
        reference: Reference,
        digest: str,
        chunk_size: int = CHUNK_SIZE,
    ) -> AsyncIterator[bytes]:
        """Download a blob as an async stream of chunks.

        Args:
            reference: Artifact reference selecting the repository
            digest: Blob digest
            chunk_size: Maximum size of yielded chunks

        Yields:
            Chunks of blob data

        Raises:
            BlobDownloadError: If download fails or the content does not match
                the digest
        """
        if not validate_digest(digest):
            raise BlobDownloadError(f"Invalid digest format: {digest}")

        algorithm, expected = digest.split(":", 1)
        hasher = hashlib.new(algorithm)
        session = self._ensure_session()
        try:
            url = f"{self._repo_url(reference)}/blobs/{digest}"
            async with session.get(url) as resp:
                resp.raise_for_status()
                async for chunk in resp.content.iter_chunked(chunk_size):
                    hasher.update(chunk)
                    yield chunk
        except aiohttp.ClientError as e:
            raise BlobDownloadError(f"Failed to download blob {digest}: {e}") from e

        # Data is only trustworthy once the stream ends without error
        if hasher.hexdigest() != expected:
            raise BlobDownloadError(
                f"Digest mismatch for blob {digest}: got {algorithm}:{hasher.hexdigest()}"
            )

    async def upload_manifest(
        self,
        reference: Reference,
        manifest: Dict,
        media_type: str = OCI_MANIFEST_MEDIA_TYPE,
    ) -> str:
        """Upload a manifest to the registry.

        Args:
            reference: Artifact reference; its tag or digest is the target
            manifest: Manifest dictionary
            media_type: Manifest media type

        Returns:
            Manifest digest

        Raises:
            ManifestError: If upload fails
        """
        session = self._ensure_session()
        try:
            url = f"{self._repo_url(reference)}/manifests/{reference.identifier}"
            manifest_data = json.dumps(manifest, separators=(",", ":")).encode("utf-8")

            async with session.put(
                url,
                data=manifest_data,
                headers={
                    "Content-Type": media_type,
                    "Content-Length": str(len(manifest_data)),
                },
            ) as resp:
                resp.raise_for_status()
                return resp.headers.get(
                    "Docker-Content-Digest", calculate_digest(manifest_data)
                )

        except aiohttp.ClientError as e:
            raise ManifestError(f"Failed to upload manifest: {e}") from e

    @staticmethod
    def _matches_digest(data: bytes, digest: str) -> bool:
        if not validate_digest(digest):
            return False
        algorithm = digest.split(":", 1)[0]
        return calculate_digest(data, algorithm) == digest

    async def get_manifest(self, reference: Reference) -> tuple[Dict, str]:
        """Retrieve a manifest from the registry.

        Args:
            reference: Artifact reference

        Returns:
            Tuple of manifest dictionary and manifest digest

        Raises:
            ManifestError: If retrieval fails or the body does not match the
                pinned digest or the Docker-Content-Digest header
        """
        session = self._ensure_session()
        try:
            url = f"{self._repo_url(reference)}/manifests/{reference.identifier}"
            async with session.get(url, headers={"Accept": MANIFEST_ACCEPT}) as resp:
                resp.raise_for_status()
                body = await resp.read()
                header_digest = resp.headers.get("Docker-Content-Digest", "")
        except aiohttp.ClientError as e:
            raise ManifestError(f"Failed to get manifest: {e}") from e

        for expected in (reference.digest, header_digest):
            if expected and not self._matches_digest(body, expected):
                raise ManifestError(
                    f"Digest mismatch for manifest {reference}: expected {expected}"
                )
        digest = reference.digest or header_digest or calculate_digest(body)

        try:
            manifest = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"Invalid manifest for {reference}: {e}") from e
        if not isinstance(manifest, dict):
            raise ManifestError(f"Invalid manifest for {reference}: not an object")
        return manifest, digest

    async def fetch_artifact(self, reference: Reference) -> RemoteArtifact:
        """Fetch the manifest of an artifact.

        Raises:
            ManifestError: If the manifest cannot be retrieved or parsed
        """
        manifest, digest = await self.get_manifest(reference)
        layers = manifest.get("layers") or []
        if not isinstance(layers, list):
            raise ManifestError(f"Invalid manifest for {reference}: layers is not a list")
        annotations = manifest.get("annotations") or {}
        return RemoteArtifact(
            digest=digest,
            annotations={str(k): str(v) for k, v in annotations.items()},
            layers=tuple(LayerDescriptor.from_dict(layer) for layer in layers),
        )

    async def push_artifact(
        self,
        reference: Reference,
        layer: LayerDescriptor,
        chunks: AsyncIterator[bytes],
        annotations: Mapping[str, str],
    ) -> str:
        """Push a single-layer artifact.

        Uploads the layer (unless already present), an empty config blob and
        an OCI image manifest carrying the annotations.

        Args:
            reference: Target reference; its tag names the manifest
            layer: Descriptor of the layer blob
            chunks: Layer content as an async stream
            annotations: Manifest annotations

        Returns:
            Manifest digest

        Raises:
            RegistryConnectionError: If the registry does not speak v2
            BlobUploadError: If blob upload fails
            ManifestError: If manifest upload fails
        """
        # Check registry availability
        if not await self.check_registry_v2(reference):
            raise RegistryConnectionError(
                f"Registry at {self.base_url(reference)} does not support v2 API"
            )

        if await self.check_blob_exists(reference, layer.digest):
            logger.debug("layer %s already present, skipping upload", layer.digest)
        else:
            await self.upload_blob(reference, chunks, layer.digest)

        config_digest = calculate_digest(EMPTY_CONFIG)
        if not await self.check_blob_exists(reference, config_digest):
            await self.upload_blob(reference, EMPTY_CONFIG, config_digest)

        manifest = {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "config": {
                "mediaType": CONFIG_MEDIA_TYPE,
                "size": len(EMPTY_CONFIG),
                "digest": config_digest,
            },
            "layers": [layer.to_dict()],
        }
        if annotations:
            manifest["annotations"] = dict(annotations)

        return await self.upload_manifest(reference, manifest)
