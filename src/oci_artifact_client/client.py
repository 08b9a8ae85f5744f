"""OCI artifact client: build, push and pull single-layer artifacts."""

import asyncio
import functools
import logging
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Optional, TypeVar

import aiofiles

from .core.reference import Reference, parse_reference
from .core.registry_client import RegistryClient
from .core.types import (
    STATIC_MEDIA_TYPE,
    TARBALL_MEDIA_TYPE,
    LayerDescriptor,
    RegistryConfig,
    RegistryTransport,
)
from .exceptions import (
    ArtifactIOError,
    NoLayersError,
    SourceNotFoundError,
    UnsupportedLayerTypeError,
)
from .models import Metadata, PullOptions, PushOptions, now_rfc3339
from .tar.builder import build as build_archive
from .tar.extractor import extract
from .tar.models import ExtractOptions, LayerType
from .tar.sniff import looks_like_gzip
from .utils.digest import calculate_file_digest

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _extract_blob(
    dest: Path,
    blob_path: Path,
    layer_type: Optional[LayerType],
    options: ExtractOptions,
    cancel: Optional[threading.Event] = None,
) -> LayerType:
    """Extract a downloaded layer, sniffing its type when not declared."""
    try:
        blob = open(blob_path, "rb")
    except OSError as e:
        raise ArtifactIOError("open", str(blob_path), e) from e

    with blob:
        if layer_type is None:
            try:
                is_gzip = looks_like_gzip(blob)
            except OSError as e:
                raise ArtifactIOError("read", str(blob_path), e) from e
            layer_type = LayerType.TARBALL if is_gzip else LayerType.STATIC
            logger.debug("detected layer type %s", layer_type.value)
        extract(dest, blob, layer_type, options, cancel=cancel)
    return layer_type


def _require_gzip(path: Path) -> None:
    try:
        with open(path, "rb") as f:
            is_gzip = looks_like_gzip(f)
    except OSError as e:
        raise ArtifactIOError("read", str(path), e) from e
    if not is_gzip:
        raise UnsupportedLayerTypeError(f"prebuilt archive is not gzip-compressed: {path}")


class ArtifactClient:
    """Builds, pushes and pulls single-layer OCI artifacts.

    Blocking filesystem work runs in the default executor. Cancelling a call
    stops the worker at its next entry or chunk and discards its output.
    """

    def __init__(
        self,
        transport: Optional[RegistryTransport] = None,
        config: Optional[RegistryConfig] = None,
    ) -> None:
        """Initialize the artifact client.

        Args:
            transport: Registry collaborator; defaults to RegistryClient
            config: Registry settings used for the default transport
        """
        self.config = config or RegistryConfig()
        self._owns_transport = transport is None
        self.transport: RegistryTransport = transport or RegistryClient(self.config)

    async def __aenter__(self) -> "ArtifactClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the default transport if this client created it."""
        if self._owns_transport and isinstance(self.transport, RegistryClient):
            await self.transport.close()

    async def _run_in_executor(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def _run_cancellable(self, func: Callable[..., T], *args) -> T:
        """Run a blocking function that observes a cancel event."""
        cancel = threading.Event()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, functools.partial(func, *args, cancel=cancel))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            cancel.set()
            # Let the worker remove its partial output before propagating
            try:
                await future
            except Exception as e:
                # The caller sees the cancellation, not the worker's exit error
                logger.debug(
                    "%s stopped after cancellation: %s", getattr(func, "__name__", func), e
                )
            raise

    async def build(
        self,
        artifact_path: Path | str,
        source_path: Path | str,
        ignore_rules: Optional[Iterable[str]] = None,
    ) -> None:
        """Build a gzip-compressed tarball from a file or directory.

        Args:
            artifact_path: Archive to create
            source_path: File or directory to package
            ignore_rules: Gitignore-style patterns applied to directories

        Raises:
            SourceNotFoundError: If source_path does not exist
            ArtifactIOError: If the archive cannot be written
        """
        await self._run_cancellable(
            build_archive, artifact_path, source_path, list(ignore_rules or [])
        )

    async def _file_chunks(self, path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(self.config.chunk_size)
                if not chunk:
                    break
                yield chunk

    async def push(
        self,
        url: str,
        source_path: Path | str,
        options: Optional[PushOptions] = None,
    ) -> str:
        """Package and upload an artifact.

        Args:
            url: Target reference, e.g. "localhost:5000/app/manifests:v1"
            source_path: File or directory to push
            options: Layer type, metadata, ignore rules and media type

        Returns:
            Canonical digest reference of the pushed manifest

        Raises:
            InvalidReferenceError: If url is malformed
            SourceNotFoundError: If source_path does not exist
            UnsupportedLayerTypeError: If the layer type is unknown or does
                not fit the source
            RegistryError: If the upload fails
        """
        options = options or PushOptions()
        reference = parse_reference(url)
        source = Path(source_path)
        if not source.exists():
            raise SourceNotFoundError(f"invalid source path: {source}")

        layer_type = (
            LayerType.parse(options.layer_type) if options.layer_type else LayerType.TARBALL
        )
        if (layer_type is LayerType.STATIC or options.prebuilt_archive) and not source.is_file():
            raise UnsupportedLayerTypeError(
                f"{layer_type.value} layer requires a file, got directory: {source}"
            )

        metadata = options.metadata
        if not metadata.created:
            metadata = replace(metadata, created=now_rfc3339())

        with tempfile.TemporaryDirectory(prefix="oci-artifact-") as tmp:
            if layer_type is LayerType.STATIC:
                blob_path = source
                media_type = options.media_type or STATIC_MEDIA_TYPE
            else:
                media_type = options.media_type or TARBALL_MEDIA_TYPE
                if options.prebuilt_archive:
                    await self._run_in_executor(_require_gzip, source)
                    blob_path = source
                else:
                    blob_path = Path(tmp) / "artifact.tgz"
                    await self.build(blob_path, source, options.ignore_rules)

            try:
                digest, size = await self._run_in_executor(calculate_file_digest, blob_path)
            except OSError as e:
                raise ArtifactIOError("digest", str(blob_path), e) from e

            layer = LayerDescriptor(media_type=media_type, digest=digest, size=size)
            manifest_digest = await self.transport.push_artifact(
                reference, layer, self._file_chunks(blob_path), metadata.to_annotations()
            )

        result = reference.context_digest(manifest_digest)
        logger.info("pushed %s (%s layer %s)", result, layer_type.value, digest)
        return result

    async def _download(self, reference: Reference, digest: str, path: Path) -> None:
        try:
            async with aiofiles.open(path, "wb") as f:
                async for chunk in self.transport.stream_blob(
                    reference, digest, self.config.chunk_size
                ):
                    await f.write(chunk)
        except OSError as e:
            raise ArtifactIOError("download", str(path), e) from e

    async def pull(
        self,
        url: str,
        dest_path: Path | str,
        options: Optional[PullOptions] = None,
    ) -> Metadata:
        """Download an artifact and extract its first layer.

        Tarball layers are expanded into dest_path as a directory, static
        layers are written to dest_path as a file. Without an explicit layer
        type the layer content is checked for a gzip header.

        Args:
            url: Artifact reference
            dest_path: Extraction target
            options: Layer type and extraction limits

        Returns:
            Metadata decoded from the manifest with url and digest set

        Raises:
            InvalidReferenceError: If url is malformed
            NoLayersError: If the manifest has no layers
            UnsupportedLayerTypeError: If the layer type is unknown
            SizeLimitExceededError: If the tarball exceeds max_untar_size
            RegistryError: If the download fails
        """
        options = options or PullOptions()
        reference = parse_reference(url)
        layer_type = LayerType.parse(options.layer_type) if options.layer_type else None

        artifact = await self.transport.fetch_artifact(reference)
        if not artifact.layers:
            raise NoLayersError(f"no layers found in artifact {url}")
        if len(artifact.layers) > 1:
            logger.warning(
                "artifact %s has %d layers, only the first is extracted",
                url,
                len(artifact.layers),
            )

        metadata = Metadata.from_annotations(artifact.annotations)
        metadata.url = url
        metadata.digest = reference.context_digest(artifact.digest)

        layer = artifact.layers[0]
        extract_options = ExtractOptions(
            max_size=options.max_untar_size, skip_symlinks=options.skip_symlinks
        )
        with tempfile.TemporaryDirectory(prefix="oci-artifact-") as tmp:
            blob_path = Path(tmp) / "layer"
            await self._download(reference, layer.digest, blob_path)
            resolved = await self._run_cancellable(
                _extract_blob, Path(dest_path), blob_path, layer_type, extract_options
            )

        logger.info("pulled %s into %s (%s layer)", metadata.digest, dest_path, resolved.value)
        return metadata
