"""Test helpers: in-memory transport and archive fixtures."""

import hashlib
import io
import os
import tarfile
import time
import uuid
from pathlib import Path
from typing import AsyncIterator, Mapping

from oci_artifact_client.core.reference import Reference
from oci_artifact_client.core.types import LayerDescriptor, RemoteArtifact

ARTIFACT_FILES = {
    "deploy/repo.yaml": "kind: GitRepository\n",
    "deployment.yaml": "apiVersion: apps/v1\nkind: Deployment\n",
    "ignore-dir/deployment.yaml": "kind: Deployment\n",
    "ignore.txt": "ignore me\n",
    "somedir/repo.yaml": "kind: GitRepository\n",
    "somedir/git/repo.yaml": "kind: GitRepository\n",
}


def generate_test_id() -> str:
    """Generate unique test identifier."""
    timestamp = int(time.time() * 1000) % 10000  # Last 4 digits of ms timestamp
    uuid_part = str(uuid.uuid4())[:8]
    worker_id = os.getenv("PYTEST_XDIST_WORKER", "main")
    return f"{worker_id}-{timestamp}-{uuid_part}"


def write_tree(root: Path, files: Mapping[str, str]) -> Path:
    """Create files (and parent directories) under root."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def archive_names(archive_path: Path) -> list[str]:
    """List entry names of a tar.gz archive."""
    with tarfile.open(archive_path, "r:gz") as tar:
        return tar.getnames()


def make_tar_gz(entries: list[tarfile.TarInfo], contents: Mapping[str, bytes] | None = None) -> bytes:
    """Build a tar.gz in memory from hand-crafted headers."""
    contents = contents or {}
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for info in entries:
            data = contents.get(info.name)
            if data is not None:
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
            else:
                tar.addfile(info)
    return buf.getvalue()


def file_entry(name: str) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.mode = 0o644
    return info


def symlink_entry(name: str, target: str) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    return info


class FakeTransport:
    """In-memory registry keyed by repository and tag."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.manifests: dict[tuple[str, str], RemoteArtifact] = {}
        self.pushed_layers: list[LayerDescriptor] = []

    def put(
        self,
        reference: Reference,
        blobs: list[bytes],
        annotations: Mapping[str, str] | None = None,
        media_type: str = "application/vnd.acme.some.content.layer.v1.tar+gzip",
    ) -> str:
        """Store an artifact the way a third-party tool would."""
        layers = []
        for blob in blobs:
            digest = "sha256:" + hashlib.sha256(blob).hexdigest()
            self.blobs[digest] = blob
            layers.append(LayerDescriptor(media_type, digest, len(blob)))
        manifest_digest = "sha256:" + hashlib.sha256(repr(layers).encode()).hexdigest()
        self.manifests[(reference.repository, reference.identifier)] = RemoteArtifact(
            digest=manifest_digest,
            annotations=dict(annotations or {}),
            layers=tuple(layers),
        )
        return manifest_digest

    async def fetch_artifact(self, reference: Reference) -> RemoteArtifact:
        return self.manifests[(reference.repository, reference.identifier)]

    async def stream_blob(
        self, reference: Reference, digest: str, chunk_size: int = 4
    ) -> AsyncIterator[bytes]:
        data = self.blobs[digest]
        for i in range(0, len(data), chunk_size):
            yield data[i : i + chunk_size]

    async def push_artifact(
        self,
        reference: Reference,
        layer: LayerDescriptor,
        chunks: AsyncIterator[bytes],
        annotations: Mapping[str, str],
    ) -> str:
        data = b"".join([chunk async for chunk in chunks])
        assert "sha256:" + hashlib.sha256(data).hexdigest() == layer.digest
        assert len(data) == layer.size
        self.pushed_layers.append(layer)
        self.blobs[layer.digest] = data
        digest = "sha256:" + hashlib.sha256(repr(layer).encode()).hexdigest()
        self.manifests[(reference.repository, reference.identifier)] = RemoteArtifact(
            digest=digest, annotations=dict(annotations), layers=(layer,)
        )
        return digest
