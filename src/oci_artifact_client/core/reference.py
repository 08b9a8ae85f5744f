"""Artifact reference parsing."""

import re
from dataclasses import dataclass

from ..exceptions import InvalidReferenceError

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"
OCI_SCHEME = "oci://"

_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")
_REGISTRY = re.compile(r"^[a-zA-Z0-9.-]+(?::[0-9]+)?$|^\[[0-9a-fA-F:]+\](?::[0-9]+)?$")


@dataclass(frozen=True)
class Reference:
    """A parsed ``registry/repository[:tag][@digest]`` reference."""

    registry: str
    repository: str
    tag: str = ""
    digest: str = ""

    @property
    def identifier(self) -> str:
        """Digest if pinned, else tag; what the manifest endpoint expects."""
        return self.digest or self.tag or DEFAULT_TAG

    @property
    def context(self) -> str:
        return f"{self.registry}/{self.repository}"

    def context_digest(self, digest: str) -> str:
        """Canonical digest reference within this repository."""
        return f"{self.context}@{digest}"

    def __str__(self) -> str:
        name = self.context
        if self.tag:
            name = f"{name}:{self.tag}"
        if self.digest:
            name = f"{name}@{self.digest}"
        return name


def _split_registry(name: str) -> tuple[str, str]:
    if "/" in name:
        head, rest = name.split("/", 1)
        if "." in head or ":" in head or head == "localhost":
            return head, rest
    if "/" not in name:
        name = f"library/{name}"
    return DEFAULT_REGISTRY, name


def parse_reference(value: str) -> Reference:
    """Parse an artifact reference.

    Args:
        value: Reference such as "ghcr.io/org/app:v1.0", optionally prefixed
            with "oci://" and/or pinned with "@sha256:..."

    Returns:
        Reference with the registry, repository, tag and digest split out.
        A missing tag defaults to "latest" unless a digest is given.

    Raises:
        InvalidReferenceError: If any part is malformed
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidReferenceError("invalid URL: empty reference")

    text = value.strip()
    if text.startswith(OCI_SCHEME):
        text = text[len(OCI_SCHEME):]
    elif "://" in text:
        raise InvalidReferenceError(f"invalid URL: unsupported scheme in {value!r}")

    digest = ""
    if "@" in text:
        text, digest = text.split("@", 1)
        if not _DIGEST.match(digest):
            raise InvalidReferenceError(f"invalid URL: bad digest in {value!r}")

    # Split only on a ':' after the last '/' to keep registry ports intact
    tag = ""
    last_slash = text.rfind("/")
    last_colon = text.rfind(":")
    if last_colon > last_slash:
        text, tag = text[:last_colon], text[last_colon + 1 :]
        if not _TAG.match(tag):
            raise InvalidReferenceError(f"invalid URL: bad tag in {value!r}")

    registry, repository = _split_registry(text)
    if not _REGISTRY.match(registry):
        raise InvalidReferenceError(f"invalid URL: bad registry in {value!r}")
    if not repository or not all(
        _COMPONENT.match(part) for part in repository.split("/")
    ):
        raise InvalidReferenceError(f"invalid URL: bad repository in {value!r}")

    if not tag and not digest:
        tag = DEFAULT_TAG
    return Reference(registry=registry, repository=repository, tag=tag, digest=digest)
