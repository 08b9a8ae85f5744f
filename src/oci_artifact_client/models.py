"""Artifact metadata and per-call options."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping

from .tar.models import UNBOUNDED, LayerType

CREATED_ANNOTATION = "org.opencontainers.image.created"
SOURCE_ANNOTATION = "org.opencontainers.image.source"
REVISION_ANNOTATION = "org.opencontainers.image.revision"

# Field name -> annotation key. Only these fields travel with the manifest.
ANNOTATION_KEYS = {
    "created": CREATED_ANNOTATION,
    "source": SOURCE_ANNOTATION,
    "revision": REVISION_ANNOTATION,
}


def now_rfc3339() -> str:
    """Current UTC time formatted for the created annotation."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Metadata:
    """Artifact metadata stored as OCI manifest annotations.

    ``url`` and ``digest`` are filled in after a pull and are never written
    as annotations.
    """

    created: str = ""
    source: str = ""
    revision: str = ""
    url: str = ""
    digest: str = ""

    def to_annotations(self) -> dict[str, str]:
        """Encode non-empty whitelisted fields as annotations."""
        return {
            key: getattr(self, name)
            for name, key in ANNOTATION_KEYS.items()
            if getattr(self, name)
        }

    @classmethod
    def from_annotations(cls, annotations: Mapping[str, str] | None) -> "Metadata":
        """Decode whitelisted annotations, ignoring unknown keys."""
        annotations = annotations or {}
        values = {
            name: str(annotations[key])
            for name, key in ANNOTATION_KEYS.items()
            if annotations.get(key)
        }
        return cls(**values)

    def created_at(self) -> datetime | None:
        """Parse the created timestamp.

        Returns:
            Timezone-aware datetime, or None if unset

        Raises:
            ValueError: If the timestamp is not RFC3339
        """
        if not self.created:
            return None
        return datetime.fromisoformat(self.created.replace("Z", "+00:00"))


@dataclass
class PushOptions:
    """Options for pushing an artifact."""

    layer_type: LayerType | str | None = None
    metadata: Metadata = field(default_factory=Metadata)
    ignore_rules: list[str] = field(default_factory=list)
    media_type: str | None = None
    prebuilt_archive: bool = False


@dataclass
class PullOptions:
    """Options for pulling an artifact.

    Pulls trust the registry by default: the size budget is disabled and
    symlink entries are dropped.
    """

    layer_type: LayerType | str | None = None
    max_untar_size: int = UNBOUNDED
    skip_symlinks: bool = True
