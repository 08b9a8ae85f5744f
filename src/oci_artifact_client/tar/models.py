"""Data models for artifact archives."""

from dataclasses import dataclass
from enum import Enum

from ..exceptions import UnsupportedLayerTypeError

# Disables the decompressed size check.
UNBOUNDED = -1

DEFAULT_MAX_UNTAR_SIZE = 100 << 20

CHUNK_SIZE = 1 << 20


class LayerType(str, Enum):
    """How the first layer of an artifact is materialized."""

    TARBALL = "tarball"
    STATIC = "static"

    @classmethod
    def parse(cls, value: "LayerType | str") -> "LayerType":
        """Convert a string or enum into a LayerType.

        Raises:
            UnsupportedLayerTypeError: If the value is not a known layer type
        """
        try:
            return cls(value)
        except ValueError as e:
            raise UnsupportedLayerTypeError(
                f"unsupported layer type: '{value}'"
            ) from e


class EntryKind(str, Enum):
    """Archive entry discriminator."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class ArchiveEntry:
    """A single entry produced while walking a source directory."""

    path: str  # Forward-slash path relative to the packaged root
    kind: EntryKind

    @property
    def arcname(self) -> str:
        """Name as written into the tar stream."""
        if self.kind is EntryKind.DIRECTORY:
            return f"{self.path}/"
        return self.path


@dataclass(frozen=True)
class ExtractOptions:
    """Extraction safety settings."""

    max_size: int = DEFAULT_MAX_UNTAR_SIZE
    skip_symlinks: bool = False
