"""OCI Artifact Client - build, push and pull single-layer OCI artifacts."""

__version__ = "0.1.0"

from .client import ArtifactClient
from .core.reference import Reference, parse_reference
from .core.registry_client import RegistryClient
from .core.types import RegistryConfig
from .exceptions import (
    ArtifactError,
    ArtifactIOError,
    BlobDownloadError,
    BlobUploadError,
    InvalidIgnorePatternError,
    InvalidReferenceError,
    ManifestError,
    NoLayersError,
    OperationCancelledError,
    RegistryConnectionError,
    RegistryError,
    SizeLimitExceededError,
    SourceNotFoundError,
    UnsafePathError,
    UnsupportedLayerTypeError,
)
from .models import Metadata, PullOptions, PushOptions
from .pull import pull_artifact
from .push import build_artifact, push_artifact
from .tar import (
    UNBOUNDED,
    ExtractOptions,
    LayerType,
    PatternMatcher,
    build,
    extract,
    looks_like_gzip,
)

__all__ = [
    "ArtifactClient",
    "RegistryClient",
    "RegistryConfig",
    "Reference",
    "parse_reference",
    "Metadata",
    "PushOptions",
    "PullOptions",
    "ExtractOptions",
    "LayerType",
    "UNBOUNDED",
    "PatternMatcher",
    "build",
    "extract",
    "looks_like_gzip",
    "build_artifact",
    "push_artifact",
    "pull_artifact",
    "ArtifactError",
    "ArtifactIOError",
    "SourceNotFoundError",
    "InvalidReferenceError",
    "InvalidIgnorePatternError",
    "UnsupportedLayerTypeError",
    "NoLayersError",
    "SizeLimitExceededError",
    "UnsafePathError",
    "OperationCancelledError",
    "RegistryError",
    "RegistryConnectionError",
    "BlobUploadError",
    "BlobDownloadError",
    "ManifestError",
]
