"""Custom exceptions for the OCI artifact client."""


class ArtifactError(Exception):
    """Base exception for all artifact-related errors."""

    pass


class SourceNotFoundError(ArtifactError):
    """Raised when the path to package does not exist."""

    pass


class InvalidReferenceError(ArtifactError):
    """Raised when an artifact reference string cannot be parsed."""

    pass


class UnsupportedLayerTypeError(ArtifactError):
    """Raised when a layer type is neither tarball nor static."""

    pass


class NoLayersError(ArtifactError):
    """Raised when a pulled manifest has no layers."""

    pass


class InvalidIgnorePatternError(ArtifactError):
    """Raised when strict ignore pattern validation rejects a pattern."""

    pass


class UnsafePathError(ArtifactError):
    """Raised when an archive entry would be written outside the target."""

    pass


class OperationCancelledError(ArtifactError):
    """Raised when a blocking build or extract observes cancellation."""

    pass


class SizeLimitExceededError(ArtifactError):
    """Raised when extraction exceeds the decompressed size budget."""

    def __init__(self, message: str, limit: int):
        super().__init__(message)
        self.limit = limit


class ArtifactIOError(ArtifactError):
    """Raised when a filesystem operation fails.

    Carries the failing operation and path so callers can diagnose the
    failure without retrying.
    """

    def __init__(self, operation: str, path: str, cause: Exception):
        super().__init__(f"{operation} {path}: {cause}")
        self.operation = operation
        self.path = path


class RegistryError(ArtifactError):
    """Base exception for all registry-related errors."""

    pass


class RegistryConnectionError(RegistryError):
    """Raised when unable to connect to the registry."""

    pass


class BlobUploadError(RegistryError):
    """Raised when blob upload fails."""

    pass


class BlobDownloadError(RegistryError):
    """Raised when blob download fails."""

    pass


class ManifestError(RegistryError):
    """Raised when manifest operations fail."""

    pass
