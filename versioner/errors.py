"""Error types raised by the asset versioner."""


class VersionerError(Exception):
    """Base class for every versioner failure."""
    pass


class AssetLoadError(VersionerError):
    """Raised when an asset source cannot be read from disk."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Failed to load {path}: {message}")


class AssetProcessingError(VersionerError):
    """Raised when a processor chain step fails for a file."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Failed to process {path}: {message}")


class StyleCompileError(AssetProcessingError):
    """Raised when the style compiler rejects a stylesheet."""

    def __init__(self, path: str, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(path, f"style compilation failed: {diagnostic}")


class UnresolvedReferenceError(AssetProcessingError):
    """Raised when a stylesheet references an image that was never versioned."""

    def __init__(self, path: str, reference: str):
        self.reference = reference
        super().__init__(path, f"missing image reference: {reference}")


class BuildError(VersionerError):
    """Raised when a build stage fails.

    The failing file's error is chained as ``__cause__``.
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Build stage '{stage}' failed: {message}")
