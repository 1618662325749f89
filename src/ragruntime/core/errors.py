class RagError(Exception):
    """Base error for all ragruntime exceptions."""

    retryable = False


class ConfigurationError(RagError):
    """Raised when chunking, limiter, batch or search parameters are invalid."""


class DimensionMismatchError(RagError):
    """Raised when a provider returns a vector of unexpected length."""

    def __init__(self, expected: int, actual: int, *, model: str | None = None) -> None:
        detail = f"Embedding dimension mismatch: expected {expected}, got {actual}."
        if model:
            detail = f"{detail} Model: {model}"
        super().__init__(detail)
        self.expected = expected
        self.actual = actual
        self.model = model


class ProviderCallError(RagError):
    """Raised when a single embedding provider call fails."""

    retryable = True


class StoreError(RagError):
    """Raised when a vector store operation fails."""


class VectorNotFoundError(StoreError):
    """Raised when a stored vector is requested by an unknown id."""
