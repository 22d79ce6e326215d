"""Typed errors raised across the RAG core"""
from enum import Enum


class GenerationErrorKind(str, Enum):
    """Failure classes reported by the generation backend."""
    NOT_CONFIGURED = "NOT_CONFIGURED"
    UNAUTHORIZED = "UNAUTHORIZED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    UNKNOWN = "UNKNOWN"


class RAGError(Exception):
    """Base class for all RAG core errors"""


class EmbeddingFailed(RAGError):
    """Model inference failed or the input could not be embedded."""


class IncompatibleDimensions(RAGError, ValueError):
    """Two vectors of different length reached the similarity function."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vector dimensions differ: {left} != {right}")


class PersistenceUnavailable(RAGError):
    """
    Durable store read/write failure.

    Reported to listeners and logged; never raised to index callers since
    the in-memory index stays authoritative for the running process.
    """

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Persistence '{operation}' failed: {cause}")


class GenerationFailed(RAGError):
    """Raised when the generation backend cannot produce an answer"""

    kind = GenerationErrorKind.UNKNOWN
    user_message = "The assistant could not generate a response. Please try again."

    def __init__(self, message: str, kind: GenerationErrorKind | None = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    def __str__(self):
        # Format used for logging and the chat error state
        return f"[{self.kind.value}] {self.message}"


class GenerationNotConfigured(GenerationFailed):
    kind = GenerationErrorKind.NOT_CONFIGURED
    user_message = "The language model API key is not configured."


class GenerationUnauthorized(GenerationFailed):
    kind = GenerationErrorKind.UNAUTHORIZED
    user_message = "The language model API key was rejected."


class GenerationQuotaExceeded(GenerationFailed):
    kind = GenerationErrorKind.QUOTA_EXCEEDED
    user_message = "The language model quota is exhausted or payment is required."


class DiscoveryFailed(GenerationFailed):
    """The backend replied, but not with a usable {summary, sources} object."""
    user_message = "Failed to discover sources. Please try again."
