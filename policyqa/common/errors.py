"""
Error taxonomy for the question answering pipeline.

ValidationError is user-correctable (HTTP 400). The dependency errors are
raised by the component that talks to the failing upstream and are never
retried inside the core.
"""


class PolicyQAError(Exception):
    """Base class for all pipeline errors."""
    pass


class ValidationError(PolicyQAError):
    """Raised when the question is missing or blank."""
    pass


class EmbeddingError(PolicyQAError):
    """Raised when the embedding service fails, times out, or returns a bad vector."""
    pass


class RetrievalError(PolicyQAError):
    """Raised when the vector index is unreachable or rejects the query."""
    pass


class SynthesisError(PolicyQAError):
    """Raised when the generative model fails to produce an answer."""
    pass
