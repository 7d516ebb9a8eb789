"""Error taxonomy for the knowledge lifecycle engine.

Adapters translate library exceptions (httpx, aiosqlite) into these types so
callers only have to handle one hierarchy. Batch loops catch ``LifecycleError``
per item; single-item entry points let it propagate.
"""


class LifecycleError(Exception):
    """Base class for all knowledge lifecycle errors."""


class InputError(LifecycleError, ValueError):
    """Malformed parameters, e.g. a negative search limit."""


class DimensionMismatch(InputError):
    """Two embedding vectors have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        """Record both dimensions in the message."""
        super().__init__(f"Embedding dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class ProviderError(LifecycleError):
    """The embedding provider failed to produce a vector."""


class StoreError(LifecycleError):
    """A knowledge store read or write failed."""


class NotFound(LifecycleError, LookupError):
    """A knowledge record or group does not exist."""
