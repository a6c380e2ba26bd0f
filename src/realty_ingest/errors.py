"""
Ingestion error types.

Per-record failures are never raised past the loaders; these exceptions mark
conditions that abort a source (or misuse of a payload variant).
"""


class IngestionError(Exception):
    """Base class for ingestion pipeline errors."""


class PayloadTypeError(IngestionError, TypeError):
    """Raised when a RawData payload is unwrapped as the wrong variant."""


class SourceFetchError(IngestionError):
    """Raised when a source cannot be downloaded or unpacked."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(f"{source_id}: {message}")


class StoreUnavailableError(IngestionError):
    """Raised when the property store cannot be reached for a whole batch."""
