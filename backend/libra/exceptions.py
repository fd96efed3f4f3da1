"""Exception taxonomy for ingestion and external service errors.

Distinguishes between permanent errors (don't retry) and transient errors (retry with backoff).
"""


class IngestionError(Exception):
    """Base class for ingestion errors."""

    pass


class PermanentIngestionError(IngestionError):
    """Errors that should NOT be retried.

    Examples: file too large, unsupported format, corrupt document.
    """

    pass


class TransientIngestionError(IngestionError):
    """Errors that SHOULD be retried with backoff.

    Examples: network timeout, rate limiting, temporary API errors.
    """

    pass


class FileTooLargeError(PermanentIngestionError):
    """A download exceeded the byte ceiling (declared or while streaming)."""

    def __init__(self, max_bytes: int, received_bytes: int | None = None):
        self.max_bytes = max_bytes
        self.received_bytes = received_bytes
        limit_mb = round(max_bytes / 1024 / 1024)
        if received_bytes is None:
            message = f"File exceeds {limit_mb}MB limit"
        else:
            message = (
                f"File exceeds {limit_mb}MB limit during download "
                f"(got {received_bytes} bytes so far)"
            )
        super().__init__(message)


class UnsupportedFileTypeError(PermanentIngestionError):
    pass


class ExtractionError(PermanentIngestionError):
    """A document was downloaded but its text could not be parsed."""

    pass


class DriveNotConnectedError(Exception):
    """No usable Drive credentials exist for the user."""

    pass


class CompletionError(Exception):
    """The completion service call failed after retries."""

    pass


class EmbeddingError(Exception):
    """The embedding service returned an unusable response."""

    pass


# External exceptions the Celery tasks treat as transient
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    OSError,  # Network-related OS errors
)
