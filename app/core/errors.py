"""MSYNC — Error Taxonomy.

TRANSIENT errors are retried, PERMANENT_INPUT errors never are, and a
transient error that outlives the attempt cap surfaces as FATAL_AFTER_RETRY.
A metrics source with no row for a date is not an error at all: it yields
an all-zero record.
"""


class SyncError(Exception):
    """Base class for every error raised by the sync core."""

    retryable: bool = True


class TransientError(SyncError):
    """Network / timeout / remote-store hiccup. Safe to retry."""


class PermanentInputError(SyncError):
    """Malformed input. Retrying cannot help."""

    retryable = False


class ConfigurationError(PermanentInputError):
    """Required configuration or credentials are missing."""


class FatalAfterRetryError(SyncError):
    """A retryable error that persisted past the attempt cap."""

    retryable = False

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


class SheetsAPIError(SyncError):
    """Raised when the Google Sheets API returns an error response."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code in (0, 408, 429) or self.status_code >= 500


def is_retryable(exc: BaseException) -> bool:
    """Default classifier: everything retries unless marked permanent."""
    return bool(getattr(exc, "retryable", True))
