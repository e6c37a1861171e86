"""Exception types raised by the damage capture components."""
from enum import Enum


class DamageCaptureError(Exception):
    """Base exception for the damage capture system."""
    pass


class RejectReason(Enum):
    """Why a scanned or typed code was rejected."""
    EMPTY = "empty"
    TOO_SHORT = "too_short"
    NOT_NUMERIC = "not_numeric"
    WRONG_LENGTH = "wrong_length"


class InvalidCode(DamageCaptureError):
    """Raw scan or manual entry cannot produce a 6-digit id."""

    def __init__(self, reason: RejectReason, raw: str = ""):
        self.reason = reason
        self.raw = raw
        super().__init__(f"Invalid code {raw!r}: {reason.value}")


class DuplicateRecord(DamageCaptureError):
    """A record with this id is already in the ledger."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Duplicate code: bag {code} was already scanned")


class RecordNotFound(DamageCaptureError):
    """No record with this id is in the ledger."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"No record with code {code}")


class ValidationError(DamageCaptureError):
    """Data validation error."""
    pass


class PersistenceError(DamageCaptureError):
    """Durable storage read or write failed."""
    pass


class SubmissionError(DamageCaptureError):
    """Base for everything that can go wrong delivering a batch."""
    pass


class EmptyBatch(SubmissionError):
    pass


class EndpointNotConfigured(SubmissionError):
    pass


class RetryableSubmissionError(SubmissionError):
    """Transport or remote failure worth another attempt."""
    pass


class SubmissionTimeout(RetryableSubmissionError):
    pass


class SubmissionHTTPError(RetryableSubmissionError):

    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        super().__init__(f"HTTP Error: {status_code} - {reason}".rstrip(" -"))


class SubmissionTransportError(RetryableSubmissionError):
    pass


class SubmissionRejected(RetryableSubmissionError):
    """Endpoint answered but reported an application-level error."""
    pass


class SubmissionFailed(SubmissionError):
    """Every attempt failed; wraps the last underlying error."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Submission failed after {attempts} attempts: {last_error}")
