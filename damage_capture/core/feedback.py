# damage_capture/core/feedback.py
from enum import Enum

class FeedbackSignal(Enum):
    """Operator feedback channels raised by the coordinator."""
    SUCCESS = "success"          # bag registered
    IGNORED = "ignored"          # repeated read within the scan delay
    DUPLICATE = "duplicate"      # bag already in the ledger
    ERROR = "error"              # rejected input, blocked or failed action
    WARNING = "warning"          # advisory only
    SUBMITTING = "submitting"    # batch in flight
    SUBMITTED = "submitted"      # batch delivered
    EXPIRED = "expired"          # day-boundary auto clear
