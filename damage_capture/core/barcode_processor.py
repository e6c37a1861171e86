# damage_capture/core/barcode_processor.py
"""Barcode normalization for scanned and typed baggage tags."""
import re
import time
import logging
from collections import defaultdict
from typing import Optional

from damage_capture.config.settings import SessionConfig
from damage_capture.utils.exceptions import InvalidCode, RejectReason

CODE_LENGTH = 6
_NON_DIGITS = re.compile(r'\D')

def normalize(raw: str) -> str:
    """
    Turn decoded barcode text into a bag id.

    Every non-digit is dropped and the trailing six digits are kept,
    since printed tags carry a longer number than the stored id.

    Raises:
        InvalidCode: fewer than six digits remain
    """
    digits = _NON_DIGITS.sub('', raw or '')
    if len(digits) < CODE_LENGTH:
        raise InvalidCode(RejectReason.TOO_SHORT, raw or '')
    return digits[-CODE_LENGTH:]

def normalize_manual(typed: str) -> str:
    """
    Validate a code typed by the operator.

    Typed codes are never truncated: they must already be exactly six digits.
    """
    text = (typed or '').strip()
    if not text:
        raise InvalidCode(RejectReason.EMPTY, typed or '')
    if not text.isascii() or not text.isdigit():
        raise InvalidCode(RejectReason.NOT_NUMERIC, typed)
    if len(text) != CODE_LENGTH:
        raise InvalidCode(RejectReason.WRONG_LENGTH, typed)
    return normalize(text)

class BarcodeProcessor:
    def __init__(self, scan_delay: float = SessionConfig.SCAN_DELAY):
        """Initialize the barcode processor."""
        self.logger = logging.getLogger(__name__)
        self.scan_delay = scan_delay
        self.last_processed_time = defaultdict(lambda: float('-inf'))

    def reset(self):
        self.last_processed_time.clear()

    def process_barcode(self, raw: str, current_time=None) -> Optional[str]:
        """
        Process a camera read.

        Args:
            raw: Decoded barcode text
            current_time: Current timestamp (defaults to time.monotonic())

        Returns:
            The normalized id, or None if the same id was accepted less
            than scan_delay seconds ago. Different ids are never held back.

        Raises:
            InvalidCode: the read does not contain a usable id
        """
        if current_time is None:
            current_time = time.monotonic()

        code = normalize(raw)
        if current_time - self.last_processed_time[code] < self.scan_delay:
            self.logger.debug(f"Ignoring repeated read of {code} within scan delay")
            return None

        self.last_processed_time[code] = current_time
        self.logger.debug(f"Normalized barcode {raw!r} -> {code}")
        return code
