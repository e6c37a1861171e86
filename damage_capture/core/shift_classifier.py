# damage_capture/core/shift_classifier.py
"""Work shift classification and finalize time-gating."""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from damage_capture.config.settings import ShiftConfig

class Shift(Enum):
    """Work shifts, by the label operators see."""
    EARLY = "BRC-ERC"    # 04:00 - 12:59
    LATE = "IRC-KRC"     # 13:00 - 23:59

    @classmethod
    def parse(cls, value):
        """Accept a Shift, its label or its member name."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for shift in cls:
            if text == shift.value or text.upper() == shift.name:
                return shift
        raise ValueError(f"Unknown shift: {value!r}")

@dataclass(frozen=True)
class FinalizeWindow:
    allowed: bool
    reason: Optional[str] = None

class ShiftClassifier:
    def __init__(self,
                 early_start_hour: int = ShiftConfig.EARLY_START_HOUR,
                 late_start_hour: int = ShiftConfig.LATE_START_HOUR,
                 early_finalize_hour: int = ShiftConfig.EARLY_FINALIZE_HOUR,
                 late_finalize_hour: int = ShiftConfig.LATE_FINALIZE_HOUR,
                 night_shift=ShiftConfig.NIGHT_SHIFT):
        """Initialize the classifier with its hour boundaries."""
        if not 0 <= early_start_hour < late_start_hour <= 24:
            raise ValueError(
                f"Invalid shift boundaries: {early_start_hour} / {late_start_hour}"
            )
        self.logger = logging.getLogger(__name__)
        self.early_start_hour = early_start_hour
        self.late_start_hour = late_start_hour
        self.finalize_hours = {
            Shift.EARLY: early_finalize_hour,
            Shift.LATE: late_finalize_hour,
        }
        self.night_shift = Shift.parse(night_shift)

    def classify(self, now: datetime) -> Shift:
        """Map a local timestamp to the shift it belongs to."""
        hour = now.hour
        if hour < self.early_start_hour:
            return self.night_shift
        if hour < self.late_start_hour:
            return Shift.EARLY
        return Shift.LATE

    def can_finalize_now(self, shift, now: datetime) -> FinalizeWindow:
        """
        Check whether a batch of the given shift may be finalized at `now`.

        A shift opens for finalizing at its finalize hour and stays open
        through midnight until the early shift starts again.
        """
        shift = Shift.parse(shift)
        opens_at = self.finalize_hours[shift]
        hour = now.hour
        if hour >= opens_at or hour < self.early_start_hour:
            return FinalizeWindow(True)

        reason = (f"Shift {shift.value} can only be finalized "
                  f"from {opens_at:02d}:00")
        self.logger.debug(f"Finalize blocked at {now:%H:%M}: {reason}")
        return FinalizeWindow(False, reason)
