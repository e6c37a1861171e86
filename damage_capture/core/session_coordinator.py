# damage_capture/core/session_coordinator.py
"""Orchestrates scanning, editing and batch finalization for one session."""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from damage_capture.config.settings import PathConfig, SessionConfig
from damage_capture.core.barcode_processor import BarcodeProcessor, normalize, normalize_manual
from damage_capture.core.feedback import FeedbackSignal
from damage_capture.core.ledger import RecordLedger
from damage_capture.core.models import Record, SessionMetadata
from damage_capture.core.shift_classifier import Shift, ShiftClassifier
from damage_capture.network.submission_client import SubmissionClient
from damage_capture.storage.backends import JsonFileStore
from damage_capture.storage.session_store import SessionStore, merge_records
from damage_capture.utils.exceptions import (
    DuplicateRecord,
    InvalidCode,
    PersistenceError,
    RecordNotFound,
    SubmissionError,
    ValidationError,
)

class ScanStatus(Enum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    IGNORED = "ignored"

@dataclass
class ScanOutcome:
    status: ScanStatus
    message: str
    code: Optional[str] = None
    record: Optional[Record] = None

@dataclass
class ActionOutcome:
    ok: bool
    message: str
    record: Optional[Record] = None

class FinalizeStatus(Enum):
    SUBMITTED = "submitted"
    EMPTY = "empty"
    INVALID = "invalid"
    BLOCKED = "blocked"
    BUSY = "busy"
    FAILED = "failed"

@dataclass
class FinalizeCheck:
    allowed: bool
    shift: Shift
    reason: Optional[str] = None
    warning: Optional[str] = None

@dataclass
class FinalizeOutcome:
    status: FinalizeStatus
    message: str
    count: int = 0
    attempt: int = 0
    batch_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is FinalizeStatus.SUBMITTED

class SessionCoordinator:
    def __init__(self, ledger: Optional[RecordLedger] = None,
                 store: Optional[SessionStore] = None,
                 client: Optional[SubmissionClient] = None,
                 classifier: Optional[ShiftClassifier] = None,
                 barcode_processor: Optional[BarcodeProcessor] = None,
                 min_records_advisory: int = SessionConfig.MIN_RECORDS_ADVISORY):
        """Wire the session components; nothing is shared between coordinators."""
        self.logger = logging.getLogger(__name__)
        self.classifier = classifier or ShiftClassifier()
        self.ledger = ledger if ledger is not None else RecordLedger(self.classifier)
        self.store = store if store is not None else SessionStore(JsonFileStore(PathConfig.DATA_DIR))
        self.client = client if client is not None else SubmissionClient()
        self.barcode_processor = barcode_processor or BarcodeProcessor()
        self.min_records_advisory = min_records_advisory

        self.last_summary: Optional[str] = None
        self._submit_lock = threading.Lock()
        self._mirror_lock = threading.Lock()
        self._feedback_listeners: List[Callable] = []
        self.ledger.subscribe(self._mirror_ledger)

    def subscribe_feedback(self, listener: Callable) -> None:
        """Register listener(signal, message) for operator feedback."""
        self._feedback_listeners.append(listener)

    def _emit(self, signal: FeedbackSignal, message: str) -> None:
        for listener in list(self._feedback_listeners):
            try:
                listener(signal, message)
            except Exception as e:
                self.logger.error(f"Feedback listener failed on {signal.value}: {e}")

    def _mirror_ledger(self, event, record) -> None:
        # Snapshot and write together so an older snapshot never lands last
        with self._mirror_lock:
            self.store.mirror_working(self.ledger.all())

    def _clear_working(self) -> None:
        with self._mirror_lock:
            self.store.clear_working()

    @property
    def is_submitting(self) -> bool:
        return self._submit_lock.locked()

    def restore(self, now: Optional[datetime] = None) -> int:
        """Reload unexpired working and pending records into the ledger."""
        now = now or datetime.now()
        self.store.purge_expired(now)
        records = [
            r for r in merge_records(self.store.load(now), self.store.load_working())
            if now <= self.store.expires_at_for(r.captured_at)
        ]
        restored = self.ledger.restore(records)
        if restored:
            self.logger.info(f"Session restored with {restored} records")
        return restored

    # Capture

    def scan(self, raw: str, now: Optional[datetime] = None,
             current_time: Optional[float] = None) -> ScanOutcome:
        """Handle a camera read."""
        try:
            code = self.barcode_processor.process_barcode(raw, current_time)
        except InvalidCode as e:
            self.logger.warning(f"Rejected scan: {e}")
            self._emit(FeedbackSignal.ERROR, "Invalid code")
            return ScanOutcome(ScanStatus.REJECTED, "Invalid code")
        if code is None:
            code = normalize(raw)
            message = f"Bag {code} read again too quickly; ignored"
            self._emit(FeedbackSignal.IGNORED, message)
            return ScanOutcome(ScanStatus.IGNORED, message, code=code,
                               record=self.ledger.get(code))
        return self._register(code, raw, now)

    def enter_manual(self, typed: str, now: Optional[datetime] = None) -> ScanOutcome:
        """Handle a code typed by the operator; it must be exactly 6 digits."""
        try:
            code = normalize_manual(typed)
        except InvalidCode as e:
            self.logger.warning(f"Rejected manual entry: {e}")
            message = "Code must be exactly 6 digits"
            self._emit(FeedbackSignal.ERROR, message)
            return ScanOutcome(ScanStatus.REJECTED, message)
        return self._register(code, code, now)

    def _register(self, code: str, raw: str, now: Optional[datetime]) -> ScanOutcome:
        try:
            record = self.ledger.add(code, raw_code=raw, has_signature=True, now=now)
        except DuplicateRecord as e:
            self._emit(FeedbackSignal.DUPLICATE, str(e))
            return ScanOutcome(ScanStatus.DUPLICATE, str(e), code=code,
                               record=self.ledger.get(code))

        self.last_summary = None
        message = f"Bag registered: {code}"
        self._emit(FeedbackSignal.SUCCESS, message)
        return ScanOutcome(ScanStatus.ADDED, message, code=code, record=record)

    # Editing

    def _edit(self, action: Callable, message: str) -> ActionOutcome:
        try:
            record = action()
        except (RecordNotFound, ValidationError) as e:
            self._emit(FeedbackSignal.ERROR, str(e))
            return ActionOutcome(False, str(e))
        return ActionOutcome(True, message, record)

    def toggle_category(self, code: str, category) -> ActionOutcome:
        return self._edit(lambda: self.ledger.toggle_category(code, category),
                          f"Category {category} toggled on {code}")

    def toggle_signature(self, code: str) -> ActionOutcome:
        return self._edit(lambda: self.ledger.toggle_signature(code),
                          f"Signature toggled on {code}")

    def save_observation(self, code: str, text: str) -> ActionOutcome:
        return self._edit(lambda: self.ledger.update(code, observation=text),
                          f"Observation saved on {code}")

    def delete(self, code: str) -> ActionOutcome:
        if self.ledger.remove(code):
            return ActionOutcome(True, f"Bag {code} removed")
        return ActionOutcome(False, f"No record with code {code}")

    def clear_all(self) -> ActionOutcome:
        """Operator-confirmed wipe of the ledger and both stored slots."""
        count = self.ledger.count()
        if count == 0:
            return ActionOutcome(False, "No records to clear")
        self.ledger.clear()
        self._clear_working()
        self.store.clear()
        return ActionOutcome(True, f"{count} records deleted")

    # Finalize

    def preflight(self, metadata: SessionMetadata,
                  now: Optional[datetime] = None) -> FinalizeCheck:
        """Time gate and advisory check for the finalize dialog."""
        now = now or datetime.now()
        shift = metadata.shift or self.classifier.classify(now)
        window = self.classifier.can_finalize_now(shift, now)

        warning = None
        count = self.ledger.count()
        if count < self.min_records_advisory:
            warning = (f"Only {count} records captured; at least "
                       f"{self.min_records_advisory} per shift are recommended")
        return FinalizeCheck(window.allowed, shift, window.reason, warning)

    def finalize(self, metadata: SessionMetadata,
                 now: Optional[datetime] = None) -> FinalizeOutcome:
        """
        Validate, persist and submit the current ledger as one batch.

        Only one finalize runs at a time; an overlapping call returns BUSY
        without touching the network.
        """
        if not self._submit_lock.acquire(blocking=False):
            self.logger.warning("Finalize requested while a submission is in flight")
            return FinalizeOutcome(FinalizeStatus.BUSY, "A submission is already in progress")
        try:
            return self._finalize(metadata, now or datetime.now())
        finally:
            self._submit_lock.release()

    def finalize_async(self, metadata: SessionMetadata,
                       on_done: Optional[Callable] = None,
                       now: Optional[datetime] = None) -> threading.Thread:
        """Run finalize on a worker thread so scanning can continue."""
        def run():
            outcome = self.finalize(metadata, now)
            if on_done:
                on_done(outcome)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        return thread

    def _finalize(self, metadata: SessionMetadata, now: datetime) -> FinalizeOutcome:
        batch = self.ledger.all()
        if not batch:
            self._emit(FeedbackSignal.ERROR, "Nothing to submit")
            return FinalizeOutcome(FinalizeStatus.EMPTY, "Nothing to submit")

        operator = (metadata.operator or "").strip()
        if not operator:
            self._emit(FeedbackSignal.ERROR, "Operator name is required")
            return FinalizeOutcome(FinalizeStatus.INVALID, "Operator name is required")

        check = self.preflight(metadata, now)
        if not check.allowed:
            self.logger.info(f"Finalize blocked: {check.reason}")
            self._emit(FeedbackSignal.ERROR, check.reason)
            return FinalizeOutcome(FinalizeStatus.BLOCKED, check.reason)

        warnings = []
        if check.warning:
            self.logger.warning(check.warning)
            self._emit(FeedbackSignal.WARNING, check.warning)
            warnings.append(check.warning)

        metadata = SessionMetadata(
            operator=operator,
            shift=check.shift,
            airline=metadata.airline or SessionConfig.DEFAULT_AIRLINE,
        )
        self.store.save_metadata(metadata)

        # The snapshot is written before sending so a network failure loses nothing
        try:
            self.store.save(batch, now)
        except PersistenceError as e:
            self.logger.error(f"Could not save snapshot before submission: {e}")
            warnings.append("Records could not be saved on this device")

        self._emit(FeedbackSignal.SUBMITTING, f"Submitting {len(batch)} records")
        try:
            result = self.client.send_with_retry(batch, metadata)
        except (SubmissionError, ValidationError) as e:
            self.logger.error(f"Finalize failed: {e}")
            self._emit(FeedbackSignal.ERROR, str(e))
            return FinalizeOutcome(FinalizeStatus.FAILED, str(e),
                                   count=len(batch), warnings=warnings)

        # Scans that arrived while sending stay for the next batch
        self.ledger.remove_many(r.id for r in batch)
        self.store.clear()

        summary = f"{result.records_count} records saved"
        self.last_summary = summary
        self._emit(FeedbackSignal.SUBMITTED, summary)
        return FinalizeOutcome(
            FinalizeStatus.SUBMITTED,
            summary,
            count=result.records_count,
            attempt=result.attempt,
            batch_id=result.batch_id,
            warnings=warnings,
        )

    # Day boundary

    def expire(self, now: Optional[datetime] = None) -> int:
        """Unconditionally drop the ledger and stored batches at day end."""
        count = self.ledger.count()
        self.ledger.clear()
        self._clear_working()
        self.store.clear()
        self.barcode_processor.reset()
        self.last_summary = None
        self.logger.warning(f"Auto-cleared {count} records at day boundary")
        self._emit(FeedbackSignal.EXPIRED, "Records were cleared automatically (end of day)")
        return count

    def stats(self):
        stats = self.ledger.stats()
        stats.update({
            'submitting': self.is_submitting,
            'endpoint_configured': self.client.is_configured(),
        })
        return stats
