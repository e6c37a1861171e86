# damage_capture/core/ledger.py
"""In-memory ledger of bags captured in the current session."""
import itertools
import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from damage_capture.core.models import DamageCategory, Record, parse_categories
from damage_capture.core.shift_classifier import ShiftClassifier
from damage_capture.utils.exceptions import DuplicateRecord, RecordNotFound, ValidationError

MUTABLE_FIELDS = ('categories', 'observation', 'has_signature')

class LedgerEvent(Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"
    RESTORED = "restored"

class RecordLedger:
    """
    Authoritative id -> record mapping for not-yet-submitted bags.

    Records are immutable values; every edit stores a replacement, so
    `id`, `raw_code`, `captured_at` and `shift` keep their creation values.
    """

    def __init__(self, classifier: Optional[ShiftClassifier] = None):
        self.logger = logging.getLogger(__name__)
        self.classifier = classifier or ShiftClassifier()
        self._records: Dict[str, Record] = {}
        self._order: Dict[str, int] = {}
        self._sequence = itertools.count()
        self._listeners: List[Callable] = []

    def subscribe(self, listener: Callable) -> None:
        """Register listener(event, record) called after every change."""
        self._listeners.append(listener)

    def _notify(self, event: LedgerEvent, record: Optional[Record] = None):
        for listener in list(self._listeners):
            try:
                listener(event, record)
            except Exception as e:
                self.logger.error(f"Ledger listener failed on {event.value}: {e}")

    def _store(self, record: Record) -> None:
        self._records[record.id] = record
        if record.id not in self._order:
            self._order[record.id] = next(self._sequence)

    def add(self, code: str, raw_code: Optional[str] = None,
            categories: Iterable = (), observation: str = "",
            has_signature: bool = True, now: Optional[datetime] = None) -> Record:
        """
        Register a new bag.

        Raises:
            DuplicateRecord: the id is already present; the stored record is left as is
        """
        if code in self._records:
            raise DuplicateRecord(code)

        captured_at = now or datetime.now()
        record = Record(
            id=code,
            raw_code=raw_code or code,
            captured_at=captured_at,
            shift=self.classifier.classify(captured_at),
            categories=parse_categories(categories),
            observation=(observation or "").strip(),
            has_signature=has_signature,
        )
        self._store(record)
        self.logger.info(f"Registered bag {code} ({record.shift.value})")
        self._notify(LedgerEvent.ADDED, record)
        return record

    def _require(self, code: str) -> Record:
        record = self._records.get(code)
        if record is None:
            raise RecordNotFound(code)
        return record

    def update(self, code: str, **changes) -> Record:
        """Replace mutable fields of a record; other fields are untouched."""
        record = self._require(code)
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        if 'categories' in changes:
            changes['categories'] = parse_categories(changes['categories'])
        if 'observation' in changes:
            changes['observation'] = (changes['observation'] or "").strip()
        if 'has_signature' in changes:
            changes['has_signature'] = bool(changes['has_signature'])

        updated = replace(record, **changes)
        self._store(updated)
        self._notify(LedgerEvent.UPDATED, updated)
        return updated

    def toggle_category(self, code: str, category) -> Record:
        category = DamageCategory.parse(category)
        current = self._require(code).categories
        return self.update(code, categories=current ^ {category})

    def toggle_signature(self, code: str) -> Record:
        return self.update(code, has_signature=not self._require(code).has_signature)

    def remove(self, code: str) -> bool:
        """Delete a record; returns False if it was not there."""
        record = self._records.pop(code, None)
        if record is None:
            return False
        self._order.pop(code, None)
        self.logger.info(f"Removed bag {code}")
        self._notify(LedgerEvent.REMOVED, record)
        return True

    def remove_many(self, codes: Iterable[str]) -> int:
        """Delete every listed id that is present; returns how many went."""
        return sum(1 for code in list(codes) if self.remove(code))

    def restore(self, records: Iterable[Record]) -> int:
        """Load previously captured records, skipping ids already present."""
        restored = 0
        for record in sorted(records, key=lambda r: r.captured_at):
            if record.id in self._records:
                continue
            self._store(record)
            restored += 1
        if restored:
            self.logger.info(f"Restored {restored} records")
            self._notify(LedgerEvent.RESTORED)
        return restored

    def has(self, code: str) -> bool:
        return code in self._records

    def get(self, code: str) -> Optional[Record]:
        return self._records.get(code)

    def all(self) -> List[Record]:
        """Records newest first by capture time."""
        return sorted(
            list(self._records.values()),
            key=lambda r: (r.captured_at, self._order.get(r.id, 0)),
            reverse=True,
        )

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        if not self._records:
            return
        count = len(self._records)
        self._records.clear()
        self._order.clear()
        self.logger.info(f"Cleared {count} records")
        self._notify(LedgerEvent.CLEARED)

    def search(self, query: str) -> List[Record]:
        """Records whose id, category letter or observation contains the query."""
        query = (query or "").strip().lower()
        if not query:
            return self.all()
        return [
            r for r in self.all()
            if query in r.id.lower()
            or any(query in c.name.lower() for c in r.categories)
            or query in r.observation.lower()
        ]

    def stats(self) -> Dict[str, int]:
        records = list(self._records.values())
        return {
            'total': len(self._records),
            'with_categories': sum(1 for r in records if r.categories),
            'with_observation': sum(1 for r in records if r.observation),
        }
