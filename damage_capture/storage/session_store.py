# damage_capture/storage/session_store.py
"""Durable snapshots of captured records with day-scoped expiry."""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from damage_capture.config.settings import SessionConfig
from damage_capture.core.models import PersistedSnapshot, Record, SessionMetadata
from damage_capture.storage.backends import KeyValueStore
from damage_capture.utils.exceptions import PersistenceError, ValidationError

WORKING_KEY = "current_records"
SNAPSHOT_KEY = "pending_snapshot"
METADATA_KEY = "session_metadata"

def merge_records(*batches: Iterable[Record]) -> List[Record]:
    """Merge batches by id; later batches win on conflict. Newest first."""
    merged: Dict[str, Record] = {}
    for batch in batches:
        for record in batch:
            merged[record.id] = record
    return sorted(merged.values(), key=lambda r: r.captured_at, reverse=True)

class SessionStore:
    """
    Persists the working batch, the pending-submission snapshot and the
    last finalize metadata behind a key-value backend.

    Reads never raise: unreadable or corrupt slots are logged and treated
    as empty.
    """

    def __init__(self, backend: KeyValueStore,
                 expiry_hour: int = SessionConfig.EXPIRY_HOUR,
                 expiry_minute: int = SessionConfig.EXPIRY_MINUTE):
        self.logger = logging.getLogger(__name__)
        self.backend = backend
        self.expiry_hour = expiry_hour
        self.expiry_minute = expiry_minute

    def expires_at_for(self, now: datetime) -> datetime:
        return now.replace(hour=self.expiry_hour, minute=self.expiry_minute,
                           second=0, microsecond=0)

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.backend.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (PersistenceError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable slot {key}: {e}")
            return None

    def _write_json(self, key: str, data: Any) -> None:
        self.backend.set(key, json.dumps(data, indent=4, ensure_ascii=False))

    def _decode_records(self, items: Any) -> List[Record]:
        if not isinstance(items, list):
            raise ValidationError("Stored records are not a list")
        return [Record.from_dict(item) for item in items]

    def _read_snapshot(self) -> Optional[PersistedSnapshot]:
        data = self._read_json(SNAPSHOT_KEY)
        if data is None:
            return None
        try:
            return PersistedSnapshot(
                records=self._decode_records(data.get('records')),
                saved_at=datetime.fromisoformat(data['saved_at']),
                expires_at=datetime.fromisoformat(data['expires_at']),
            )
        except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as e:
            self.logger.warning(f"Ignoring corrupt snapshot: {e}")
            return None

    def save(self, records: Iterable[Record], now: Optional[datetime] = None) -> List[Record]:
        """
        Merge `records` into the pending snapshot and write it back.

        An unexpired prior snapshot is merged by id with the new records
        winning; an expired one is discarded.

        Returns:
            The merged records that were written

        Raises:
            PersistenceError: the backend could not write the snapshot
        """
        now = now or datetime.now()
        records = list(records)
        prior = self._read_snapshot()
        if prior is not None and prior.is_expired(now):
            self.logger.info("Discarding expired snapshot before save")
            prior = None

        merged = merge_records(prior.records if prior else [], records)
        expires_at = self.expires_at_for(now)
        self._write_json(SNAPSHOT_KEY, {
            'records': [r.to_dict() for r in merged],
            'saved_at': now.isoformat(),
            'expires_at': expires_at.isoformat(),
        })
        self.logger.info(
            f"Saved snapshot with {len(merged)} records "
            f"({len(records)} new), expires {expires_at:%Y-%m-%d %H:%M}"
        )
        return merged

    def load(self, now: Optional[datetime] = None) -> List[Record]:
        """Records of the pending snapshot, or [] if absent or expired."""
        now = now or datetime.now()
        snapshot = self._read_snapshot()
        if snapshot is None:
            return []
        if snapshot.is_expired(now):
            self.logger.info("Pending snapshot has expired")
            return []
        return snapshot.records

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        snapshot = self._read_snapshot()
        return snapshot is not None and snapshot.is_expired(now or datetime.now())

    def purge_expired(self, now: Optional[datetime] = None) -> bool:
        """Delete the pending snapshot if it has expired."""
        if not self.is_expired(now):
            return False
        self.clear()
        return True

    def clear(self) -> None:
        try:
            self.backend.delete(SNAPSHOT_KEY)
            self.logger.info("Cleared pending snapshot")
        except PersistenceError as e:
            self.logger.error(f"Failed to clear snapshot: {e}")

    def mirror_working(self, records: Iterable[Record]) -> None:
        """Overwrite the working-batch slot with the current ledger contents."""
        try:
            self._write_json(WORKING_KEY, [r.to_dict() for r in records])
        except PersistenceError as e:
            self.logger.error(f"Failed to mirror working batch: {e}")

    def load_working(self) -> List[Record]:
        data = self._read_json(WORKING_KEY)
        if data is None:
            return []
        try:
            return self._decode_records(data)
        except ValidationError as e:
            self.logger.warning(f"Ignoring corrupt working batch: {e}")
            return []

    def clear_working(self) -> None:
        try:
            self.backend.delete(WORKING_KEY)
        except PersistenceError as e:
            self.logger.error(f"Failed to clear working batch: {e}")

    def save_metadata(self, metadata: SessionMetadata) -> None:
        try:
            self._write_json(METADATA_KEY, metadata.to_dict())
        except PersistenceError as e:
            self.logger.error(f"Failed to save session metadata: {e}")

    def load_metadata(self) -> Optional[SessionMetadata]:
        data = self._read_json(METADATA_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return SessionMetadata.from_dict(data)
        except ValueError as e:
            self.logger.warning(f"Ignoring corrupt session metadata: {e}")
            return None
