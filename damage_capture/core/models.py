# damage_capture/core/models.py
"""Data models for captured bags and finalized batches."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from damage_capture.core.shift_classifier import Shift
from damage_capture.utils.exceptions import ValidationError

class DamageCategory(Enum):
    """Damage tags an operator can put on a bag."""
    A = "handle-broken"
    B = "case-broken"
    C = "wheel-broken"

    @classmethod
    def parse(cls, value) -> "DamageCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValidationError(f"Unknown damage category: {value!r}")

def parse_categories(values: Optional[Iterable]) -> FrozenSet[DamageCategory]:
    """Coerce letters or members to a category set; None means no categories."""
    if values is None:
        return frozenset()
    if isinstance(values, (str, DamageCategory)):
        values = [values]
    try:
        items = list(values)
    except TypeError:
        raise ValidationError(f"Categories must be a list of letters, got {values!r}")
    return frozenset(DamageCategory.parse(v) for v in items)

def ordered_letters(categories: Iterable[DamageCategory]):
    """Category letters in the fixed A, B, C order."""
    present = set(categories)
    return [c.name for c in DamageCategory if c in present]

@dataclass(frozen=True)
class Record:
    """One physical bag under inspection."""
    id: str
    raw_code: str
    captured_at: datetime
    shift: Shift
    categories: FrozenSet[DamageCategory] = frozenset()
    observation: str = ""
    has_signature: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'raw_code': self.raw_code,
            'captured_at': self.captured_at.isoformat(),
            'shift': self.shift.value,
            'categories': ordered_letters(self.categories),
            'observation': self.observation,
            'has_signature': self.has_signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        """Rebuild a record from its stored form; raises ValidationError."""
        try:
            categories = data.get('categories') or []
            if isinstance(categories, str):
                categories = [c for c in categories.split(',') if c.strip()]
            return cls(
                id=str(data['id']),
                raw_code=str(data.get('raw_code') or data['id']),
                captured_at=datetime.fromisoformat(data['captured_at']),
                shift=Shift.parse(data['shift']),
                categories=parse_categories(categories),
                observation=str(data.get('observation') or ""),
                has_signature=bool(data.get('has_signature', True)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed stored record: {e}")

@dataclass
class SessionMetadata:
    """Operator context attached to a batch when it is finalized."""
    operator: str = ""
    shift: Optional[Shift] = None
    airline: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operator': self.operator,
            'shift': self.shift.value if self.shift else None,
            'airline': self.airline,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionMetadata":
        shift = data.get('shift')
        return cls(
            operator=str(data.get('operator') or ""),
            shift=Shift.parse(shift) if shift else None,
            airline=str(data.get('airline') or ""),
        )

@dataclass
class PersistedSnapshot:
    """Durable form of a pending batch."""
    records: list = field(default_factory=list)
    saved_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at
