"""
Violation Events - Discrete integrity violations emitted during a session
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Union


class EventKind(str, Enum):
    """Closed set of violation kinds produced by the reducer"""
    PHONE_DETECTED = "PHONE_DETECTED"
    BOOK_DETECTED = "BOOK_DETECTED"
    EXTRA_DEVICE_DETECTED = "EXTRA_DEVICE_DETECTED"
    NO_FACE_DETECTED = "NO_FACE_DETECTED"
    LOOKING_AWAY = "LOOKING_AWAY"
    MULTIPLE_FACES_DETECTED = "MULTIPLE_FACES_DETECTED"

    @classmethod
    def parse(cls, label: str) -> Union["EventKind", str]:
        """
        Resolve a stored event label to an EventKind.

        Accepts the canonical names and the older labels that carried the
        debounce window in the name. Unknown labels are returned unchanged
        so that a newer log can still be read and scored.
        """
        if isinstance(label, cls):
            return label
        label = str(label).strip()
        if label in LEGACY_LABELS:
            return LEGACY_LABELS[label]
        try:
            return cls(label)
        except ValueError:
            return label


LEGACY_LABELS: Dict[str, EventKind] = {
    "NO_FACE_DETECTED (10s)": EventKind.NO_FACE_DETECTED,
    "LOOKING_AWAY (5s)": EventKind.LOOKING_AWAY,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ViolationEvent:
    """A single violation, immutable once emitted"""
    kind: Union[EventKind, str]
    occurred_at: datetime = field(default_factory=utc_now)

    @property
    def label(self) -> str:
        return self.kind.value if isinstance(self.kind, EventKind) else str(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.label,
            "occurred_at": self.occurred_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViolationEvent":
        """Rehydrate an event from a stored log record"""
        label = data.get("kind") or data.get("eventType") or ""
        occurred_at = data.get("occurred_at") or data.get("timestamp")
        if isinstance(occurred_at, str):
            occurred_at = datetime.fromisoformat(occurred_at)
        elif occurred_at is None:
            occurred_at = utc_now()
        return cls(kind=EventKind.parse(label), occurred_at=occurred_at)
