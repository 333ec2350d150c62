"""
Flag Generator - Generates review flags from a session's violation log
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List

from ..events import EventKind
from .integrity_scorer import event_label

logger = logging.getLogger(__name__)


class FlagGenerator:
    """
    Generates flags for human review based on violation counts.

    A kind is flagged once its event count reaches the threshold;
    critical kinds are flagged on their first occurrence.
    """

    # Minimum number of events of a kind before it is flagged
    THRESHOLDS: Dict[str, int] = {
        EventKind.PHONE_DETECTED: 1,
        EventKind.MULTIPLE_FACES_DETECTED: 1,
        EventKind.BOOK_DETECTED: 2,
        EventKind.EXTRA_DEVICE_DETECTED: 2,
        EventKind.NO_FACE_DETECTED: 2,
        EventKind.LOOKING_AWAY: 5
    }

    # Critical flags that always require review
    CRITICAL_FLAGS = [EventKind.PHONE_DETECTED, EventKind.MULTIPLE_FACES_DETECTED]

    # Score threshold below which review is required
    REVIEW_SCORE_THRESHOLD = 60

    # Minimum flags for review
    MIN_FLAGS_FOR_REVIEW = 2

    def __init__(self, thresholds: Dict[str, int] = None):
        """
        Initialize flag generator with optional custom thresholds.

        Args:
            thresholds: Optional dict overriding default thresholds
        """
        self.thresholds = dict(self.THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)

    def count(self, events: Iterable[Any]) -> Dict[str, int]:
        counts = Counter()
        for event in events:
            label = event_label(event)
            counts[label.value if isinstance(label, EventKind) else label] += 1
        return dict(counts)

    def generate(self, events: Iterable[Any]) -> List[str]:
        """
        Generate flags based on violation counts.

        Args:
            events: Violation events for one session

        Returns:
            List of flagged kind names, in threshold order
        """
        counts = self.count(events)
        flags = []

        for kind, threshold in self.thresholds.items():
            value = counts.get(kind, 0)

            if value >= threshold:
                flags.append(kind.value if isinstance(kind, EventKind) else kind)
                logger.info(f"Flag triggered: {flags[-1]} ({value} >= {threshold})")

        return flags

    def requires_review(self, flags: List[str], score: int) -> bool:
        """
        Determine if manual review is required.

        Args:
            flags: List of triggered flags
            score: Integrity score

        Returns:
            True if human review is required
        """
        if any(f in self.CRITICAL_FLAGS for f in flags):
            return True

        if score < self.REVIEW_SCORE_THRESHOLD:
            return True

        if len(flags) >= self.MIN_FLAGS_FOR_REVIEW:
            return True

        return False

    def get_review_priority(self, flags: List[str], score: int) -> str:
        """
        Get review priority level.

        Returns:
            'urgent', 'high', 'normal', or 'low'
        """
        if any(f in self.CRITICAL_FLAGS for f in flags):
            return "urgent"

        if score < 40:
            return "urgent"

        if score < 60:
            return "high"

        if len(flags) >= 3:
            return "high"

        if len(flags) >= 1:
            return "normal"

        return "low"
