"""
Integrity Scorer - Computes integrity score from a session's violation log
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, Mapping, Union

from ..events import EventKind, ViolationEvent

logger = logging.getLogger(__name__)


def event_label(event: Union[ViolationEvent, EventKind, str, Mapping[str, Any]]) -> Union[EventKind, str]:
    """Kind of a stored event, whatever shape it was stored in"""
    if isinstance(event, ViolationEvent):
        return EventKind.parse(event.kind)
    if isinstance(event, Mapping):
        return EventKind.parse(event.get("kind") or event.get("eventType") or "")
    return EventKind.parse(event)


class IntegrityScorer:
    """
    Computes integrity score from recorded violations.

    Formula:
        integrity_score = max(0, 100 - sum(PENALTIES[kind] for each event))

    Kinds without a penalty (including unknown kinds from newer logs)
    contribute nothing. The score is recomputed from the full log on
    every call; nothing is cached between calls.
    """

    # Penalty per event
    PENALTIES: Dict[str, int] = {
        EventKind.PHONE_DETECTED: 10,
        EventKind.BOOK_DETECTED: 5,
        EventKind.LOOKING_AWAY: 2,
        EventKind.NO_FACE_DETECTED: 5,
        EventKind.MULTIPLE_FACES_DETECTED: 15
    }

    MAX_SCORE = 100

    def __init__(self, penalties: Dict[str, int] = None):
        """
        Initialize scorer with optional custom penalties.

        Args:
            penalties: Optional dict overriding default penalties
        """
        self.penalties = dict(self.PENALTIES)
        if penalties:
            self.penalties.update(penalties)

    def penalty_for(self, event) -> int:
        return self.penalties.get(event_label(event), 0)

    def score(self, events: Iterable[Union[ViolationEvent, str]]) -> int:
        """
        Compute integrity score from events.

        Args:
            events: Ordered violation events (or stored kind labels)

        Returns:
            Integrity score (0-100, higher is better)
        """
        total_penalty = sum(self.penalty_for(event) for event in events)
        final_score = max(0, self.MAX_SCORE - total_penalty)

        logger.debug(f"Computed integrity score: {final_score} (penalty={total_penalty})")
        return final_score

    def compute_breakdown(self, events: Iterable[Union[ViolationEvent, str]]) -> Dict[str, Any]:
        """
        Compute integrity score with detailed breakdown.

        Args:
            events: Ordered violation events

        Returns:
            Dict with score and per-kind counts and penalties
        """
        counts = Counter()
        for event in events:
            label = event_label(event)
            counts[label.value if isinstance(label, EventKind) else label] += 1

        penalties = {}
        total_penalty = 0
        for label, count in counts.items():
            weight = self.penalties.get(label, 0)
            penalties[label] = {
                "count": count,
                "penalty_each": weight,
                "penalty": weight * count
            }
            total_penalty += weight * count

        raw_score = self.MAX_SCORE - total_penalty

        return {
            "integrity_score": max(0, raw_score),
            "raw_score": raw_score,
            "penalties": penalties,
            "total_penalty": total_penalty
        }

    def get_grade(self, score: int) -> str:
        """
        Convert score to letter grade.

        Args:
            score: Integrity score (0-100)

        Returns:
            Grade: 'A' (excellent), 'B' (good), 'C' (warning), 'D' (concerning), 'F' (failed)
        """
        if score >= 90:
            return "A"
        elif score >= 80:
            return "B"
        elif score >= 70:
            return "C"
        elif score >= 60:
            return "D"
        else:
            return "F"

    def get_band(self, score: int) -> str:
        """Report band used by reviewers: 'good', 'warning' or 'critical'"""
        if score >= 80:
            return "good"
        if score >= 50:
            return "warning"
        return "critical"
