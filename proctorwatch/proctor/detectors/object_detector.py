"""
Object Detections - Per-tick output of the external object detector

The detector itself (COCO-SSD class vocabulary) runs outside this service.
This module holds its results and the mapping from detected classes to
violation kinds.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..events import EventKind

logger = logging.getLogger(__name__)


# Checked in this order; one event per kind even when several classes match
OBJECT_RULES: List[Tuple[EventKind, Set[str]]] = [
    (EventKind.PHONE_DETECTED, {"cell phone"}),
    (EventKind.BOOK_DETECTED, {"book"}),
    (EventKind.EXTRA_DEVICE_DETECTED, {"laptop", "tv"}),
]


@dataclass(frozen=True)
class ObjectDetection:
    """A detected class label with its confidence"""
    class_name: str
    score: float = 1.0
    bbox: Optional[Tuple[float, float, float, float]] = None


@dataclass
class ObjectFrameResult:
    """All detections for one sampled frame"""
    detections: List[ObjectDetection] = field(default_factory=list)

    @property
    def detected_classes(self) -> Set[str]:
        return {d.class_name.strip().lower() for d in self.detections}

    def filtered(self, min_confidence: float = 0.0, max_detections: Optional[int] = None) -> "ObjectFrameResult":
        """
        Keep the most confident detections at or above min_confidence.

        Args:
            min_confidence: Minimum score to keep a detection
            max_detections: Optional cap on the number of detections kept

        Returns:
            New ObjectFrameResult
        """
        kept = [d for d in self.detections if d.score >= min_confidence]
        kept.sort(key=lambda d: d.score, reverse=True)
        if max_detections is not None:
            kept = kept[:max_detections]
        return ObjectFrameResult(detections=kept)

    @classmethod
    def from_predictions(cls, predictions: Iterable[Dict[str, Any]]) -> "ObjectFrameResult":
        """
        Build from raw detector predictions.

        Each prediction is a dict with ``class`` (or ``class_name``),
        ``score`` and an optional ``bbox``.
        """
        detections = []
        for prediction in predictions:
            name = prediction.get("class_name") or prediction.get("class")
            if not name:
                logger.debug(f"Skipping prediction without class: {prediction}")
                continue
            bbox = prediction.get("bbox")
            detections.append(ObjectDetection(
                class_name=str(name),
                score=float(prediction.get("score", 1.0)),
                bbox=tuple(bbox) if bbox else None
            ))
        return cls(detections=detections)
