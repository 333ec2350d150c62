"""
Proctor Session - Manages a single proctoring session
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import settings
from .detectors import GazeClassifier
from .detectors.face_mesh import FaceFrameResult
from .detectors.object_detector import ObjectFrameResult
from .events import EventKind, ViolationEvent
from .reducer import ViolationReducer
from .scoring import IntegrityScorer, FlagGenerator
from .sinks import CompositeEventSink, EventLog, EventSink, HttpEventSink, LoggingEventSink
from .timing import Scheduler
from .utils.logging import log_critical_event, log_session_end, log_session_start

logger = logging.getLogger(__name__)


class ProctorSession:
    """
    Manages a single proctoring session.

    Owns the session's violation reducer and event log. Face and object
    results are fed to the reducer; the integrity score is recomputed from
    the event log whenever it is asked for.
    """

    def __init__(
        self,
        candidate_name: str,
        assessment_id: Optional[str] = None,
        session_id: Optional[str] = None,
        scheduler: Optional[Scheduler] = None,
        extra_sinks: Optional[List[EventSink]] = None,
        no_face_window_ms: Optional[float] = None,
        looking_away_window_ms: Optional[float] = None,
        gaze_classifier: Optional[GazeClassifier] = None
    ):
        """
        Initialize a new proctoring session.

        Args:
            candidate_name: Name of the candidate being proctored
            assessment_id: Optional ID of the assessment or interview
            session_id: Optional custom session ID (auto-generated if not provided)
            scheduler: Timer backend for the reducer (running loop, else threads)
            extra_sinks: Additional sinks receiving every violation
            no_face_window_ms: Override for the no-face debounce window
            looking_away_window_ms: Override for the looking-away debounce window
            gaze_classifier: Optional classifier with custom ratio bounds
        """
        self.id = session_id or f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.candidate_name = candidate_name
        self.assessment_id = assessment_id
        self.started_at = datetime.now(timezone.utc)
        self.ended_at: Optional[datetime] = None
        self.last_activity_at = self.started_at
        self.is_active = True

        self.event_log = EventLog()
        sinks: List[EventSink] = [self.event_log, LoggingEventSink(self.id)]
        if settings.EVENT_SINK_URL:
            sinks.append(HttpEventSink(
                settings.EVENT_SINK_URL,
                session_id=self.id,
                timeout=settings.EVENT_SINK_TIMEOUT_SECONDS
            ))
        sinks.extend(extra_sinks or [])

        self.reducer = ViolationReducer(
            sink=CompositeEventSink(sinks),
            scheduler=scheduler,
            no_face_window_ms=settings.NO_FACE_WINDOW_MS if no_face_window_ms is None else no_face_window_ms,
            looking_away_window_ms=(
                settings.LOOKING_AWAY_WINDOW_MS if looking_away_window_ms is None else looking_away_window_ms
            ),
            gaze_classifier=gaze_classifier,
            session_id=self.id
        )

        self.scorer = IntegrityScorer()
        self.flagger = FlagGenerator()

        self.face_frames = 0
        self.object_frames = 0

        log_session_start(self.id, candidate_name, assessment_id)
        logger.info(f"Proctoring session started: {self.id}")

    def process_face_frame(self, result: FaceFrameResult) -> List[ViolationEvent]:
        """Feed a face-mesh result; returns events emitted immediately"""
        if not self.is_active:
            return []
        self.touch()
        self.face_frames += 1
        return self.reducer.process_face_frame(result)

    def process_object_frame(self, result: ObjectFrameResult) -> List[ViolationEvent]:
        """Feed an object-detection batch after confidence filtering"""
        if not self.is_active:
            return []
        self.touch()
        self.object_frames += 1
        filtered = result.filtered(
            min_confidence=settings.OBJECT_MIN_CONFIDENCE,
            max_detections=settings.OBJECT_MAX_DETECTIONS
        )
        return self.reducer.process_object_frame(filtered)

    async def detect_objects(
        self,
        detect: Callable[[], Awaitable[ObjectFrameResult]]
    ) -> Optional[List[ViolationEvent]]:
        """
        Run object inference through the reducer's single-flight gate.

        Returns:
            Emitted events, or None if a previous detection was still running
        """
        if not self.is_active:
            return None
        self.touch()

        async def detect_filtered() -> ObjectFrameResult:
            result = await detect()
            return result.filtered(
                min_confidence=settings.OBJECT_MIN_CONFIDENCE,
                max_detections=settings.OBJECT_MAX_DETECTIONS
            )

        events = await self.reducer.run_object_detection(detect_filtered)
        if events is not None:
            self.object_frames += 1
        return events

    def record_event(self, label: str) -> ViolationEvent:
        """
        Append an externally observed event to the session log.

        Unknown labels are kept as-is and score zero.
        """
        self.touch()
        event = ViolationEvent(kind=EventKind.parse(label))
        self.event_log.on_violation(event)
        logger.info(f"Event recorded for session {self.id}: {event.label}")
        return event

    def touch(self) -> None:
        """Mark the session as having received input"""
        self.last_activity_at = datetime.now(timezone.utc)

    def idle_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.last_activity_at).total_seconds()

    @property
    def events(self) -> List[ViolationEvent]:
        return self.event_log.events

    @property
    def integrity_score(self) -> int:
        return self.scorer.score(self.event_log.events)

    def duration_seconds(self) -> float:
        end = self.ended_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def report(self) -> Dict[str, Any]:
        """Session detail with the integrity score computed from the log"""
        events = self.event_log.events
        score = self.scorer.score(events)
        flags = self.flagger.generate(events)

        return {
            "session_id": self.id,
            "candidate_name": self.candidate_name,
            "assessment_id": self.assessment_id,
            "is_active": self.is_active,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds(),
            "integrity_score": score,
            "grade": self.scorer.get_grade(score),
            "band": self.scorer.get_band(score),
            "flags": flags,
            "review_required": self.flagger.requires_review(flags, score),
            "review_priority": self.flagger.get_review_priority(flags, score),
            "event_counts": self.event_log.counts(),
            "events": [e.to_dict() for e in events],
            "face_frames": self.face_frames,
            "object_frames": self.object_frames,
            "reducer_state": self.reducer.state.describe()
        }

    def finalize(self) -> Dict[str, Any]:
        """
        Finalize the session and return final results.

        Disposes the reducer first so no pending timer can add events
        after the final score is taken. Calling it again returns the same
        report without logging a second session end.
        """
        if not self.is_active:
            return self.report()

        self.is_active = False
        self.reducer.dispose()
        self.ended_at = datetime.now(timezone.utc)

        result = self.report()

        log_session_end(
            self.id,
            result["integrity_score"],
            result["flags"],
            len(result["events"])
        )
        if result["review_priority"] == "urgent":
            log_critical_event(self.id, "review_urgent", {
                "integrity_score": result["integrity_score"],
                "flags": ",".join(result["flags"]) or "none"
            })

        logger.info(f"Session {self.id} finalized: score={result['integrity_score']}, flags={result['flags']}")

        return result
