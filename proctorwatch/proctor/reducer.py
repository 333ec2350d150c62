"""
Violation Reducer - Turns per-frame detector output into violation events

One reducer per proctoring session. It consumes two independent inputs,
face-mesh frame results and object-detection batches, and emits debounced,
deduplicated violation events to an EventSink.

Sub-machines:
- no face        WINDOWED  zero faces held for the no-face window
- looking away   WINDOWED  one face, gaze away held for the looking-away window
- multiple faces EDGE      fires once on entering a multi-face episode
- objects        SAMPLED   fires on every batch that contains a listed class
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Set, Union

from .detectors import GazeClassifier, GazeDecision, OBJECT_RULES
from .detectors.face_mesh import FaceFrameResult
from .detectors.object_detector import ObjectFrameResult
from .events import EventKind, ViolationEvent, utc_now
from .sinks import EventSink
from .timing import DebounceTimer, Scheduler, default_scheduler

logger = logging.getLogger(__name__)


class TriggerMode(str, Enum):
    WINDOWED = "windowed"
    EDGE = "edge"
    SAMPLED = "sampled"


class ConditionLevel(str, Enum):
    CLEAR = "clear"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class WindowedCondition:
    """
    Sustained condition debounced by a timer.

    Observing the condition arms the timer (keeping the first deadline);
    observing its absence cancels it. When the window elapses the condition
    is CONFIRMED and `on_elapsed` runs; the next observation starts a new
    window, so a second sustained episode is reported again.
    """

    mode = TriggerMode.WINDOWED

    def __init__(
        self,
        kind: EventKind,
        window_ms: float,
        timer: DebounceTimer,
        on_elapsed: Callable[["WindowedCondition"], None]
    ):
        self.kind = kind
        self.window_ms = window_ms
        self.timer = timer
        self.level = ConditionLevel.CLEAR
        self._on_elapsed = on_elapsed

    def observe(self, active: bool) -> None:
        if not active:
            self.reset()
            return

        if self.timer.arm(self.window_ms, self._elapsed):
            self.level = ConditionLevel.PENDING

    def reset(self) -> None:
        self.timer.cancel()
        self.level = ConditionLevel.CLEAR

    def _elapsed(self) -> None:
        self.level = ConditionLevel.CONFIRMED
        self._on_elapsed(self)


class EdgeLatch:
    """Level signal reported only on its rising edge"""

    mode = TriggerMode.EDGE

    def __init__(self, kind: EventKind):
        self.kind = kind
        self.active = False

    def observe(self, condition: bool) -> bool:
        """Returns True when the condition has just become true"""
        if not condition:
            self.active = False
            return False

        if self.active:
            return False

        self.active = True
        return True


class ObjectRule:
    """Stateless class-set match; re-evaluated for every batch"""

    mode = TriggerMode.SAMPLED

    def __init__(self, kind: EventKind, classes: Set[str]):
        self.kind = kind
        self.classes = frozenset(classes)

    def matches(self, detected_classes: Set[str]) -> bool:
        return not self.classes.isdisjoint(detected_classes)


@dataclass
class ReducerState:
    """Everything one reducer mutates; owned by exactly one session"""
    no_face: WindowedCondition
    looking_away: WindowedCondition
    multi_face: EdgeLatch
    object_batch_in_flight: bool = False
    disposed: bool = False

    @property
    def multi_face_active(self) -> bool:
        return self.multi_face.active

    def describe(self) -> Dict[str, Union[str, bool]]:
        return {
            "no_face": self.no_face.level.value,
            "looking_away": self.looking_away.level.value,
            "multi_face_active": self.multi_face.active,
            "object_batch_in_flight": self.object_batch_in_flight,
            "disposed": self.disposed
        }


class ViolationReducer:
    """
    Signal-to-event reduction engine for one session.

    All entry points (face frames, object batches, timer fires) run under
    one re-entrant lock, so the reducer is safe with a threaded scheduler
    as well as on a single event loop. Calls after `dispose()` are no-ops.
    """

    def __init__(
        self,
        sink: EventSink,
        scheduler: Optional[Scheduler] = None,
        no_face_window_ms: float = 10000,
        looking_away_window_ms: float = 5000,
        gaze_classifier: Optional[GazeClassifier] = None,
        clock: Callable[[], datetime] = utc_now,
        session_id: str = "-"
    ):
        self.sink = sink
        self.scheduler = scheduler or default_scheduler()
        self.gaze_classifier = gaze_classifier or GazeClassifier()
        self.clock = clock
        self.session_id = session_id
        self._lock = threading.RLock()

        self.state = ReducerState(
            no_face=WindowedCondition(
                EventKind.NO_FACE_DETECTED,
                no_face_window_ms,
                DebounceTimer(self.scheduler, name="no_face", lock=self._lock),
                self._on_window_elapsed
            ),
            looking_away=WindowedCondition(
                EventKind.LOOKING_AWAY,
                looking_away_window_ms,
                DebounceTimer(self.scheduler, name="looking_away", lock=self._lock),
                self._on_window_elapsed
            ),
            multi_face=EdgeLatch(EventKind.MULTIPLE_FACES_DETECTED)
        )
        self.object_rules = [ObjectRule(kind, classes) for kind, classes in OBJECT_RULES]

    @property
    def is_disposed(self) -> bool:
        return self.state.disposed

    # ============== Face stream ==============

    def process_face_frame(self, result: Union[FaceFrameResult, Iterable, None]) -> List[ViolationEvent]:
        """
        Feed one face-mesh result.

        Args:
            result: FaceFrameResult, or the raw list of per-face landmark sets

        Returns:
            Events emitted immediately by this frame (timer events arrive later)
        """
        if not isinstance(result, FaceFrameResult):
            result = FaceFrameResult.from_faces(result)

        with self._lock:
            if self.state.disposed:
                return []
            return self._emit_all(self.face_violations(result))

    def face_violations(self, result: FaceFrameResult) -> Iterator[EventKind]:
        """Advance the face sub-machines, yielding kinds that fire right away"""
        state = self.state
        num_faces = result.num_faces

        state.no_face.observe(num_faces == 0)

        if state.multi_face.observe(num_faces > 1):
            yield state.multi_face.kind

        # Gaze is only meaningful with exactly one face in view
        if num_faces == 1:
            decision = self.gaze_classifier.classify(result.faces[0])
            state.looking_away.observe(decision == GazeDecision.AWAY)
        else:
            state.looking_away.reset()

    # ============== Object stream ==============

    def process_object_frame(self, result: ObjectFrameResult) -> List[ViolationEvent]:
        """
        Feed one object-detection batch.

        A batch that arrives while another is still being processed is
        dropped, not queued.

        Returns:
            Events emitted for this batch
        """
        with self._lock:
            if self.state.disposed:
                return []
            if self.state.object_batch_in_flight:
                logger.debug(f"Session {self.session_id}: object batch dropped, previous still in flight")
                return []

            self.state.object_batch_in_flight = True
            try:
                return self._emit_all(self.object_violations(result))
            finally:
                self.state.object_batch_in_flight = False

    async def run_object_detection(
        self,
        detect: Callable[[], Awaitable[ObjectFrameResult]]
    ) -> Optional[List[ViolationEvent]]:
        """
        Run one object-detection inference and feed its result.

        The batch counts as in flight from the start of inference, so a
        second call made while the first is awaiting is dropped.

        Args:
            detect: Coroutine function returning an ObjectFrameResult

        Returns:
            Emitted events, or None if the call was dropped
        """
        with self._lock:
            if self.state.disposed or self.state.object_batch_in_flight:
                return None
            self.state.object_batch_in_flight = True

        try:
            result = await detect()
            with self._lock:
                if self.state.disposed:
                    return []
                return self._emit_all(self.object_violations(result))
        except Exception as e:
            logger.error(f"Object detection error: {e}")
            return []
        finally:
            with self._lock:
                self.state.object_batch_in_flight = False

    def object_violations(self, result: ObjectFrameResult) -> Iterator[EventKind]:
        """Yield one kind per rule matched by the batch's distinct classes"""
        detected = result.detected_classes
        for rule in self.object_rules:
            if rule.matches(detected):
                yield rule.kind

    # ============== Teardown ==============

    def dispose(self) -> None:
        """Cancel pending timers; safe to call more than once"""
        with self._lock:
            if self.state.disposed:
                return
            self.state.disposed = True
            self.state.no_face.reset()
            self.state.looking_away.reset()
            self.state.multi_face.active = False
        logger.debug(f"Reducer for session {self.session_id} disposed")

    # ============== Emission ==============

    def _on_window_elapsed(self, condition: WindowedCondition) -> None:
        with self._lock:
            if self.state.disposed:
                return
            self._emit_all([condition.kind])

    def _emit_all(self, kinds: Iterable[EventKind]) -> List[ViolationEvent]:
        emitted = []
        for kind in kinds:
            event = ViolationEvent(kind=kind, occurred_at=self.clock())
            self._deliver(event)
            emitted.append(event)
        return emitted

    def _deliver(self, event: ViolationEvent) -> None:
        try:
            self.sink.on_violation(event)
        except Exception as e:
            # State is never rolled back on sink failure
            logger.warning(f"Session {self.session_id}: sink failed for {event.label}: {e}")
