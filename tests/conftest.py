"""
Pytest Configuration for Proctoring Tests
"""
import os
import sys
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proctorwatch.proctor.detectors import Landmark
from proctorwatch.proctor.reducer import ViolationReducer
from proctorwatch.proctor.sinks import EventLog
from proctorwatch.proctor.timing import ManualScheduler

NO_FACE_WINDOW_MS = 10000
LOOKING_AWAY_WINDOW_MS = 5000

# Enough points to cover the ear indices (234, 454)
FACE_MESH_POINTS = 468


class MediaPipeLandmarkList:
    """Stand-in for a NormalizedLandmarkList: no len(), points in `.landmark`"""

    def __init__(self, points):
        self.landmark = points


class OpaqueFace:
    """Landmark set that supports neither len() nor indexing"""


@pytest.fixture
def scheduler():
    """Virtual clock; nothing fires until advanced"""
    return ManualScheduler()


@pytest.fixture
def event_log():
    """Sink recording every emitted event"""
    return EventLog()


@pytest.fixture
def reducer(scheduler, event_log):
    """Reducer on a virtual clock with the default windows"""
    r = ViolationReducer(
        sink=event_log,
        scheduler=scheduler,
        no_face_window_ms=NO_FACE_WINDOW_MS,
        looking_away_window_ms=LOOKING_AWAY_WINDOW_MS,
        session_id="test-session"
    )
    yield r
    r.dispose()


@pytest.fixture
def make_face():
    """
    Build one face's landmark list.

    Ears sit at x=0.0 and x=1.0 by default, so the pose ratio equals
    the nose x coordinate exactly.
    """
    def _make_face(nose_x: float = 0.5, left_ear_x: float = 0.0, right_ear_x: float = 1.0):
        points = [Landmark(x=0.5, y=0.5) for _ in range(FACE_MESH_POINTS)]
        points[234] = Landmark(x=left_ear_x, y=0.5)
        points[454] = Landmark(x=right_ear_x, y=0.5)
        points[1] = Landmark(x=nose_x, y=0.5)
        return points
    return _make_face


@pytest.fixture
def landmark_payload():
    """Build one face as the JSON landmark list the API accepts"""
    def _payload(nose_x: float = 0.5):
        points = [{"x": 0.5, "y": 0.5, "z": 0.0} for _ in range(FACE_MESH_POINTS)]
        points[234] = {"x": 0.0, "y": 0.5, "z": 0.0}
        points[454] = {"x": 1.0, "y": 0.5, "z": 0.0}
        points[1] = {"x": nose_x, "y": 0.5, "z": 0.0}
        return points
    return _payload


@pytest.fixture(scope='function')
def client():
    """FastAPI test client with an empty session store"""
    from proctorwatch.main import app
    from proctorwatch.proctor import api

    api._sessions.clear()
    with TestClient(app) as test_client:
        yield test_client
        for session in list(api._sessions.values()):
            session.finalize()
    api._sessions.clear()
