"""
Face Mesh Results - Per-frame output of the external face-mesh model

The face-mesh model (MediaPipe topology) runs outside this service. Its
results arrive as one landmark list per detected face; this module gives
those lists a common shape so the classifiers can read them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Landmark:
    """Normalized face-space point (x, y in [0, 1])"""
    x: float
    y: float = 0.0
    z: float = 0.0


# Ordered by anatomical index; a plain list, a tuple, or an (N, 2|3) array
FaceLandmarkSet = Sequence[Any]


@dataclass
class FaceFrameResult:
    """
    Face-mesh output for one video frame.

    Zero landmark sets means no face was found; more than one means
    multiple faces are in view.
    """
    faces: List[FaceLandmarkSet] = field(default_factory=list)

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    @classmethod
    def from_faces(cls, faces: Optional[Sequence[FaceLandmarkSet]]) -> "FaceFrameResult":
        """Build from a raw `multi_face_landmarks` value (may be None)"""
        return cls(faces=list(faces or []))


def landmark_x(landmarks: FaceLandmarkSet, index: int) -> Optional[float]:
    """
    Read the x coordinate of one landmark.

    Supports objects with an ``x`` attribute, mappings with an ``"x"`` key,
    ``(x, y[, z])`` rows and numpy arrays, in a sequence or in a MediaPipe
    landmark list. Returns None when the index is absent or the point
    cannot be read.
    """
    if landmarks is None:
        return None

    if isinstance(landmarks, np.ndarray):
        if landmarks.ndim != 2 or index >= landmarks.shape[0] or landmarks.shape[1] < 1:
            return None
        return float(landmarks[index, 0])

    # MediaPipe NormalizedLandmarkList keeps its points in `.landmark`
    if hasattr(landmarks, "landmark"):
        landmarks = landmarks.landmark

    try:
        if index >= len(landmarks):
            return None
        point = landmarks[index]
    except (TypeError, KeyError, IndexError):
        logger.debug(f"Unreadable landmark set: {type(landmarks).__name__}")
        return None

    if point is None:
        return None
    if hasattr(point, "x"):
        value = point.x
    elif isinstance(point, dict):
        value = point.get("x")
    else:
        try:
            value = point[0]
        except (TypeError, IndexError, KeyError):
            return None

    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unreadable landmark {index}: {point!r}")
        return None


def to_landmark_array(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Convert a list of (x, y[, z]) points into an (N, 3) float array"""
    if len(points) == 0:
        return np.zeros((0, 3), dtype=np.float64)

    array = np.zeros((len(points), 3), dtype=np.float64)
    for i, point in enumerate(points):
        coords = list(point)[:3]
        array[i, :len(coords)] = coords
    return array
