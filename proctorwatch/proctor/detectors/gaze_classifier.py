"""
Gaze Classifier - Decides whether a single face is looking away

Works on face-mesh landmarks: the nose tip's horizontal position between
the two ear points gives a head-yaw ratio. A centred head puts the nose
near the middle of the span.
"""

import logging
from enum import Enum

import numpy as np

from .face_mesh import FaceLandmarkSet, landmark_x

logger = logging.getLogger(__name__)


class GazeDecision(str, Enum):
    AWAY = "away"
    CENTER = "center"
    INDETERMINATE = "indeterminate"


class GazeClassifier:
    """
    Classifies one face's landmarks as looking away, centred, or undecided.

    Formula:
        face_span  = right_ear.x - left_ear.x
        pose_ratio = (nose.x - left_ear.x) / face_span

    Ratios outside [min_ratio, max_ratio] are AWAY; the bounds themselves
    count as CENTER. Missing landmarks or a degenerate span give
    INDETERMINATE, which callers must not treat as a violation.
    """

    # MediaPipe face-mesh indices
    LEFT_EAR_INDEX = 234
    RIGHT_EAR_INDEX = 454
    NOSE_TIP_INDEX = 1

    def __init__(self, min_ratio: float = 0.3, max_ratio: float = 0.7):
        self.min_ratio = min_ratio
        self.max_ratio = max_ratio

    def pose_ratio(self, landmarks: FaceLandmarkSet):
        """Nose position within the ear span, or None if it cannot be computed"""
        left_ear = landmark_x(landmarks, self.LEFT_EAR_INDEX)
        right_ear = landmark_x(landmarks, self.RIGHT_EAR_INDEX)
        nose = landmark_x(landmarks, self.NOSE_TIP_INDEX)

        if left_ear is None or right_ear is None or nose is None:
            return None

        face_span = right_ear - left_ear
        if face_span == 0 or not np.isfinite(face_span):
            return None

        ratio = (nose - left_ear) / face_span
        if not np.isfinite(ratio):
            return None
        return float(ratio)

    def classify(self, landmarks: FaceLandmarkSet) -> GazeDecision:
        ratio = self.pose_ratio(landmarks)

        if ratio is None:
            return GazeDecision.INDETERMINATE

        if ratio < self.min_ratio or ratio > self.max_ratio:
            logger.debug(f"Gaze away: pose_ratio={ratio:.3f}")
            return GazeDecision.AWAY

        return GazeDecision.CENTER
