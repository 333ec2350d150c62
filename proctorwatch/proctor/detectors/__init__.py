"""Detector result types and classifiers for proctoring"""

from .face_mesh import FaceFrameResult, Landmark, landmark_x, to_landmark_array
from .gaze_classifier import GazeClassifier, GazeDecision
from .object_detector import OBJECT_RULES, ObjectDetection, ObjectFrameResult

__all__ = [
    "FaceFrameResult",
    "Landmark",
    "landmark_x",
    "to_landmark_array",
    "GazeClassifier",
    "GazeDecision",
    "OBJECT_RULES",
    "ObjectDetection",
    "ObjectFrameResult"
]
