"""
Face Mesh Detector - Face landmarks using MediaPipe Face Mesh

Produces one 468-point (478 with refined iris) landmark list per face.
"""

import cv2
import numpy as np
import logging
from typing import Any

from ..errors import InferenceUnavailable, TransientInferenceFailure
from ..types import FaceObservation, Landmark

logger = logging.getLogger(__name__)


def face_observation_from_results(results: Any) -> FaceObservation:
    """Normalize a MediaPipe FaceMesh result into a FaceObservation."""
    multi_face = getattr(results, "multi_face_landmarks", None)
    if not multi_face:
        return FaceObservation()

    faces = tuple(
        tuple(Landmark(lm.x, lm.y, lm.z) for lm in face.landmark)
        for face in multi_face
    )
    return FaceObservation(faces=faces)


class FaceMeshDetector:
    """
    Detects face landmarks in video frames using MediaPipe Face Mesh.

    Provides:
    - Face count (for absence and multi-face detection)
    - Normalized landmarks of every face (for head turn / mouth signals)
    """

    def __init__(
        self,
        max_num_faces: int = 2,
        refine_landmarks: bool = True,
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.6
    ):
        """
        Initialize face mesh detector.

        Args:
            max_num_faces: Maximum number of faces to track. Must be at
                           least 2 for multiple faces to be reported.
            refine_landmarks: Add iris landmarks
            min_detection_confidence: Minimum detection confidence
            min_tracking_confidence: Minimum tracking confidence
        """
        self.max_num_faces = max_num_faces
        self.refine_landmarks = refine_landmarks
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.face_mesh = None

    @property
    def is_loaded(self) -> bool:
        return self.face_mesh is not None

    def load(self):
        """Create the MediaPipe graph; raises InferenceUnavailable on failure"""
        if self.face_mesh is not None:
            return

        try:
            import mediapipe as mp
            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=self.max_num_faces,
                refine_landmarks=self.refine_landmarks,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence
            )
            logger.info("MediaPipe Face Mesh initialized successfully")
        except ImportError as e:
            logger.error("MediaPipe not installed. Run: pip install mediapipe")
            raise InferenceUnavailable("mediapipe is not installed") from e
        except Exception as e:
            logger.error(f"Failed to initialize Face Mesh: {e}")
            raise InferenceUnavailable(f"Face Mesh initialization failed: {e}") from e

    def detect(self, frame: np.ndarray) -> FaceObservation:
        """
        Detect faces in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            FaceObservation (empty when no face is visible)
        """
        if frame is None or frame.size == 0:
            return FaceObservation()

        if self.face_mesh is None:
            raise TransientInferenceFailure("Face Mesh is not loaded")

        try:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self.face_mesh.process(rgb_frame)
        except Exception as e:
            raise TransientInferenceFailure(f"Face Mesh error: {e}") from e

        return face_observation_from_results(results)

    def close(self):
        """Release resources"""
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
