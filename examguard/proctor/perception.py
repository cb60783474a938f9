"""
Perception Adapter - Async front for the face, hand and object models

Model calls are blocking, so they run in a worker thread with
asyncio.to_thread; the caller only ever sees the typed observations or a
ProctorError.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import numpy as np

from .detectors import FaceMeshDetector, HandDetector, ObjectDetector
from .errors import InferenceUnavailable, TransientInferenceFailure
from .types import DetectionObservation, FaceObservation, HandObservation

logger = logging.getLogger(__name__)


class PerceptionAdapter:
    """
    Wraps the external inference engines.

    - detect_face(frame) -> FaceObservation
    - detect_hands(frame) -> HandObservation
    - detect_objects(frame, timestamp) -> DetectionObservation

    Empty observations mean "nothing detected"; failures are raised as
    TransientInferenceFailure.
    """

    def __init__(
        self,
        face_detector: Optional[FaceMeshDetector] = None,
        object_detector: Optional[ObjectDetector] = None,
        hand_detector: Optional[HandDetector] = None,
        hands_enabled: bool = False
    ):
        self.face_detector = face_detector or FaceMeshDetector()
        self.object_detector = object_detector or ObjectDetector()
        self.hand_detector = hand_detector or HandDetector()
        self.hands_enabled = hands_enabled

    @classmethod
    def from_settings(cls, settings) -> "PerceptionAdapter":
        return cls(
            face_detector=FaceMeshDetector(
                max_num_faces=settings.FACE_MAX_NUM_FACES,
                refine_landmarks=settings.FACE_REFINE_LANDMARKS,
                min_detection_confidence=settings.FACE_MIN_DETECTION_CONFIDENCE,
                min_tracking_confidence=settings.FACE_MIN_TRACKING_CONFIDENCE
            ),
            object_detector=ObjectDetector(
                model_path=settings.OBJECT_MODEL_PATH,
                score_threshold=settings.OBJECT_SCORE_THRESHOLD
            ),
            hand_detector=HandDetector(
                max_hands=settings.HAND_MAX_NUM_HANDS,
                min_confidence=settings.HAND_MIN_CONFIDENCE
            ),
            hands_enabled=settings.HAND_ALERT_ENABLED
        )

    async def load(self):
        """
        Initialize every enabled model.

        Raises:
            InferenceUnavailable: if any model fails to initialize
        """
        try:
            await asyncio.to_thread(self._load_all)
        except InferenceUnavailable:
            raise
        except Exception as e:
            raise InferenceUnavailable(str(e)) from e

    def _load_all(self):
        self.face_detector.load()
        self.object_detector.load()
        if self.hands_enabled:
            self.hand_detector.load()

    async def detect_face(self, frame: np.ndarray) -> FaceObservation:
        return await self._run(self.face_detector.detect, frame)

    async def detect_hands(self, frame: np.ndarray) -> HandObservation:
        return await self._run(self.hand_detector.detect, frame)

    async def detect_objects(self, frame: np.ndarray, timestamp: float) -> DetectionObservation:
        return await self._run(self.object_detector.detect, frame, timestamp)

    async def _run(self, fn: Callable[..., Any], *args) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except TransientInferenceFailure:
            raise
        except Exception as e:
            raise TransientInferenceFailure(str(e)) from e

    def close(self):
        """Release model resources; safe to call more than once"""
        for detector in (self.face_detector, self.object_detector, self.hand_detector):
            try:
                detector.close()
            except Exception as e:
                logger.warning(f"Error closing {type(detector).__name__}: {e}")
