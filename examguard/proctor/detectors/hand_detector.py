"""
Hand Detector - Detects hands using MediaPipe Hands
"""

import cv2
import numpy as np
import logging
from typing import Any, List

from ..errors import InferenceUnavailable, TransientInferenceFailure
from ..types import HandObservation, Landmark

logger = logging.getLogger(__name__)


def hand_observation_from_results(results: Any) -> HandObservation:
    """Normalize a MediaPipe Hands result into a HandObservation."""
    multi_hand = getattr(results, "multi_hand_landmarks", None)
    if not multi_hand:
        return HandObservation()

    handedness_results = getattr(results, "multi_handedness", None) or []

    hands = []
    handedness: List[str] = []
    for i, hand_landmarks in enumerate(multi_hand):
        hands.append(tuple(
            Landmark(lm.x, lm.y, lm.z) for lm in hand_landmarks.landmark
        ))

        # Left/Right label when MediaPipe reports one
        if i < len(handedness_results):
            handedness.append(handedness_results[i].classification[0].label)
        else:
            handedness.append("Unknown")

    return HandObservation(hands=tuple(hands), handedness=tuple(handedness))


class HandDetector:
    """
    Detects hands in frames using MediaPipe Hands.

    Provides:
    - Hand count
    - Hand landmarks (21 points per hand)
    - Handedness labels
    """

    def __init__(self, max_hands: int = 2, min_confidence: float = 0.5):
        """
        Initialize hand detector.

        Args:
            max_hands: Maximum number of hands to detect
            min_confidence: Minimum detection confidence
        """
        self.max_hands = max_hands
        self.min_confidence = min_confidence
        self.hands = None

    @property
    def is_loaded(self) -> bool:
        return self.hands is not None

    def load(self):
        """Create the MediaPipe graph; raises InferenceUnavailable on failure"""
        if self.hands is not None:
            return

        try:
            import mediapipe as mp
            self.hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=self.max_hands,
                min_detection_confidence=self.min_confidence,
                min_tracking_confidence=self.min_confidence
            )
            logger.info("MediaPipe Hands initialized successfully")
        except ImportError as e:
            logger.error("MediaPipe not installed. Run: pip install mediapipe")
            raise InferenceUnavailable("mediapipe is not installed") from e
        except Exception as e:
            logger.error(f"Failed to initialize MediaPipe Hands: {e}")
            raise InferenceUnavailable(f"Hands initialization failed: {e}") from e

    def detect(self, frame: np.ndarray) -> HandObservation:
        """
        Detect hands in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            HandObservation (empty when no hand is visible)
        """
        if frame is None or frame.size == 0:
            return HandObservation()

        if self.hands is None:
            raise TransientInferenceFailure("Hands model is not loaded")

        try:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self.hands.process(rgb_frame)
        except Exception as e:
            raise TransientInferenceFailure(f"Hand detection error: {e}") from e

        return hand_observation_from_results(results)

    def close(self):
        """Release resources"""
        if self.hands is not None:
            self.hands.close()
            self.hands = None
