"""
Object Detector - Detects persons, phones and books using YOLO

The COCO-trained YOLO models report "person", "cell phone" and "book"
among their 80 classes.
"""

import numpy as np
import logging
from typing import Any, List, Optional

from ..errors import InferenceUnavailable, TransientInferenceFailure
from ..types import Detection, DetectionObservation

logger = logging.getLogger(__name__)


def detection_observation_from_results(
    results: Any,
    names: Any,
    score_threshold: float = 0.5
) -> DetectionObservation:
    """
    Normalize Ultralytics results into a DetectionObservation.

    Args:
        results: Iterable of ultralytics Results
        names: Class-id to label mapping (model.names)
        score_threshold: Detections below this score are dropped
    """
    detections: List[Detection] = []

    for result in results:
        if result.boxes is None:
            continue

        for box in result.boxes:
            cls_id = int(box.cls[0])
            conf = float(box.conf[0])
            if conf < score_threshold:
                continue

            name = names.get(cls_id, f"class_{cls_id}") if hasattr(names, "get") else names[cls_id]
            detections.append(Detection(label=str(name).lower(), score=conf))

    return DetectionObservation(detections=tuple(detections))


class ObjectDetector:
    """
    Detects objects in frames using YOLO.

    Every class the model knows is reported; deciding which labels raise
    an alert is left to the signal extractors.
    """

    def __init__(self, model_path: Optional[str] = None, score_threshold: float = 0.5):
        """
        Initialize object detector.

        Args:
            model_path: Path to YOLO model weights. If None, uses default from model_loader.
            score_threshold: Minimum confidence for a detection to be reported.
        """
        self.score_threshold = score_threshold
        self.model = None
        self._model_path = model_path

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load(self):
        """Load YOLO weights; raises InferenceUnavailable on failure"""
        if self.model is not None:
            return

        try:
            from ..models import get_yolo_model
            self.model = get_yolo_model(self._model_path)
            logger.info("YOLO model loaded successfully")
        except ImportError as e:
            logger.error("ultralytics not installed. Run: pip install ultralytics")
            raise InferenceUnavailable("ultralytics is not installed") from e
        except Exception as e:
            logger.error(f"Failed to load YOLO model: {e}")
            raise InferenceUnavailable(f"YOLO model could not be loaded: {e}") from e

    def detect(self, frame: np.ndarray, timestamp: Optional[float] = None) -> DetectionObservation:
        """
        Detect objects in a frame.

        Args:
            frame: BGR image from OpenCV
            timestamp: Frame timestamp (ms); only used for logging

        Returns:
            DetectionObservation (empty when nothing is detected)
        """
        if frame is None or frame.size == 0:
            return DetectionObservation()

        if self.model is None:
            raise TransientInferenceFailure("YOLO model is not loaded")

        try:
            results = self.model.predict(
                frame,
                conf=self.score_threshold,
                verbose=False
            )
            observation = detection_observation_from_results(
                results, self.model.names, self.score_threshold
            )
        except Exception as e:
            raise TransientInferenceFailure(f"Object detection error: {e}") from e

        if observation.detections:
            logger.debug(f"Objects at {timestamp}: {observation.labels}")

        return observation

    def close(self):
        """Drop the model reference (the cached weights stay loaded)"""
        self.model = None
