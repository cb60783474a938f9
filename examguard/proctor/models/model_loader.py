"""
Model Loader - Lazy loading and caching of ML models
"""

import os
import logging
from functools import lru_cache
from typing import Optional

logger = logging.getLogger(__name__)

# Default model paths (relative to this file's directory)
MODELS_DIR = os.path.join(os.path.dirname(__file__), "weights")

# COCO-trained fallback, downloaded by ultralytics on first use
DEFAULT_YOLO_WEIGHTS = "yolov8n.pt"


def find_yolo_weights(model_path: Optional[str] = None) -> Optional[str]:
    """
    Locate YOLO weights on disk.

    Returns:
        First existing path, or None if no local weights were found
    """
    possible_paths = [
        model_path,
        os.path.join(MODELS_DIR, DEFAULT_YOLO_WEIGHTS),
        DEFAULT_YOLO_WEIGHTS  # Current directory
    ]

    for path in possible_paths:
        if path and os.path.exists(path):
            return path

    return None


@lru_cache(maxsize=2)
def get_yolo_model(model_path: Optional[str] = None):
    """
    Get YOLO model for object detection.

    Args:
        model_path: Optional explicit path to weights

    Returns:
        YOLO model instance
    """
    from ultralytics import YOLO

    path = find_yolo_weights(model_path)
    if path:
        logger.info(f"Loading YOLO model from: {path}")
        return YOLO(path)

    if model_path:
        raise FileNotFoundError(f"YOLO weights not found: {model_path}")

    logger.warning(f"Local YOLO weights not found, using {DEFAULT_YOLO_WEIGHTS} as fallback")
    return YOLO(DEFAULT_YOLO_WEIGHTS)


def check_models(model_path: Optional[str] = None) -> dict:
    """
    Check which models are available.

    Returns:
        Dict with model status
    """
    status = {
        "mediapipe": False,
        "ultralytics": False,
        "yolo_weights": False
    }

    try:
        import mediapipe  # noqa: F401
        status["mediapipe"] = True
    except ImportError:
        pass

    try:
        import ultralytics  # noqa: F401
        status["ultralytics"] = True
    except ImportError:
        pass

    if find_yolo_weights(model_path):
        status["yolo_weights"] = True

    return status
