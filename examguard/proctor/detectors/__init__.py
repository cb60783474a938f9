"""Detector modules for proctoring"""

from .face_mesh import FaceMeshDetector
from .hand_detector import HandDetector
from .object_detector import ObjectDetector

__all__ = [
    "FaceMeshDetector",
    "HandDetector",
    "ObjectDetector"
]
