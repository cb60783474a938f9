"""
Signal Extractors - Pure functions deriving alert conditions from one frame

Uses MediaPipe Face Mesh landmark indices (468/478-point topology).
"""

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from .types import DetectionObservation, Landmark

# MediaPipe Face Mesh landmark indices
LEFT_CHEEK = 234
RIGHT_CHEEK = 454
UPPER_LIP = 13
LOWER_LIP = 14

# Thresholds
HEAD_TURN_THRESHOLD = 0.2
MOUTH_OPEN_THRESHOLD = 0.02

# COCO labels reported by the object detector
PERSON = "person"
CELL_PHONE = "cell phone"
BOOK = "book"


@dataclass(frozen=True)
class DetectionSummary:
    """Distinct labels (first-seen order) and the number of persons."""
    labels: Tuple[str, ...]
    person_count: int

    @property
    def multiple_persons(self) -> bool:
        return self.person_count > 1

    @property
    def cell_phone(self) -> bool:
        return CELL_PHONE in self.labels

    @property
    def book(self) -> bool:
        return BOOK in self.labels


def _landmark(landmarks: Sequence[Landmark], idx: int) -> Landmark:
    if len(landmarks) <= idx:
        raise ValueError(
            f"Face mesh has {len(landmarks)} landmarks, index {idx} required"
        )
    return landmarks[idx]


def head_turn_metric(landmarks: Sequence[Landmark]) -> float:
    """
    Horizontal distance between the cheeks.

    A frontal face spans a good part of the frame width; when the head
    turns, the projected distance between the cheeks shrinks.
    """
    left = _landmark(landmarks, LEFT_CHEEK)
    right = _landmark(landmarks, RIGHT_CHEEK)
    return abs(right.x - left.x)


def mouth_open_metric(landmarks: Sequence[Landmark]) -> float:
    """Vertical gap between the inner upper and lower lip."""
    upper = _landmark(landmarks, UPPER_LIP)
    lower = _landmark(landmarks, LOWER_LIP)
    return abs(upper.y - lower.y)


def is_head_turned(landmarks: Sequence[Landmark], threshold: float = HEAD_TURN_THRESHOLD) -> bool:
    return head_turn_metric(landmarks) < threshold


def is_mouth_open(landmarks: Sequence[Landmark], threshold: float = MOUTH_OPEN_THRESHOLD) -> bool:
    return mouth_open_metric(landmarks) > threshold


def classify_detections(detections: DetectionObservation) -> DetectionSummary:
    """
    Summarize one frame of object detections.

    Args:
        detections: Detections for the frame

    Returns:
        DetectionSummary with distinct labels and the person count
    """
    return summarize_labels(detections.labels)


def summarize_labels(labels: Iterable[str]) -> DetectionSummary:
    seen = []
    person_count = 0
    for label in labels:
        if not label:
            continue
        if label == PERSON:
            person_count += 1
        if label not in seen:
            seen.append(label)
    return DetectionSummary(labels=tuple(seen), person_count=person_count)
