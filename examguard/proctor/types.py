"""
Observation types shared by the detectors, the signal extractors and the
alert state machine.

All observations are produced fresh for every inference call and are
immutable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Tuple


@dataclass(frozen=True)
class Landmark:
    """Normalized landmark point (x, y in [0, 1] relative to the frame)."""
    x: float
    y: float
    z: float = 0.0


LandmarkList = Tuple[Landmark, ...]


@dataclass(frozen=True)
class FaceObservation:
    """Face mesh result for one frame: one landmark sequence per face."""
    faces: Tuple[LandmarkList, ...] = ()

    @property
    def count(self) -> int:
        return len(self.faces)

    @property
    def landmarks(self) -> LandmarkList:
        """Landmarks of the primary face (empty when no face was found)."""
        return self.faces[0] if self.faces else ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_faces": self.count,
            "face_present": self.count > 0,
        }


@dataclass(frozen=True)
class HandObservation:
    """Hand landmark result for one frame."""
    hands: Tuple[LandmarkList, ...] = ()
    handedness: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.hands)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_hands": self.count,
            "hands_visible": self.count > 0,
            "handedness": list(self.handedness),
        }


@dataclass(frozen=True)
class Detection:
    """A single object detection: category label and confidence."""
    label: str
    score: float


@dataclass(frozen=True)
class DetectionObservation:
    """Object detections for one frame (already filtered by score)."""
    detections: Tuple[Detection, ...] = ()

    @property
    def labels(self) -> List[str]:
        """Labels in detection order, duplicates included."""
        return [d.label for d in self.detections]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detections": [
                {"name": d.label, "confidence": round(d.score, 3)}
                for d in self.detections
            ]
        }


class SessionState(str, Enum):
    """Lifecycle of a proctoring session."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class SessionStats:
    """Counters reported in status responses and at session end."""
    frames_processed: int = 0
    frames_skipped: int = 0
    inference_failures: int = 0
    alerts_emitted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "frames_processed": self.frames_processed,
            "frames_skipped": self.frames_skipped,
            "inference_failures": self.inference_failures,
            "alerts_emitted": self.alerts_emitted,
        }
