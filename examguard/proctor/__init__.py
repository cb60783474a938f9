"""
ExamGuard Proctoring Module

Watches a live camera during an exam and raises alerts for:
- Face absence
- Multiple faces
- Head turned away
- Mouth open (possible speaking)
- Multiple persons
- Prohibited objects (cell phone, book)
- Hand presence (optional)
"""

from .alerts import AlertConfig, AlertStateMachine
from .errors import (
    CameraUnavailable,
    InferenceUnavailable,
    ProctorError,
    TransientInferenceFailure,
)
from .session import ProctorSession
from .types import SessionState

__all__ = [
    "AlertConfig",
    "AlertStateMachine",
    "CameraUnavailable",
    "InferenceUnavailable",
    "ProctorError",
    "ProctorSession",
    "SessionState",
    "TransientInferenceFailure",
]
