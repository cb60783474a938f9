"""
Proctoring errors

- CameraUnavailable: capture device denied or absent
- InferenceUnavailable: a perception model could not be initialized
- TransientInferenceFailure: one frame's inference call failed
"""


class ProctorError(Exception):
    """Base class for proctoring errors"""


class CameraUnavailable(ProctorError):
    """Raised when the frame source cannot acquire a capture device"""


class InferenceUnavailable(ProctorError):
    """Raised when the perception engine fails to initialize"""


class TransientInferenceFailure(ProctorError):
    """Raised when inference on a single frame fails; the frame is skipped"""
