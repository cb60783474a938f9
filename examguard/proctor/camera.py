"""
Camera Frame Source - Owns the webcam capture session (OpenCV)
"""

import cv2
import numpy as np
import logging
import threading
import time
from typing import Any, Callable, Optional, Tuple

from .errors import CameraUnavailable

logger = logging.getLogger(__name__)


class CameraFrameSource:
    """
    Live camera capture.

    - open(width, height): acquire the device or raise CameraUnavailable
    - current_frame(): latest (frame, timestamp in ms); frame is None when
      no frame could be read
    - close(): release the device; safe to call more than once

    current_frame() blocks until the device delivers a frame, so callers on
    an event loop run it in a worker thread. close() waits for a read in
    progress before releasing the device.
    """

    def __init__(
        self,
        index: int = 0,
        capture_factory: Optional[Callable[[int], Any]] = None
    ):
        """
        Args:
            index: Camera device index
            capture_factory: Builds the capture object (cv2.VideoCapture by default)
        """
        self.index = index
        self._capture_factory = capture_factory or cv2.VideoCapture
        self._capture = None
        self._last_timestamp: float = -1.0
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self, width: int = 640, height: int = 480):
        """
        Acquire the capture device.

        Raises:
            CameraUnavailable: device missing, busy or permission denied
        """
        with self._lock:
            if self._capture is not None:
                return

            try:
                capture = self._capture_factory(self.index)
            except Exception as e:
                raise CameraUnavailable(f"Cannot open camera {self.index}: {e}") from e

            if capture is None or not capture.isOpened():
                if capture is not None:
                    capture.release()
                raise CameraUnavailable(f"Camera {self.index} is not available")

            capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

            self._capture = capture
            self._last_timestamp = -1.0
        logger.info(f"Camera {self.index} opened at {width}x{height}")

    def current_frame(self) -> Tuple[Optional[np.ndarray], float]:
        """
        Read the current frame (blocking).

        Returns:
            (frame, timestamp_ms). The timestamp is the stream position
            when the backend reports one, otherwise the monotonic clock.
        """
        with self._lock:
            if self._capture is None:
                return None, self._last_timestamp

            ok, frame = self._capture.read()
            if not ok or frame is None:
                return None, self._last_timestamp

            timestamp = float(self._capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0)
            if timestamp <= 0:
                timestamp = time.monotonic() * 1000.0

            self._last_timestamp = timestamp
            return frame, timestamp

    def close(self):
        """Stop the capture and release the device"""
        with self._lock:
            capture, self._capture = self._capture, None
            if capture is None:
                return
            capture.release()
        logger.info(f"Camera {self.index} released")
