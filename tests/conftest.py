"""
Pytest Configuration for ExamGuard Tests

Fakes stand in for the camera, the perception models and the event-loop
timer so the proctoring logic runs without hardware or model weights.
"""
import asyncio
import os
import sys
import threading

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from examguard.config import Settings
from examguard.proctor.errors import (
    CameraUnavailable,
    InferenceUnavailable,
    TransientInferenceFailure,
)
from examguard.proctor.signals import LEFT_CHEEK, LOWER_LIP, RIGHT_CHEEK, UPPER_LIP
from examguard.proctor.types import (
    Detection,
    DetectionObservation,
    FaceObservation,
    HandObservation,
    Landmark,
)

MESH_SIZE = 468


def make_landmarks(cheek_gap: float = 0.4, lip_gap: float = 0.0):
    """Face mesh with the given cheek distance and lip gap."""
    points = [Landmark(0.5, 0.5, 0.0) for _ in range(MESH_SIZE)]
    points[LEFT_CHEEK] = Landmark(0.5 - cheek_gap / 2, 0.5)
    points[RIGHT_CHEEK] = Landmark(0.5 + cheek_gap / 2, 0.5)
    points[UPPER_LIP] = Landmark(0.5, 0.6)
    points[LOWER_LIP] = Landmark(0.5, 0.6 + lip_gap)
    return tuple(points)


def make_face(cheek_gap: float = 0.4, lip_gap: float = 0.0) -> FaceObservation:
    return FaceObservation(faces=(make_landmarks(cheek_gap, lip_gap),))


def make_objects(*labels: str) -> DetectionObservation:
    return DetectionObservation(
        detections=tuple(Detection(label=label, score=0.9) for label in labels)
    )


NO_FACE = FaceObservation()
TWO_FACES = FaceObservation(faces=(make_landmarks(), make_landmarks()))
FRONTAL = make_face()
HEAD_TURNED = make_face(cheek_gap=0.1)
MOUTH_OPEN = make_face(lip_gap=0.05)
NO_OBJECTS = make_objects()


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """call_later replacement driven by advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds):
        self.now += seconds
        for timer in sorted(self.pending, key=lambda t: t.when):
            if timer.when <= self.now and not timer.cancelled:
                timer.fired = True
                timer.callback()


class FakeFrameSource:
    """Serves a fixed list of (frame, timestamp) pairs, then repeats the last one."""

    def __init__(self, frames=None, fail=False):
        self.frames = list(frames or [])
        self.fail = fail
        self.open_calls = 0
        self.release_calls = 0
        self.reads = 0
        self.read_threads = set()
        self._open = False
        self._current = (None, -1.0)

    @property
    def is_open(self):
        return self._open

    def open(self, width=640, height=480):
        self.open_calls += 1
        if self.fail:
            raise CameraUnavailable("Permission denied")
        self._open = True

    def current_frame(self):
        if not self._open:
            return None, -1.0
        self.reads += 1
        self.read_threads.add(threading.get_ident())
        if self.frames:
            self._current = self.frames.pop(0)
        return self._current

    def close(self):
        if self._open:
            self.release_calls += 1
            self._open = False


class FakePerception:
    """
    Returns canned observations; can block, fail or refuse to load.

    Like the real detectors, calls made while not loaded fail. Closing
    while a load or detection is in progress is recorded.
    """

    def __init__(self, face=NO_FACE, objects=NO_OBJECTS, hands=None,
                 fail_load=False, failures=0, gate=None, load_gate=None):
        self.face = face
        self.objects = objects
        self.hands = hands or HandObservation()
        self.fail_load = fail_load
        self.failures = failures
        self.gate = gate
        self.load_gate = load_gate
        self.loaded = False
        self.busy = 0
        self.closed_while_busy = False
        self.loads = 0
        self.closes = 0
        self.face_calls = 0
        self.object_calls = 0
        self.hand_calls = 0

    async def load(self):
        self.loads += 1
        self.busy += 1
        try:
            if self.load_gate is not None:
                await self.load_gate.wait()
            if self.fail_load:
                raise InferenceUnavailable("model download failed")
            self.loaded = True
        finally:
            self.busy -= 1

    def _check_loaded(self):
        if not self.loaded:
            raise TransientInferenceFailure("model is not loaded")

    async def detect_face(self, frame):
        self.face_calls += 1
        self._check_loaded()
        self.busy += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.failures > 0:
                self.failures -= 1
                raise TransientInferenceFailure("inference crashed")
            return self.face
        finally:
            self.busy -= 1

    async def detect_objects(self, frame, timestamp):
        self.object_calls += 1
        self._check_loaded()
        return self.objects

    async def detect_hands(self, frame):
        self.hand_calls += 1
        self._check_loaded()
        return self.hands

    def close(self):
        self.closes += 1
        if self.busy:
            self.closed_while_busy = True
        self.loaded = False


def frames(count, start=0.0, step=33.0):
    """count distinct frames with increasing timestamps."""
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    return [(image, start + i * step) for i in range(count)]


async def wait_for(predicate, timeout=1.0):
    """Yield to the loop until predicate() is true."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def test_settings():
    return Settings(FRAME_POLL_INTERVAL=0.001, LOG_TO_FILE=False)
