"""
Proctor Session - Start/stop lifecycle and the per-frame loop
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

from ..config import Settings, settings as default_settings
from .alerts import (
    ALERT_CAMERA_UNAVAILABLE,
    ALERT_INFERENCE_UNAVAILABLE,
    AlertConfig,
    AlertStateMachine,
)
from .camera import CameraFrameSource
from .errors import CameraUnavailable, InferenceUnavailable, TransientInferenceFailure
from .perception import PerceptionAdapter
from .types import SessionState, SessionStats
from .utils.logging import (
    log_alert_emitted,
    log_critical_event,
    log_session_end,
    log_session_start,
)

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ProctorSession:
    """
    Drives one camera through the perception models and the alert state
    machine.

    start() and stop() may be called repeatedly. start() while starting or
    running does nothing; stop() while stopped does nothing. Every start
    builds a fresh AlertStateMachine, so no timer or flag survives a
    restart.

    Camera reads and model calls run in worker threads, which cannot be
    interrupted. stop() releases the camera at once but closes the models
    only after the model call in flight returns, and the next start()
    waits for that before loading them again.
    """

    def __init__(
        self,
        on_alert: Optional[Callable[[str], None]] = None,
        frame_source: Optional[CameraFrameSource] = None,
        perception: Optional[PerceptionAdapter] = None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
        schedule: Optional[Callable[[float, Callable[[], None]], Any]] = None
    ):
        """
        Args:
            on_alert: Called with the alert text whenever it changes
            frame_source: Camera wrapper (built from config if omitted)
            perception: Model wrapper (built from config if omitted)
            config: Settings instance (module settings if omitted)
            clock: Millisecond clock used for debouncing
            schedule: call_later-style function for alert expiry timers
        """
        self.config = config or default_settings
        self.on_alert = on_alert
        self.frame_source = frame_source or CameraFrameSource(self.config.CAMERA_INDEX)
        self.perception = perception or PerceptionAdapter.from_settings(self.config)
        self._clock = clock or _monotonic_ms
        self._schedule = schedule

        self.id: Optional[str] = None
        self.alerts: Optional[AlertStateMachine] = None
        self.stats = SessionStats()

        self._state = SessionState.STOPPED
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

        # Model load or inference still running in a worker thread
        self._perception_busy: Optional[asyncio.Future] = None
        self._close_when_idle = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state == SessionState.RUNNING

    @property
    def alert_text(self) -> str:
        return self.alerts.text if self.alerts is not None else ""

    async def start(self) -> bool:
        """
        Start proctoring.

        Returns:
            True if the session is running, False if start-up failed (the
            cause is shown as a persistent alert) or was interrupted by stop()
        """
        if self._state in (SessionState.STARTING, SessionState.RUNNING):
            logger.info(f"Session {self.id} already {self._state.value}, start ignored")
            return self.running

        if self.alerts is not None:
            # Blank whatever the previous run left on screen
            self.alerts.reset()

        self._generation += 1
        generation = self._generation
        self._state = SessionState.STARTING

        self.id = f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.stats = SessionStats()
        self.alerts = AlertStateMachine(
            self._handle_alert,
            AlertConfig.from_settings(self.config),
            self._schedule
        )

        # Work left over from the previous run finishes, and its models are
        # closed, before they are loaded again
        await self._perception_idle()
        if generation != self._generation:
            return False

        try:
            await self._perception_call(self.perception.load())
        except InferenceUnavailable as e:
            if generation != self._generation:
                return False
            self.perception.close()
            return self._abort_start(generation, ALERT_INFERENCE_UNAVAILABLE, "inference_unavailable", e)

        if generation != self._generation:
            # stop() ran during the load; the models were closed when it returned
            return False

        try:
            self.frame_source.open(self.config.CAMERA_WIDTH, self.config.CAMERA_HEIGHT)
        except CameraUnavailable as e:
            self.perception.close()
            return self._abort_start(generation, ALERT_CAMERA_UNAVAILABLE, "camera_unavailable", e)

        self._state = SessionState.RUNNING
        log_session_start(self.id, self.config.CAMERA_WIDTH, self.config.CAMERA_HEIGHT)

        self._task = asyncio.create_task(self._run(generation))
        return True

    def stop(self):
        """
        Stop proctoring and release the camera.

        Any inference still in flight finishes in the background; its
        result is discarded and the models are closed when it returns.
        """
        if self._state in (SessionState.STOPPED, SessionState.STOPPING):
            return

        self._state = SessionState.STOPPING
        self._generation += 1

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

        self.frame_source.close()
        self._release_perception()

        if self.alerts is not None:
            self.alerts.reset()

        if self.id is not None:
            log_session_end(self.id, self.stats.to_dict())

        self._state = SessionState.STOPPED
        logger.info(f"Proctoring session stopped: {self.id}")

    def status(self) -> dict:
        return {
            "session_id": self.id,
            "state": self._state.value,
            "running": self.running,
            "alert": self.alert_text,
            **self.stats.to_dict()
        }

    # ---------- frame loop ----------

    def _is_current(self, generation: int) -> bool:
        return self._state == SessionState.RUNNING and generation == self._generation

    async def _run(self, generation: int):
        """Process frames until stop() bumps the generation."""
        last_timestamp: Optional[float] = None
        poll_interval = self.config.FRAME_POLL_INTERVAL

        while self._is_current(generation):
            frame, timestamp = await asyncio.to_thread(self.frame_source.current_frame)
            if not self._is_current(generation):
                break

            if frame is None or timestamp == last_timestamp:
                if frame is not None:
                    self.stats.frames_skipped += 1
                await asyncio.sleep(poll_interval)
                continue

            last_timestamp = timestamp
            await self._process_frame(frame, timestamp, generation)

            # Let timers and the API run between frames
            await asyncio.sleep(0)

    async def _infer(self, frame, timestamp: float):
        face = await self.perception.detect_face(frame)
        objects = await self.perception.detect_objects(frame, timestamp)
        hands = None
        if self.config.HAND_ALERT_ENABLED:
            hands = await self.perception.detect_hands(frame)
        return face, objects, hands

    async def _process_frame(self, frame, timestamp: float, generation: int):
        try:
            face, objects, hands = await self._perception_call(self._infer(frame, timestamp))
        except TransientInferenceFailure as e:
            if self._is_current(generation):
                self.stats.inference_failures += 1
                logger.warning(f"Inference failed, frame skipped: {e}")
            return

        if not self._is_current(generation):
            logger.debug("Discarding inference result that arrived after stop")
            return

        self.alerts.update(self._clock(), face=face, objects=objects, hands=hands)
        self.stats.frames_processed += 1

    # ---------- model lifetime ----------

    async def _perception_call(self, work: Awaitable[Any]) -> Any:
        """
        Run model work so that it outlives a cancelled caller.

        The work keeps running after stop() cancels the frame loop; it is
        tracked so the models are not closed or reloaded underneath it.
        """
        future = asyncio.ensure_future(work)
        future.add_done_callback(self._perception_done)
        self._perception_busy = future
        return await asyncio.shield(future)

    def _perception_done(self, future: asyncio.Future):
        if self._perception_busy is future:
            self._perception_busy = None
        if self._close_when_idle:
            self._close_when_idle = False
            self.perception.close()

    async def _perception_idle(self):
        while self._perception_busy is not None:
            await asyncio.wait({self._perception_busy})

    def _release_perception(self):
        """Close the models now, or as soon as the work in flight returns."""
        busy = self._perception_busy
        if busy is not None and not busy.done():
            logger.debug("Model call in flight, closing models when it returns")
            self._close_when_idle = True
            return
        self.perception.close()

    # ---------- helpers ----------

    def _abort_start(self, generation: int, text: str, event: str, error: Exception) -> bool:
        logger.error(f"Proctoring start failed: {error}")
        if generation != self._generation:
            return False

        self._state = SessionState.STOPPED
        log_critical_event(self.id, event, {"error": str(error)})
        self.alerts.show_persistent(text, self._clock())
        return False

    def _handle_alert(self, text: str):
        if text:
            self.stats.alerts_emitted += 1
        log_alert_emitted(self.id, text)

        if self.on_alert is None:
            return
        try:
            self.on_alert(text)
        except Exception as e:
            logger.exception(f"Alert callback failed: {e}")
