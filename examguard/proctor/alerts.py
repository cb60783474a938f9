"""
Alert State Machine - Turns per-frame conditions into stable alert text

Three classes of condition:
- Immediate (no face, multiple faces, multiple persons, objects, hands):
  shown on the first true frame, held while true, cleared when false.
- Debounced (head turned away): must hold continuously for a configured
  time before alerting; alerts once per episode.
- Transient (mouth open): a timed toast that clears itself after its
  display duration even if the condition is still true.

All alerts share one display slot. A write replaces the displayed text and
cancels the slot's pending expiry timer.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import signals
from .types import DetectionObservation, FaceObservation, HandObservation

logger = logging.getLogger(__name__)

# Alert texts
ALERT_NO_FACE = "❌ No face detected"
ALERT_MULTIPLE_FACES = "⚠️ Multiple faces detected"
ALERT_HEAD_TURNED = "⚠️ Head turned away"
ALERT_MOUTH_OPEN = "⚠️ Mouth open (possible speaking)"
ALERT_MULTIPLE_PERSONS = "⚠️ Multiple persons detected"
ALERT_CELL_PHONE = "📱 Cell phone detected"
ALERT_BOOK = "📖 Book detected"
ALERT_HAND = "⚠️ Hand detected – possible mobile/book use"
ALERT_CAMERA_UNAVAILABLE = "❌ Cannot access camera"
ALERT_INFERENCE_UNAVAILABLE = "❌ Cannot load detection models"

# Monitored conditions
NO_FACE = "no_face"
MULTIPLE_FACES = "multiple_faces"
HEAD_TURNED = "head_turned"
MOUTH_OPEN = "mouth_open"
MULTIPLE_PERSONS = "multiple_persons"
CELL_PHONE = "cell_phone"
BOOK = "book"
HAND_PRESENT = "hand_present"

CONDITIONS = (
    NO_FACE,
    MULTIPLE_FACES,
    HEAD_TURNED,
    MOUTH_OPEN,
    MULTIPLE_PERSONS,
    CELL_PHONE,
    BOOK,
    HAND_PRESENT,
)

# Object alerts, in the order they are joined
OBJECT_ALERTS = (
    (MULTIPLE_PERSONS, ALERT_MULTIPLE_PERSONS),
    (CELL_PHONE, ALERT_CELL_PHONE),
    (BOOK, ALERT_BOOK),
)

# Display slot owners
SOURCE_FACE = "face"
SOURCE_HEAD_TURN = "head_turn"
SOURCE_MOUTH = "mouth_open"
SOURCE_OBJECTS = "objects"
SOURCE_HANDS = "hands"
SOURCE_SYSTEM = "system"

# Held sources, in the order they reclaim an empty slot
LEVEL_SOURCES = (SOURCE_FACE, SOURCE_OBJECTS, SOURCE_HANDS)


@dataclass(frozen=True)
class AlertConfig:
    """Thresholds and durations (milliseconds) used by the state machine."""
    head_turn_threshold: float = signals.HEAD_TURN_THRESHOLD
    mouth_open_threshold: float = signals.MOUTH_OPEN_THRESHOLD
    head_turn_hold_ms: float = 1000.0
    mouth_open_display_ms: float = 3000.0
    default_display_ms: float = 2000.0
    hand_alert_enabled: bool = False

    @classmethod
    def from_settings(cls, settings) -> "AlertConfig":
        return cls(
            head_turn_threshold=settings.HEAD_TURN_THRESHOLD,
            mouth_open_threshold=settings.MOUTH_OPEN_THRESHOLD,
            head_turn_hold_ms=settings.HEAD_TURN_HOLD_MS,
            mouth_open_display_ms=settings.MOUTH_OPEN_DISPLAY_MS,
            default_display_ms=settings.DEFAULT_DISPLAY_MS,
            hand_alert_enabled=settings.HAND_ALERT_ENABLED,
        )


# ============== Per-condition state ==============

@dataclass(frozen=True)
class SignalState:
    """Temporal state of one monitored condition."""
    active: bool = False
    onset: Optional[float] = None
    alerted: bool = False


INACTIVE = SignalState()


def step_immediate(state: SignalState, condition: bool, now: float) -> Tuple[SignalState, bool]:
    """
    Advance an immediate-fire (or transient) condition by one frame.

    Returns:
        (new_state, fired) - fired is True only on the frame the
        condition becomes true
    """
    if not condition:
        return INACTIVE, False
    if state.alerted:
        return state, False
    return SignalState(active=True, onset=now, alerted=True), True


def step_debounced(
    state: SignalState,
    condition: bool,
    now: float,
    hold_ms: float
) -> Tuple[SignalState, bool]:
    """
    Advance a debounced condition by one frame.

    The condition must stay true for hold_ms before it fires. Clearing
    before that resets the onset; after firing, nothing more happens
    until the condition clears and re-arms.
    """
    if not condition:
        return INACTIVE, False

    onset = state.onset if state.active and state.onset is not None else now

    if state.alerted:
        return state, False

    if now - onset >= hold_ms:
        return SignalState(active=True, onset=onset, alerted=True), True

    return SignalState(active=True, onset=onset, alerted=False), False


# ============== Display slot ==============

@dataclass(frozen=True)
class ActiveAlert:
    """The alert currently shown. expires_at is None for held alerts."""
    text: str
    expires_at: Optional[float]
    source: str


def _call_later(delay: float, callback: Callable[[], None]) -> Any:
    return asyncio.get_running_loop().call_later(delay, callback)


class DisplaySlot:
    """
    Single user-visible alert with one expiry timer.

    Every show() cancels the pending timer before arming a new one, so an
    older timer can never clear a newer alert.
    """

    def __init__(
        self,
        on_change: Callable[[str], None],
        schedule: Optional[Callable[[float, Callable[[], None]], Any]] = None
    ):
        """
        Args:
            on_change: Called with the new text whenever the displayed
                       text changes (including "" on clear)
            schedule: call_later-style function returning a handle with
                      cancel(); defaults to the running event loop
        """
        self._on_change = on_change
        self._schedule = schedule or _call_later
        self._timer = None
        self._text = ""
        self._batching = False
        self.current: Optional[ActiveAlert] = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def source(self) -> Optional[str]:
        return self.current.source if self.current else None

    def show(self, text: str, source: str, now: float, duration_ms: Optional[float] = None):
        """Replace the displayed alert; duration_ms=None holds it until cleared."""
        self._cancel_timer()

        expires_at = now + duration_ms if duration_ms is not None else None
        alert = ActiveAlert(text=text, expires_at=expires_at, source=source)
        self.current = alert

        if duration_ms is not None:
            self._timer = self._schedule(duration_ms / 1000.0, lambda: self._expire(alert))

        self._set_text(text)

    @contextmanager
    def batch(self):
        """
        Coalesce changes made inside the block: on_change fires once, with
        the final text, and only if it differs from the text before.
        """
        if self._batching:
            yield
            return

        before = self._text
        self._batching = True
        try:
            yield
        finally:
            self._batching = False
            if self._text != before:
                self._on_change(self._text)

    def clear(self):
        """Cancel the pending timer and blank the slot."""
        self._cancel_timer()
        self.current = None
        self._set_text("")

    def _expire(self, alert: ActiveAlert):
        self._timer = None
        if self.current is alert:
            logger.debug(f"Alert expired: {alert.text}")
            self.current = None
            self._set_text("")

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_text(self, text: str):
        if text == self._text:
            return
        self._text = text
        if not self._batching:
            self._on_change(text)


# ============== State machine ==============

class AlertStateMachine:
    """
    Converts per-frame observations into alert text.

    Face observations are evaluated first: the face count decides between
    "no face", "multiple faces" and the single-face signals (head turn and
    mouth open). Object detections are evaluated independently and their
    alerts are joined into one message.
    """

    def __init__(
        self,
        on_alert: Callable[[str], None],
        config: Optional[AlertConfig] = None,
        schedule: Optional[Callable[[float, Callable[[], None]], Any]] = None
    ):
        self.config = config or AlertConfig()
        self._on_alert = on_alert
        self.slot = DisplaySlot(self._emit, schedule)
        self.states: Dict[str, SignalState] = {name: INACTIVE for name in CONDITIONS}
        self._level_text: Dict[str, str] = {}
        self.emitted = 0

    @property
    def text(self) -> str:
        return self.slot.text

    def reset(self):
        """Drop all condition state and clear the display."""
        self.states = {name: INACTIVE for name in CONDITIONS}
        self._level_text = {}
        self.slot.clear()

    def show_persistent(self, text: str, now: float):
        """Show a held system alert (start-up failures)."""
        self.slot.show(text, SOURCE_SYSTEM, now)

    def update(
        self,
        now: float,
        face: Optional[FaceObservation] = None,
        objects: Optional[DetectionObservation] = None,
        hands: Optional[HandObservation] = None
    ):
        """
        Apply one frame's observations. None means 'not run this frame'.

        The display changes at most once per frame; if the frame leaves the
        slot empty while a held condition is still true, that condition
        takes the slot in the same update.
        """
        with self.slot.batch():
            if face is not None:
                self.update_face(face, now)
            if objects is not None:
                self.update_objects(objects, now)
            if hands is not None and self.config.hand_alert_enabled:
                self.update_hands(hands, now)
            if self.slot.current is None:
                self._restore_held(now)

    def update_face(self, face: FaceObservation, now: float):
        count = face.count

        no_face_fired = self._step(NO_FACE, count == 0, now)
        multi_fired = self._step(MULTIPLE_FACES, count > 1, now)

        if count == 0:
            text = ALERT_NO_FACE
        elif count > 1:
            text = ALERT_MULTIPLE_FACES
        else:
            text = ""
        self._update_level(SOURCE_FACE, no_face_fired or multi_fired, text, now)

        if count != 1:
            # Single-face signals cannot be observed this frame
            self._release(HEAD_TURNED, SOURCE_HEAD_TURN)
            self.states[MOUTH_OPEN] = INACTIVE
            return

        try:
            head_turned = signals.is_head_turned(
                face.landmarks, self.config.head_turn_threshold
            )
            mouth_open = signals.is_mouth_open(
                face.landmarks, self.config.mouth_open_threshold
            )
        except ValueError as e:
            logger.debug(f"Face signals unavailable: {e}")
            return

        self._update_head_turn(head_turned, now)
        self._update_mouth(mouth_open, now)

    def update_objects(self, objects: DetectionObservation, now: float):
        summary = signals.classify_detections(objects)
        conditions = {
            MULTIPLE_PERSONS: summary.multiple_persons,
            CELL_PHONE: summary.cell_phone,
            BOOK: summary.book,
        }

        fired = False
        messages: List[str] = []
        for name, message in OBJECT_ALERTS:
            fired = self._step(name, conditions[name], now) or fired
            if conditions[name]:
                messages.append(message)

        self._update_level(SOURCE_OBJECTS, fired, ", ".join(messages), now)

    def update_hands(self, hands: HandObservation, now: float):
        present = hands.count > 0
        fired = self._step(HAND_PRESENT, present, now)
        self._update_level(SOURCE_HANDS, fired, ALERT_HAND if present else "", now)

    # ---------- internals ----------

    def _step(self, name: str, condition: bool, now: float) -> bool:
        self.states[name], fired = step_immediate(self.states[name], condition, now)
        return fired

    def _update_head_turn(self, head_turned: bool, now: float):
        if not head_turned:
            self._release(HEAD_TURNED, SOURCE_HEAD_TURN)
            return

        self.states[HEAD_TURNED], fired = step_debounced(
            self.states[HEAD_TURNED], True, now, self.config.head_turn_hold_ms
        )
        if fired:
            self.slot.show(
                ALERT_HEAD_TURNED, SOURCE_HEAD_TURN, now, self.config.default_display_ms
            )

    def _update_mouth(self, mouth_open: bool, now: float):
        self.states[MOUTH_OPEN], fired = step_immediate(self.states[MOUTH_OPEN], mouth_open, now)
        if fired:
            self.slot.show(
                ALERT_MOUTH_OPEN, SOURCE_MOUTH, now, self.config.mouth_open_display_ms
            )

    def _release(self, name: str, source: str):
        self.states[name] = INACTIVE
        if self.slot.source == source:
            self.slot.clear()

    def _restore_held(self, now: float):
        for source in LEVEL_SOURCES:
            text = self._level_text.get(source, "")
            if text:
                self.slot.show(text, source, now)
                return

    def _update_level(self, source: str, fired: bool, text: str, now: float):
        """
        Keep a held alert in sync with its conditions.

        A rising condition always takes the slot. While held, the text is
        refreshed if the source still owns the slot and restored if the
        slot is empty. When everything clears, the slot is blanked only if
        this source still owns it.
        """
        previous = self._level_text.get(source, "")
        self._level_text[source] = text

        if text:
            owner = self.slot.source
            if fired or owner is None or (owner == source and self.slot.text != text):
                self.slot.show(text, source, now)
        elif previous and self.slot.source == source:
            self.slot.clear()

    def _emit(self, text: str):
        if text:
            self.emitted += 1
            logger.info(f"Alert: {text}")
        self._on_alert(text)
