"""
Tests for the alert state machine and the display slot
"""

from unittest.mock import patch

import pytest

from examguard.proctor import alerts
from examguard.proctor.alerts import (
    ALERT_BOOK,
    ALERT_CELL_PHONE,
    ALERT_HAND,
    ALERT_HEAD_TURNED,
    ALERT_MOUTH_OPEN,
    ALERT_MULTIPLE_FACES,
    ALERT_MULTIPLE_PERSONS,
    ALERT_NO_FACE,
    INACTIVE,
    AlertConfig,
    AlertStateMachine,
    DisplaySlot,
    SignalState,
    step_debounced,
    step_immediate,
)
from examguard.proctor.types import HandObservation, Landmark

from conftest import (
    FRONTAL,
    HEAD_TURNED,
    MOUTH_OPEN,
    NO_FACE,
    NO_OBJECTS,
    TWO_FACES,
    make_landmarks,
    make_objects,
)


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def machine(emitted, scheduler):
    return AlertStateMachine(emitted.append, AlertConfig(), scheduler)


class TestTransitions:
    """Pure per-condition transition functions"""

    def test_immediate_fires_on_first_true_frame(self):
        state, fired = step_immediate(INACTIVE, True, 10.0)
        assert fired is True
        assert state == SignalState(active=True, onset=10.0, alerted=True)

    def test_immediate_does_not_refire_while_held(self):
        state, _ = step_immediate(INACTIVE, True, 10.0)
        state, fired = step_immediate(state, True, 20.0)
        assert fired is False
        assert state.onset == 10.0

    def test_immediate_resets_when_false(self):
        state, _ = step_immediate(INACTIVE, True, 10.0)
        state, fired = step_immediate(state, False, 20.0)
        assert state == INACTIVE
        assert fired is False

    def test_debounced_waits_for_hold(self):
        state, fired = step_debounced(INACTIVE, True, 0.0, 1000.0)
        assert fired is False
        assert state.onset == 0.0 and state.active and not state.alerted

        state, fired = step_debounced(state, True, 999.0, 1000.0)
        assert fired is False

        state, fired = step_debounced(state, True, 1000.0, 1000.0)
        assert fired is True
        assert state.alerted is True

    def test_debounced_alerts_once(self):
        state, _ = step_debounced(INACTIVE, True, 0.0, 1000.0)
        state, _ = step_debounced(state, True, 1000.0, 1000.0)
        state, fired = step_debounced(state, True, 5000.0, 1000.0)
        assert fired is False

    def test_debounced_clear_resets_onset(self):
        state, _ = step_debounced(INACTIVE, True, 0.0, 1000.0)
        state, _ = step_debounced(state, False, 500.0, 1000.0)
        assert state.onset is None
        state, _ = step_debounced(state, True, 600.0, 1000.0)
        assert state.onset == 600.0


class TestDisplaySlot:
    """Single alert slot with cancel-and-replace expiry"""

    def test_show_calls_on_change(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("hello", "test", now=0.0)
        assert emitted == ["hello"]
        assert slot.current.expires_at is None

    def test_same_text_is_not_reemitted(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("hello", "test", now=0.0)
        slot.show("hello", "test", now=10.0)
        assert emitted == ["hello"]

    def test_timed_alert_expires(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("toast", "test", now=0.0, duration_ms=2000.0)
        assert slot.current.expires_at == 2000.0

        scheduler.advance(1.9)
        assert slot.text == "toast"
        scheduler.advance(0.2)
        assert slot.text == ""
        assert emitted == ["toast", ""]

    def test_new_show_cancels_pending_expiry(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("first", "test", now=0.0, duration_ms=3000.0)
        scheduler.advance(1.0)
        slot.show("second", "test", now=1000.0, duration_ms=3000.0)

        # The first timer would have fired at 3.0s
        scheduler.advance(2.5)
        assert slot.text == "second"

        scheduler.advance(0.6)
        assert slot.text == ""
        assert emitted == ["first", "second", ""]

    def test_held_alert_cancels_pending_expiry(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("toast", "test", now=0.0, duration_ms=1000.0)
        slot.show("held", "level", now=500.0)
        scheduler.advance(5.0)
        assert slot.text == "held"

    def test_stale_timer_cannot_clear_newer_alert(self, emitted):
        captured = []

        class NoCancelTimer:
            def cancel(self):
                pass

        def schedule(delay, callback):
            captured.append(callback)
            return NoCancelTimer()

        slot = DisplaySlot(emitted.append, schedule)
        slot.show("first", "test", now=0.0, duration_ms=1000.0)
        slot.show("second", "test", now=10.0, duration_ms=1000.0)

        captured[0]()
        assert slot.text == "second"

    def test_batch_emits_final_text_once(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("held", "level", now=0.0)

        with slot.batch():
            slot.clear()
            slot.show("other", "level", now=10.0)
            slot.show("held", "level", now=10.0)

        assert emitted == ["held"]
        assert slot.text == "held"

    def test_clear_cancels_timer(self, emitted, scheduler):
        slot = DisplaySlot(emitted.append, scheduler)
        slot.show("toast", "test", now=0.0, duration_ms=1000.0)
        slot.clear()
        assert scheduler.pending == []
        assert emitted == ["toast", ""]


class TestFaceCountAlerts:
    """No face / multiple faces take precedence over single-face signals"""

    def test_no_face_alert(self, machine, emitted):
        with patch.object(alerts.signals, "head_turn_metric") as head_turn, \
                patch.object(alerts.signals, "mouth_open_metric") as mouth_open:
            machine.update(0.0, face=NO_FACE)

        assert emitted == [ALERT_NO_FACE]
        head_turn.assert_not_called()
        mouth_open.assert_not_called()

    def test_multiple_faces_alert(self, machine, emitted):
        with patch.object(alerts.signals, "head_turn_metric") as head_turn, \
                patch.object(alerts.signals, "mouth_open_metric") as mouth_open:
            machine.update(0.0, face=TWO_FACES)

        assert emitted == [ALERT_MULTIPLE_FACES]
        head_turn.assert_not_called()
        mouth_open.assert_not_called()

    def test_no_face_is_held_and_not_repeated(self, machine, emitted, scheduler):
        for t in range(0, 5000, 100):
            machine.update(float(t), face=NO_FACE)
        scheduler.advance(10.0)

        assert emitted == [ALERT_NO_FACE]
        assert machine.text == ALERT_NO_FACE

    def test_no_face_clears_when_face_returns(self, machine, emitted):
        machine.update(0.0, face=NO_FACE)
        machine.update(100.0, face=FRONTAL)
        assert emitted == [ALERT_NO_FACE, ""]

    def test_no_face_to_multiple_faces(self, machine, emitted):
        machine.update(0.0, face=NO_FACE)
        machine.update(100.0, face=TWO_FACES)
        assert emitted == [ALERT_NO_FACE, ALERT_MULTIPLE_FACES]

    def test_face_loss_resets_head_turn_timer(self, machine):
        machine.update(0.0, face=HEAD_TURNED)
        assert machine.states[alerts.HEAD_TURNED].onset == 0.0

        machine.update(100.0, face=NO_FACE)
        assert machine.states[alerts.HEAD_TURNED] == INACTIVE

    def test_incomplete_mesh_is_ignored(self, machine, emitted):
        from examguard.proctor.types import FaceObservation
        machine.update(0.0, face=FaceObservation(faces=((Landmark(0.5, 0.5),),)))
        assert emitted == []


class TestHeadTurn:
    """Debounced head-turn alert"""

    def test_alert_after_hold_duration(self, machine, emitted):
        for t in range(0, 1000, 100):
            machine.update(float(t), face=HEAD_TURNED)
        assert emitted == []

        machine.update(1000.0, face=HEAD_TURNED)
        assert emitted == [ALERT_HEAD_TURNED]

    def test_exactly_one_alert_while_held(self, machine, emitted):
        for t in range(0, 5000, 100):
            machine.update(float(t), face=HEAD_TURNED)
        assert emitted.count(ALERT_HEAD_TURNED) == 1

    def test_clearing_at_999ms_prevents_alert(self, machine, emitted):
        for t in range(0, 999, 111):
            machine.update(float(t), face=HEAD_TURNED)
        machine.update(999.0, face=FRONTAL)

        assert emitted == []
        assert machine.states[alerts.HEAD_TURNED].onset is None

        # The hold restarts from the next turned frame
        machine.update(1100.0, face=HEAD_TURNED)
        machine.update(2000.0, face=HEAD_TURNED)
        assert emitted == []
        machine.update(2100.0, face=HEAD_TURNED)
        assert emitted == [ALERT_HEAD_TURNED]

    def test_rearms_after_clearing(self, machine, emitted, scheduler):
        machine.update(0.0, face=HEAD_TURNED)
        machine.update(1000.0, face=HEAD_TURNED)
        machine.update(1100.0, face=FRONTAL)
        machine.update(1200.0, face=HEAD_TURNED)
        machine.update(2200.0, face=HEAD_TURNED)
        assert emitted.count(ALERT_HEAD_TURNED) == 2

    def test_head_turn_alert_clears_when_head_returns(self, machine, emitted):
        machine.update(0.0, face=HEAD_TURNED)
        machine.update(1000.0, face=HEAD_TURNED)
        machine.update(1100.0, face=FRONTAL)
        assert emitted == [ALERT_HEAD_TURNED, ""]

    def test_head_turn_alert_expires(self, machine, emitted, scheduler):
        machine.update(0.0, face=HEAD_TURNED)
        machine.update(1000.0, face=HEAD_TURNED)
        scheduler.advance(2.0)
        assert machine.text == ""
        assert machine.states[alerts.HEAD_TURNED].alerted is True


class TestMouthOpen:
    """Transient mouth-open toast"""

    def test_fires_immediately(self, machine, emitted):
        machine.update(0.0, face=MOUTH_OPEN)
        assert emitted == [ALERT_MOUTH_OPEN]
        assert machine.slot.current.expires_at == 3000.0

    def test_auto_clears_while_still_open(self, machine, emitted, scheduler):
        machine.update(0.0, face=MOUTH_OPEN)
        scheduler.advance(2.9)
        machine.update(2900.0, face=MOUTH_OPEN)
        assert machine.text == ALERT_MOUTH_OPEN

        scheduler.advance(0.2)
        assert machine.text == ""

        machine.update(3100.0, face=MOUTH_OPEN)
        assert emitted == [ALERT_MOUTH_OPEN, ""]

    def test_fires_again_after_closing(self, machine, emitted):
        machine.update(0.0, face=MOUTH_OPEN)
        machine.update(100.0, face=FRONTAL)
        machine.update(200.0, face=MOUTH_OPEN)
        assert machine.states[alerts.MOUTH_OPEN].onset == 200.0
        assert machine.slot.current.expires_at == 3200.0

    def test_custom_display_duration(self, emitted, scheduler):
        machine = AlertStateMachine(
            emitted.append, AlertConfig(mouth_open_display_ms=500.0), scheduler
        )
        machine.update(0.0, face=MOUTH_OPEN)
        scheduler.advance(0.5)
        assert emitted == [ALERT_MOUTH_OPEN, ""]


class TestObjectAlerts:
    """Object detection alerts are joined into one message"""

    def test_phone_and_book(self, machine, emitted):
        machine.update(0.0, objects=make_objects("cell phone", "book"))
        assert emitted == ["📱 Cell phone detected, 📖 Book detected"]

    def test_join_order_is_fixed(self, machine):
        machine.update(0.0, objects=make_objects("book", "person", "cell phone", "person"))
        assert machine.text == ", ".join(
            [ALERT_MULTIPLE_PERSONS, ALERT_CELL_PHONE, ALERT_BOOK]
        )

    def test_multiple_persons_independent_of_face(self, machine):
        machine.update(0.0, face=FRONTAL, objects=make_objects("person", "person"))
        assert "Multiple persons detected" in machine.text

        machine.update(100.0, face=NO_FACE, objects=make_objects("person", "person"))
        assert machine.states[alerts.MULTIPLE_PERSONS].active is True
        assert machine.states[alerts.NO_FACE].active is True

    def test_face_and_objects_in_same_frame(self, machine, emitted):
        # Last write wins; the frame produces one display change
        machine.update(0.0, face=NO_FACE, objects=make_objects("cell phone"))
        assert emitted == [ALERT_CELL_PHONE]
        assert machine.states[alerts.NO_FACE].active is True

    def test_held_face_alert_takes_over_without_blank(self, machine, emitted):
        machine.update(0.0, face=NO_FACE, objects=make_objects("cell phone"))
        machine.update(100.0, face=NO_FACE, objects=NO_OBJECTS)

        assert emitted == [ALERT_CELL_PHONE, ALERT_NO_FACE]
        assert machine.slot.source == alerts.SOURCE_FACE

    def test_held_object_alert_takes_over_when_face_returns(self, machine, emitted):
        machine.update(0.0, face=FRONTAL, objects=make_objects("book"))
        machine.update(100.0, face=NO_FACE, objects=make_objects("book"))
        machine.update(200.0, face=FRONTAL, objects=make_objects("book"))

        assert emitted == [ALERT_BOOK, ALERT_NO_FACE, ALERT_BOOK]
        assert "" not in emitted

    def test_head_turn_clear_restores_held_objects(self, machine, emitted):
        machine.update(0.0, face=HEAD_TURNED, objects=make_objects("book"))
        machine.update(1000.0, face=HEAD_TURNED, objects=make_objects("book"))
        assert machine.text == ALERT_HEAD_TURNED

        machine.update(1100.0, face=FRONTAL, objects=make_objects("book"))
        assert emitted == [ALERT_BOOK, ALERT_HEAD_TURNED, ALERT_BOOK]

    def test_absence_clears_immediately(self, machine, emitted):
        machine.update(0.0, objects=make_objects("cell phone"))
        machine.update(100.0, objects=NO_OBJECTS)
        assert emitted == [ALERT_CELL_PHONE, ""]
        assert machine.states[alerts.CELL_PHONE] == INACTIVE

    def test_message_shrinks_with_conditions(self, machine, emitted):
        machine.update(0.0, objects=make_objects("cell phone", "book"))
        machine.update(100.0, objects=make_objects("book"))
        assert machine.text == ALERT_BOOK

    def test_held_alert_returns_after_toast(self, machine, emitted, scheduler):
        machine.update(0.0, face=FRONTAL, objects=make_objects("cell phone"))
        machine.update(100.0, face=MOUTH_OPEN, objects=make_objects("cell phone"))
        assert machine.text == ALERT_MOUTH_OPEN

        scheduler.advance(3.0)
        assert machine.text == ""

        machine.update(3200.0, face=MOUTH_OPEN, objects=make_objects("cell phone"))
        assert machine.text == ALERT_CELL_PHONE

    def test_other_source_is_not_cleared(self, machine):
        machine.update(0.0, face=FRONTAL, objects=make_objects("book"))
        machine.update(100.0, face=NO_FACE, objects=make_objects("book"))
        # No face is still displayed; the book stays logically active
        assert machine.text == ALERT_NO_FACE

        machine.update(200.0, face=NO_FACE, objects=NO_OBJECTS)
        assert machine.text == ALERT_NO_FACE


class TestHandAlert:
    """Optional hand-presence alert"""

    HAND = HandObservation(hands=(make_landmarks()[:21],), handedness=("Left",))

    def test_disabled_by_default(self, machine, emitted):
        machine.update(0.0, hands=self.HAND)
        assert emitted == []

    def test_enabled(self, emitted, scheduler):
        machine = AlertStateMachine(
            emitted.append, AlertConfig(hand_alert_enabled=True), scheduler
        )
        machine.update(0.0, hands=self.HAND)
        machine.update(100.0, hands=HandObservation())
        assert emitted == [ALERT_HAND, ""]


class TestReset:
    def test_reset_clears_state_and_display(self, machine, emitted, scheduler):
        machine.update(0.0, face=MOUTH_OPEN)
        machine.update(100.0, face=HEAD_TURNED)
        machine.reset()

        assert emitted[-1] == ""
        assert all(state == INACTIVE for state in machine.states.values())
        assert scheduler.pending == []

    def test_config_from_settings(self, test_settings):
        config = AlertConfig.from_settings(test_settings)
        assert config.head_turn_threshold == 0.2
        assert config.mouth_open_threshold == 0.02
        assert config.head_turn_hold_ms == 1000.0
        assert config.mouth_open_display_ms == 3000.0
        assert config.default_display_ms == 2000.0
        assert config.hand_alert_enabled is False
