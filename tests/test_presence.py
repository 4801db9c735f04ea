"""
Tests for the Presence Debouncer
"""

import pytest

from proctor_service.proctor.events import EventKind
from proctor_service.proctor.observations import FaceObservation
from proctor_service.proctor.pipeline import PresenceDebouncer

from conftest import T0, at


def kinds(candidates):
    return [c.kind for c in candidates]


class TestFaceAbsence:
    """FACE_ABSENT debounce"""

    def test_no_event_below_threshold(self):
        """Absence shorter than the threshold emits nothing"""
        debouncer = PresenceDebouncer(started_at=T0)

        for ms in range(0, 10000, 500):
            assert debouncer.observe(FaceObservation(0), at(ms)) == []

    def test_threshold_is_strict(self):
        """Absence of exactly the threshold is not yet absence"""
        debouncer = PresenceDebouncer(started_at=T0)

        assert debouncer.observe(FaceObservation(0), at(10000)) == []
        assert kinds(debouncer.observe(FaceObservation(0), at(10001))) == [EventKind.FACE_ABSENT]

    def test_warm_up_grace_period(self):
        """Timers start at session start, so an early empty frame is not absence"""
        debouncer = PresenceDebouncer(started_at=T0)

        assert debouncer.observe(FaceObservation(0), at(9000)) == []

    def test_face_resets_absence_timer(self):
        """A detected face restarts the absence window"""
        debouncer = PresenceDebouncer(started_at=T0)

        debouncer.observe(FaceObservation(0), at(6000))
        debouncer.observe(FaceObservation(1), at(8000))

        assert debouncer.observe(FaceObservation(0), at(18000)) == []
        assert kinds(debouncer.observe(FaceObservation(0), at(18001))) == [EventKind.FACE_ABSENT]

    def test_short_absence_then_face_emits_nothing(self):
        """Absence under threshold followed by a face never surfaces"""
        debouncer = PresenceDebouncer(started_at=T0)
        emitted = []

        for ms in range(0, 9000, 1000):
            emitted += debouncer.observe(FaceObservation(0), at(ms))
        emitted += debouncer.observe(FaceObservation(1), at(9500))

        assert emitted == []

    def test_flicker_never_accumulates(self):
        """0/1 oscillation keeps refreshing the last-seen time"""
        debouncer = PresenceDebouncer(started_at=T0)
        emitted = []

        for step in range(60):
            count = step % 2
            emitted += debouncer.observe(FaceObservation(count), at(step * 500))

        assert emitted == []

    def test_keeps_emitting_while_absent(self):
        """Candidates repeat while absence persists; the gate coalesces them"""
        debouncer = PresenceDebouncer(started_at=T0)

        first = debouncer.observe(FaceObservation(0), at(11000))
        second = debouncer.observe(FaceObservation(0), at(12000))

        assert kinds(first) == kinds(second) == [EventKind.FACE_ABSENT]

    def test_last_seen_is_monotonic(self):
        """An out-of-order observation never moves last_face_seen_at back"""
        debouncer = PresenceDebouncer(started_at=T0)

        debouncer.observe(FaceObservation(1), at(5000))
        debouncer.observe(FaceObservation(1), at(3000))

        assert debouncer.state.last_face_seen_at == at(5000)

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            PresenceDebouncer(started_at=T0, face_absent_threshold_ms=-1)


class TestMultipleFaces:
    """MULTIPLE_FACES is immediate"""

    def test_immediate_emission(self):
        """A second face is reported on the first frame it appears"""
        debouncer = PresenceDebouncer(started_at=T0)

        candidates = debouncer.observe(FaceObservation(2), at(1))

        assert kinds(candidates) == [EventKind.MULTIPLE_FACES]
        assert candidates[0].timestamp == at(1)
        assert "2 faces" in candidates[0].detail

    def test_multiple_faces_refresh_presence(self):
        """Multiple faces still count as a face being present"""
        debouncer = PresenceDebouncer(started_at=T0)

        debouncer.observe(FaceObservation(3), at(9000))

        assert debouncer.observe(FaceObservation(0), at(15000)) == []


class TestLookingAway:
    """LOOKING_AWAY is off unless enabled"""

    def test_disabled_by_default(self):
        """Inattention produces nothing when the capability is off"""
        debouncer = PresenceDebouncer(started_at=T0)

        for ms in range(0, 20000, 1000):
            assert debouncer.observe(FaceObservation(1, (False,)), at(ms)) == []

    def test_timer_refreshes_when_disabled(self):
        """The attention timer keeps running even while disabled"""
        debouncer = PresenceDebouncer(started_at=T0)

        debouncer.observe(FaceObservation(1, (True,)), at(4000))

        assert debouncer.state.last_attentive_at == at(4000)

    def test_enabled_emits_after_threshold(self):
        """Inattention past the threshold yields LOOKING_AWAY"""
        debouncer = PresenceDebouncer(started_at=T0, looking_away_enabled=True)

        debouncer.observe(FaceObservation(1, (True,)), at(1000))

        assert debouncer.observe(FaceObservation(1, (False,)), at(6000)) == []
        assert kinds(debouncer.observe(FaceObservation(1, (False,)), at(6001))) == [EventKind.LOOKING_AWAY]

    def test_missing_attention_signal_counts_as_attentive(self):
        """Faces without attention flags refresh the attention timer"""
        debouncer = PresenceDebouncer(started_at=T0, looking_away_enabled=True)

        for ms in range(0, 20000, 1000):
            assert debouncer.observe(FaceObservation(1), at(ms)) == []

    def test_only_primary_face_matters(self):
        """Attention of secondary faces is ignored"""
        debouncer = PresenceDebouncer(started_at=T0, looking_away_enabled=True)

        debouncer.observe(FaceObservation(2, (False, True)), at(3000))

        assert debouncer.state.last_attentive_at == T0
        assert debouncer.state.last_face_seen_at == at(3000)
