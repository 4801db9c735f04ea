"""
Tests for the face/object observers and the producer-consumer loop
"""

import asyncio
import time
import pytest

from proctor_service.proctor.detectors import FaceObserver, ObjectObserver
from proctor_service.proctor.events import EventKind
from proctor_service.proctor.exceptions import InvalidObservationError, SessionStateError
from proctor_service.proctor.observations import FaceObservation, ObjectObservation
from proctor_service.proctor.session import ProctorSession
from proctor_service.proctor.store import InMemoryEventStore

from conftest import T0, at


PHONE = {"class": "cell phone", "confidence": 0.9, "bbox": [1, 2, 30, 60]}


class TestFaceObserverConversion:
    """Raw detector results -> FaceObservation"""

    def test_bare_count(self):
        observation = FaceObserver(lambda: None).to_observation(2, T0)

        assert observation.face_count == 2
        assert observation.timestamp == T0

    def test_attention_flags(self):
        observation = FaceObserver(lambda: None).to_observation([False, True], T0)

        assert observation.face_count == 2
        assert observation.primary_attentive is False

    def test_mapping(self):
        observation = FaceObserver(lambda: None).to_observation(
            {"num_faces": 1, "per_face_attentive": [True]}, T0
        )

        assert observation.face_count == 1
        assert observation.attentive == (True,)

    def test_keeps_existing_timestamp(self):
        raw = FaceObservation(0, (), at(500))

        assert FaceObserver(lambda: None).to_observation(raw, T0).timestamp == at(500)

    def test_unsupported_result(self):
        with pytest.raises(InvalidObservationError):
            FaceObserver(lambda: None).to_observation("face", T0)

    def test_bool_is_not_a_count(self):
        with pytest.raises(InvalidObservationError):
            FaceObserver(lambda: None).to_observation(True, T0)


class TestObjectObserverConversion:
    """Raw classifier output -> ObjectObservation"""

    def test_detection_list(self):
        observation = ObjectObserver(lambda: None).to_observation([PHONE], T0)

        assert isinstance(observation, ObjectObservation)
        assert observation.detections == (PHONE,)
        assert observation.timestamp == T0

    def test_empty_list(self):
        observation = ObjectObserver(lambda: None).to_observation([], T0)

        assert observation.detections == ()

    def test_default_intervals(self):
        assert FaceObserver(lambda: None).interval_ms == 100
        assert ObjectObserver(lambda: None).interval_ms == 3000

    def test_invalid_max_failures(self):
        with pytest.raises(ValueError):
            ObjectObserver(lambda: None, max_failures=0)


class TestObserverRun:
    """Observer polling loop"""

    @pytest.mark.asyncio
    async def test_none_results_skipped(self):
        received = []
        observer = FaceObserver(lambda: None, interval_ms=5)

        task = asyncio.create_task(observer.run(received.append))
        await asyncio.sleep(0.05)
        observer.stop()
        await task

        assert received == []
        assert observer.produced == 0
        assert observer.is_running is False

    @pytest.mark.asyncio
    async def test_failures_below_limit_tolerated(self):
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] <= 2:
                raise RuntimeError("camera busy")
            return 1

        received = []
        observer = FaceObserver(flaky, interval_ms=5, max_failures=3)

        task = asyncio.create_task(observer.run(received.append))
        await asyncio.sleep(0.05)
        observer.stop()
        await task

        assert observer.disabled is False
        assert received and received[0].face_count == 1

    @pytest.mark.asyncio
    async def test_disabled_after_failure(self):
        def broken():
            raise RuntimeError("model failed to load")

        observer = ObjectObserver(broken, interval_ms=5)

        await asyncio.wait_for(observer.run(lambda o: None), timeout=1)

        assert observer.disabled is True
        assert observer.is_running is False


class TestProducerConsumer:
    """Observers feeding a session through the queue"""

    @pytest.mark.asyncio
    async def test_both_channels_feed_one_session(self, test_settings):
        session = ProctorSession(session_id="EXM_ASYNC", config=test_settings)
        face = FaceObserver(lambda: 2, interval_ms=5)
        obj = ObjectObserver(lambda: [PHONE], interval_ms=5)

        session.launch(face, obj)
        assert session.is_active

        await asyncio.sleep(0.1)
        report = await session.close()

        kinds = [e.kind for e in report.events]
        assert kinds.count(EventKind.MULTIPLE_FACES) == 1
        assert kinds.count(EventKind.PHONE_DETECTED) == 1
        assert report.integrity_score == 65
        assert face.produced > 1
        assert obj.produced > 1

    @pytest.mark.asyncio
    async def test_failing_channel_does_not_stop_session(self, test_settings):
        def broken_face():
            raise RuntimeError("landmarker crashed")

        session = ProctorSession(session_id="EXM_FAIL", config=test_settings)
        face = FaceObserver(broken_face, interval_ms=5)
        obj = ObjectObserver(lambda: [PHONE], interval_ms=5)

        session.launch(face, obj)
        await asyncio.sleep(0.1)

        status = session.get_status()
        assert status["is_active"] is True
        assert status["observers"]["face"]["disabled"] is True
        assert status["observers"]["object"]["disabled"] is False

        report = await session.close()

        assert [e.kind for e in report.events] == [EventKind.PHONE_DETECTED]
        assert report.integrity_score == 80

    @pytest.mark.asyncio
    async def test_async_detector(self, test_settings):
        async def detect():
            await asyncio.sleep(0)
            return {"faceCount": 3}

        session = ProctorSession(session_id="EXM_AWAIT", config=test_settings)
        session.launch(FaceObserver(detect, interval_ms=5))
        await asyncio.sleep(0.05)
        report = await session.close()

        assert [e.kind for e in report.events] == [EventKind.MULTIPLE_FACES]

    @pytest.mark.asyncio
    async def test_close_halts_producers(self, test_settings):
        session = ProctorSession(session_id="EXM_HALT", config=test_settings)
        face = FaceObserver(lambda: 1, interval_ms=5)

        session.launch(face)
        await asyncio.sleep(0.02)
        await session.close()
        produced = face.produced
        await asyncio.sleep(0.02)

        assert face.is_running is False
        assert face.produced == produced
        assert session.process_face(FaceObservation(2)) == []

    @pytest.mark.asyncio
    async def test_launch_after_end_rejected(self, test_settings):
        session = ProctorSession(session_id="EXM_DONE", config=test_settings)
        session.start()
        session.stop()

        with pytest.raises(SessionStateError):
            session.launch(FaceObserver(lambda: 1))

    @pytest.mark.asyncio
    async def test_forwarding_inside_loop(self, test_settings):
        """Accepted events reach the store once close() drains the forwarder"""
        store = InMemoryEventStore()
        session = ProctorSession(session_id="EXM_STORE", config=test_settings, store=store)

        session.launch(
            FaceObserver(lambda: 2, interval_ms=5),
            ObjectObserver(lambda: [PHONE], interval_ms=5)
        )
        await asyncio.sleep(0.05)
        report = await session.close()

        stored = store.list_events("EXM_STORE")
        assert sorted(e["type"] for e in stored) == sorted(e.kind.value for e in report.events)
        assert session.forwarder.pending == 0

    @pytest.mark.asyncio
    async def test_blocking_detector_keeps_loop_responsive(self, test_settings):
        """A slow synchronous detector runs off the loop; the other channel keeps going"""
        def slow_landmarker():
            time.sleep(0.3)
            return 1

        session = ProctorSession(session_id="EXM_SLOW", config=test_settings)
        obj = ObjectObserver(lambda: [PHONE], interval_ms=5)
        session.launch(FaceObserver(slow_landmarker, interval_ms=5), obj)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.sleep(0.01)
        stalled = loop.time() - started

        await asyncio.sleep(0.05)
        report = await session.close()

        assert stalled < 0.2
        assert [e.kind for e in report.events] == [EventKind.PHONE_DETECTED]
        assert obj.produced > 1

    @pytest.mark.asyncio
    async def test_sync_stop_retires_consumer(self, test_settings):
        """stop() on a launched session ends the consumer and keeps queued work"""
        session = ProctorSession(session_id="EXM_SYNCSTOP", config=test_settings)
        face = FaceObserver(lambda: None, interval_ms=5)
        session.launch(face)
        consumer = session._consumer_task
        session._queue.put_nowait(FaceObservation(2))

        report = session.stop()
        await asyncio.sleep(0.02)

        assert consumer.done()
        assert session._consumer_task is None
        assert session._queue is None
        assert session._producer_tasks == []
        assert face.is_running is False
        assert [e.kind for e in report.events] == [EventKind.MULTIPLE_FACES]
