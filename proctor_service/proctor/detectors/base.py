"""
Observer base - Polls a black-box detector and feeds observations to a sink

The detector itself (face landmarker, object classifier) is out of scope;
an observer only needs a callable that returns its latest raw result.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..exceptions import InvalidObservationError
from ..observations import Observation
from ..utils.logging import log_observer_failure

logger = logging.getLogger(__name__)


class Observer:
    """
    Producer task for one observation channel.

    After max_failures consecutive detector errors the channel is
    disabled; the other channel and the session carry on.
    """

    channel = "base"
    INTERVAL_MS = 1000

    def __init__(
        self,
        detector: Callable[[], Any],
        interval_ms: Optional[int] = None,
        max_failures: int = 1,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            detector: Sync or async callable returning the latest raw result
                      (None means nothing to report yet); sync detectors
                      run in a worker thread
            interval_ms: Delay between polls
            max_failures: Consecutive errors tolerated before disabling
            clock: Time source for stamping observations
        """
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")

        self.detector = detector
        self.interval_ms = self.INTERVAL_MS if interval_ms is None else interval_ms
        self.max_failures = max_failures
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.session_id = "-"
        self.disabled = False
        self._running = False
        self._failures = 0
        self.produced = 0

    def to_observation(self, raw: Any, now: datetime) -> Observation:
        """Convert a raw detector result to an observation"""
        raise NotImplementedError

    async def poll(self) -> Any:
        if inspect.iscoroutinefunction(self.detector):
            return await self.detector()

        # blocking inference must not stall the other channel or the consumer
        result = await asyncio.to_thread(self.detector)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run(self, sink: Callable[[Observation], None]):
        """
        Poll until stopped or disabled, handing each observation to sink.

        Args:
            sink: Non-blocking callable, typically a queue's put_nowait
        """
        self._running = True

        while self._running and not self.disabled:
            try:
                raw = await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._failures += 1
                if self._failures >= self.max_failures:
                    self.disabled = True
                log_observer_failure(self.session_id, self.channel, e, self.disabled)
            else:
                self._failures = 0
                if raw is not None and self._running:
                    self._emit(raw, sink)

            if self._running and not self.disabled:
                await asyncio.sleep(self.interval_ms / 1000)

        self._running = False

    def _emit(self, raw: Any, sink: Callable[[Observation], None]):
        try:
            observation = self.to_observation(raw, self.clock())
        except InvalidObservationError as e:
            logger.debug(f"Dropping invalid {self.channel} observation: {e}")
            return

        sink(observation)
        self.produced += 1

    def stop(self):
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running
