"""
Event Store - Best-effort hand-off of accepted events to an external store

Forwarding is fire-and-forget: the pipeline never awaits it, and no
failure here can reach the session's score or event log.
"""

import asyncio
import logging
import threading
import time
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set

import httpx

from .events import ProctoringEvent
from .utils.logging import log_forward_failure

logger = logging.getLogger(__name__)

DEFAULT_INTERVIEW_ID = "default-interview"


class InMemoryEventStore:
    """
    Process-local event store.

    Mirrors the log-event endpoint contract: requires type, description
    and severity, answers {success, id, message}.
    """

    REQUIRED_FIELDS = ("type", "description", "severity")
    MAX_EVENTS = 10000

    def __init__(self, max_events: int = MAX_EVENTS):
        """
        Args:
            max_events: Records kept; the oldest are dropped past this
        """
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self.max_events = max_events
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.save_sync(payload)

    def save_sync(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        missing = [f for f in self.REQUIRED_FIELDS if not payload.get(f)]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        record = {
            "id": f"event-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
            "type": payload["type"],
            "description": payload["description"],
            "severity": payload["severity"],
            "interviewId": payload.get("interviewId") or DEFAULT_INTERVIEW_ID,
            "timestamp": payload.get("timestamp") or datetime.now(timezone.utc).isoformat()
        }

        with self._lock:
            self._events.append(record)

        logger.info(f"Event logged: {record['type']} interview={record['interviewId']}")

        return {
            "success": True,
            "id": record["id"],
            "message": "Event logged successfully"
        }

    def list_events(self, interview_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        if interview_id is None:
            return events
        return [e for e in events if e["interviewId"] == interview_id]

    def clear(self):
        with self._lock:
            self._events.clear()


class HttpEventStore:
    """Posts events to a remote log-event endpoint"""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()
            return response.json()


class EventForwarder:
    """
    Detaches store calls from the hot path.

    Inside a running event loop the call becomes a task; from plain
    synchronous code it runs on a single background worker thread.
    """

    def __init__(self, store):
        """
        Args:
            store: Object with ``async save(payload) -> dict``
        """
        self.store = store
        self._tasks: Set[asyncio.Task] = set()
        self._futures: Set[Future] = set()
        self._executor: Optional[ThreadPoolExecutor] = None

    def submit(self, event: ProctoringEvent):
        """Schedule delivery of one event. Never raises."""
        try:
            payload = event.to_store_payload()
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

            if loop is not None:
                task = loop.create_task(self._deliver(event.session_id, payload))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix="event-forwarder"
                    )
                future = self._executor.submit(
                    asyncio.run, self._deliver(event.session_id, payload)
                )
                self._futures.add(future)
                future.add_done_callback(self._futures.discard)
        except Exception as e:
            log_forward_failure(event.session_id, event.kind.value, f"schedule error: {e!r}")

    async def _deliver(self, session_id: str, payload: Dict[str, Any]):
        try:
            result = await self.store.save(payload)
        except Exception as e:
            log_forward_failure(session_id, payload.get("type", "unknown"), repr(e))
            return

        if not isinstance(result, dict) or not result.get("success"):
            message = result.get("message") if isinstance(result, dict) else result
            log_forward_failure(session_id, payload.get("type", "unknown"), f"rejected: {message}")
            return

        logger.debug(f"Event forwarded: {payload.get('type')} id={result.get('id')}")

    @property
    def pending(self) -> int:
        return len(self._tasks) + len(self._futures)

    async def drain(self):
        """Wait for in-loop deliveries (shutdown and tests)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def flush(self, timeout: Optional[float] = None):
        """Wait for background-thread deliveries"""
        if self._futures:
            wait(list(self._futures), timeout=timeout)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
