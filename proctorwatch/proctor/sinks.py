"""
Event Sinks - Receivers for emitted violation events

The reducer only guarantees emission intent. Persistence, forwarding and
any delivery retries belong to the sink; a sink that fails loses the event
without affecting reducer state.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence

import httpx

from .events import ViolationEvent
from .utils.logging import log_violation

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Receives violation events as they are emitted"""

    @abstractmethod
    def on_violation(self, event: ViolationEvent) -> None:
        pass


class EventLog(EventSink):
    """
    In-memory ordered violation log for one session.

    This is the record the integrity score is recomputed from.
    """

    def __init__(self):
        self._events: List[ViolationEvent] = []
        self._lock = threading.Lock()

    def on_violation(self, event: ViolationEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[ViolationEvent]:
        with self._lock:
            return list(self._events)

    def counts(self) -> Dict[str, int]:
        """Number of events per kind label"""
        return dict(Counter(e.label for e in self.events))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ViolationEvent]:
        return iter(self.events)


class LoggingEventSink(EventSink):
    """Writes each violation to the proctoring log"""

    def __init__(self, session_id: str):
        self.session_id = session_id

    def on_violation(self, event: ViolationEvent) -> None:
        log_violation(self.session_id, event.label, event.occurred_at.isoformat())


class HttpEventSink(EventSink):
    """
    Forwards violations to a remote log endpoint.

    Posts ``{"eventType", "interviewId", "occurredAt"}`` JSON. Uses an async
    client on the running event loop when there is one, otherwise a blocking
    client. Failed deliveries are logged and dropped.
    """

    def __init__(
        self,
        url: str,
        session_id: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.session_id = session_id
        self.timeout = timeout
        self._transport = transport
        self._async_transport = async_transport
        self._tasks = set()

    def _payload(self, event: ViolationEvent) -> Dict[str, str]:
        return {
            "eventType": event.label,
            "interviewId": self.session_id,
            "occurredAt": event.occurred_at.isoformat()
        }

    def on_violation(self, event: ViolationEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            self.send(event)
            return

        task = loop.create_task(self.send_async(event))
        # Keep a reference until the task completes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def send(self, event: ViolationEvent) -> bool:
        """Deliver one event synchronously; returns True on a 2xx response"""
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, json=self._payload(event))
            response.raise_for_status()
            logger.debug(f"Event forwarded: {event.label}")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Error forwarding event {event.label} to {self.url}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error forwarding event {event.label}: {type(e).__name__}: {e}")
            return False

    async def send_async(self, event: ViolationEvent) -> bool:
        """Deliver one event from the event loop; returns True on a 2xx response"""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._async_transport) as client:
                response = await client.post(self.url, json=self._payload(event))
            response.raise_for_status()
            logger.debug(f"Event forwarded: {event.label}")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Error forwarding event {event.label} to {self.url}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error forwarding event {event.label}: {type(e).__name__}: {e}")
            return False


class CompositeEventSink(EventSink):
    """Fans each event out to several sinks; one failure does not stop the rest"""

    def __init__(self, sinks: Sequence[EventSink]):
        self.sinks = list(sinks)

    def on_violation(self, event: ViolationEvent) -> None:
        for sink in self.sinks:
            try:
                sink.on_violation(event)
            except Exception as e:
                logger.warning(f"Sink {type(sink).__name__} failed for {event.label}: {e}")
