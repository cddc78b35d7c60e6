import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from signaling.models.api.signaling import Delivery

logger = logging.getLogger(__name__)


class MessageBroker:
    """In-memory delivery queues, one per signaling session.

    Deliveries live only until the recipient pulls them. Each queue is
    bounded; when full the oldest delivery is dropped.
    """

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._queues: Dict[str, Deque[Delivery]] = {}
        self._events: Dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

    def _event(self, session_id: str) -> asyncio.Event:
        event = self._events.get(session_id)
        if event is None:
            event = self._events[session_id] = asyncio.Event()
        return event

    async def publish(self, recipients: Iterable[str], delivery: Delivery) -> int:
        """Queue a delivery for every recipient; returns how many were queued."""
        count = 0
        async with self._lock:
            for session_id in recipients:
                queue = self._queues.setdefault(
                    session_id, deque(maxlen=self.max_queue_size)
                )
                if len(queue) == queue.maxlen:
                    logger.warning("Delivery queue full, dropping oldest entry")
                queue.append(delivery)
                self._event(session_id).set()
                count += 1
        return count

    async def drain(self, session_id: str, timeout: float) -> List[Delivery]:
        """Wait up to ``timeout`` seconds for deliveries and take all of them."""
        async with self._lock:
            event = self._event(session_id)
        if not event.is_set():
            try:
                await asyncio.wait_for(event.wait(), timeout)
            except asyncio.TimeoutError:
                pass

        async with self._lock:
            queue = self._queues.pop(session_id, None)
            event.clear()
            self._events.pop(session_id, None)
        return list(queue) if queue else []

    async def discard(self, session_id: str) -> None:
        """Drop everything queued for a session and wake up a waiting pull."""
        async with self._lock:
            dropped = self._queues.pop(session_id, None)
            event = self._events.pop(session_id, None)
        if event is not None:
            event.set()
        if dropped:
            logger.debug("Discarded %d pending deliveries", len(dropped))

    async def discard_all(self, session_ids: Iterable[Optional[str]]) -> None:
        """Discard the queues of sessions that were unbound or deleted."""
        for session_id in session_ids:
            if session_id:
                await self.discard(session_id)

    def pending(self, session_id: str) -> int:
        queue = self._queues.get(session_id)
        return len(queue) if queue else 0

    def queue_count(self) -> int:
        return len(self._queues)

    def clear(self) -> None:
        for event in self._events.values():
            event.set()
        self._queues.clear()
        self._events.clear()
