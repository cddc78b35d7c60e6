"""Client side of the polling relay: outbound queue, flush loop and pull loop."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from signaling.client.api_client import SignalingApiClient
from signaling.client.base_transport import ClientEvent
from signaling.events import EventBus
from signaling.models.api.signaling import SignalingMessage

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SignalingRelay:
    """Batches outbound messages and pulls inbound deliveries.

    The relay is attached to a session while a call is active. Detaching it
    drops the outbound queue without sending it.
    """

    def __init__(
        self,
        api: SignalingApiClient,
        events: EventBus,
        flush_interval: float = 0.5,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api = api
        self.events = events
        self.flush_interval = flush_interval
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._sleep = sleep

        self.queue: List[SignalingMessage] = []
        self.is_sending = False
        self.session_id: Optional[str] = None
        self._generation = 0
        self._attached = asyncio.Event()
        self._tasks: List["asyncio.Task[None]"] = []

    def attach(self, session_id: str) -> None:
        self.session_id = session_id
        self._attached.set()

    def detach(self) -> None:
        """Forget the session and drop unsent messages."""
        self.session_id = None
        self._attached.clear()
        self.drop_pending()

    def drop_pending(self) -> None:
        """Clear the outbound queue without sending it.

        A flush in flight will not trim the queue after it returns.
        """
        self._generation += 1
        if self.queue:
            logger.debug("Dropping %d unsent signaling messages", len(self.queue))
        self.queue.clear()

    def enqueue(self, message: SignalingMessage) -> None:
        self.queue.append(message)

    async def send_pending_messages(self) -> int:
        """One flush tick; returns the number of messages sent.

        Only the messages queued when the tick starts are sent, and only those
        are removed on success. On failure they stay queued for the next tick.
        """
        if not self.queue or self.is_sending or not self.session_id:
            return 0

        pending = len(self.queue)
        batch = self.queue[:pending]
        generation = self._generation
        self.is_sending = True
        try:
            await self.api.post_messages(self.session_id, batch)
        except httpx.HTTPError as e:
            logger.warning("Sending pending signaling messages has failed: %s", e)
            return 0
        finally:
            self.is_sending = False

        if generation == self._generation:
            del self.queue[:pending]
        return pending

    async def dispatch(self, deliveries: List[Dict[str, Any]]) -> None:
        """Publish pulled deliveries to subscribers by kind."""
        for delivery in deliveries:
            kind = delivery.get("type")
            data = delivery.get("data")
            if kind == "usersInRoom":
                await self.events.publish(ClientEvent.USERS_IN_ROOM, data)
            elif kind == "message":
                try:
                    if isinstance(data, str):
                        data = json.loads(data)
                    message = SignalingMessage.model_validate(data)
                except (ValueError, ValidationError) as e:
                    logger.warning("Dropping malformed signaling message: %s", e)
                    continue
                await self.events.publish(ClientEvent.MESSAGE, message)
            else:
                logger.warning("Unknown signaling message type %r", kind)

    async def pull_once(self) -> None:
        """Pull and dispatch one batch; raises httpx.HTTPError on failure."""
        session_id = self.session_id
        if not session_id:
            return
        deliveries = await self.api.pull_messages(session_id)
        if session_id != self.session_id:
            # Left the call while waiting
            return
        await self.dispatch(deliveries)

    async def _pull_loop(self) -> None:
        delay = self.backoff_initial
        while True:
            await self._attached.wait()
            try:
                await self.pull_once()
            except httpx.HTTPError as e:
                logger.warning(
                    "Pulling signaling messages failed, retrying in %.1fs: %s", delay, e
                )
                await self._sleep(delay)
                delay = min(delay * 2, self.backoff_max)
                continue
            delay = self.backoff_initial

    async def _flush_loop(self) -> None:
        while True:
            await self._sleep(self.flush_interval)
            await self.send_pending_messages()

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._flush_loop()),
            asyncio.create_task(self._pull_loop()),
        ]

    async def close(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
