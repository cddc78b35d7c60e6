import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from signaling.client.api_client import SignalingApiClient
from signaling.client.base_transport import ClientEvent, SignalingTransport
from signaling.client.coordinator import CallCoordinator, CallState
from signaling.client.relay import SignalingRelay
from signaling.config import ClientSettings
from signaling.events import EventBus
from signaling.models.api.calls import PeerContact
from signaling.models.api.signaling import SignalingMessage

logger = logging.getLogger(__name__)


class PollingSignaling(SignalingTransport):
    """Signaling over the service's own HTTP endpoints using polling."""

    def __init__(
        self,
        api: SignalingApiClient,
        settings: Optional[ClientSettings] = None,
        events: Optional[EventBus] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(events)
        self.api = api
        self.settings = settings or ClientSettings()
        self._sleep = sleep
        self.relay = SignalingRelay(
            api,
            self.events,
            flush_interval=self.settings.flush_interval,
            backoff_initial=self.settings.pull_backoff_initial,
            backoff_max=self.settings.pull_backoff_max,
            sleep=sleep,
        )
        self.coordinator = CallCoordinator(
            api,
            self.relay,
            self.events,
            ping_interval=self.settings.ping_interval,
            max_ping_failures=self.settings.max_ping_failures,
            sleep=sleep,
        )
        self._room_poller: Optional["asyncio.Task[None]"] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.coordinator.session_id

    @property
    def state(self) -> CallState:
        return self.coordinator.state

    async def start(self) -> None:
        self.relay.start()
        # Only users have rooms to list
        if self.settings.room_refresh_interval > 0 and self.api.user_id:
            self._room_poller = asyncio.create_task(self._poll_for_room_changes())

    async def close(self) -> None:
        await self.coordinator.leave()
        if self._room_poller is not None:
            self._room_poller.cancel()
            await asyncio.gather(self._room_poller, return_exceptions=True)
            self._room_poller = None
        await self.relay.close()

    async def join(self, token: str) -> Dict[str, PeerContact]:
        return await self.coordinator.join(token)

    async def leave(self) -> None:
        await self.coordinator.leave()

    def send(self, message: SignalingMessage) -> None:
        if self.coordinator.session_id:
            message.sender_session = self.coordinator.session_id
        self.relay.enqueue(message)

    async def sync_rooms(self) -> None:
        """Fetch the caller's rooms and publish them as ``rooms``."""
        try:
            rooms = await self.api.list_rooms()
        except httpx.HTTPError as e:
            logger.warning("Refreshing rooms failed: %s", e)
            return
        await self.events.publish(ClientEvent.ROOMS, rooms)

    async def _poll_for_room_changes(self) -> None:
        while True:
            await self.sync_rooms()
            await self._sleep(self.settings.room_refresh_interval)
