import asyncio
import enum
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from signaling.client.api_client import SignalingApiClient
from signaling.client.base_transport import ClientEvent
from signaling.client.relay import SignalingRelay
from signaling.events import EventBus
from signaling.models.api.calls import PeerContact

logger = logging.getLogger(__name__)


class CallState(str, enum.Enum):
    IDLE = "idle"
    JOINING = "joining"
    IN_CALL = "in_call"
    LEAVING = "leaving"


class CallCoordinator:
    """Per-connection call state machine with the liveness ping loop.

    ``idle -> joining -> in_call -> leaving -> idle``. While in a call the
    session is pinged every ``ping_interval`` seconds. Up to
    ``max_ping_failures`` consecutive failures are tolerated; one more, or a
    404, leaves the call and publishes ``left_call``.
    """

    def __init__(
        self,
        api: SignalingApiClient,
        relay: SignalingRelay,
        events: EventBus,
        ping_interval: float = 5.0,
        max_ping_failures: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api = api
        self.relay = relay
        self.events = events
        self.ping_interval = ping_interval
        self.max_ping_failures = max_ping_failures
        self._sleep = sleep

        self.state = CallState.IDLE
        self.session_id: Optional[str] = None
        self.current_token: Optional[str] = None
        self.ping_failures = 0
        self._leave_requested = False
        self._ping_task: Optional["asyncio.Task[None]"] = None

    async def join(self, token: str) -> Dict[str, PeerContact]:
        """Join the call of a room and return the peers to send offers to."""
        if self.state != CallState.IDLE:
            raise RuntimeError(f"Cannot join while {self.state.value}")

        self.state = CallState.JOINING
        self._leave_requested = False
        try:
            response = await self.api.join_call(token)
        except Exception:
            self.state = CallState.IDLE
            self._leave_requested = False
            raise

        self.session_id = response.session_id
        self.current_token = token
        self.ping_failures = 0
        if self._leave_requested:
            # leave() was called while the join was in flight
            self._leave_requested = False
            logger.info("Leaving call %s right after joining", token)
            await self.leave()
            return {}

        self.relay.attach(response.session_id)
        self._ping_task = asyncio.create_task(self._ping_loop(token))
        self.state = CallState.IN_CALL
        logger.info("Joined call %s, contacting %d peers", token, len(response.clients))

        await self.events.publish(
            ClientEvent.JOINED_CALL,
            {"token": token, "session_id": response.session_id},
        )
        return response.clients

    async def leave(self) -> None:
        """Leave the current call; a no-op when not in a call.

        While a join is in flight the leave is deferred until it returns.
        """
        if self.state == CallState.JOINING and self.current_token is None:
            self._leave_requested = True
            return
        if self.current_token is None or self.state == CallState.LEAVING:
            return

        self.state = CallState.LEAVING
        token, session_id = self.current_token, self.session_id
        self._stop_ping()
        self.current_token = None
        self.session_id = None
        self.relay.detach()

        try:
            await self.api.leave_call(token, session_id)
        except httpx.HTTPError as e:
            logger.warning("Leaving call %s failed: %s", token, e)
        finally:
            self.state = CallState.IDLE
        logger.info("Left call %s", token)

    def _stop_ping(self) -> None:
        task, self._ping_task = self._ping_task, None
        # The ping loop itself may be the one leaving the call
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def ping_once(self) -> bool:
        """Send one ping; returns False when it failed."""
        token = self.current_token
        if token is None:
            return False

        try:
            await self.api.ping(token, self.session_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning("Call %s is gone, leaving", token)
                await self._force_leave(token)
                return False
            logger.debug("Ping for %s failed: %s", token, e)
        except httpx.HTTPError as e:
            logger.debug("Ping for %s failed: %s", token, e)
        else:
            self.ping_failures = 0
            return True

        if self.ping_failures < self.max_ping_failures:
            self.ping_failures += 1
            return False

        logger.warning("Ping for %s failed %d times, leaving", token, self.ping_failures + 1)
        await self._force_leave(token)
        return False

    async def _force_leave(self, token: str) -> None:
        await self.leave()
        await self.events.publish(ClientEvent.LEFT_CALL, {"token": token})

    async def _ping_loop(self, token: str) -> None:
        while self.current_token == token:
            await self.ping_once()
            if self.current_token != token:
                break
            await self._sleep(self.ping_interval)
