from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from signaling.events import EventBus
from signaling.models.api.calls import PeerContact
from signaling.models.api.signaling import SignalingMessage


class ClientEvent:
    """Event kinds a signaling transport publishes to its subscribers."""

    USERS_IN_ROOM = "usersInRoom"
    MESSAGE = "message"
    JOINED_CALL = "joined_call"
    LEFT_CALL = "left_call"
    ROOMS = "rooms"


class SignalingTransport(ABC):
    """Abstract base class for signaling transports."""

    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus()

    def on(self, kind: str, handler: Callable[[Any], Any]) -> None:
        """Subscribe to an event kind, see ClientEvent."""
        self.events.subscribe(kind, handler)

    def off(self, kind: str, handler: Callable[[Any], Any]) -> None:
        self.events.unsubscribe(kind, handler)

    @abstractmethod
    async def start(self) -> None:
        """Start the background loops of the transport."""

    @abstractmethod
    async def close(self) -> None:
        """Leave the current call and stop all background loops."""

    @abstractmethod
    async def join(self, token: str) -> Dict[str, PeerContact]:
        """Join the call of a room.

        Returns:
            The peer-contact list: sessions this client must send an offer to.
        """

    @abstractmethod
    async def leave(self) -> None:
        """Leave the current call, if any."""

    @abstractmethod
    def send(self, message: SignalingMessage) -> None:
        """Queue a signaling message for delivery."""

    @property
    @abstractmethod
    def session_id(self) -> Optional[str]:
        """Session of the current call, None when not in a call."""
