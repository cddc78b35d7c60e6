"""Explicitly constructed service context shared by request handlers."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signaling.config import Settings
from signaling.events import EventBus
from signaling.services.message_broker import MessageBroker
from signaling.services.presence_tracker import PresenceTracker, run_guest_sweeper
from signaling.services.room_store import RoomStore
from signaling.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Process-wide collaborators, created on startup and closed on shutdown."""

    settings: Settings
    events: EventBus = field(default_factory=EventBus)
    broker: MessageBroker = field(default_factory=MessageBroker)
    clock: Callable[[], float] = time.time
    _tasks: List["asyncio.Task[None]"] = field(default_factory=list)

    def room_store(self, db: AsyncSession) -> RoomStore:
        return RoomStore(
            db,
            self.events,
            token_entropy=self.settings.room_token_entropy,
            broker=self.broker,
        )

    def session_manager(self, db: AsyncSession) -> SessionManager:
        return SessionManager(
            db,
            session_id_length=self.settings.session_id_length,
            max_attempts=self.settings.session_allocation_attempts,
            clock=self.clock,
            broker=self.broker,
        )

    def presence(self, db: AsyncSession) -> PresenceTracker:
        return PresenceTracker(
            db,
            peer_timeout=self.settings.peer_timeout,
            clock=self.clock,
            broker=self.broker,
        )

    async def start(self, session_factory: Optional[async_sessionmaker] = None) -> None:
        """Start background tasks."""
        if session_factory is not None and self.settings.guest_sweep_interval > 0:
            self._tasks.append(
                asyncio.create_task(
                    run_guest_sweeper(
                        session_factory,
                        self.settings.guest_sweep_interval,
                        self.settings.guest_max_age,
                        self.broker,
                    )
                )
            )

    async def close(self) -> None:
        """Cancel background tasks and release in-memory state."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.broker.clear()
        self.events.clear()
        logger.info("Service context closed")
