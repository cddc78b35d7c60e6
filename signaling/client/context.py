"""Construction and teardown of a client signaling connection."""

import logging
from typing import Optional

import httpx

from signaling.client.api_client import SignalingApiClient
from signaling.client.base_transport import SignalingTransport
from signaling.client.polling import PollingSignaling
from signaling.config import ClientSettings
from signaling.events import EventBus

logger = logging.getLogger(__name__)


def create_signaling_connection(
    settings: ClientSettings,
    http: httpx.AsyncClient,
    events: Optional[EventBus] = None,
) -> SignalingTransport:
    """Create the transport selected by ``settings.transport``."""
    if settings.transport == "polling":
        return PollingSignaling(
            SignalingApiClient(http, user_id=settings.user_id), settings, events
        )
    raise ValueError(f"Unsupported signaling transport: {settings.transport}")


class SignalingContext:
    """Owns the HTTP client and the transport of one signaling connection.

    Usage::

        async with SignalingContext(ClientSettings.from_env()) as signaling:
            clients = await signaling.join(token)
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http: Optional[httpx.AsyncClient] = None,
        events: Optional[EventBus] = None,
    ):
        self.settings = settings or ClientSettings.from_env()
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=self.settings.base_url, timeout=self.settings.request_timeout
        )
        self.transport = create_signaling_connection(self.settings, self.http, events)

    async def start(self) -> SignalingTransport:
        await self.transport.start()
        logger.info("Signaling connection to %s started", self.settings.base_url)
        return self.transport

    async def close(self) -> None:
        try:
            await self.transport.close()
        finally:
            if self._owns_http:
                await self.http.aclose()

    async def __aenter__(self) -> SignalingTransport:
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
