from typing import Any, Dict, List, Optional

import httpx

from signaling.models.api.calls import JoinCallResponse
from signaling.models.api.participants import ParticipantResponse
from signaling.models.api.rooms import RoomResponse
from signaling.models.api.signaling import PostMessagesResponse, SignalingMessage


class SignalingApiClient:
    """HTTP client for the signaling service using httpx.

    Every call raises ``httpx.HTTPError`` on transport failures and
    ``httpx.HTTPStatusError`` for non-2xx responses.
    """

    def __init__(self, http: httpx.AsyncClient, user_id: Optional[str] = None):
        self.http = http
        self.user_id = user_id

    def _headers(self, session_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        if session_id:
            headers["X-Session-Id"] = session_id
        return headers

    async def join_call(self, token: str) -> JoinCallResponse:
        response = await self.http.post(f"/api/call/{token}", headers=self._headers())
        response.raise_for_status()
        return JoinCallResponse.model_validate(response.json())

    async def leave_call(self, token: str, session_id: Optional[str]) -> None:
        response = await self.http.delete(
            f"/api/call/{token}", headers=self._headers(session_id)
        )
        response.raise_for_status()

    async def list_peers(
        self, token: str, session_id: Optional[str] = None
    ) -> List[ParticipantResponse]:
        response = await self.http.get(
            f"/api/call/{token}", headers=self._headers(session_id)
        )
        response.raise_for_status()
        return [ParticipantResponse.model_validate(p) for p in response.json()]

    async def ping(self, token: str, session_id: Optional[str]) -> None:
        response = await self.http.post(
            f"/api/call/{token}/ping", headers=self._headers(session_id)
        )
        response.raise_for_status()

    async def post_messages(
        self, session_id: str, messages: List[SignalingMessage]
    ) -> PostMessagesResponse:
        payload = {"messages": [m.model_dump(mode="json") for m in messages]}
        response = await self.http.post(
            "/api/signaling", json=payload, headers=self._headers(session_id)
        )
        response.raise_for_status()
        return PostMessagesResponse.model_validate(response.json())

    async def pull_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """Long-poll for deliveries; entries are returned undecoded."""
        response = await self.http.get(
            "/api/signaling", headers=self._headers(session_id)
        )
        response.raise_for_status()
        data: List[Dict[str, Any]] = response.json()
        return data

    async def list_rooms(self) -> List[RoomResponse]:
        response = await self.http.get("/api/rooms", headers=self._headers())
        response.raise_for_status()
        return [RoomResponse.model_validate(r) for r in response.json()]
