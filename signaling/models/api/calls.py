from typing import Dict

from pydantic import BaseModel


class PeerContact(BaseModel):
    """Media to request when initiating a call towards a peer."""

    video: bool = True


class JoinCallResponse(BaseModel):
    """Response model for joining a call."""

    session_id: str
    # Sessions the joiner must send an offer to, keyed by session id
    clients: Dict[str, PeerContact]
