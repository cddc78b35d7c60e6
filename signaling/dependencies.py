from typing import Optional

from fastapi import Header, Request

from signaling.context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    """Dependency returning the context created by the application lifespan."""
    return request.app.state.context


def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Authenticated user id; absent or empty means the caller is a guest."""
    return x_user_id or None


def get_session_id(x_session_id: Optional[str] = Header(None)) -> Optional[str]:
    """Signaling session the caller received when joining a call."""
    return x_session_id or None
