"""In-process publish/subscribe bus keyed by event kind."""

import enum
import inspect
import logging
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class RoomEvent(str, enum.Enum):
    """Notifications published around room mutations."""

    PRE_CREATE_ROOM = "pre_create_room"
    POST_CREATE_ROOM = "post_create_room"
    PRE_DELETE_ROOM = "pre_delete_room"
    POST_DELETE_ROOM = "post_delete_room"
    PRE_SET_NAME = "pre_set_name"
    POST_SET_NAME = "post_set_name"
    PRE_CHANGE_TYPE = "pre_change_type"
    POST_CHANGE_TYPE = "post_change_type"
    PRE_ADD_PARTICIPANTS = "pre_add_participants"
    POST_ADD_PARTICIPANTS = "post_add_participants"
    PRE_REMOVE_USER = "pre_remove_user"
    POST_REMOVE_USER = "post_remove_user"


class EventBus:
    """Dispatch payloads to handlers subscribed to an event kind.

    Handlers may be plain callables or coroutine functions. They run in
    subscription order; a failing handler is logged and does not prevent the
    remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    @staticmethod
    def _key(kind: Union[str, enum.Enum]) -> str:
        return kind.value if isinstance(kind, enum.Enum) else str(kind)

    def subscribe(self, kind: Union[str, enum.Enum], handler: Handler) -> None:
        self._handlers.setdefault(self._key(kind), []).append(handler)

    def unsubscribe(self, kind: Union[str, enum.Enum], handler: Handler) -> None:
        handlers = self._handlers.get(self._key(kind), [])
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self, kind: Union[str, enum.Enum]) -> bool:
        return bool(self._handlers.get(self._key(kind)))

    async def publish(self, kind: Union[str, enum.Enum], payload: Any = None) -> None:
        key = self._key(kind)
        # Handlers may (un)subscribe while we iterate
        for handler in list(self._handlers.get(key, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for event %s failed", key)

    def clear(self) -> None:
        self._handlers.clear()
