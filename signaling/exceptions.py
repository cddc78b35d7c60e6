class RoomNotFoundError(LookupError):
    """The room does not exist or the caller may not access it."""

    def __init__(self, token: str):
        super().__init__(f"Room {token} not found")
        self.token = token


class ParticipantNotFoundError(LookupError):
    """The user is not a participant of the room."""


class UnknownSessionError(LookupError):
    """No participant currently holds the signaling session."""


class SessionAllocationError(RuntimeError):
    """A unique session id could not be committed after all attempts."""
