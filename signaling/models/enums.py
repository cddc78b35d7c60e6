import enum


class RoomKind(str, enum.Enum):
    """Kind of a room; stored as its string value."""

    ONE_TO_ONE = "one_to_one"
    GROUP = "group"
    PUBLIC = "public"


class ParticipantRole(str, enum.Enum):
    """Role of a participant inside a room."""

    OWNER = "owner"
    MODERATOR = "moderator"
    USER = "user"
    USER_SELF_JOINED = "user_self_joined"
    GUEST = "guest"


# Roles that may rename, retype or delete a room
MANAGING_ROLES = (ParticipantRole.OWNER, ParticipantRole.MODERATOR)

# Participants kicked when a public room becomes non-public
UNINVITED_ROLES = (ParticipantRole.GUEST, ParticipantRole.USER_SELF_JOINED)
