import secrets
import string

SESSION_CHARS = string.ascii_letters + string.digits

# Lowercase and digits without the easily confused "l" and "1"
ROOM_TOKEN_CHARS = "".join(
    c for c in string.ascii_lowercase + string.digits if c not in "l1"
)


def generate_token(length: int, chars: str = SESSION_CHARS) -> str:
    """Generate a random token from a cryptographically secure source."""
    if length <= 0:
        raise ValueError("Token length must be positive")
    return "".join(secrets.choice(chars) for _ in range(length))


def generate_session_id(length: int = 255) -> str:
    return generate_token(length, SESSION_CHARS)


def generate_room_token(entropy: int = 4) -> str:
    return generate_token(entropy, ROOM_TOKEN_CHARS)
