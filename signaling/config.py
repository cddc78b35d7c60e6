"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class Settings:
    """Server settings shared by the service context."""

    env: Optional[str] = None
    commit_hash: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Sessions and room tokens
    session_id_length: int = 255
    session_allocation_attempts: int = 10
    room_token_entropy: int = 4

    # Presence
    peer_timeout: int = 30
    guest_max_age: int = 30
    guest_sweep_interval: float = 30.0

    # Relay
    pull_timeout: float = 30.0

    @property
    def is_prod(self) -> bool:
        return self.env == "prod"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            env=os.getenv("ENV"),
            commit_hash=os.getenv("COMMIT_HASH"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            session_id_length=_env_int("SESSION_ID_LENGTH", 255),
            session_allocation_attempts=_env_int("SESSION_ALLOCATION_ATTEMPTS", 10),
            room_token_entropy=_env_int("ROOM_TOKEN_ENTROPY", 4),
            peer_timeout=_env_int("PEER_TIMEOUT", 30),
            guest_max_age=_env_int("GUEST_MAX_AGE", 30),
            guest_sweep_interval=_env_float("GUEST_SWEEP_INTERVAL", 30.0),
            pull_timeout=_env_float("PULL_TIMEOUT", 30.0),
        )
        if not settings.commit_hash and settings.is_prod:
            raise ValueError("COMMIT_HASH is required for production environments")
        return settings


@dataclass(frozen=True)
class ClientSettings:
    """Settings for a signaling client connection."""

    base_url: str = "http://localhost:8000"
    user_id: Optional[str] = None
    transport: str = "polling"
    request_timeout: float = 40.0

    ping_interval: float = 5.0
    max_ping_failures: int = 3
    flush_interval: float = 0.5
    pull_backoff_initial: float = 1.0
    pull_backoff_max: float = 30.0
    room_refresh_interval: float = 10.0

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            base_url=os.getenv("SIGNALING_URL", "http://localhost:8000"),
            user_id=os.getenv("SIGNALING_USER_ID") or None,
            transport=os.getenv("SIGNALING_TRANSPORT", "polling"),
            request_timeout=_env_float("SIGNALING_REQUEST_TIMEOUT", 40.0),
            ping_interval=_env_float("PING_INTERVAL", 5.0),
            max_ping_failures=_env_int("MAX_PING_FAILURES", 3),
            flush_interval=_env_float("FLUSH_INTERVAL", 0.5),
            pull_backoff_initial=_env_float("PULL_BACKOFF_INITIAL", 1.0),
            pull_backoff_max=_env_float("PULL_BACKOFF_MAX", 30.0),
            room_refresh_interval=_env_float("ROOM_REFRESH_INTERVAL", 10.0),
        )
