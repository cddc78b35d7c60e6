import os
from unittest.mock import patch

import pytest

from signaling.config import ClientSettings, Settings
from signaling.tokens import (
    ROOM_TOKEN_CHARS,
    SESSION_CHARS,
    generate_room_token,
    generate_session_id,
    generate_token,
)


class TestSettings:
    """Tests for environment based configuration."""

    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.session_id_length == 255
        assert settings.session_allocation_attempts == 10
        assert settings.room_token_entropy == 4
        assert settings.peer_timeout == 30
        assert settings.guest_max_age == 30
        assert not settings.is_prod

    def test_from_env(self) -> None:
        env = {
            "ENV": "dev",
            "SESSION_ID_LENGTH": "64",
            "PEER_TIMEOUT": "45",
            "PULL_TIMEOUT": "2.5",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env):
            settings = Settings.from_env()

        assert settings.session_id_length == 64
        assert settings.peer_timeout == 45
        assert settings.pull_timeout == 2.5
        assert settings.log_level == "DEBUG"

    def test_prod_requires_commit_hash(self) -> None:
        with patch.dict(os.environ, {"ENV": "prod"}):
            os.environ.pop("COMMIT_HASH", None)
            with pytest.raises(ValueError, match="COMMIT_HASH"):
                Settings.from_env()

    def test_client_settings_from_env(self) -> None:
        env = {
            "SIGNALING_URL": "http://signaling.test",
            "SIGNALING_USER_ID": "alice",
            "MAX_PING_FAILURES": "5",
            "FLUSH_INTERVAL": "0.25",
        }
        with patch.dict(os.environ, env):
            settings = ClientSettings.from_env()

        assert settings.base_url == "http://signaling.test"
        assert settings.user_id == "alice"
        assert settings.max_ping_failures == 5
        assert settings.flush_interval == 0.25
        assert settings.transport == "polling"


class TestTokens:
    """Tests for session id and room token generation."""

    def test_session_id_shape(self) -> None:
        session_id = generate_session_id()
        assert len(session_id) == 255
        assert set(session_id) <= set(SESSION_CHARS)

    def test_room_token_avoids_confusable_characters(self) -> None:
        assert "l" not in ROOM_TOKEN_CHARS
        assert "1" not in ROOM_TOKEN_CHARS
        token = generate_room_token(12)
        assert len(token) == 12
        assert set(token) <= set(ROOM_TOKEN_CHARS)

    def test_invalid_length(self) -> None:
        with pytest.raises(ValueError):
            generate_token(0)
