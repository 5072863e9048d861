from unittest.mock import patch

from app.config import (
    DEFAULT_CORS_ORIGIN,
    ROOM_IDLE_TIMEOUT_SECONDS,
    ROOM_SWEEP_INTERVAL_SECONDS,
    get_settings,
)


def test_defaults() -> None:
    env = {
        "CORS_ORIGIN": "",
        "ROOM_IDLE_TIMEOUT_SECONDS": "",
        "ROOM_SWEEP_INTERVAL_SECONDS": "",
        "LOG_LEVEL": "",
        "PORT": "",
    }
    with patch.dict("os.environ", env, clear=False):
        settings = get_settings()
    assert settings.cors_origins == [DEFAULT_CORS_ORIGIN]
    assert settings.room_idle_timeout_seconds == ROOM_IDLE_TIMEOUT_SECONDS
    assert settings.room_sweep_interval_seconds == ROOM_SWEEP_INTERVAL_SECONDS
    assert settings.log_level == "INFO"
    assert settings.port == 3000


def test_cors_origins_are_split_and_stripped() -> None:
    with patch.dict("os.environ", {"CORS_ORIGIN": " http://a.test , http://b.test ,"}, clear=False):
        assert get_settings().cors_origins == ["http://a.test", "http://b.test"]


def test_numeric_settings_from_env() -> None:
    env = {"ROOM_IDLE_TIMEOUT_SECONDS": "600", "ROOM_SWEEP_INTERVAL_SECONDS": "30", "PORT": "8080"}
    with patch.dict("os.environ", env, clear=False):
        settings = get_settings()
    assert settings.room_idle_timeout_seconds == 600
    assert settings.room_sweep_interval_seconds == 30
    assert settings.port == 8080


def test_invalid_values_fall_back_to_defaults() -> None:
    env = {"ROOM_IDLE_TIMEOUT_SECONDS": "soon", "ROOM_SWEEP_INTERVAL_SECONDS": "-5", "LOG_LEVEL": "chatty"}
    with patch.dict("os.environ", env, clear=False):
        settings = get_settings()
    assert settings.room_idle_timeout_seconds == ROOM_IDLE_TIMEOUT_SECONDS
    assert settings.room_sweep_interval_seconds == ROOM_SWEEP_INTERVAL_SECONDS
    assert settings.log_level == "INFO"
