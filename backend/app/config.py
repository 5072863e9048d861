"""Runtime settings from the environment (and backend/.env when present)."""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGIN = "http://localhost:4200"
ROOM_IDLE_TIMEOUT_SECONDS = 4 * 3600
ROOM_SWEEP_INTERVAL_SECONDS = 24 * 3600
DEFAULT_PORT = 3000


@dataclass(frozen=True)
class Settings:
    cors_origins: list[str] = field(default_factory=lambda: [DEFAULT_CORS_ORIGIN])
    room_idle_timeout_seconds: float = ROOM_IDLE_TIMEOUT_SECONDS
    room_sweep_interval_seconds: float = ROOM_SWEEP_INTERVAL_SECONDS
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive; using default %s", name, default)
        return default
    return value


def get_cors_origins() -> list[str]:
    """Comma-separated CORS_ORIGIN, default the local frontend dev server."""
    raw = os.environ.get("CORS_ORIGIN", "").strip()
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or [DEFAULT_CORS_ORIGIN]


def get_log_level() -> str:
    level = os.environ.get("LOG_LEVEL", "").strip().upper()
    if level not in logging.getLevelNamesMapping():
        return "INFO"
    return level


def get_settings() -> Settings:
    return Settings(
        cors_origins=get_cors_origins(),
        room_idle_timeout_seconds=_env_number("ROOM_IDLE_TIMEOUT_SECONDS", ROOM_IDLE_TIMEOUT_SECONDS),
        room_sweep_interval_seconds=_env_number("ROOM_SWEEP_INTERVAL_SECONDS", ROOM_SWEEP_INTERVAL_SECONDS),
        log_level=get_log_level(),
        host=os.environ.get("HOST", "").strip() or "0.0.0.0",
        port=int(_env_number("PORT", DEFAULT_PORT)),
    )
