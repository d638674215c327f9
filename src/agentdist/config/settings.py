"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


logger = logging.getLogger(__name__)

_DB_PATH_ENV = "AGENTDIST_DB_PATH"
_MAX_FILE_SIZE_ENV = "AGENTDIST_MAX_FILE_SIZE"
_LEGACY_MAX_FILE_SIZE_ENV = "MAX_FILE_SIZE"
_MAX_AGENTS_ENV = "AGENTDIST_MAX_AGENTS"
_PAGE_SIZE_ENV = "AGENTDIST_DEFAULT_PAGE_SIZE"
_LOG_LEVEL_ENV = "AGENTDIST_LOG_LEVEL"

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_AGENTS = 5
DEFAULT_PAGE_SIZE = 10
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "agentdist.sqlite"


def _env_int(name: str, default: int, *, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("%s=%d is below %d; using default %d", name, value, min_value, default)
        return default
    return value


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _env_log_level(name: str, default: str) -> str:
    raw = os.getenv(name)
    if not raw:
        return default
    level = raw.strip().upper()
    if level not in _LOG_LEVELS:
        logger.warning("Invalid log level for %s: %s; using default %s", name, raw, default)
        return default
    return level


@dataclass(frozen=True)
class Settings:
    db_path: Path | str = DEFAULT_DB_PATH
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_agents: int = DEFAULT_MAX_AGENTS
    default_page_size: int = DEFAULT_PAGE_SIZE
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build :class:`Settings` from ``AGENTDIST_*`` environment variables."""

    env_db = os.getenv(_DB_PATH_ENV)
    db_path: Path | str
    if env_db:
        db_path = env_db if env_db.startswith("file:") else Path(env_db)
    else:
        db_path = DEFAULT_DB_PATH

    size_env = _MAX_FILE_SIZE_ENV if os.getenv(_MAX_FILE_SIZE_ENV) else _LEGACY_MAX_FILE_SIZE_ENV
    return Settings(
        db_path=db_path,
        max_upload_bytes=_env_int(size_env, DEFAULT_MAX_UPLOAD_BYTES, min_value=1),
        max_agents=_env_int(_MAX_AGENTS_ENV, DEFAULT_MAX_AGENTS, min_value=1),
        default_page_size=_env_int(_PAGE_SIZE_ENV, DEFAULT_PAGE_SIZE, min_value=1),
        log_level=_env_log_level(_LOG_LEVEL_ENV, "INFO"),
    )
