"""Configuration helpers for upload limits, pool size and storage."""

from .settings import (
    DEFAULT_MAX_AGENTS,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_PAGE_SIZE,
    Settings,
    load_settings,
)

__all__ = [
    "DEFAULT_MAX_AGENTS",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "DEFAULT_PAGE_SIZE",
    "Settings",
    "load_settings",
]
