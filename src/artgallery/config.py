"""Configuration for artgallery.

Values come from environment variables (a ``.env`` file is loaded by the
CLI), then from Streamlit secrets when the app runs on Streamlit Cloud.
"""

import os
from typing import Any

import streamlit as st

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_UPLOAD_BATCH_WIDTH = 5
DEFAULT_ORPHAN_GRACE_PERIOD_HOURS = 24
DEFAULT_SIGNED_URL_EXPIRATION = 3600
DEFAULT_DB_PATH = "/tmp/artgallery/gallery.db"  # nosec B108

TRUE_VALUES = ("true", "1", "yes", "on")


def _read_secret(key: str) -> Any:
    try:
        return st.secrets.get(key)
    except Exception:  # nosec B110
        # st.secrets raises when no secrets.toml exists
        return None


def _cast(value: Any, cast_type: type) -> Any:
    if cast_type is bool:
        return value.lower() in TRUE_VALUES if isinstance(value, str) else bool(value)
    if cast_type is str:
        return value
    return cast_type(value)


class Config:
    """Typed, cached access to configuration values."""

    def __init__(self):
        self._cache: dict[tuple[str, str], Any] = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """
        Look up ``key`` and cast it.

        Args:
            key: Variable name
            default: Used when the key is unset or cannot be cast
            cast_type: ``str``, ``int``, ``float`` or ``bool``

        Returns:
            The cast value, or ``default``
        """
        cache_key = (key, cast_type.__name__)
        if cache_key not in self._cache:
            self._cache[cache_key] = self._resolve(key, default, cast_type)
        return self._cache[cache_key]

    def _resolve(self, key: str, default: Any, cast_type: type) -> Any:
        value = os.getenv(key)
        if value is None:
            value = _read_secret(key)
        if value is None:
            return default

        try:
            return _cast(value, cast_type)
        except (ValueError, TypeError) as e:
            logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
            return default

    def clear_cache(self):
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    return get_config().get(key, default, cast_type)


def get_database_path() -> str:
    """Local DuckDB file (GALLERY_DB_PATH)."""
    return str(get_env("GALLERY_DB_PATH", DEFAULT_DB_PATH))


def get_signed_url_expiration() -> int:
    """Signed URL lifetime in seconds (GCS_SIGNED_URL_EXPIRATION)."""
    return int(get_env("GCS_SIGNED_URL_EXPIRATION", DEFAULT_SIGNED_URL_EXPIRATION, int))


def get_upload_batch_width() -> int:
    """
    Files uploaded concurrently per group (UPLOAD_BATCH_WIDTH).

    Values below 1 fall back to the default with a warning.
    """
    width = get_env("UPLOAD_BATCH_WIDTH", DEFAULT_UPLOAD_BATCH_WIDTH, int)
    if width < 1:
        logger.warning("invalid_upload_batch_width", value=width, fallback=DEFAULT_UPLOAD_BATCH_WIDTH)
        return DEFAULT_UPLOAD_BATCH_WIDTH
    return width


def get_orphan_grace_period_hours() -> float:
    """Minimum age of an unreferenced object before reconciliation deletes it."""
    return float(get_env("ORPHAN_GRACE_PERIOD_HOURS", DEFAULT_ORPHAN_GRACE_PERIOD_HOURS, float))
