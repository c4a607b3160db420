from __future__ import annotations

import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"
_LEVEL_ENV_VARS = ("CABIN_LOG_LEVEL",)
_DEBUG_FLAGS = ("CABIN_DEBUG_LOGGING", "CABIN_DEBUG")
_ENV_MODE_VAR = "CABIN_ENV"
_DEVELOPMENT_MODES = {"development", "dev"}


def _coerce_level(value: Optional[str], fallback: int) -> int:
    if not value:
        return fallback
    text = value.strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    upper = text.upper()
    if hasattr(logging, upper):
        candidate = getattr(logging, upper)
        if isinstance(candidate, int):
            return candidate
    return fallback


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_env_level() -> Optional[int]:
    for var in _LEVEL_ENV_VARS:
        value = os.getenv(var)
        if value:
            return _coerce_level(value, logging.INFO)
    if any(_env_truthy(os.getenv(flag)) for flag in _DEBUG_FLAGS):
        return logging.DEBUG
    return None


def configure_root(default_level: int | str = logging.INFO) -> int:
    """
    Configure the root logger with a compact format.

    Environment overrides:
      - CABIN_LOG_LEVEL: explicit log level
      - CABIN_DEBUG_LOGGING / CABIN_DEBUG: truthy -> DEBUG
    """
    fallback = (
        _coerce_level(default_level, logging.INFO)
        if isinstance(default_level, str)
        else int(default_level)
    )
    effective = _resolve_env_level() or fallback

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT)
    root.setLevel(effective)
    return effective


def env_debug_requested() -> bool:
    """Return True when a debug flag is set in the environment."""
    return any(_env_truthy(os.getenv(flag)) for flag in _DEBUG_FLAGS)


def is_development() -> bool:
    """Return True for development builds (``CABIN_ENV=development`` or debug flags).

    Development builds emit extra diagnostic detail for every logged AppError.
    """
    mode = (os.getenv(_ENV_MODE_VAR) or "").strip().lower()
    if mode in _DEVELOPMENT_MODES:
        return True
    return env_debug_requested()


def apply_preferences(debug_enabled: bool) -> int:
    """
    Update root log level based on persisted settings while honoring env overrides.
    Returns the effective level after the update.
    """
    env_level = _resolve_env_level()
    level = env_level if env_level is not None else (logging.DEBUG if debug_enabled else logging.INFO)
    logging.getLogger().setLevel(level)
    return level
