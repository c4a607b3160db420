from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional

from ..utils.logging import env_debug_requested

ENV_PREFIX = "CABIN_"
_PLACEHOLDER_MARKER = "your-supabase"


@dataclass
class SettingsConfig:
    """Typed runtime settings that persist via StorageLocal."""

    supabase_url: str = ""
    supabase_anon_key: str = ""
    probe_url: str = ""
    probe_timeout_s: float = 5.0
    request_timeout_s: float = 10.0
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    recovery_max_wait_s: float = 10.0
    recovery_poll_interval_s: float = 2.0
    session_check_interval_s: float = 300.0
    session_warning_window_s: float = 300.0
    health_cache_ttl_s: float = 60.0

    @property
    def effective_probe_url(self) -> str:
        """Probe target; the auth health endpoint when no static resource is set."""
        if self.probe_url:
            return self.probe_url
        base = self.supabase_url.strip().rstrip("/")
        return f"{base}/auth/v1/health" if base else ""

    @property
    def is_placeholder(self) -> bool:
        """True when credentials are missing or still the template values."""
        url = self.supabase_url.strip()
        key = self.supabase_anon_key.strip()
        return not url or not key or _PLACEHOLDER_MARKER in url or _PLACEHOLDER_MARKER in key


_INT_FIELDS = {"retry_max_attempts", "retry_base_delay_ms"}
_FLOAT_FIELDS = {
    "probe_timeout_s",
    "request_timeout_s",
    "recovery_max_wait_s",
    "recovery_poll_interval_s",
    "session_check_interval_s",
    "session_warning_window_s",
    "health_cache_ttl_s",
}
_STR_FIELDS = {"supabase_url", "supabase_anon_key", "probe_url"}


class SettingsVM:
    """Keeps resilience settings state and validation, no I/O here."""

    def __init__(
        self,
        *,
        config: Optional[SettingsConfig] = None,
        on_save: Optional[Callable[[dict], None]] = None,
    ) -> None:
        self.config = config or SettingsConfig()
        self.on_save = on_save
        self.debug_logging: bool = env_debug_requested()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SettingsVM":
        """Build settings from ``CABIN_<FIELD>`` environment variables."""
        env = os.environ if environ is None else environ
        payload: Dict[str, Any] = {}
        for key in _config_keys():
            value = env.get(f"{ENV_PREFIX}{key.upper()}")
            if value is not None and value.strip():
                payload[key] = value
        debug = env.get(f"{ENV_PREFIX}DEBUG")
        if debug is not None:
            payload["debug_logging"] = debug
        vm = cls()
        vm.apply_dict(payload)
        return vm

    # ------------------------------------------------------------------
    def is_valid(self) -> bool:
        cfg = self.config
        if cfg.retry_max_attempts < 1 or cfg.retry_base_delay_ms < 0:
            return False
        if cfg.recovery_poll_interval_s <= 0 or cfg.session_check_interval_s <= 0:
            return False
        if cfg.probe_timeout_s <= 0 or cfg.request_timeout_s <= 0:
            return False
        return True

    def apply_dict(self, payload: Mapping[str, Any]) -> None:
        """Apply persisted settings to the view-model."""

        if not isinstance(payload, Mapping):
            raise ValueError("Settings payload must be a mapping of flat keys.")

        allowed_flat_keys = {*_config_keys(), "debug_logging"}
        unknown = set(payload.keys()) - allowed_flat_keys
        if unknown:
            raise ValueError(f"Unsupported settings keys: {', '.join(sorted(str(key) for key in unknown))}")

        updates: Dict[str, Any] = {}
        for cfg_key in _config_keys():
            if cfg_key in payload:
                updates[cfg_key] = self._coerce_config_value(cfg_key, payload[cfg_key])

        if updates:
            self.config = replace(self.config, **updates)

        if "debug_logging" in payload:
            self.debug_logging = self._coerce_bool(payload["debug_logging"])

    def to_dict(self) -> dict:
        snapshot = asdict(self.config)
        snapshot["debug_logging"] = bool(self.debug_logging)
        return snapshot

    def cmd_save(self) -> None:
        if not self.is_valid():
            raise ValueError("Settings invalid")
        if self.on_save:
            self.on_save(self.to_dict())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _coerce_config_value(self, key: str, raw: Any) -> Any:
        if key in _STR_FIELDS:
            return self._coerce_optional_str(raw)
        if key in _INT_FIELDS:
            return self._coerce_int(key, raw, allow_negative=False)
        if key in _FLOAT_FIELDS:
            return self._coerce_float(key, raw)
        raise ValueError(f"Unhandled config field: {key}")

    @staticmethod
    def _coerce_optional_str(value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @staticmethod
    def _coerce_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    @staticmethod
    def _coerce_int(name: str, value: Any, *, allow_negative: bool = True) -> int:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be an integer.")
        if isinstance(value, (int, float)):
            coerced = int(value)
        elif isinstance(value, str):
            try:
                coerced = int(value.strip())
            except (TypeError, ValueError) as exc:
                raise ValueError(f"{name} must be an integer.") from exc
        else:
            raise ValueError(f"{name} must be an integer.")
        if not allow_negative and coerced < 0:
            raise ValueError(f"{name} must be non-negative.")
        return coerced

    @staticmethod
    def _coerce_float(name: str, value: Any) -> float:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be a number.")
        try:
            coerced = float(value.strip() if isinstance(value, str) else value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{name} must be a number.") from exc
        if coerced < 0:
            raise ValueError(f"{name} must be non-negative.")
        return coerced


def _config_keys() -> tuple[str, ...]:
    return tuple(f.name for f in fields(SettingsConfig))

