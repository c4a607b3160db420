"""Adapter and lifecycle wiring for the client runtime.

This module owns lazy construction of the concrete REST adapters, the
connectivity probe, and the :class:`AuthLifecycle` that depend on values in
:class:`cabin.viewmodels.settings_vm.SettingsVM`.
"""

from __future__ import annotations

from typing import Callable, Optional

import requests

from ..adapters.connectivity_http import HttpConnectivityProbe
from ..adapters.http_client import PerThreadSession
from ..adapters.supabase_rest import SupabaseAuthAdapter, SupabaseProfileAdapter
from ..viewmodels.auth_vm import AuthVM
from ..viewmodels.settings_vm import SettingsVM
from .auth_lifecycle import AuthLifecycle


class AppController:
    """Create and cache runtime adapters and the auth lifecycle from settings.

    Call chain:
        ``cabin.app.main.main`` creates one instance, calls ``ensure_ready``
        and then drives ``lifecycle``.
    """

    def __init__(
        self,
        settings_vm: SettingsVM,
        *,
        vm: Optional[AuthVM] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        """Initialize controller with settings-backed lazy dependencies.

        Args:
            settings_vm: Settings state holding the backend URL, anon key,
                and resilience tuning used to build adapters.
            vm: Auth view-model handed to the lifecycle.
            session_factory: Builds the ``requests.Session`` objects. Adapters
                share one per-thread pool; the probe gets its own pool.
        """
        self.settings_vm = settings_vm
        self.vm = vm or AuthVM()
        self._session_factory = session_factory
        self._auth_adapter: Optional[SupabaseAuthAdapter] = None
        self._profile_adapter: Optional[SupabaseProfileAdapter] = None
        self._probe: Optional[HttpConnectivityProbe] = None
        self.lifecycle: Optional[AuthLifecycle] = None

    @property
    def auth_adapter(self) -> Optional[SupabaseAuthAdapter]:
        return self._auth_adapter

    @property
    def profile_adapter(self) -> Optional[SupabaseProfileAdapter]:
        return self._profile_adapter

    @property
    def probe(self) -> Optional[HttpConnectivityProbe]:
        return self._probe

    def reset(self) -> None:
        """Stop the lifecycle and drop all cached adapters.

        The next ``ensure_ready`` call rebuilds everything from current
        settings values.
        """
        if self.lifecycle is not None:
            self.lifecycle.stop()
        self._auth_adapter = None
        self._profile_adapter = None
        self._probe = None
        self.lifecycle = None

    def ensure_ready(self) -> bool:
        """Ensure adapters and the lifecycle exist.

        Returns:
            ``True`` when dependencies are available, ``False`` when the
            backend URL is missing from settings.
        """
        if self.lifecycle is not None:
            return True

        cfg = self.settings_vm.config
        base_url = cfg.supabase_url.strip()
        if not base_url:
            return False

        sessions = PerThreadSession(self._session_factory)
        if self._auth_adapter is None:
            self._auth_adapter = SupabaseAuthAdapter(
                base_url,
                cfg.supabase_anon_key,
                request_timeout_s=cfg.request_timeout_s,
                sessions=sessions,
            )
        if self._profile_adapter is None:
            self._profile_adapter = SupabaseProfileAdapter(
                base_url,
                cfg.supabase_anon_key,
                auth=self._auth_adapter,
                request_timeout_s=cfg.request_timeout_s,
                sessions=sessions,
            )
        if self._probe is None:
            self._probe = self._build_probe()
        self.lifecycle = AuthLifecycle(
            self._auth_adapter,
            self._profile_adapter,
            self._probe,
            settings=cfg,
            vm=self.vm,
        )
        return True

    def _build_probe(self) -> HttpConnectivityProbe:
        cfg = self.settings_vm.config
        sessions = PerThreadSession(self._session_factory)
        if cfg.probe_url:
            return HttpConnectivityProbe(
                cfg.probe_url, timeout_s=cfg.probe_timeout_s, sessions=sessions
            )
        # Auth health endpoint: GET only, and the gateway wants the anon key.
        return HttpConnectivityProbe(
            cfg.effective_probe_url,
            timeout_s=cfg.probe_timeout_s,
            method="GET",
            headers={"apikey": cfg.supabase_anon_key},
            sessions=sessions,
        )
