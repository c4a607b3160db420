"""Auth lifecycle glue between the backend ports and the observable AuthVM.

``AuthLifecycle`` is the single owner of the expiration listener registry,
the session monitor, and the cached health check. ``start()`` wires the
auth-event subscription, the monitor, and the expiration listener, then
restores any existing session; ``stop()`` undoes all of it and cancels
in-flight recovery waits.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from ..domain.cancellation import CancellationToken
from ..domain.errors import AppError, ErrorKind, OperationCancelled
from ..domain.ports import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthEvent,
    AuthPort,
    AuthSubscription,
    ConnectivityPort,
    ProfilePort,
)
from ..domain.session import Session
from ..usecases.backend_call import CheckBackendHealth, call_backend
from ..usecases.error_mapping import create_app_error, log_app_error, process_error
from ..usecases.expiration_listeners import ExpirationListenerRegistry
from ..usecases.network_recovery import with_network_recovery
from ..usecases.refresh_session import RefreshSession
from ..usecases.retry import RetryPolicy
from ..usecases.session_monitor import SessionMonitor
from ..viewmodels.auth_vm import AuthVM
from ..viewmodels.settings_vm import SettingsConfig

T = TypeVar("T")

_log = logging.getLogger(__name__)


def _as_app_error(exc: Exception, context: str) -> AppError:
    return exc if isinstance(exc, AppError) else process_error(exc, context)


class AuthLifecycle:
    """Keep ``AuthVM`` in sync with the backend session, surviving outages.

    Call chain:
        ``cabin.app.controller.AppController`` builds one instance from
        settings. The UI layer calls ``start()`` once, then the user actions
        (``sign_in``, ``sign_up``, ``sign_out``, ``update_profile``,
        ``refresh_profile``) and finally ``stop()``.
    """

    def __init__(
        self,
        auth_port: AuthPort,
        profile_port: ProfilePort,
        probe: ConnectivityPort,
        *,
        settings: Optional[SettingsConfig] = None,
        vm: Optional[AuthVM] = None,
        registry: Optional[ExpirationListenerRegistry] = None,
        monitor: Optional[SessionMonitor] = None,
        health: Optional[CheckBackendHealth] = None,
    ) -> None:
        """Wire collaborators; nothing touches the network until ``start()``.

        Args:
            auth_port: Session and credential operations.
            profile_port: Access to the ``profiles`` table.
            probe: Connectivity check used while waiting for recovery.
            settings: Retry, recovery, and monitor tuning. Defaults apply when omitted.
            vm: View-model receiving state updates; a fresh one is created otherwise.
            registry: Expiration listeners shared with the monitor and refresh use case.
            monitor: Pre-built session monitor (tests inject one with a fake clock).
            health: Pre-built health check.
        """
        self.settings = settings or SettingsConfig()
        self.auth_port = auth_port
        self.profile_port = profile_port
        self.probe = probe
        self.vm = vm or AuthVM()
        self.registry = registry or ExpirationListenerRegistry()
        self.monitor = monitor or SessionMonitor(
            auth_port,
            self.registry,
            check_interval_s=self.settings.session_check_interval_s,
            warning_window_s=self.settings.session_warning_window_s,
        )
        self.health = health or CheckBackendHealth(
            profile_port,
            placeholder=self.settings.is_placeholder,
            cache_ttl_s=self.settings.health_cache_ttl_s,
        )
        self.refresh = RefreshSession(auth_port, self.registry)
        self.policy = RetryPolicy(
            max_attempts=self.settings.retry_max_attempts,
            base_delay_ms=self.settings.retry_base_delay_ms,
        )
        self._cancel = CancellationToken()
        self._subscription: Optional[AuthSubscription] = None
        self._active = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Subscribe, start monitoring, and restore the persisted session."""
        with self._lock:
            if self._active:
                return
            self._active = True
            self._cancel = CancellationToken()
        self._subscription = self.auth_port.on_auth_state_change(self._on_auth_event)
        self.monitor.start()
        self.registry.add_listener(self._on_session_expired)
        self._initialize()

    def stop(self) -> None:
        """Unsubscribe everything and cancel pending recovery waits."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._cancel.cancel()
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
        self.registry.remove_listener(self._on_session_expired)
        self.monitor.stop()

    def _initialize(self) -> None:
        healthy = self.health()
        if self._active:
            self.vm.mark_connected(healthy)
        try:
            session = self._recover(
                lambda: self._call(self.auth_port.get_session, "getCurrentSession"),
                "initializeAuth",
            )
        except OperationCancelled:
            _log.debug("Auth initialization cancelled")
            return
        except Exception as exc:
            if self._active:
                self._handle_error(_as_app_error(exc, "initializeAuth"), "initializeAuth")
                self.vm.set_loading(False)
            return
        try:
            self._handle_session(session)
        except OperationCancelled:
            _log.debug("Profile load cancelled during initialization")

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_auth_event(self, event: AuthEvent, session: Optional[Session]) -> None:
        if not self._active:
            return
        _log.info("Auth state changed: %s %s", event, session.email if session else None)
        try:
            if event == TOKEN_REFRESHED and session is None:
                self.monitor.handle_session_expiration()
                return
            if event == SIGNED_OUT:
                self.health.reset()
            self._handle_session(session)
            if self._active and event in (SIGNED_IN, TOKEN_REFRESHED):
                self.vm.clear_error()
                self.vm.mark_connected(True)
        except OperationCancelled:
            return
        except Exception as exc:
            log_app_error(process_error(exc, "authStateHandler"))

    def _on_session_expired(self) -> None:
        if not self._active:
            return
        self._handle_error(
            create_app_error(ErrorKind.SESSION_EXPIRED, "Session expired"),
            "sessionExpiration",
        )

    def _handle_session(self, session: Optional[Session]) -> None:
        if not self._active:
            return
        self.vm.apply_session(session)
        if session is not None:
            user_id = session.user_id
            try:
                profile = self._recover(
                    lambda: self._call(
                        lambda: self.profile_port.get_profile(user_id), "getUserProfile"
                    ),
                    "loadUserProfile",
                )
            except OperationCancelled:
                raise
            except Exception as exc:
                if self._active:
                    self._handle_error(_as_app_error(exc, "loadUserProfile"), "handleSession")
            else:
                if self._active:
                    self.vm.apply_profile(profile)
                    self.vm.mark_connected(True)
                    self.vm.clear_error()
        if self._active:
            self.vm.set_loading(False)

    def _handle_error(self, err: AppError, context: str) -> None:
        log_app_error(err, context)
        self.vm.apply_error(err)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def sign_in(self, email: str, password: str) -> None:
        """Sign in; the session itself arrives via the SIGNED_IN event.

        Raises:
            AppError: Credential or connectivity failure (also set on the VM).
        """
        self._begin_action()
        try:
            self._call(lambda: self.auth_port.sign_in(email, password), "signIn", retryable=False)
            self.vm.mark_connected(True)
        except AppError as err:
            self.vm.apply_error(err)
            raise
        finally:
            self.vm.set_loading(False)

    def sign_up(self, email: str, password: str, profile_data: Dict[str, Any]) -> None:
        """Create the account, then its profile row.

        A failed profile insert is logged and does not fail the sign-up.
        """
        self._begin_action()
        try:
            result = self._call(
                lambda: self.auth_port.sign_up(email, password), "signUp", retryable=False
            )
            user = (result or {}).get("user") or {}
            if user.get("id"):
                row = {
                    "id": user["id"],
                    "first_name": profile_data.get("first_name"),
                    "last_name": profile_data.get("last_name"),
                    "phone_number": profile_data.get("phone_number"),
                    "is_admin": bool(profile_data.get("is_admin", False)),
                }
                try:
                    self._recover(lambda: self.profile_port.insert_profile(row), "createProfile")
                except OperationCancelled:
                    raise
                except Exception as exc:
                    log_app_error(
                        _as_app_error(exc, "createProfile"), "signUp - profile creation failed"
                    )
            self.vm.mark_connected(True)
        except AppError as err:
            self.vm.apply_error(err)
            raise
        finally:
            self.vm.set_loading(False)

    def sign_out(self) -> None:
        """Sign out; local state is cleared even when the backend call fails."""
        try:
            self.auth_port.sign_out()
        except Exception as exc:
            log_app_error(process_error(exc, "signOut"), "signOut")
        finally:
            self.health.reset()
            self.vm.reset()

    def update_profile(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Patch the signed-in user's profile and return the stored row.

        Raises:
            AppError: No signed-in user, or the update failed.
        """
        user = self.vm.user
        if not user:
            raise process_error(ValueError("No authenticated user"), "updateProfile")
        user_id = user["id"]
        payload = dict(fields)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        self._begin_action()
        try:
            profile = self._recover(
                lambda: self.profile_port.update_profile(user_id, payload), "updateProfile"
            )
        except OperationCancelled:
            raise
        except Exception as exc:
            err = _as_app_error(exc, "updateProfile")
            self._handle_error(err, "updateProfile")
            raise err from exc
        finally:
            self.vm.set_loading(False)
        self.vm.apply_profile(profile)
        self.vm.mark_connected(True)
        return profile

    def refresh_profile(self) -> None:
        """Reload the profile; failures are surfaced on the VM, never raised."""
        user = self.vm.user
        if not user:
            return
        user_id = user["id"]
        try:
            profile = self._recover(
                lambda: self._call(
                    lambda: self.profile_port.get_profile(user_id), "getUserProfile"
                ),
                "refreshProfile",
            )
        except OperationCancelled:
            raise
        except Exception as exc:
            self._handle_error(_as_app_error(exc, "refreshProfile"), "refreshProfile")
            return
        self.vm.apply_profile(profile)
        self.vm.mark_connected(True)
        if self.vm.error is not None:
            self.vm.clear_error()

    def refresh_session(self) -> bool:
        try:
            return self.refresh()
        except AppError as err:
            self.vm.apply_error(err)
            raise

    def clear_error(self) -> None:
        self.vm.clear_error()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _begin_action(self) -> None:
        self.vm.set_loading(True)
        self.vm.clear_error()

    def _call(self, operation: Callable[[], T], context: str, *, retryable: bool = True) -> T:
        return call_backend(
            operation,
            context,
            retryable=retryable,
            policy=self.policy,
            cancel_token=self._cancel,
        )

    def _recover(self, operation: Callable[[], T], context: str) -> T:
        return with_network_recovery(
            operation,
            context,
            self.probe,
            max_wait_s=self.settings.recovery_max_wait_s,
            poll_interval_s=self.settings.recovery_poll_interval_s,
            cancel_token=self._cancel,
        )


__all__ = ["AuthLifecycle"]
