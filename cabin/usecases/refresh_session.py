from __future__ import annotations

from dataclasses import dataclass

from cabin.domain.errors import OperationCancelled
from cabin.domain.ports import AuthPort
from cabin.usecases.error_mapping import log_app_error, process_error
from cabin.usecases.expiration_listeners import ExpirationListenerRegistry


@dataclass
class RefreshSession:
    """Exchange the refresh token for a new session, exactly once.

    A failed refresh means the session cannot be recovered, so expiration
    listeners are notified before the error is raised.
    """

    auth_port: AuthPort
    registry: ExpirationListenerRegistry

    def __call__(self) -> bool:
        try:
            session = self.auth_port.refresh_session()
        except OperationCancelled:
            raise
        except Exception as exc:
            self.registry.notify_all()
            app_error = process_error(exc, "refreshSession")
            log_app_error(app_error, "refreshSession")
            raise app_error from exc
        return session is not None
