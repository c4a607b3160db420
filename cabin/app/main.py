# cabin/app/main.py
from __future__ import annotations

import argparse
import getpass
import logging
import threading
from typing import Optional, Sequence

from ..adapters.storage_local import StorageLocal
from ..domain.errors import AppError
from ..utils import logging as logging_utils
from ..viewmodels.auth_vm import AuthVM
from ..viewmodels.settings_vm import SettingsVM
from .controller import AppController

_log = logging.getLogger(__name__)


def load_settings(storage: StorageLocal) -> SettingsVM:
    """Environment first, then the persisted settings file on top.

    Saving goes back to the same ``storage``.
    """
    settings = SettingsVM.from_env()
    settings.on_save = storage.save_user_settings
    persisted = storage.load_user_settings()
    if persisted:
        settings.apply_dict(persisted)
    return settings


def _describe(vm: AuthVM) -> str:
    user = (vm.user or {}).get("email") or (vm.user or {}).get("id") or "-"
    return (
        f"user={user} connected={vm.is_connected} loading={vm.loading} "
        f"error={vm.error or '-'}"
    )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the cabin auth lifecycle from a console.")
    parser.add_argument("--settings-dir", default=".", help="Directory holding user_settings.json")
    parser.add_argument("--email", help="Sign in with this email after startup")
    parser.add_argument("--save-settings", action="store_true", help="Persist the effective settings")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep the session monitor running until interrupted",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entrypoint; returns a process exit code."""
    args = _parse_args(argv)
    logging_utils.configure_root()

    storage = StorageLocal(root_dir=args.settings_dir)
    try:
        settings = load_settings(storage)
    except ValueError as exc:
        _log.error("Invalid settings: %s", exc)
        return 2
    logging_utils.apply_preferences(settings.debug_logging)
    if not settings.is_valid():
        _log.error("Settings out of range: %s", settings.to_dict())
        return 2
    if args.save_settings:
        settings.cmd_save()
        _log.info("Settings saved to %s", storage.settings_path)

    vm = AuthVM(on_change=lambda state: _log.debug("Auth state: %s", _describe(state)))
    controller = AppController(settings, vm=vm)
    if not controller.ensure_ready():
        _log.error("CABIN_SUPABASE_URL is not configured")
        return 2

    lifecycle = controller.lifecycle
    lifecycle.start()
    try:
        if args.email:
            password = getpass.getpass(f"Password for {args.email}: ")
            try:
                lifecycle.sign_in(args.email, password)
            except AppError as err:
                print(err.user_message)
                return 1
        print(_describe(vm))
        if args.watch:
            try:
                threading.Event().wait()
            except KeyboardInterrupt:
                pass
    finally:
        lifecycle.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
