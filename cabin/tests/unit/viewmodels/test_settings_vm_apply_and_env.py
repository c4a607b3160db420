from __future__ import annotations

import pytest

from cabin.viewmodels.settings_vm import SettingsConfig, SettingsVM


def test_defaults_match_resilience_constants() -> None:
    cfg = SettingsConfig()

    assert cfg.retry_max_attempts == 3
    assert cfg.retry_base_delay_ms == 1000
    assert cfg.recovery_max_wait_s == 10.0
    assert cfg.recovery_poll_interval_s == 2.0
    assert cfg.session_check_interval_s == 300.0
    assert cfg.session_warning_window_s == 300.0
    assert cfg.health_cache_ttl_s == 60.0


def test_apply_dict_coerces_flat_keys() -> None:
    vm = SettingsVM()

    vm.apply_dict(
        {
            "supabase_url": " https://proj.supabase.co ",
            "retry_max_attempts": "5",
            "recovery_poll_interval_s": "0.5",
            "debug_logging": "yes",
        }
    )

    assert vm.config.supabase_url == "https://proj.supabase.co"
    assert vm.config.retry_max_attempts == 5
    assert vm.config.recovery_poll_interval_s == 0.5
    assert vm.debug_logging is True


def test_apply_dict_rejects_unknown_keys() -> None:
    vm = SettingsVM()
    try:
        vm.apply_dict({"box_urls": {}})
    except ValueError as exc:
        assert "box_urls" in str(exc)
    else:  # pragma: no cover
        pytest.fail("unknown keys must be rejected")


@pytest.mark.parametrize(
    "payload",
    [
        {"retry_max_attempts": "many"},
        {"retry_base_delay_ms": -5},
        {"probe_timeout_s": True},
        {"recovery_max_wait_s": -1},
    ],
)
def test_apply_dict_rejects_bad_values(payload) -> None:
    with pytest.raises(ValueError):
        SettingsVM().apply_dict(payload)


def test_is_valid_checks_ranges() -> None:
    vm = SettingsVM()
    assert vm.is_valid()

    vm.apply_dict({"retry_max_attempts": 0})
    assert not vm.is_valid()
    with pytest.raises(ValueError):
        vm.cmd_save()


def test_cmd_save_hands_snapshot_to_callback() -> None:
    saved = []
    vm = SettingsVM(on_save=saved.append)

    vm.cmd_save()

    assert saved == [vm.to_dict()]


def test_from_env_reads_prefixed_variables(monkeypatch) -> None:
    env = {
        "CABIN_SUPABASE_URL": "https://proj.supabase.co",
        "CABIN_SUPABASE_ANON_KEY": "anon",
        "CABIN_PROBE_URL": "https://cabin.example/favicon.svg",
        "CABIN_RETRY_MAX_ATTEMPTS": "4",
        "CABIN_DEBUG": "1",
        "CABIN_PROBE_TIMEOUT_S": "",
    }

    vm = SettingsVM.from_env(env)

    assert vm.config.supabase_url == "https://proj.supabase.co"
    assert vm.config.effective_probe_url == "https://cabin.example/favicon.svg"
    assert vm.config.retry_max_attempts == 4
    assert vm.config.probe_timeout_s == 5.0
    assert vm.debug_logging is True


@pytest.mark.parametrize(
    "url, key, placeholder",
    [
        ("", "", True),
        ("https://your-supabase-project.supabase.co", "anon", True),
        ("https://proj.supabase.co", "your-supabase-anon-key", True),
        ("https://proj.supabase.co", "anon", False),
    ],
)
def test_placeholder_detection(url, key, placeholder) -> None:
    assert SettingsConfig(supabase_url=url, supabase_anon_key=key).is_placeholder is placeholder


def test_probe_url_falls_back_to_auth_health_endpoint() -> None:
    cfg = SettingsConfig(supabase_url="https://proj.supabase.co/")
    assert cfg.effective_probe_url == "https://proj.supabase.co/auth/v1/health"
    assert SettingsConfig().effective_probe_url == ""


def test_snapshot_round_trips() -> None:
    payload = SettingsVM().to_dict()
    vm = SettingsVM()
    vm.apply_dict(payload)
    assert vm.to_dict() == payload
