"""Tests for runtime settings."""
from lxcdeploy.core.config import RuntimeSettings, get_settings, set_settings


class TestRuntimeSettings:
    """Defaults and environment overrides."""

    def test_defaults(self):
        settings = RuntimeSettings()

        assert settings.boot_timeout == 120
        assert settings.ip_poll_attempts == 10
        assert settings.ip_poll_interval == 5

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LXCDEPLOY_BOOT_TIMEOUT", "300")
        monkeypatch.setenv("LXCDEPLOY_IP_POLL_ATTEMPTS", "3")
        monkeypatch.setenv("LXCDEPLOY_LOCK_FILE", "/tmp/custom.lock")

        settings = RuntimeSettings.from_env()

        assert settings.boot_timeout == 300
        assert settings.ip_poll_attempts == 3
        assert settings.ip_poll_interval == 5
        assert settings.lock_file == "/tmp/custom.lock"

    def test_reset_rereads_environment(self, monkeypatch):
        monkeypatch.setenv("LXCDEPLOY_INSTALL_STEP_TIMEOUT", "60")
        set_settings(None)

        assert get_settings().install_step_timeout == 60
