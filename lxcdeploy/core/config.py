"""lxcdeploy runtime settings (timeouts, polling, lock location)."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class RuntimeSettings:
    """Runtime settings for a deployment run.

    Attributes:
        boot_timeout: Seconds to wait for a started container to answer probes (default: 120)
        boot_probe_delay: Initial delay between readiness probes, doubled each time (default: 1)
        boot_probe_max_delay: Upper bound for the readiness probe delay (default: 10)
        ip_poll_attempts: DHCP address polls before giving up (default: 10)
        ip_poll_interval: Seconds between DHCP address polls (default: 5)
        install_step_timeout: Timeout in seconds for one install step (default: 1800)
        template_download_timeout: Timeout in seconds for template downloads (default: 600)
        command_check_timeout: Timeout in seconds for in-container probes (default: 10)
        lock_file: Host lock serializing id allocation and creation
    """

    boot_timeout: int = 120
    boot_probe_delay: float = 1.0
    boot_probe_max_delay: float = 10.0

    ip_poll_attempts: int = 10
    ip_poll_interval: int = 5

    install_step_timeout: int = 1800  # docker compose pull can be slow
    template_download_timeout: int = 600
    command_check_timeout: int = 10

    lock_file: str = "/var/run/lxcdeploy/provision.lock"

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        """Create settings from LXCDEPLOY_* environment variables.

        Environment variables:
            LXCDEPLOY_BOOT_TIMEOUT: Readiness wait in seconds
            LXCDEPLOY_IP_POLL_ATTEMPTS: Number of DHCP address polls
            LXCDEPLOY_IP_POLL_INTERVAL: Seconds between DHCP address polls
            LXCDEPLOY_INSTALL_STEP_TIMEOUT: Per-step install timeout
            LXCDEPLOY_TEMPLATE_DOWNLOAD_TIMEOUT: Template download timeout
            LXCDEPLOY_COMMAND_CHECK_TIMEOUT: In-container probe timeout
            LXCDEPLOY_LOCK_FILE: Path of the provisioning lock
        """
        return cls(
            boot_timeout=int(os.getenv("LXCDEPLOY_BOOT_TIMEOUT", cls.boot_timeout)),
            ip_poll_attempts=int(
                os.getenv("LXCDEPLOY_IP_POLL_ATTEMPTS", cls.ip_poll_attempts)
            ),
            ip_poll_interval=int(
                os.getenv("LXCDEPLOY_IP_POLL_INTERVAL", cls.ip_poll_interval)
            ),
            install_step_timeout=int(
                os.getenv("LXCDEPLOY_INSTALL_STEP_TIMEOUT", cls.install_step_timeout)
            ),
            template_download_timeout=int(
                os.getenv("LXCDEPLOY_TEMPLATE_DOWNLOAD_TIMEOUT", cls.template_download_timeout)
            ),
            command_check_timeout=int(
                os.getenv("LXCDEPLOY_COMMAND_CHECK_TIMEOUT", cls.command_check_timeout)
            ),
            lock_file=os.getenv("LXCDEPLOY_LOCK_FILE", cls.lock_file),
        )


_settings: Optional[RuntimeSettings] = None


def get_settings() -> RuntimeSettings:
    """Get the global runtime settings (created from the environment on first use)."""
    global _settings
    if _settings is None:
        _settings = RuntimeSettings.from_env()
    return _settings


def set_settings(settings: Optional[RuntimeSettings]):
    """Replace the global runtime settings; pass None to re-read the environment."""
    global _settings
    _settings = settings
