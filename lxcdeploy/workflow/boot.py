"""Lifecycle Controller: start the container and wait until it answers."""
import threading
from typing import Optional

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.retry import wait_for
from lxcdeploy.errors import ReadinessTimeoutError
from lxcdeploy.services.proxmox.containers import ContainerLifecycle

logger = get_logger(__name__)


class BootController:
    """Starts a provisioned container and polls a readiness probe."""

    def __init__(self, lifecycle: Optional[ContainerLifecycle] = None, mock: bool = False):
        self.lifecycle = lifecycle or ContainerLifecycle(mock=mock)

    def start(
        self,
        vmid: int,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Start ``vmid`` and block until it runs commands.

        Args:
            vmid: Container ID
            timeout: Seconds to wait for readiness (default: settings.boot_timeout)
            cancel: Event that aborts the wait when set

        Raises:
            StartError: pct start failed
            ReadinessTimeoutError: The container never answered the probe
            OperationCancelled: ``cancel`` was set
        """
        settings = get_settings()
        timeout = settings.boot_timeout if timeout is None else timeout

        self.lifecycle.start_container(vmid)

        logger.info(f"Waiting for container {vmid} to boot (up to {timeout:g}s)...")
        ready = wait_for(
            lambda: self.lifecycle.is_responsive(vmid),
            timeout=timeout,
            initial_delay=settings.boot_probe_delay,
            max_delay=settings.boot_probe_max_delay,
            cancel=cancel,
            description=f"container {vmid} readiness",
        )
        if not ready:
            raise ReadinessTimeoutError(
                f"Container {vmid} started but did not respond within {timeout:g}s. "
                f"Check it with 'pct enter {vmid}'."
            )

        logger.info(f"LXC Container {vmid} started.")
