"""Container lifecycle management (create, start, destroy, exec)."""
import shlex
import subprocess
from typing import List, Optional

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import ProvisionError, StartError
from lxcdeploy.models.request import ProvisioningRequest

logger = get_logger(__name__)


def build_create_command(request: ProvisioningRequest, template_volid: str) -> List[str]:
    """Build the `pct create` argument vector for a fully resolved request.

    The request must already carry a container id and a password.
    """
    res = request.resources
    tmpl = request.template

    cmd = [
        'pct', 'create', str(request.ctid), template_volid,
        '--hostname', request.hostname,
    ]
    if request.description:
        cmd.extend(['--description', request.description])

    cmd.extend([
        '--ostype', tmpl.os_type,
        '--arch', tmpl.arch,
        '--cores', str(res.cores),
        '--memory', str(res.memory),
        '--swap', str(res.swap),
        # pct expects the rootfs size in GB without unit suffix
        '--rootfs', f'{res.storage}:{res.disk_gb}',
        '--unprivileged', '1' if res.unprivileged else '0',
    ])

    features = res.features()
    if features:
        cmd.extend(['--features', features])

    cmd.extend([
        '--onboot', '1',
        '--net0', request.network.descriptor(),
        '--password', request.password,
    ])
    return cmd


def mask_command(cmd: List[str]) -> str:
    """Render ``cmd`` for logs with the --password value hidden."""
    masked = list(cmd)
    for i, arg in enumerate(masked[:-1]):
        if arg == '--password':
            masked[i + 1] = '********'
    return shlex.join(masked)


class ContainerLifecycle:
    """Manages LXC container lifecycle operations."""

    def __init__(self, mock: bool = False):
        self.mock = mock

    def create_container(self, request: ProvisioningRequest, template_volid: str) -> int:
        """Create the container described by ``request``.

        Returns:
            Container VMID

        Raises:
            ProvisionError: pct create exited non-zero
        """
        cmd = build_create_command(request, template_volid)
        vmid = request.ctid

        if request.resources.unprivileged is False:
            logger.warning(f"⚠️  Creating PRIVILEGED container {vmid} - has full root access!")

        if self.mock:
            logger.info(f"MOCK: Would execute: {mask_command(cmd)}")
            return vmid

        logger.info(f"Creating container {vmid} ({request.hostname}) from {template_volid}")
        logger.debug(f"Command: {mask_command(cmd)}")

        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or '').strip()
            if stderr:
                logger.error(f"Error output: {stderr}")
            raise ProvisionError(
                f"Failed to create LXC container {vmid}"
                + (f": {stderr}" if stderr else "")
            ) from e

        logger.info(f"✓ Container {vmid} ({request.hostname}) created successfully")
        return vmid

    def start_container(self, vmid: int) -> None:
        """Start a container.

        Raises:
            StartError: pct start failed for a reason other than already running
        """
        if self.mock:
            logger.info(f"MOCK: Would start container {vmid}")
            return

        logger.info(f"Starting container {vmid}")
        try:
            subprocess.run(
                ['pct', 'start', str(vmid)],
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            if e.stderr and 'already running' in e.stderr.lower():
                logger.info(f"Container {vmid} already running")
                return
            stderr = (e.stderr or '').strip()
            raise StartError(
                f"Failed to start LXC container {vmid}" + (f": {stderr}" if stderr else "")
            ) from e

        logger.info(f"✓ Container {vmid} started")

    def destroy_container(self, vmid: int) -> bool:
        """Destroy a container; --force also removes a running one.

        Returns:
            True if destroyed successfully
        """
        if self.mock:
            logger.info(f"MOCK: Would destroy container {vmid}")
            return True

        logger.info(f"Destroying existing container {vmid}...")
        try:
            subprocess.run(
                ['pct', 'destroy', str(vmid), '--force'],
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to destroy container {vmid}: {e}")
            if e.stderr:
                logger.error(f"Error output: {e.stderr.strip()}")
            return False

        logger.info(f"✓ Container {vmid} destroyed")
        return True

    def run_script(
        self,
        vmid: int,
        script: str,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        """Run a bash script inside the container via pct exec.

        Returns:
            CompletedProcess with returncode/stdout/stderr

        Raises:
            subprocess.TimeoutExpired: The script outlived ``timeout``
        """
        cmd = ['pct', 'exec', str(vmid), '--', 'bash', '-c', script]

        if self.mock:
            logger.info(f"MOCK: Would execute in container {vmid}")
            return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')

        return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)

    def probe(self, vmid: int, script: str) -> bool:
        """Run a short check inside the container; True if it exits 0.

        Timeouts and missing pct count as a failed probe.
        """
        if self.mock:
            return False

        try:
            result = subprocess.run(
                ['pct', 'exec', str(vmid), '--', 'bash', '-c', script],
                capture_output=True,
                text=True,
                timeout=get_settings().command_check_timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False
        return result.returncode == 0

    def is_responsive(self, vmid: int) -> bool:
        """Readiness probe: the container accepts pct exec."""
        if self.mock:
            return True
        return self.probe(vmid, 'true')
