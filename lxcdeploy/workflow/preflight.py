"""Preflight Validator: host checks before any mutating action."""
import platform
import shutil
import subprocess
from typing import Callable, Optional

from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import ArchitectureMismatchError, EnvironmentCheckError
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.dialog import DIALOG_COMMAND

logger = get_logger(__name__)

# Commands a Proxmox VE host must provide
REQUIRED_COMMANDS = ('pveversion', 'pct', 'pveam')

# platform.machine() values mapped to Debian architecture names
MACHINE_TO_DEBIAN_ARCH = {
    'x86_64': 'amd64',
    'amd64': 'amd64',
    'aarch64': 'arm64',
    'arm64': 'arm64',
    'armv7l': 'armhf',
    'i686': 'i386',
    'i386': 'i386',
}

ConfirmCallback = Callable[[str], bool]


class PreflightValidator:
    """Verifies the host can run a deployment.

    Call :meth:`run` with the resolved request; it returns the request,
    possibly downgraded to non-interactive mode.
    """

    def __init__(self, mock: bool = False, which: Optional[Callable[[str], Optional[str]]] = None):
        self.mock = mock
        self.which = which or shutil.which

    def check_platform(self) -> str:
        """Ensure the Proxmox VE command surface is present.

        Returns:
            pveversion output

        Raises:
            EnvironmentCheckError: A required command is missing
        """
        if self.mock:
            return "pve-manager/mock"

        logger.info("Checking Proxmox VE environment...")
        missing = [cmd for cmd in REQUIRED_COMMANDS if self.which(cmd) is None]
        if missing:
            raise EnvironmentCheckError(
                f"This must be run on a Proxmox VE host (missing: {', '.join(missing)})"
            )

        try:
            result = subprocess.run(['pveversion'], capture_output=True, text=True, check=True)
            version = result.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise EnvironmentCheckError(f"pveversion failed: {e}") from e

        logger.info(f"Proxmox VE detected: {version}")
        return version

    def detect_host_arch(self) -> str:
        """Host architecture in Debian naming (dpkg first, then platform.machine)."""
        if self.which('dpkg') is not None:
            try:
                result = subprocess.run(
                    ['dpkg', '--print-architecture'],
                    capture_output=True,
                    text=True,
                    check=True
                )
                arch = result.stdout.strip()
                if arch:
                    return arch
            except subprocess.CalledProcessError:
                logger.debug("dpkg --print-architecture failed, using platform.machine()")

        machine = platform.machine().lower()
        return MACHINE_TO_DEBIAN_ARCH.get(machine, machine)

    def check_architecture(
        self,
        request: ProvisioningRequest,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        """Compare host and template architecture.

        A mismatch is always logged. It is fatal unless ``force`` is set or,
        in interactive mode, the user confirms.

        Raises:
            ArchitectureMismatchError: Mismatch without override
        """
        if self.mock:
            return

        logger.info("Checking system architecture...")
        detected = self.detect_host_arch()
        target = request.template.arch

        if detected == target:
            logger.info("Architecture check passed.")
            return

        logger.warning(
            f"Detected architecture ({detected}) does not match target architecture ({target})."
        )

        if request.force:
            logger.warning("Continuing because --force is set. Proceed with caution.")
            return

        if not request.interactive:
            raise ArchitectureMismatchError(
                "Architecture mismatch detected in non-interactive mode. Use --force to override."
            )

        question = (
            f"Detected architecture ({detected}) does not match target "
            f"architecture ({target}).\n\nContinue anyway?"
        )
        if confirm is None or not confirm(question):
            raise ArchitectureMismatchError("Architecture mismatch. Exiting.")

    def check_dialog_tool(self, request: ProvisioningRequest) -> ProvisioningRequest:
        """Downgrade to non-interactive mode when whiptail is missing.

        Never fails: the tool must stay usable headless.
        """
        if not request.interactive:
            return request

        if self.which(DIALOG_COMMAND) is None:
            logger.warning(f"The '{DIALOG_COMMAND}' command is not found.")
            logger.warning(
                "Interactive menu will not be available. Install it (apt install whiptail) "
                "or pass options on the command line. Continuing non-interactively."
            )
            return request.replace(interactive=False)

        return request

    def run(
        self,
        request: ProvisioningRequest,
        confirm: Optional[ConfirmCallback] = None,
    ) -> ProvisioningRequest:
        """Run all checks in order: platform, dialog tool, architecture."""
        self.check_platform()
        request = self.check_dialog_tool(request)
        self.check_architecture(request, confirm=confirm)
        return request
