"""Error taxonomy for lxcdeploy.

Every failure that aborts a deployment derives from DeployError. The CLI
prints the message with a red marker and exits with ``exit_code``.
"""
from typing import Optional


class DeployError(Exception):
    """Base class for fatal deployment errors."""

    exit_code = 1


class UsageError(DeployError):
    """Raised when the command line contains an unrecognized token."""


class ConfigValidationError(DeployError):
    """Raised when options cannot form a valid provisioning request.

    Also raised when an interactive session is cancelled mid-flow; the
    caller offers re-entry instead of continuing with partial values.
    """


class EnvironmentCheckError(DeployError):
    """Raised when the host lacks the Proxmox command surface."""


class ArchitectureMismatchError(DeployError):
    """Raised when host and template architectures differ without override."""


class ConflictError(DeployError):
    """Raised when the requested container id is already in use."""


class TemplateFetchError(DeployError):
    """Raised when the OS template cannot be found or downloaded."""


class ProvisionError(DeployError):
    """Raised when pct create fails."""


class StartError(DeployError):
    """Raised when the container cannot be started."""


class ReadinessTimeoutError(StartError):
    """Raised when a started container never answers the readiness probe."""


class OperationCancelled(DeployError):
    """Raised when a cancellable wait is interrupted."""


class InstallStepError(DeployError):
    """Raised when an in-container install step exits non-zero."""

    def __init__(self, step: str, command: str, returncode: Optional[int] = None,
                 stderr: str = ""):
        self.step = step
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f"exit code {returncode}" if returncode is not None else "timed out"
        super().__init__(f"Install step '{step}' failed ({detail}): {command}")
