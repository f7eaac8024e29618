"""Container Provisioner: id allocation, conflicts, credentials, template, pct create."""
import dataclasses
import secrets
import string
from pathlib import Path
from typing import Callable, Dict, Optional

from lxcdeploy.core.lock import provision_lock
from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import ConfigValidationError, ConflictError
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.proxmox.containers import (
    ContainerDiscovery,
    ContainerLifecycle,
    TemplateManager,
)

logger = get_logger(__name__)

PASSWORD_LENGTH = 16
ALPHANUMERIC = string.ascii_letters + string.digits

ConfirmCallback = Callable[[str], bool]


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random alphanumeric string; every call draws fresh randomness."""
    return ''.join(secrets.choice(ALPHANUMERIC) for _ in range(length))


def finalize_credentials(request: ProvisioningRequest, recipe: AppRecipe) -> ProvisioningRequest:
    """Fill in a password and app secrets that were not supplied.

    Values already present are never regenerated, so calling this twice
    returns the same request.
    """
    changes = {}

    if not request.password:
        changes['password'] = generate_password()
        changes['password_generated'] = True
        logger.info(f"Generated password for {request.username}")

    missing: Dict[str, str] = {
        name: generate_password(length)
        for name, length in recipe.secrets.items()
        if not request.app.secrets.get(name)
    }
    if missing:
        merged = {**request.app.secrets, **missing}
        changes['app'] = dataclasses.replace(request.app, secrets=merged)
        logger.debug(f"Generated secrets: {', '.join(sorted(missing))}")

    return request.replace(**changes) if changes else request


class ContainerProvisioner:
    """Allocates an id, resolves conflicts and creates the container."""

    def __init__(
        self,
        discovery: Optional[ContainerDiscovery] = None,
        lifecycle: Optional[ContainerLifecycle] = None,
        templates: Optional[TemplateManager] = None,
        lock_file: Optional[Path] = None,
        mock: bool = False,
    ):
        self.discovery = discovery or ContainerDiscovery(mock=mock)
        self.lifecycle = lifecycle or ContainerLifecycle(mock=mock)
        self.templates = templates or TemplateManager(mock=mock)
        self.lock_file = lock_file

    def allocate_id(self, request: ProvisioningRequest) -> ProvisioningRequest:
        """Assign the first free id >= 100 when the request has none."""
        if request.ctid is not None:
            return request

        logger.info("Finding next available Container ID...")
        vmid = self.discovery.next_free_vmid()
        logger.info(f"Next available Container ID: {vmid}")
        return request.replace(ctid=vmid)

    def resolve_conflict(
        self,
        request: ProvisioningRequest,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        """Handle an id that is already taken.

        With --force (or interactive confirmation) the existing container is
        destroyed; a failed destroy is only a warning.

        Raises:
            ConflictError: Id in use and overwriting was not allowed
        """
        vmid = request.ctid
        if not self.discovery.container_exists(vmid):
            return

        if not request.force:
            if not request.interactive:
                raise ConflictError(
                    f"Container ID {vmid} already exists. "
                    f"Use --force to overwrite in non-interactive mode."
                )
            question = (
                f"Container ID {vmid} already exists.\n\n"
                f"Do you want to overwrite it? This will destroy the existing container!"
            )
            if confirm is None or not confirm(question):
                raise ConflictError(f"Container ID {vmid} already exists; not overwritten.")

        if not self.lifecycle.destroy_container(vmid):
            logger.warning(
                f"Failed to destroy existing container {vmid}. "
                f"Proceeding anyway, but this might cause issues."
            )

    def provision(
        self,
        request: ProvisioningRequest,
        recipe: AppRecipe,
        confirm: Optional[ConfirmCallback] = None,
    ) -> ProvisioningRequest:
        """Run the whole provisioning phase.

        Returns:
            The request with ctid, password and secrets filled in

        Raises:
            ConflictError, TemplateFetchError, ProvisionError
        """
        request = finalize_credentials(request, recipe)

        network = request.network
        if network.is_static and not network.gateway:
            logger.warning("Static IP provided but no gateway. This might cause network issues.")

        with provision_lock(lock_file=self.lock_file):
            if request.ctid is None:
                # an allocated id is never overwritten, only a requested one
                request = self.allocate_id(request)
            else:
                self.resolve_conflict(request, confirm=confirm)
            template_volid = self.templates.ensure_template(request.template)
            self.lifecycle.create_container(request, template_volid)

        logger.info(f"LXC Container {request.ctid} created successfully.")
        return request

    def reuse_existing(self, request: ProvisioningRequest, recipe: AppRecipe) -> ProvisioningRequest:
        """Prepare a rerun against a container created by an earlier run.

        Nothing is created or destroyed.

        Raises:
            ConfigValidationError: No container id given, or no such container
        """
        if request.ctid is None:
            raise ConfigValidationError("--rerun needs the id of an existing container (--ctid)")
        if not self.discovery.container_exists(request.ctid):
            raise ConfigValidationError(
                f"Container ID {request.ctid} does not exist; nothing to rerun. "
                f"Drop --rerun to create it."
            )

        logger.info(f"Reusing existing LXC Container {request.ctid}")
        return finalize_credentials(request, recipe)
