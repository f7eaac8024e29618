"""Deployment pipeline: provision (or reuse) → boot → install → report."""
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console

from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.recipes import RecipeLoader
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.proxmox.containers import (
    ContainerDiscovery,
    ContainerLifecycle,
    TemplateManager,
)
from lxcdeploy.workflow.boot import BootController
from lxcdeploy.workflow.installer import InstallReport, Installer
from lxcdeploy.workflow.provisioner import ContainerProvisioner
from lxcdeploy.workflow.reporter import DeploymentReport, Reporter

logger = get_logger(__name__)


@dataclass
class DeploymentResult:
    request: ProvisioningRequest
    install: InstallReport
    report: DeploymentReport


class DeploymentPipeline:
    """Runs the mutating phases of one deployment in order.

    Phases share one set of Proxmox service objects so tests can swap them
    out in a single place. Every phase error propagates unchanged; there is
    no rollback beyond what the provisioner does for id conflicts.
    """

    def __init__(
        self,
        discovery: Optional[ContainerDiscovery] = None,
        lifecycle: Optional[ContainerLifecycle] = None,
        templates: Optional[TemplateManager] = None,
        recipes: Optional[RecipeLoader] = None,
        console: Optional[Console] = None,
        lock_file: Optional[Path] = None,
        mock: bool = False,
    ):
        self.discovery = discovery or ContainerDiscovery(mock=mock)
        self.lifecycle = lifecycle or ContainerLifecycle(mock=mock)
        self.templates = templates or TemplateManager(mock=mock)
        self.recipes = recipes or RecipeLoader()

        self.provisioner = ContainerProvisioner(
            discovery=self.discovery,
            lifecycle=self.lifecycle,
            templates=self.templates,
            lock_file=lock_file,
        )
        self.boot = BootController(lifecycle=self.lifecycle)
        self.installer = Installer(lifecycle=self.lifecycle, recipes=self.recipes)
        self.reporter = Reporter(discovery=self.discovery, recipes=self.recipes, console=console)

    def run(
        self,
        request: ProvisioningRequest,
        recipe: AppRecipe,
        confirm: Optional[Callable[[str], bool]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> DeploymentResult:
        """Deploy ``recipe`` according to ``request``.

        Raises:
            DeployError: Any phase failure
        """
        logger.info(f"Deploying {recipe.title} into an LXC container")

        if request.rerun:
            request = self.provisioner.reuse_existing(request, recipe)
        else:
            request = self.provisioner.provision(request, recipe, confirm=confirm)
        self.boot.start(request.ctid, cancel=cancel)
        install = self.installer.install(request, recipe)

        if request.rerun and request.password_generated and not self._password_applied(recipe, install):
            # the user's password was set by an earlier run and is unchanged
            request = request.replace(password_generated=False)
        report = self.reporter.report(request, recipe)

        logger.info(f"✓ Deployment of {recipe.title} finished (CT {request.ctid})")
        return DeploymentResult(request=request, install=install, report=report)

    @staticmethod
    def _password_applied(recipe: AppRecipe, install: InstallReport) -> bool:
        """True if a step that sets the user password ran in this invocation."""
        password_steps = {step.name for step in recipe.steps if step.uses_password()}
        return bool(password_steps & set(install.executed))
