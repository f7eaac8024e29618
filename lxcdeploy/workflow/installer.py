"""In-Container Installer: run a recipe's named steps inside the container.

Steps run in order through `pct exec`. Each may carry a skip_if probe;
after every successful step its name is written to a marker file inside
the container so a rerun with resume enabled picks up after it.
"""
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.recipes import RecipeLoader, RenderedStep
from lxcdeploy.errors import InstallStepError
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.proxmox.containers import ContainerLifecycle

logger = get_logger(__name__)

MARKER_DIR = "/var/lib/lxcdeploy"
SCRIPT_PREAMBLE = "set -eo pipefail\n"


def marker_path(app: str) -> str:
    return f"{MARKER_DIR}/{app}.step"


@dataclass
class InstallReport:
    """Which steps ran and which were skipped, in execution order."""
    executed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class Installer:
    """Executes install steps for one recipe inside a running container."""

    def __init__(
        self,
        lifecycle: Optional[ContainerLifecycle] = None,
        recipes: Optional[RecipeLoader] = None,
        mock: bool = False,
    ):
        self.lifecycle = lifecycle or ContainerLifecycle(mock=mock)
        self.recipes = recipes or RecipeLoader()

    def read_marker(self, vmid: int, app: str) -> Optional[str]:
        """Name of the last completed step, or None."""
        result = self.lifecycle.run_script(
            vmid,
            f"cat {marker_path(app)} 2>/dev/null || true",
            timeout=get_settings().command_check_timeout,
        )
        name = (result.stdout or '').strip()
        return name or None

    def write_marker(self, vmid: int, app: str, step: str) -> None:
        """Record ``step`` as completed. Failure to record is only a warning."""
        result = self.lifecycle.run_script(
            vmid,
            f"mkdir -p {MARKER_DIR} && echo {step} > {marker_path(app)}",
            timeout=get_settings().command_check_timeout,
        )
        if result.returncode != 0:
            logger.warning(f"Could not record install progress after step '{step}'")

    def _completed_steps(self, steps: List[RenderedStep], marker: Optional[str]) -> set:
        names = [s.name for s in steps]
        if marker not in names:
            if marker:
                logger.warning(f"Ignoring unknown install marker '{marker}'")
            return set()
        return set(names[:names.index(marker) + 1])

    def run_step(self, vmid: int, step: RenderedStep) -> None:
        """Run one step.

        Raises:
            InstallStepError: Non-zero exit or timeout
        """
        shown = "<redacted>" if step.secret else step.command
        logger.info(step.description)
        logger.debug(f"Executing inside CT {vmid}: {shown}")

        try:
            result = self.lifecycle.run_script(
                vmid,
                SCRIPT_PREAMBLE + step.command,
                timeout=get_settings().install_step_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise InstallStepError(step.name, shown) from e

        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            if stderr:
                logger.error(f"stderr: {stderr[-2000:]}")
            raise InstallStepError(step.name, shown, result.returncode, stderr)

        if result.stdout:
            logger.debug(result.stdout)

    def install(
        self,
        request: ProvisioningRequest,
        recipe: AppRecipe,
    ) -> InstallReport:
        """Run every step of ``recipe`` in order inside ``request.ctid``.

        Raises:
            InstallStepError: A step failed; later steps are not attempted
        """
        vmid = request.ctid
        steps = self.recipes.render_steps(recipe, request)
        report = InstallReport()

        logger.info(f"Installing {recipe.title} inside LXC Container {vmid}")

        done = set()
        if request.resume:
            done = self._completed_steps(steps, self.read_marker(vmid, recipe.name))
            if done:
                logger.info(f"Resuming: {len(done)} step(s) already completed")

        for step in steps:
            if step.name in done:
                logger.info(f"Skipping '{step.name}' (completed in a previous run)")
                report.skipped.append(step.name)
                continue

            if step.skip_if and self.lifecycle.probe(vmid, step.skip_if):
                logger.info(f"Skipping '{step.name}' (already applied)")
                report.skipped.append(step.name)
                self.write_marker(vmid, recipe.name, step.name)
                continue

            self.run_step(vmid, step)
            report.executed.append(step.name)
            self.write_marker(vmid, recipe.name, step.name)

        logger.info(f"✓ {recipe.title} installation complete!")
        return report
