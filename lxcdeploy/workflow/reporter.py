"""Reporter: resolve the container address and print the deployment summary."""
import time
from dataclasses import dataclass, field
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import console as default_console
from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.recipes import RecipeLoader
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.proxmox.containers import ContainerDiscovery

logger = get_logger(__name__)

PLACEHOLDER_ADDRESS = "<LXC_IP_ADDRESS>"


def access_url(address: str, recipe: AppRecipe) -> str:
    """e.g. http://10.0.0.5:2283"""
    path = "" if recipe.url_path == "/" else recipe.url_path
    return f"http://{address}:{recipe.port}{path}"


@dataclass
class DeploymentReport:
    """What the operator needs to reach the deployed application."""
    ctid: int
    hostname: str
    username: str
    address: str
    url: str
    password: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def address_known(self) -> bool:
        return self.address != PLACEHOLDER_ADDRESS


class Reporter:
    """Builds and prints the final summary. Never raises for a missing address."""

    def __init__(
        self,
        discovery: Optional[ContainerDiscovery] = None,
        recipes: Optional[RecipeLoader] = None,
        console: Optional[Console] = None,
        mock: bool = False,
    ):
        self.discovery = discovery or ContainerDiscovery(mock=mock)
        self.recipes = recipes or RecipeLoader()
        self.console = console or default_console

    def resolve_address(self, request: ProvisioningRequest) -> str:
        """Static address, or the DHCP lease polled from inside the container."""
        if request.network.is_static:
            return request.network.address

        settings = get_settings()
        attempts = settings.ip_poll_attempts
        logger.info("Waiting for DHCP to assign IP address...")

        for attempt in range(1, attempts + 1):
            address = self.discovery.get_ipv4_address(request.ctid)
            if address:
                logger.info(f"Container {request.ctid} has address {address}")
                return address
            logger.debug(f"No address yet (attempt {attempt}/{attempts})")
            if attempt < attempts:
                time.sleep(settings.ip_poll_interval)

        logger.warning(
            "Could not automatically determine container IP address. "
            f"Please check Proxmox UI or 'pct exec {request.ctid} -- ip a'."
        )
        return PLACEHOLDER_ADDRESS

    def build_report(self, request: ProvisioningRequest, recipe: AppRecipe) -> DeploymentReport:
        address = self.resolve_address(request)
        return DeploymentReport(
            ctid=request.ctid,
            hostname=request.hostname,
            username=request.username,
            address=address,
            url=access_url(address, recipe),
            password=request.password if request.password_generated else None,
            notes=self.recipes.render_notes(recipe, request),
        )

    def render(self, report: DeploymentReport, recipe: AppRecipe) -> None:
        """Print the summary panel."""
        lines = [
            f"[bold]Container ID:[/bold] {report.ctid}",
            f"[bold]Hostname:[/bold] {report.hostname}",
            f"[bold]Username:[/bold] {report.username}",
        ]
        if report.password:
            lines.append(f"[bold]Password:[/bold] {report.password}  [dim](generated, store it safely)[/dim]")
        lines.append(f"[bold]Access URL:[/bold] {report.url}")
        lines.append(
            f"[bold]SSH:[/bold] ssh {report.username}@{report.address} "
            f"[dim](or 'pct enter {report.ctid}' from the host)[/dim]"
        )

        if report.notes:
            lines.append("")
            lines.append("[bold]Next steps:[/bold]")
            lines.extend(f"  • {escape(note)}" for note in report.notes)

        self.console.print(Panel(
            "\n".join(lines),
            title=f"🚀 {recipe.title} is ready",
            border_style="green" if report.address_known else "yellow",
        ))

    def report(self, request: ProvisioningRequest, recipe: AppRecipe) -> DeploymentReport:
        report = self.build_report(request, recipe)
        self.render(report, recipe)
        return report
