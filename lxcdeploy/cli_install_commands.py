"""install / apps CLI commands."""
from __future__ import annotations

from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from lxcdeploy.cli_menu import main_menu
from lxcdeploy.cli_support import (
    deploy_command_class,
    handle_cli_error,
    is_mock,
    print_success,
    print_warning,
)
from lxcdeploy.config.loader import find_config_file, load_config_file
from lxcdeploy.config.resolver import OptionResolver
from lxcdeploy.core.logger import get_logger, set_verbose, setup_file_logging
from lxcdeploy.core.recipes import RecipeLoader
from lxcdeploy.errors import DeployError, UsageError
from lxcdeploy.services.dialog import WhiptailDialog
from lxcdeploy.workflow.pipeline import DeploymentPipeline
from lxcdeploy.workflow.preflight import PreflightValidator

logger = get_logger(__name__)

INSTALL_CONTEXT = {
    "ignore_unknown_options": True,
    "allow_extra_args": True,
    "help_option_names": ["-h", "--help"],
}


def collect_flags(**options: Any) -> Dict[str, Any]:
    """Command-line option layer; flags that were not given are left out."""
    flags = {key: value for key, value in options.items() if value is not None}
    for switch in ('debug', 'force'):
        if flags.get(switch) is False:
            flags.pop(switch)
    return flags


def register_install_commands(root: typer.Typer, console: Console) -> None:
    """Attach install and apps commands to the main CLI."""

    @root.command("install", cls=deploy_command_class(console), context_settings=INSTALL_CONTEXT)
    def install_command(
        ctx: typer.Context,
        ctid: Optional[str] = typer.Option(None, "--ctid", "-i", help="Container ID (default: next free >= 100)."),
        hostname: Optional[str] = typer.Option(None, "--hostname", "-H", help="Container hostname."),
        storage: Optional[str] = typer.Option(None, "--storage", "-s", help="Storage for the root filesystem."),
        template_storage: Optional[str] = typer.Option(None, "--template-storage", help="Storage holding OS templates."),
        disk_size: Optional[str] = typer.Option(None, "--disk-size", "-d", help="Root disk size, e.g. 32G."),
        memory: Optional[str] = typer.Option(None, "--memory", "-m", help="Memory in MB."),
        swap: Optional[str] = typer.Option(None, "--swap", help="Swap in MB."),
        cores: Optional[str] = typer.Option(None, "--cores", "-c", help="CPU cores."),
        unprivileged: Optional[bool] = typer.Option(
            None, "--unprivileged/--privileged", "-u", help="Create an unprivileged (default) or privileged container."
        ),
        password: Optional[str] = typer.Option(None, "--password", "-p", help="Password for the container user (generated if omitted)."),
        ip: Optional[str] = typer.Option(None, "--ip", "-I", help="Static IPv4 in CIDR notation, or 'dhcp'."),
        gateway: Optional[str] = typer.Option(None, "--gateway", "-g", help="Gateway for a static IP."),
        vlan: Optional[str] = typer.Option(None, "--vlan", "-v", help="VLAN tag."),
        bridge: Optional[str] = typer.Option(None, "--bridge", "-b", help="Network bridge."),
        mtu: Optional[str] = typer.Option(None, "--mtu", help="Interface MTU."),
        app_name: Optional[str] = typer.Option(None, "--app", "-a", help="Application recipe (see 'lxcdeploy apps')."),
        config: Optional[str] = typer.Option(None, "--config", help="YAML option file."),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file."),
        debug: bool = typer.Option(False, "--debug", "-D", help="Verbose logging."),
        force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing container and skip confirmations."),
        non_interactive: bool = typer.Option(False, "--non-interactive", "-N", help="Never open the whiptail menu."),
        no_resume: bool = typer.Option(False, "--no-resume", help="Ignore install progress recorded in the container."),
        rerun: bool = typer.Option(
            False, "--rerun", "-r", help="Install into the existing container --ctid instead of creating one."
        ),
    ) -> None:
        """Create an LXC container and install an application in it."""
        if debug:
            set_verbose(True)
        if log_file:
            setup_file_logging(log_file=log_file, verbose=debug)

        try:
            if ctx.args:
                raise UsageError(
                    f"Unknown option(s): {' '.join(ctx.args)}. Use --help for usage."
                )

            flags = collect_flags(
                ctid=ctid,
                hostname=hostname,
                storage=storage,
                template_storage=template_storage,
                disk_size=disk_size,
                memory=memory,
                swap=swap,
                cores=cores,
                unprivileged=unprivileged,
                password=password,
                ip=ip,
                gateway=gateway,
                vlan=vlan,
                bridge=bridge,
                mtu=mtu,
                app=app_name,
                debug=debug,
                force=force,
                interactive=False if non_interactive else None,
                resume=False if no_resume else None,
                rerun=rerun or None,
            )

            config_path = find_config_file(config)
            file_layer = load_config_file(config_path) if config_path else {}
            if config_path:
                logger.info(f"Using option file {config_path}")

            mock = is_mock()
            resolver = OptionResolver()
            request, recipe = resolver.resolve(flags, None, file_layer)

            dialog = WhiptailDialog(title=f"{recipe.title} LXC Installer")
            request = PreflightValidator(mock=mock).run(request, confirm=dialog.yesno)

            pipeline = DeploymentPipeline(console=console, mock=mock)

            if request.interactive:
                result = main_menu(
                    dialog,
                    resolver,
                    pipeline.discovery,
                    lambda req, rec, confirm: pipeline.run(req, rec, confirm=confirm),
                    flags=flags,
                    config_file=file_layer,
                )
                if result is None:
                    console.print("[dim]Exited without installing.[/dim]")
                    return
            else:
                result = pipeline.run(request, recipe)

            print_success(
                console,
                f"{recipe.title} deployed to container {result.request.ctid} ({result.report.url})",
            )

        except DeployError as e:
            handle_cli_error(e, console, verbose=debug)
        except KeyboardInterrupt:
            print_warning(console, "Interrupted")
            raise typer.Exit(130)

    @root.command("apps")
    def apps_command() -> None:
        """List the applications that can be installed."""
        recipes = RecipeLoader().list_recipes()
        if not recipes:
            print_warning(console, "No application recipes found")
            raise typer.Exit(1)

        table = Table(title="Applications", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Title")
        table.add_column("Port", justify="right")
        table.add_column("Steps", justify="right")
        table.add_column("Description", style="dim")

        for recipe in recipes:
            table.add_row(
                recipe.name,
                recipe.title,
                str(recipe.port),
                str(len(recipe.steps)),
                recipe.description,
            )

        console.print(table)
