#!/usr/bin/env python3
"""lxcdeploy CLI - one-shot application containers for Proxmox VE."""

import typer
from rich.console import Console

from lxcdeploy.cli_install_commands import register_install_commands

app = typer.Typer(
    name="lxcdeploy",
    help="""lxcdeploy - deploy self-hosted apps into Proxmox LXC containers

Quick start:
  lxcdeploy apps                                # Browse installable apps
  lxcdeploy install                             # Interactive menu
  lxcdeploy install -a immich -N --ip dhcp      # Headless install
""",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

register_install_commands(app, console)

if __name__ == "__main__":
    app()
