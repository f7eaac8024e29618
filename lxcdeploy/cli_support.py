"""Shared utilities for lxcdeploy CLI modules."""
from __future__ import annotations

import os

import click
import typer
from rich.console import Console
from rich.markup import escape
from typer.core import TyperCommand

from lxcdeploy.errors import DeployError


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("LXCDEPLOY_MOCK") == "1"


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
) -> None:
    """Print a fatal error and exit with its exit code.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
    """
    print_error(console, str(e))
    if verbose:
        console.print_exception()
    raise typer.Exit(e.exit_code if isinstance(e, DeployError) else 1)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting.

    Args:
        console: Rich console for output
        message: Success message
        prefix: Prefix symbol (default: ✓)
    """
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting.

    Args:
        console: Rich console for output
        message: Error message
        prefix: Prefix symbol (default: ✗)
    """
    console.print(f"[red]{prefix}[/red] {escape(message)}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def deploy_command_class(console: Console) -> type:
    """Command class whose argument parsing errors print like deploy errors and exit 1.

    click exits 2 on a parse failure (missing option value, bad flag type);
    every failure of this tool exits 1.
    """

    class DeployCommand(TyperCommand):
        def parse_args(self, ctx: click.Context, args):
            try:
                return super().parse_args(ctx, args)
            except click.UsageError as e:
                print_error(console, f"{e.format_message()} Use --help for usage.")
                raise typer.Exit(1) from e

    return DeployCommand
