#!/usr/bin/env python3
"""
Main CLI Application for pack-deployer

This module contains the main Typer app and entry point for the pack-deployer CLI.
"""

import sys
from typing import Annotated

import typer
from rich.traceback import install

from packdeployer import __version__

from .commands import apply, destroy, plan
from .constants import ExitCode
from .utils import console, err_console

# Install rich traceback handler for better error displays
install(show_locals=False)

app = typer.Typer(
    name="pack-deployer",
    help="📦 pack-deployer - Plan and dispatch pack deployments across providers",
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
)

app.command("plan")(plan)
app.command("apply")(apply)
app.command("destroy")(destroy)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[bool, typer.Option("--version", help="Show version and exit")] = False,
) -> None:
    """
    📦 pack-deployer

    Builds a provider-agnostic deployment plan from an application pack and
    dispatches it to the deployment pack registered for a provider.
    """
    if version:
        console.print(f"📦 [bold cyan]pack-deployer[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        ctx.exit()


def cli_main() -> None:
    """Entry point for the CLI application."""
    try:
        app()
    except KeyboardInterrupt:
        err_console.print("\n🛑 [yellow]Operation cancelled by user[/yellow]")
        sys.exit(ExitCode.FAILURE)
    except Exception as e:
        err_console.print(f"💥 [bold red]Unexpected error: {e}[/bold red]")
        err_console.print_exception()
        sys.exit(ExitCode.FAILURE)


if __name__ == "__main__":
    cli_main()
