#!/usr/bin/env python3
"""
Utility functions for the pack-deployer CLI
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

import typer
import yaml
from jinja2 import Environment, FileSystemLoader
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from packdeployer.config.loader import DeployerConfig, OutputFormat
from packdeployer.core.errors import DeployerError, ErrorHandler, handle_error, set_error_handler
from packdeployer.orchestration.deploy_orchestrator import PipelineOutcome
from packdeployer.plan.model import DeploymentPlan

from .constants import exit_code_for

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Results go to stdout, everything else to stderr
console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Setup Rich logging configuration and unified error handler."""
    log_level = logging.DEBUG if verbose else logging.INFO

    rich_handler = RichHandler(
        console=err_console,
        show_time=True,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[rich_handler],
    )

    error_handler = ErrorHandler(console=err_console, verbose=verbose)
    set_error_handler(error_handler)


def display_invocation_panel(config: DeployerConfig) -> None:
    """Show what is about to run."""
    pack = config.pack_ref.pack_id if config.pack_ref else str(config.pack_path)
    flags = [name for name in ("dry_run", "preview", "yes") if getattr(config, name)]
    err_console.print(
        Panel(
            f"📦 [bold cyan]{config.action.value.capitalize()}[/bold cyan] {pack}\n"
            f"Provider: [yellow]{config.provider}[/yellow] ({config.strategy})\n"
            f"Tenant: [yellow]{config.tenant}[/yellow]  Environment: [yellow]{config.environment}[/yellow]\n"
            f"Output: [yellow]{config.output_dir}[/yellow]"
            + (f"\nFlags: [dim]{', '.join(flags)}[/dim]" if flags else ""),
            title="Deployer Invocation",
            border_style="blue",
        )
    )


def display_component_table(plan: DeploymentPlan) -> None:
    """Display component classifications, one row per component."""
    table = Table(title="Components", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan")
    table.add_column("Role")
    table.add_column("Profile", style="bold")
    table.add_column("Source", style="dim")
    table.add_column("External", justify="center")

    for component in plan.components:
        table.add_row(
            component.component_id,
            component.role.value,
            component.profile.value,
            component.inference_source.value,
            "✓" if component.is_external else "",
        )
    console.print(table)


def render_text_summary(outcome: PipelineOutcome, config: DeployerConfig) -> str:
    env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), trim_blocks=True, lstrip_blocks=True)
    template = env.get_template("plan_summary.txt.j2")
    return template.render(
        plan=outcome.plan,
        provider=config.provider,
        strategy=config.strategy,
        target=outcome.target,
        output_dir=outcome.output_dir,
        status=outcome.status,
        warnings=outcome.plan.warnings,
    )


def render_outcome(outcome: PipelineOutcome, config: DeployerConfig) -> None:
    """Print the outcome in the requested output format."""
    if config.output == OutputFormat.JSON:
        typer.echo(json.dumps(outcome.to_dict(), indent=2, sort_keys=True))
    elif config.output == OutputFormat.YAML:
        typer.echo(yaml.safe_dump(outcome.to_dict(), sort_keys=True), nl=False)
    else:
        display_component_table(outcome.plan)
        typer.echo(render_text_summary(outcome, config), nl=False)


def report_error(error: DeployerError, verbose: bool = False) -> int:
    """
    Report a fatal error on stderr and return its exit code.

    One plain ``Kind: message (context)`` line is always written, followed by
    the rich panel from the installed error handler.
    """
    typer.echo(error.describe(), err=True)
    handle_error(error, show_traceback=verbose)
    return exit_code_for(error)


def cli_values(**options: Any) -> Dict[str, Any]:
    """Drop unset options so lower configuration layers show through."""
    return {key: value for key, value in options.items() if value is not None}
