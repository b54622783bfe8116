#!/usr/bin/env python3
"""
plan / apply / destroy commands for the pack-deployer CLI
"""

from pathlib import Path
from typing import Any, Dict, Optional

import typer

from packdeployer.config.loader import Action, ConfigLoader
from packdeployer.core.errors import DeployerError, ValidationError, create_error_context
from packdeployer.execution.registry import default_registry
from packdeployer.orchestration.deploy_orchestrator import DeployOrchestrator

from ..constants import VALID_OUTPUT_FORMATS, ExitCode
from ..utils import (
    cli_values,
    display_invocation_panel,
    err_console,
    render_outcome,
    report_error,
    setup_logging,
)
from .options import (
    ConfigOption,
    DistributorTokenOption,
    DistributorUrlOption,
    DryRunOption,
    EnvironmentOption,
    OutputOption,
    PackDigestOption,
    PackIdOption,
    PackOption,
    PackVersionOption,
    PacksDirOption,
    PreviewOption,
    ProviderOption,
    ProviderPackOption,
    ProvidersDirOption,
    StrategyOption,
    TenantOption,
    VerboseOption,
    YesOption,
)


def validate_output_format(output: Optional[str]) -> None:
    if output is not None and output.lower() not in VALID_OUTPUT_FORMATS:
        raise ValidationError(
            f"invalid --output '{output}'",
            context=create_error_context(operation="parse_args", identifier="output"),
            suggestions=[f"Use one of: {', '.join(VALID_OUTPUT_FORMATS)}"],
        )


def run_action(action: Action, values: Dict[str, Any], config_file: Optional[str], verbose: bool) -> None:
    """Load configuration, run the pipeline and render its outcome."""
    setup_logging(verbose)

    try:
        validate_output_format(values.get("output"))
        config = ConfigLoader.load_config(
            action, cli_values(**values), config_file=Path(config_file) if config_file else None
        )
        display_invocation_panel(config)

        orchestrator = DeployOrchestrator(
            config,
            registry=default_registry(),
            confirm=typer.confirm,
            console=err_console,
        )
        outcome = orchestrator.execute()
    except DeployerError as e:
        raise typer.Exit(report_error(e, verbose))

    render_outcome(outcome, config)
    raise typer.Exit(ExitCode.SUCCESS)


def _make_command(action: Action, help_text: str):
    def command(
        provider: ProviderOption = None,
        tenant: TenantOption = None,
        strategy: StrategyOption = None,
        environment: EnvironmentOption = None,
        pack: PackOption = None,
        pack_id: PackIdOption = None,
        pack_version: PackVersionOption = None,
        pack_digest: PackDigestOption = None,
        distributor_url: DistributorUrlOption = None,
        distributor_token: DistributorTokenOption = None,
        providers_dir: ProvidersDirOption = None,
        packs_dir: PacksDirOption = None,
        provider_pack: ProviderPackOption = None,
        dry_run: DryRunOption = False,
        yes: YesOption = False,
        preview: PreviewOption = False,
        output: OutputOption = None,
        config: ConfigOption = None,
        verbose: VerboseOption = False,
    ) -> None:
        values = dict(
            provider=provider,
            tenant=tenant,
            strategy=strategy,
            environment=environment,
            pack_path=pack,
            pack_id=pack_id,
            pack_version=pack_version,
            pack_digest=pack_digest,
            distributor_url=distributor_url,
            distributor_token=distributor_token,
            providers_dir=providers_dir,
            packs_dir=packs_dir,
            provider_pack=provider_pack,
            dry_run=dry_run or None,
            yes=yes or None,
            preview=preview or None,
            output=output,
        )
        run_action(action, values, config, verbose)

    command.__name__ = action.value
    command.__doc__ = help_text
    return command


plan = _make_command(
    Action.PLAN,
    """
    📝 Build the deployment plan and resolve the deployment pack.

    Writes plan.json under deploy/<provider>/<tenant>/<environment>/; never
    resolves secrets or invokes an executor.
    """,
)

apply = _make_command(
    Action.APPLY,
    """
    🚀 Plan, resolve secrets and invoke the deployment executor.
    """,
)

destroy = _make_command(
    Action.DESTROY,
    """
    🧹 Plan, resolve secrets and invoke the executor to tear down.
    """,
)
