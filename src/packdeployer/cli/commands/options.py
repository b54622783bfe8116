#!/usr/bin/env python3
"""
Option declarations shared by the plan, apply and destroy commands
"""

from typing import Annotated, Optional

import typer

ProviderOption = Annotated[
    Optional[str], typer.Option("--provider", "-p", help="Target provider (aws, azure, gcp, k8s, local, ...)")
]
StrategyOption = Annotated[
    Optional[str], typer.Option("--strategy", "-s", help="Deployment strategy [default: iac-only]")
]
TenantOption = Annotated[Optional[str], typer.Option("--tenant", "-t", help="Tenant identifier")]
EnvironmentOption = Annotated[
    Optional[str],
    typer.Option("--environment", "-e", help="Environment name [default: $PACK_DEPLOYER_ENV or dev]"),
]
PackOption = Annotated[Optional[str], typer.Option("--pack", help="Path to the application pack (directory or .gtpack)")]
PackIdOption = Annotated[Optional[str], typer.Option("--pack-id", help="Application pack id to fetch")]
PackVersionOption = Annotated[Optional[str], typer.Option("--pack-version", help="Pack version (with --pack-id)")]
PackDigestOption = Annotated[
    Optional[str], typer.Option("--pack-digest", help="Pack digest sha256:<hex> (with --pack-id)")
]
DistributorUrlOption = Annotated[
    Optional[str], typer.Option("--distributor-url", help="Distributor base URL for pack fetches")
]
DistributorTokenOption = Annotated[
    Optional[str], typer.Option("--distributor-token", help="Bearer token for the distributor")
]
ProvidersDirOption = Annotated[
    Optional[str], typer.Option("--providers-dir", help="Directory holding provider deployment packs")
]
PacksDirOption = Annotated[Optional[str], typer.Option("--packs-dir", help="Generic packs directory")]
ProviderPackOption = Annotated[
    Optional[str], typer.Option("--provider-pack", help="Deployment pack to use directly, skipping discovery")
]
DryRunOption = Annotated[
    bool, typer.Option("--dry-run", help="Resolve and describe the invocation without executing it")
]
YesOption = Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")]
PreviewOption = Annotated[bool, typer.Option("--preview", help="Stop after plan and dispatch resolution")]
OutputOption = Annotated[Optional[str], typer.Option("--output", "-o", help="Output format: text, json or yaml")]
ConfigOption = Annotated[
    Optional[str], typer.Option("--config", "-c", help="Config file (YAML/JSON) [env: PACK_DEPLOYER_CONFIG]")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging")]
