#!/usr/bin/env python3
"""
Deploy Orchestrator - Coordinates one plan/apply/destroy invocation.

Stages, strictly in order:
1. Load the application pack (fetching it when --pack-id is used)
2. Build the deployment plan and write plan.json
3. Resolve the dispatch target
4. apply/destroy only: confirm, resolve secrets, invoke the executor
5. Persist the invocation record, whatever the outcome
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from rich.console import Console as RichConsole

from packdeployer.config.loader import Action, DeployerConfig
from packdeployer.core.errors import (
    ConfigurationError,
    DeployerError,
    PersistenceError,
)
from packdeployer.diagnostics.writer import DiagnosticsRecord, DiagnosticsWriter, Outcome
from packdeployer.dispatch.resolver import DispatchResolver, DispatchTarget
from packdeployer.execution.executor import ExecutionResult, InvocationRequest
from packdeployer.execution.registry import ExecutorRegistry, dispatch
from packdeployer.packs.manifest import PackManifest, read_manifest
from packdeployer.packs.sources import DistributorPackSource, FilesystemPackSource, PackSource
from packdeployer.plan.builder import PlanBuilder, validate_identifier
from packdeployer.plan.model import DeploymentPlan
from packdeployer.secrets.backends import SecretBackend, discover_backend
from packdeployer.secrets.resolver import SecretsResolver

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    """What one invocation produced."""

    output_dir: Path
    plan: Optional[DeploymentPlan] = None
    plan_path: Optional[Path] = None
    target: Optional[DispatchTarget] = None
    invocation: Dict[str, Any] = field(default_factory=dict)
    result: Optional[ExecutionResult] = None
    status: str = Outcome.PLANNED
    error: Optional[BaseException] = None
    resolved_secrets: List[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status != Outcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "output_dir": str(self.output_dir),
            "plan": self.plan.to_dict() if self.plan else None,
            "dispatch": self.target.to_dict() if self.target else None,
            "invocation": self.invocation,
            "result": self.result.to_dict() if self.result else None,
            "resolved_secrets": list(self.resolved_secrets),
        }


class DeployOrchestrator:
    """
    Orchestrates a deployer invocation.

    Responsibilities:
    - Load the application pack and build the plan
    - Resolve the deployment pack for (provider, strategy)
    - Gate side effects behind preview, dry-run and confirmation
    - Resolve secrets fail-fast and hand the request to the executor
    - Leave plan.json and an invocation record behind
    """

    def __init__(
        self,
        config: DeployerConfig,
        registry: Optional[ExecutorRegistry] = None,
        secret_backend: Optional[SecretBackend] = None,
        pack_source: Optional[PackSource] = None,
        environ: Optional[Mapping[str, str]] = None,
        resolver: Optional[DispatchResolver] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        console: Optional[RichConsole] = None,
    ):
        """
        Initialize deploy orchestrator.

        Args:
            config: Invocation configuration
            registry: Executor registry; a fresh empty one when None
            secret_backend: Secret backend; discovered from the environment when None
            pack_source: Source for --pack-id fetches; derived from config when None
            environ: Environment for overrides and discovery
            resolver: Dispatch resolver; built from config when None
            confirm: Prompt returning True to proceed, used without --yes
            console: Rich console for stage output
        """
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.registry = registry if registry is not None else ExecutorRegistry()
        self._secret_backend = secret_backend
        self.pack_source = pack_source
        self.resolver = resolver or DispatchResolver(config, environ=self.environ)
        self.confirm = confirm
        self.rich_console = console or RichConsole(stderr=True)
        self.builder = PlanBuilder(base_domain=config.base_domain, telemetry_endpoint=config.telemetry_endpoint)
        self.writer = DiagnosticsWriter(config.deploy_root)

    @property
    def secret_backend(self) -> SecretBackend:
        if self._secret_backend is None:
            self._secret_backend = discover_backend(self.environ)
        return self._secret_backend

    def execute(self) -> PipelineOutcome:
        """
        Run the pipeline.

        Returns:
            PipelineOutcome describing what happened

        Raises:
            DeployerError: The first fatal error of any stage
        """
        cfg = self.config
        # tenant and environment become path segments of the output directory
        validate_identifier(cfg.tenant, "tenant")
        validate_identifier(cfg.environment, "environment")
        output_dir = self.writer.output_dir(cfg.provider, cfg.tenant, cfg.environment)
        logger.info(
            "%s provider=%s strategy=%s tenant=%s environment=%s",
            cfg.action.value,
            cfg.provider,
            cfg.strategy,
            cfg.tenant,
            cfg.environment,
        )

        outcome = PipelineOutcome(output_dir=output_dir)
        try:
            manifest = self.load_manifest()
            plan = outcome.plan = self.builder.build(manifest, cfg.tenant, cfg.environment)
            outcome.plan_path = self.writer.write_plan(output_dir, plan)
            self.rich_console.print(f"[green]✓ Plan written to {outcome.plan_path}[/green]")

            outcome.target = self.resolver.resolve(cfg.provider, cfg.strategy)
            self.rich_console.print(
                f"[cyan]🧭 {cfg.provider}/{cfg.strategy} -> {outcome.target.pack_id} "
                f"flow {outcome.target.flow_id}[/cyan] [dim]({outcome.target.origin})[/dim]"
            )
            request = InvocationRequest(config=cfg, plan=plan, target=outcome.target, output_dir=output_dir)
            outcome.invocation = request.describe()

            if cfg.action == Action.PLAN or cfg.preview:
                outcome.status = Outcome.PREVIEW if cfg.preview else Outcome.PLANNED
                return outcome

            if cfg.dry_run:
                outcome.status = Outcome.DRY_RUN
                self.rich_console.print(f"[yellow]Dry run: would invoke[/yellow] {request.command_text()}")
                return outcome

            if not self._confirmed():
                outcome.status = Outcome.CANCELLED
                self.rich_console.print(f"[yellow]{cfg.action.value} cancelled[/yellow]")
                return outcome

            resolved = SecretsResolver(self.secret_backend, cfg.tenant, cfg.environment).resolve_plan(plan)
            outcome.plan = request.plan = resolved.plan
            outcome.resolved_secrets = sorted(resolved.values)

            outcome.result = dispatch(self.registry, request)
            outcome.invocation = request.describe(executor=outcome.result.executor)
            outcome.status = Outcome.SUCCESS
            self.rich_console.print(f"[green]✓ {outcome.result.message or cfg.action.value + ' complete'}[/green]")
            return outcome
        except BaseException as e:
            outcome.status = Outcome.FAILED
            outcome.error = e
            raise
        finally:
            self._persist(outcome)

    def load_manifest(self) -> PackManifest:
        """
        Read the application pack manifest, fetching the pack for --pack-id.

        Raises:
            ConfigurationError: If no pack is configured or it is malformed
            PackFetchError: If a remote fetch fails
        """
        cfg = self.config
        if cfg.pack_ref is not None:
            ref = cfg.pack_ref
            source = self.pack_source or self._default_pack_source()
            logger.info("resolving pack %s@%s from %s", ref.pack_id, ref.version, source.describe())
            path = source.materialize(ref.pack_id, ref.version, ref.digest, cache_dir=cfg.cache_dir)
            return read_manifest(path)
        if cfg.pack_path is None:
            raise ConfigurationError(
                "no application pack given",
                context=cfg.error_context(operation="load_pack"),
                suggestions=["Pass --pack <path> or --pack-id/--pack-version/--pack-digest"],
            )
        return read_manifest(cfg.pack_path)

    def _default_pack_source(self) -> PackSource:
        if self.config.distributor_url:
            return DistributorPackSource(self.config.distributor_url, self.config.distributor_token)
        return FilesystemPackSource(self.config.packs_dir, label="packs-dir")

    def _confirmed(self) -> bool:
        if self.config.yes:
            return True
        if self.confirm is None:
            raise ConfigurationError(
                f"{self.config.action.value} needs confirmation",
                context=self.config.error_context(operation="confirm"),
                suggestions=["Pass --yes to run non-interactively"],
            )
        prompt = (
            f"{self.config.action.value} {self.config.provider} deployment for "
            f"{self.config.tenant}/{self.config.environment}?"
        )
        return bool(self.confirm(prompt))

    def _persist(self, outcome: PipelineOutcome) -> None:
        """Best-effort invocation record; never masks the primary outcome."""
        cfg = self.config
        target = outcome.target
        record = DiagnosticsRecord(
            provider=cfg.provider,
            strategy=cfg.strategy,
            tenant=cfg.tenant,
            environment=cfg.environment,
            pack_id=target.pack_id if target else "",
            flow_id=target.flow_id if target else "",
            origin=target.origin if target else "",
            output_dir=str(outcome.output_dir),
            outcome=outcome.status,
            invocation=outcome.invocation,
            runner_cmd=list(outcome.invocation.get("runner_cmd", [])),
            error=describe_error(outcome.error) if outcome.error else None,
        )
        try:
            self.writer.write_invocation(record)
        except PersistenceError as e:
            logger.warning("could not write diagnostics: %s", e.message)


def describe_error(error: BaseException) -> str:
    """Single-line error text for the invocation record."""
    if isinstance(error, DeployerError):
        return error.describe()
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
