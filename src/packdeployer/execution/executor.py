#!/usr/bin/env python3
"""
Executor contract and the built-in legacy fallback.

An executor receives the finalized plan, the resolved dispatch target and the
invocation config, and produces provider artifacts in the output directory.
"""

import json
import logging
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from packdeployer.config.loader import DeployerConfig
from packdeployer.dispatch.resolver import DispatchTarget
from packdeployer.plan.model import DeploymentPlan, Target

logger = logging.getLogger(__name__)

LEGACY_PLATFORMS = (Target.AWS, Target.AZURE, Target.GCP)
LEGACY_PROVIDERS = tuple(platform.value for platform in LEGACY_PLATFORMS)
RUNNER_BINARY = "greentic-runner"


class ExecutionStatus(Enum):
    """Executor outcome."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ExecutionResult:
    """Result of one executor invocation."""

    status: ExecutionStatus
    message: str = ""
    artifacts: List[str] = field(default_factory=list)
    executor: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @property
    def is_failed(self) -> bool:
        return self.status == ExecutionStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "artifacts": list(self.artifacts),
            "executor": self.executor,
        }


@runtime_checkable
class Executor(Protocol):
    """Anything with ``execute(config, plan, target) -> ExecutionResult``."""

    def execute(
        self, config: DeployerConfig, plan: DeploymentPlan, target: DispatchTarget
    ) -> ExecutionResult:
        ...


@dataclass
class InvocationRequest:
    """Everything handed to an executor for one invocation."""

    config: DeployerConfig
    plan: DeploymentPlan
    target: DispatchTarget
    output_dir: Path

    @property
    def tenant(self) -> str:
        return self.plan.tenant

    @property
    def environment(self) -> str:
        return self.plan.environment

    def command_line(self) -> List[str]:
        """Runner command equivalent to this invocation."""
        command = [
            RUNNER_BINARY,
            "--pack",
            str(self.target.pack_path or self.target.pack_id),
            "--flow",
            self.target.flow_id,
            "--action",
            self.config.action.value,
            "--tenant",
            self.tenant,
            "--env",
            self.environment,
            "--output",
            str(self.output_dir),
        ]
        if self.config.dry_run:
            command.append("--dry-run")
        return command

    def command_text(self) -> str:
        return shlex.join(self.command_line())

    def describe(self, executor: Optional[str] = None) -> Dict[str, Any]:
        """Structured description of the invocation, as recorded in diagnostics."""
        return {
            "action": self.config.action.value,
            "provider": self.target.provider,
            "strategy": self.target.strategy,
            "tenant": self.tenant,
            "environment": self.environment,
            "pack_id": self.target.pack_id,
            "flow_id": self.target.flow_id,
            "pack_path": str(self.target.pack_path) if self.target.pack_path else None,
            "origin": self.target.origin,
            "output_dir": str(self.output_dir),
            "executor": executor,
            "dry_run": self.config.dry_run,
            "runner_cmd": self.command_line(),
        }


class LegacyFallbackExecutor:
    """
    Conservative built-in executor for the legacy cloud providers.

    Writes a deployment manifest summarizing the plan and a README; it does
    not render infrastructure code.
    """

    name = "legacy-fallback"
    MANIFEST_FILE = "deploy-manifest.json"
    README_FILE = "README.md"

    def execute(
        self, config: DeployerConfig, plan: DeploymentPlan, target: DispatchTarget
    ) -> ExecutionResult:
        output_dir = config.output_dir
        manifest = self.build_manifest(config, plan, target)

        manifest_path = output_dir / self.MANIFEST_FILE
        with open(manifest_path, "w") as f:
            json.dump(manifest, f, indent=2, sort_keys=True)
            f.write("\n")

        readme_path = output_dir / self.README_FILE
        readme_path.write_text(self.render_readme(config, plan, target))

        logger.info("legacy fallback wrote %s and %s", manifest_path, readme_path)
        return ExecutionResult(
            status=ExecutionStatus.SUCCESS,
            message=f"{config.action.value} manifest written for {target.provider}",
            artifacts=[str(manifest_path), str(readme_path)],
            executor=self.name,
        )

    @staticmethod
    def build_manifest(
        config: DeployerConfig, plan: DeploymentPlan, target: DispatchTarget
    ) -> Dict[str, Any]:
        return {
            "action": config.action.value,
            "provider": target.provider,
            "strategy": target.strategy,
            "tenant": plan.tenant,
            "environment": plan.environment,
            "pack_id": plan.pack_id,
            "pack_version": plan.pack_version,
            "deployment_pack": {"pack_id": target.pack_id, "flow_id": target.flow_id},
            "summary": plan.summary(),
            "secrets": [
                {
                    "logical_name": secret.name,
                    "provider_path": secret.backend_path,
                    "value_length": secret.value_length,
                    "scope": secret.scope,
                }
                for secret in plan.secrets
                if secret.is_resolved
            ],
            "oauth_clients": [client.to_dict() for client in plan.oauth_clients],
            "telemetry": plan.telemetry.to_dict(),
        }

    @staticmethod
    def render_readme(config: DeployerConfig, plan: DeploymentPlan, target: DispatchTarget) -> str:
        lines = [
            f"# {target.provider} deployment for {plan.tenant} ({plan.environment})",
            "",
            f"Action: {config.action.value}",
            f"Application pack: {plan.pack_id} {plan.pack_version}",
            f"Deployment pack: {target.pack_id} (flow {target.flow_id})",
            "",
            "Generated by the built-in fallback; no infrastructure code was rendered.",
            "Register an executor to produce provider artifacts.",
            "",
        ]
        return "\n".join(lines)
