#!/usr/bin/env python3
"""
Secret resolution for apply/destroy.

One SecretsResolver serves one (tenant, environment). Resolution walks the
plan's secrets in order and stops at the first missing required secret;
nothing is retried.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List

from packdeployer.core.errors import DeployerError, SecretResolutionError, create_error_context
from packdeployer.plan.model import DeploymentPlan, SecretRef

from .backends import SecretBackend, SecretNotFound

logger = logging.getLogger(__name__)


@dataclass
class ResolvedSecrets:
    """Plan with resolved secret metadata plus the values, keyed by logical name."""

    plan: DeploymentPlan
    values: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"ResolvedSecrets(resolved={sorted(self.values)}, skipped={self.skipped})"


class SecretsResolver:
    """Resolves SecretRefs for one tenant and environment."""

    def __init__(self, backend: SecretBackend, tenant: str, environment: str):
        self.backend = backend
        self.tenant = tenant
        self.environment = environment

    def backend_path(self, logical_name: str) -> str:
        return f"greentic/{self.tenant}/{self.environment}/{logical_name.lower()}"

    def resolve(self, logical_name: str) -> str:
        """
        Resolve a single secret value.

        Raises:
            SecretNotFound: If the backend holds no value
            SecretResolutionError: If the backend itself fails
        """
        try:
            return self.backend.resolve(logical_name, self.tenant, self.environment)
        except (SecretNotFound, DeployerError):
            raise
        except Exception as e:
            raise SecretResolutionError(
                f"secret backend '{self.backend.name}' failed for {logical_name}: {e}",
                context=self._context(logical_name),
                cause=e,
            )

    def resolve_plan(self, plan: DeploymentPlan) -> ResolvedSecrets:
        """
        Resolve every secret of the plan, failing on the first missing required one.

        Returns:
            ResolvedSecrets carrying a new plan whose SecretRefs hold backend
            paths and value lengths

        Raises:
            SecretResolutionError: On the first missing required secret
        """
        resolved: List[SecretRef] = []
        values: Dict[str, str] = {}
        skipped: List[str] = []

        for ref in plan.secrets:
            path = self.backend_path(ref.name)
            try:
                value = self.resolve(ref.name)
            except SecretNotFound as e:
                if not ref.required:
                    logger.warning("optional secret %s not found at %s; skipping", ref.name, path)
                    skipped.append(ref.name)
                    resolved.append(ref)
                    continue
                raise SecretResolutionError(
                    f"Missing secret {ref.name} for tenant {self.tenant}, environment {self.environment}: "
                    f"{e.detail}. Target path: {path}.",
                    context=self._context(ref.name),
                    suggestions=[f"Store the secret in the '{self.backend.name}' backend before deploying"],
                    cause=e,
                )

            values[ref.name] = value
            resolved.append(replace(ref, backend_path=path, value_length=len(value.encode("utf-8"))))
            logger.debug("resolved secret %s (%d bytes)", ref.name, len(value))

        logger.info(
            "resolved %d secrets for %s/%s", len(values), self.tenant, self.environment
        )
        return ResolvedSecrets(plan=plan.with_secrets(tuple(resolved)), values=values, skipped=skipped)

    def _context(self, logical_name: str):
        return create_error_context(
            operation="resolve_secrets",
            tenant=self.tenant,
            environment=self.environment,
            identifier=logical_name,
        )
