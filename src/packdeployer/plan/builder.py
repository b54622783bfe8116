#!/usr/bin/env python3
"""
Plan builder - turns introspected pack metadata into a DeploymentPlan.

The builder is a pure function of (pack manifest, tenant, environment, base
domain): it does not touch the filesystem or network, and identical inputs
always produce a structurally identical plan. Malformed component metadata
fails with a ConfigurationError naming the component and field.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from packdeployer.core.errors import ConfigurationError, create_error_context
from packdeployer.packs.manifest import ComponentMetadata, PackManifest

from .capabilities import parse_tag
from .inference import ProfileClassifier
from .model import (
    ChannelIngress,
    ComponentBinding,
    DeploymentPlan,
    MessagingTopology,
    OAuthClient,
    RunnerService,
    SecretRef,
    TelemetryHook,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_DOMAIN = "deploy.greentic.ai"
DEFAULT_OTLP_ENDPOINT = "https://otel.greentic.ai"
OAUTH_CHANNEL_KINDS = ("slack", "teams", "webex", "telegram", "whatsapp")
IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

ANNOTATION_SECRETS = "greentic.secrets"
ANNOTATION_OAUTH = "greentic.oauth"
ANNOTATION_MESSAGING = "greentic.messaging"
ANNOTATION_PROFILES = "greentic.profiles"
ANNOTATION_ROLES = "greentic.roles"
ANNOTATION_CONNECTORS = "connectors"


def oauth_redirect_url(base_domain: str, provider: str, tenant: str, environment: str) -> str:
    """OAuth callback URL; a pure function of its inputs."""
    return f"https://{base_domain}/oauth/{provider}/callback/{tenant}/{environment}"


def channel_ingress_url(base_domain: str, environment: str, tenant: str, kind: str) -> str:
    return f"https://{base_domain}/ingress/{environment}/{tenant}/{kind}"


def validate_identifier(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not IDENTIFIER_RE.match(value):
        raise ConfigurationError(
            f"invalid {field_name} '{value}'",
            context=create_error_context(operation="build_plan", identifier=field_name),
            suggestions=["Use letters, digits, '.', '_' or '-' only"],
        )
    return value


class PlanBuilder:
    """Builds finalized DeploymentPlans from pack manifests."""

    def __init__(
        self,
        base_domain: str = DEFAULT_BASE_DOMAIN,
        telemetry_endpoint: Optional[str] = None,
        classifier: Optional[ProfileClassifier] = None,
    ):
        self.base_domain = base_domain
        self.telemetry_endpoint = telemetry_endpoint or DEFAULT_OTLP_ENDPOINT
        self.classifier = classifier or ProfileClassifier()

    def build(self, manifest: PackManifest, tenant: str, environment: str) -> DeploymentPlan:
        """
        Build the plan for one tenant and environment.

        Args:
            manifest: Introspected application pack manifest
            tenant: Tenant identifier
            environment: Environment name

        Returns:
            Finalized DeploymentPlan

        Raises:
            ConfigurationError: If tenant/environment or component metadata is malformed
        """
        validate_identifier(tenant, "tenant")
        validate_identifier(environment, "environment")
        annotations = manifest.annotations or {}

        components = self._build_components(manifest.components, annotations)
        for component in components:
            for warning in component.warnings:
                logger.warning(warning)

        plan = DeploymentPlan(
            tenant=tenant,
            environment=environment,
            pack_id=manifest.pack_id,
            pack_version=manifest.version,
            components=tuple(components),
            messaging=self._build_messaging(annotations.get(ANNOTATION_MESSAGING), tenant, environment),
            runners=tuple(
                RunnerService(
                    name=f"runner-{component.component_id}",
                    component_id=component.component_id,
                    profile=component.profile,
                    replicas=2 if "prod" in environment else 1,
                )
                for component in components
            ),
            channels=self._build_channels(annotations.get(ANNOTATION_CONNECTORS), tenant, environment),
            secrets=self._collect_secrets(manifest.components, annotations.get(ANNOTATION_SECRETS)),
            oauth_clients=self._build_oauth(annotations.get(ANNOTATION_OAUTH), tenant, environment),
            telemetry=self._build_telemetry(tenant, environment),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("built deployment plan: %s", plan.summary())
        return plan

    def _build_components(
        self, entries: Iterable[ComponentMetadata], annotations: Dict[str, Any]
    ) -> List[ComponentBinding]:
        explicit_profiles = _mapping(annotations.get(ANNOTATION_PROFILES), ANNOTATION_PROFILES)
        explicit_roles = _mapping(annotations.get(ANNOTATION_ROLES), ANNOTATION_ROLES)

        bindings = []
        seen = set()
        for index, entry in enumerate(entries):
            component_id = entry.id
            if not component_id or not isinstance(component_id, str):
                raise ConfigurationError(
                    f"component #{index} has no valid 'id'",
                    context=create_error_context(
                        operation="build_plan", component=f"components[{index}]", identifier="id"
                    ),
                )
            if component_id in seen:
                raise ConfigurationError(
                    f"component {component_id} is declared more than once",
                    context=create_error_context(operation="build_plan", component=component_id, identifier="id"),
                )
            seen.add(component_id)

            tags = self._parse_capabilities(component_id, entry.capabilities)
            world = entry.world or ""
            if not isinstance(world, str):
                raise ConfigurationError(
                    f"component {component_id} field 'world' must be a string",
                    context=create_error_context(operation="build_plan", component=component_id, identifier="world"),
                )

            explicit_profile = explicit_profiles.get(component_id) or entry.profile
            explicit_role = explicit_roles.get(component_id) or entry.role
            for field_name, value in (("profile", explicit_profile), ("role", explicit_role)):
                if value is not None and not isinstance(value, str):
                    raise ConfigurationError(
                        f"component {component_id} field '{field_name}' must be a string",
                        context=create_error_context(
                            operation="build_plan", component=component_id, identifier=field_name
                        ),
                    )

            result = self.classifier.classify(
                component_id,
                tags,
                world=world,
                explicit_profile=explicit_profile,
                explicit_role=explicit_role,
            )
            bindings.append(
                ComponentBinding(
                    component_id=component_id,
                    capabilities=tags,
                    world=world,
                    role=result.role,
                    profile=result.profile,
                    inference_source=result.source,
                    warnings=result.warnings,
                    is_external=result.is_external,
                )
            )
        return bindings

    @staticmethod
    def _parse_capabilities(component_id: str, raw: Any):
        context = create_error_context(operation="build_plan", component=component_id, identifier="capabilities")
        if raw is None:
            return frozenset()
        if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
            raise ConfigurationError(
                f"component {component_id} field 'capabilities' must be a list of strings",
                context=context,
            )
        try:
            return frozenset(parse_tag(tag) for tag in raw)
        except TypeError as e:
            raise ConfigurationError(
                f"component {component_id} field 'capabilities' is unparsable: {e}",
                context=context,
                cause=e,
            )

    def _collect_secrets(self, entries: Iterable[ComponentMetadata], annotated: Any) -> Tuple[SecretRef, ...]:
        collected: Dict[str, SecretRef] = {}

        def add(name: Any, required: bool, scope: str, owner: str) -> None:
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError(
                    f"secret declared by {owner} must be a non-empty string",
                    context=create_error_context(operation="build_plan", component=owner, identifier="secrets"),
                )
            key = name.strip().lower()
            existing = collected.get(key)
            if existing is None:
                collected[key] = SecretRef(name=name.strip(), required=required, scope=scope)
            elif required and not existing.required:
                collected[key] = SecretRef(name=existing.name, required=True, scope=existing.scope)

        for entry in entries:
            secrets = entry.secrets or []
            if not isinstance(secrets, (list, tuple)):
                raise ConfigurationError(
                    f"component {entry.id} field 'secrets' must be a list",
                    context=create_error_context(operation="build_plan", component=entry.id, identifier="secrets"),
                )
            for secret in secrets:
                if isinstance(secret, dict):
                    add(secret.get("key"), secret.get("required", True), secret.get("scope", "tenant"), entry.id)
                else:
                    add(secret, True, "tenant", entry.id)

        for name, spec in _mapping(annotated, ANNOTATION_SECRETS).items():
            spec = spec if isinstance(spec, dict) else {}
            add(name, spec.get("required", True), spec.get("scope", "tenant"), ANNOTATION_SECRETS)

        return tuple(collected[key] for key in sorted(collected))

    def _build_oauth(self, annotated: Any, tenant: str, environment: str) -> Tuple[OAuthClient, ...]:
        clients = []
        for provider, spec in sorted(_mapping(annotated, ANNOTATION_OAUTH).items()):
            spec = spec if isinstance(spec, dict) else {}
            clients.append(
                OAuthClient(
                    provider_id=provider,
                    logical_client_id=spec.get("client_id") or f"{tenant}-{environment}-{provider}",
                    redirect_url=oauth_redirect_url(self.base_domain, provider, tenant, environment),
                )
            )
        return tuple(clients)

    def _build_channels(self, connectors: Any, tenant: str, environment: str) -> Tuple[ChannelIngress, ...]:
        if not connectors:
            return ()
        entries = connectors.get("channels", []) if isinstance(connectors, dict) else connectors
        if not isinstance(entries, list):
            raise ConfigurationError(
                "annotation 'connectors' must list channels",
                context=create_error_context(operation="build_plan", identifier=ANNOTATION_CONNECTORS),
            )
        channels = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("kind"):
                raise ConfigurationError(
                    f"channel connector {entry!r} must declare a 'kind'",
                    context=create_error_context(operation="build_plan", identifier=ANNOTATION_CONNECTORS),
                )
            kind = str(entry["kind"]).lower()
            channels.append(
                ChannelIngress(
                    name=str(entry.get("name", kind)),
                    kind=kind,
                    ingress_urls=(channel_ingress_url(self.base_domain, environment, tenant, kind),),
                    oauth_required=kind in OAUTH_CHANNEL_KINDS,
                )
            )
        return tuple(channels)

    @staticmethod
    def _build_messaging(annotated: Any, tenant: str, environment: str) -> MessagingTopology:
        spec = annotated if isinstance(annotated, dict) else {}
        return MessagingTopology(
            logical_cluster=spec.get("logical_cluster") or f"nats-{environment}-{tenant}",
            replicas=3 if "prod" in environment else 1,
            admin_url=f"https://nats.{environment}.{tenant}.svc",
            subjects=tuple(sorted(str(s) for s in spec.get("subjects", []))),
        )

    def _build_telemetry(self, tenant: str, environment: str) -> TelemetryHook:
        return TelemetryHook(
            otlp_endpoint=self.telemetry_endpoint,
            resource_attributes=(
                ("deployment.environment", environment),
                ("greentic.tenant", tenant),
                ("service.name", "pack-deployer"),
            ),
        )


def _mapping(value: Any, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"annotation '{name}' must be a mapping",
            context=create_error_context(operation="build_plan", identifier=name),
        )
    return value
