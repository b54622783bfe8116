#!/usr/bin/env python3
"""
Provider-agnostic deployment plan data model.

A DeploymentPlan describes what must be deployed for one tenant and
environment: components with their inferred role/profile, runner services,
messaging topology, channel ingress, logical secrets, OAuth clients and
telemetry hooks. It never carries provider identity, so the same plan can be
dispatched to any provider.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Tuple

from .capabilities import CapabilityTag, parse_tags, tag_names


class Role(Enum):
    """Architectural function of a component."""

    EVENT_PROVIDER = "event_provider"
    EVENT_BRIDGE = "event_bridge"
    MESSAGING_ADAPTER = "messaging_adapter"
    WORKER = "worker"
    OTHER = "other"


@dataclass(frozen=True)
class DeploymentProfile:
    """
    Runtime deployment shape of a component.

    The built-in profiles are exposed as class attributes. The set is open:
    packs may declare additional profiles explicitly, which are accepted
    verbatim by ``parse``.
    """

    value: str

    LONG_LIVED_SERVICE: ClassVar["DeploymentProfile"]
    HTTP_ENDPOINT: ClassVar["DeploymentProfile"]
    QUEUE_CONSUMER: ClassVar["DeploymentProfile"]
    SCHEDULED_SOURCE: ClassVar["DeploymentProfile"]
    ONE_SHOT_JOB: ClassVar["DeploymentProfile"]

    _registry: ClassVar[Dict[str, "DeploymentProfile"]] = {}

    def __str__(self) -> str:
        return self.value

    @classmethod
    def register(cls, value: str) -> "DeploymentProfile":
        key = cls._normalize(value)
        if not key:
            raise ValueError("deployment profile must not be empty")
        profile = cls._registry.get(key)
        if profile is None:
            profile = cls(key)
            cls._registry[key] = profile
        return profile

    @classmethod
    def parse(cls, value: str) -> "DeploymentProfile":
        """Return the registered profile for value, or an unregistered one."""
        key = cls._normalize(value)
        if not key:
            raise ValueError("deployment profile must not be empty")
        return cls._registry.get(key) or cls(key)

    @staticmethod
    def _normalize(value: str) -> str:
        return value.strip().lower().replace("-", "_")


DeploymentProfile.LONG_LIVED_SERVICE = DeploymentProfile.register("long_lived_service")
DeploymentProfile.HTTP_ENDPOINT = DeploymentProfile.register("http_endpoint")
DeploymentProfile.QUEUE_CONSUMER = DeploymentProfile.register("queue_consumer")
DeploymentProfile.SCHEDULED_SOURCE = DeploymentProfile.register("scheduled_source")
DeploymentProfile.ONE_SHOT_JOB = DeploymentProfile.register("one_shot_job")


class InferenceSource(Enum):
    """Where a component's profile came from."""

    EXPLICIT = "explicit"
    INFERRED = "inferred"


class Target(Enum):
    """
    Infrastructure platform of a dispatch decision.

    Not stored on components: the same plan can be retargeted without
    re-inferring component shape.
    """

    LOCAL = "local"
    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    K8S = "k8s"


@dataclass(frozen=True)
class ComponentBinding:
    """One packaged application component with its classification."""

    component_id: str
    capabilities: FrozenSet[CapabilityTag]
    world: str
    role: Role
    profile: DeploymentProfile
    inference_source: InferenceSource
    warnings: Tuple[str, ...] = ()
    is_external: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.component_id,
            "world": self.world,
            "capabilities": tag_names(self.capabilities),
            "role": self.role.value,
            "profile": self.profile.value,
            "inference": {
                "source": self.inference_source.value,
                "warnings": list(self.warnings),
            },
            "external": self.is_external,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentBinding":
        inference = data.get("inference", {})
        return cls(
            component_id=data["id"],
            capabilities=parse_tags(data.get("capabilities", [])),
            world=data.get("world", ""),
            role=Role(data["role"]),
            profile=DeploymentProfile.parse(data["profile"]),
            inference_source=InferenceSource(inference.get("source", "inferred")),
            warnings=tuple(inference.get("warnings", [])),
            is_external=data.get("external", False),
        )


@dataclass(frozen=True)
class SecretRef:
    """Logical secret; backend_path and value_length are set only on apply/destroy."""

    name: str
    required: bool = True
    scope: str = "tenant"
    backend_path: Optional[str] = None
    value_length: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.backend_path is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "required": self.required, "scope": self.scope}
        if self.backend_path is not None:
            data["backend_path"] = self.backend_path
        if self.value_length is not None:
            data["value_length"] = self.value_length
        return data


@dataclass(frozen=True)
class OAuthClient:
    provider_id: str
    logical_client_id: str
    redirect_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider_id,
            "client_id": self.logical_client_id,
            "redirect_url": self.redirect_url,
        }


@dataclass(frozen=True)
class MessagingTopology:
    logical_cluster: str
    replicas: int
    admin_url: str
    subjects: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logical_cluster": self.logical_cluster,
            "replicas": self.replicas,
            "admin_url": self.admin_url,
            "subjects": list(self.subjects),
        }


@dataclass(frozen=True)
class RunnerService:
    name: str
    component_id: str
    profile: DeploymentProfile
    replicas: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "component": self.component_id,
            "profile": self.profile.value,
            "replicas": self.replicas,
        }


@dataclass(frozen=True)
class ChannelIngress:
    name: str
    kind: str
    ingress_urls: Tuple[str, ...]
    oauth_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "ingress": list(self.ingress_urls),
            "oauth_required": self.oauth_required,
        }


@dataclass(frozen=True)
class TelemetryHook:
    otlp_endpoint: str
    resource_attributes: Tuple[Tuple[str, str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "otlp_endpoint": self.otlp_endpoint,
            "resource_attributes": dict(self.resource_attributes),
        }


@dataclass(frozen=True)
class DeploymentPlan:
    """Aggregate root of a provider-agnostic deployment plan."""

    tenant: str
    environment: str
    pack_id: str
    pack_version: str
    components: Tuple[ComponentBinding, ...]
    messaging: MessagingTopology
    runners: Tuple[RunnerService, ...]
    channels: Tuple[ChannelIngress, ...]
    secrets: Tuple[SecretRef, ...]
    oauth_clients: Tuple[OAuthClient, ...]
    telemetry: TelemetryHook
    generated_at: Optional[str] = field(default=None, compare=False)

    @property
    def external_components(self) -> List[str]:
        return [c.component_id for c in self.components if c.is_external]

    @property
    def warnings(self) -> List[str]:
        return [w for c in self.components for w in c.warnings]

    def secret(self, name: str) -> Optional[SecretRef]:
        key = name.lower()
        for ref in self.secrets:
            if ref.name.lower() == key:
                return ref
        return None

    def with_secrets(self, secrets: Tuple[SecretRef, ...]) -> "DeploymentPlan":
        """Copy of this plan with resolved secret metadata."""
        return replace(self, secrets=tuple(secrets))

    def summary(self) -> str:
        return (
            f"Plan for {self.tenant} @ {self.environment}: "
            f"{len(self.runners)} runners, {len(self.channels)} channels, "
            f"{len(self.components)} components, {len(self.secrets)} secrets"
        )

    def structural_dict(self) -> Dict[str, Any]:
        """Serialized form without descriptive fields (generation timestamp)."""
        return {
            "tenant": self.tenant,
            "environment": self.environment,
            "pack_id": self.pack_id,
            "pack_version": self.pack_version,
            "components": [c.to_dict() for c in self.components],
            "external_components": self.external_components,
            "messaging": self.messaging.to_dict(),
            "runners": [r.to_dict() for r in self.runners],
            "channels": [c.to_dict() for c in self.channels],
            "secrets": [s.to_dict() for s in self.secrets],
            "oauth_clients": [o.to_dict() for o in self.oauth_clients],
            "telemetry": self.telemetry.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.structural_dict()
        data["generated_at"] = self.generated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentPlan":
        """Rebuild a plan from its serialized form (plan.json replay)."""
        messaging = data["messaging"]
        telemetry = data["telemetry"]
        return cls(
            tenant=data["tenant"],
            environment=data["environment"],
            pack_id=data.get("pack_id", ""),
            pack_version=data.get("pack_version", ""),
            components=tuple(ComponentBinding.from_dict(c) for c in data.get("components", [])),
            messaging=MessagingTopology(
                logical_cluster=messaging["logical_cluster"],
                replicas=messaging["replicas"],
                admin_url=messaging["admin_url"],
                subjects=tuple(messaging.get("subjects", [])),
            ),
            runners=tuple(
                RunnerService(
                    name=r["name"],
                    component_id=r["component"],
                    profile=DeploymentProfile.parse(r["profile"]),
                    replicas=r.get("replicas", 1),
                )
                for r in data.get("runners", [])
            ),
            channels=tuple(
                ChannelIngress(
                    name=c["name"],
                    kind=c["kind"],
                    ingress_urls=tuple(c.get("ingress", [])),
                    oauth_required=c.get("oauth_required", False),
                )
                for c in data.get("channels", [])
            ),
            secrets=tuple(
                SecretRef(
                    name=s["name"],
                    required=s.get("required", True),
                    scope=s.get("scope", "tenant"),
                    backend_path=s.get("backend_path"),
                    value_length=s.get("value_length"),
                )
                for s in data.get("secrets", [])
            ),
            oauth_clients=tuple(
                OAuthClient(
                    provider_id=o["provider"],
                    logical_client_id=o["client_id"],
                    redirect_url=o["redirect_url"],
                )
                for o in data.get("oauth_clients", [])
            ),
            telemetry=TelemetryHook(
                otlp_endpoint=telemetry["otlp_endpoint"],
                resource_attributes=tuple(sorted(telemetry.get("resource_attributes", {}).items())),
            ),
            generated_at=data.get("generated_at"),
        )
