"""
Planning layer: provider-agnostic deployment plan model, capability tags,
role/profile inference and the plan builder.

Architecture:
- DeploymentPlan: aggregate root, never carries provider identity
- ProfileClassifier: deterministic role/profile inference per component
- PlanBuilder: pack manifest + tenant + environment -> DeploymentPlan
"""

from .builder import PlanBuilder, oauth_redirect_url
from .capabilities import KnownTag, UnrecognizedTag, parse_tag
from .inference import Classification, ProfileClassifier
from .model import (
    ChannelIngress,
    ComponentBinding,
    DeploymentPlan,
    DeploymentProfile,
    InferenceSource,
    MessagingTopology,
    OAuthClient,
    Role,
    RunnerService,
    SecretRef,
    Target,
    TelemetryHook,
)

__all__ = [
    "PlanBuilder",
    "oauth_redirect_url",
    "KnownTag",
    "UnrecognizedTag",
    "parse_tag",
    "Classification",
    "ProfileClassifier",
    "ChannelIngress",
    "ComponentBinding",
    "DeploymentPlan",
    "DeploymentProfile",
    "InferenceSource",
    "MessagingTopology",
    "OAuthClient",
    "Role",
    "RunnerService",
    "SecretRef",
    "Target",
    "TelemetryHook",
]
