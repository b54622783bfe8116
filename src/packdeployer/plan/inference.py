#!/usr/bin/env python3
"""
Role and deployment-profile inference for pack components.

Profile:
1. An explicit profile from pack metadata is used verbatim (source=explicit).
2. Otherwise the first profile-indicating tag in PROFILE_PRECEDENCE wins.
3. Otherwise the conservative default, long_lived_service.
Cases 2 and 3 record exactly one warning for the component (source=inferred).

Role follows the same explicit, then world name, then tag, then default
scheme and defaults to ``other``.

Inference never fails: missing information always maps to a documented default.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from .capabilities import CapabilityTag, KnownTag, unrecognized
from .model import DeploymentProfile, InferenceSource, Role

logger = logging.getLogger(__name__)

PROFILE_PRECEDENCE: Tuple[Tuple[KnownTag, DeploymentProfile], ...] = (
    (KnownTag.HTTP_ENDPOINT, DeploymentProfile.HTTP_ENDPOINT),
    (KnownTag.SCHEDULED, DeploymentProfile.SCHEDULED_SOURCE),
    (KnownTag.QUEUE_CONSUMER, DeploymentProfile.QUEUE_CONSUMER),
    (KnownTag.ONE_SHOT, DeploymentProfile.ONE_SHOT_JOB),
    (KnownTag.LONG_LIVED, DeploymentProfile.LONG_LIVED_SERVICE),
)

DEFAULT_PROFILE = DeploymentProfile.LONG_LIVED_SERVICE

# World-name keywords, checked in order against the lower-cased world.
ROLE_WORLD_KEYWORDS: Tuple[Tuple[str, Role], ...] = (
    ("event-provider", Role.EVENT_PROVIDER),
    ("events-provider", Role.EVENT_PROVIDER),
    ("event-bridge", Role.EVENT_BRIDGE),
    ("bridge", Role.EVENT_BRIDGE),
    ("messaging", Role.MESSAGING_ADAPTER),
    ("worker", Role.WORKER),
)

ROLE_TAGS: Tuple[Tuple[KnownTag, Role], ...] = (
    (KnownTag.EVENT_PROVIDER, Role.EVENT_PROVIDER),
    (KnownTag.EVENT_BRIDGE, Role.EVENT_BRIDGE),
    (KnownTag.MESSAGING_ADAPTER, Role.MESSAGING_ADAPTER),
    (KnownTag.MESSAGING, Role.MESSAGING_ADAPTER),
    (KnownTag.WORKER, Role.WORKER),
)

# Profiles that expose an inbound surface.
EXTERNAL_PROFILES = (DeploymentProfile.HTTP_ENDPOINT,)
EXTERNAL_ROLES = (Role.EVENT_PROVIDER, Role.MESSAGING_ADAPTER)


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one component."""

    role: Role
    profile: DeploymentProfile
    source: InferenceSource
    warnings: Tuple[str, ...]

    @property
    def is_external(self) -> bool:
        return self.profile in EXTERNAL_PROFILES or self.role in EXTERNAL_ROLES


class ProfileClassifier:
    """Deterministic classifier assigning role and profile to components."""

    def __init__(self, precedence=PROFILE_PRECEDENCE, default_profile=DEFAULT_PROFILE):
        self.precedence = precedence
        self.default_profile = default_profile

    def classify(
        self,
        component_id: str,
        tags: FrozenSet[CapabilityTag],
        world: str = "",
        explicit_profile: Optional[str] = None,
        explicit_role: Optional[str] = None,
    ) -> Classification:
        role = self.infer_role(tags, world, explicit_role)
        profile, source, warning = self.infer_profile(component_id, tags, explicit_profile)

        warnings = (warning,) if warning else ()
        ignored = unrecognized(tags)
        if ignored:
            logger.debug(
                "component %s declares unrecognized capability tags: %s",
                component_id,
                ", ".join(ignored),
            )
        return Classification(role=role, profile=profile, source=source, warnings=warnings)

    def infer_profile(
        self,
        component_id: str,
        tags: FrozenSet[CapabilityTag],
        explicit_profile: Optional[str] = None,
    ) -> Tuple[DeploymentProfile, InferenceSource, Optional[str]]:
        """
        Select the deployment profile for a component.

        Returns:
            (profile, source, warning); warning is None for explicit profiles
        """
        if explicit_profile and explicit_profile.strip():
            return DeploymentProfile.parse(explicit_profile), InferenceSource.EXPLICIT, None

        for tag, profile in self.precedence:
            if tag in tags:
                warning = (
                    f"component {component_id}: profile {profile.value} "
                    f"inferred from capability tag '{tag.value}'"
                )
                return profile, InferenceSource.INFERRED, warning

        warning = (
            f"component {component_id}: no profile-indicating capability tag; "
            f"using conservative default {self.default_profile.value}"
        )
        return self.default_profile, InferenceSource.INFERRED, warning

    def infer_role(
        self,
        tags: FrozenSet[CapabilityTag],
        world: str = "",
        explicit_role: Optional[str] = None,
    ) -> Role:
        if explicit_role:
            try:
                return Role(explicit_role.strip().lower().replace("-", "_"))
            except ValueError:
                logger.warning("ignoring unknown explicit role '%s'", explicit_role)

        world_name = (world or "").lower().replace("_", "-")
        for keyword, role in ROLE_WORLD_KEYWORDS:
            if keyword in world_name:
                return role

        for tag, role in ROLE_TAGS:
            if tag in tags:
                return role

        return Role.OTHER
