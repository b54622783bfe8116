#!/usr/bin/env python3
"""
Capability tags declared by pack components.

Raw tag strings are parsed once into a closed set of variants: a KnownTag
for every tag the classifier understands, and UnrecognizedTag keeping the
raw string so it can still be reported.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Union


class KnownTag(Enum):
    """Capability tags with a meaning for role/profile inference."""

    HTTP_ENDPOINT = "http-endpoint"
    SCHEDULED = "scheduled"
    QUEUE_CONSUMER = "queue-consumer"
    ONE_SHOT = "one-shot"
    LONG_LIVED = "long-lived"
    EVENT_PROVIDER = "event-provider"
    EVENT_BRIDGE = "event-bridge"
    MESSAGING = "messaging"
    MESSAGING_ADAPTER = "messaging-adapter"
    WORKER = "worker"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class UnrecognizedTag:
    """A tag outside the known set; kept verbatim for diagnostics."""

    raw: str

    def __str__(self) -> str:
        return self.raw


CapabilityTag = Union[KnownTag, UnrecognizedTag]

# Aliases seen in older pack manifests.
_ALIASES = {
    "http": KnownTag.HTTP_ENDPOINT,
    "cron": KnownTag.SCHEDULED,
    "schedule": KnownTag.SCHEDULED,
    "queue": KnownTag.QUEUE_CONSUMER,
    "job": KnownTag.ONE_SHOT,
    "oneshot": KnownTag.ONE_SHOT,
    "service": KnownTag.LONG_LIVED,
}

_BY_VALUE = {tag.value: tag for tag in KnownTag}


def normalize_tag(raw: str) -> str:
    return raw.strip().lower().replace("_", "-")


def parse_tag(raw: str) -> CapabilityTag:
    """
    Parse a raw capability string.

    Args:
        raw: Tag as declared in the component manifest

    Returns:
        KnownTag or UnrecognizedTag

    Raises:
        TypeError: If raw is not a string
    """
    if not isinstance(raw, str):
        raise TypeError(f"capability tag must be a string, got {type(raw).__name__}")
    normalized = normalize_tag(raw)
    if normalized in _BY_VALUE:
        return _BY_VALUE[normalized]
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    return UnrecognizedTag(raw)


def parse_tags(raw_tags: Iterable[str]) -> FrozenSet[CapabilityTag]:
    return frozenset(parse_tag(raw) for raw in raw_tags)


def tag_names(tags: Iterable[CapabilityTag]) -> list:
    """Sorted string form of a tag set, for serialization."""
    return sorted(str(tag) for tag in tags)


def unrecognized(tags: Iterable[CapabilityTag]) -> list:
    return sorted(tag.raw for tag in tags if isinstance(tag, UnrecognizedTag))
