#!/usr/bin/env python3
"""
Unit tests for capability tags and role/profile inference.

Inference must be deterministic, follow the fixed tag precedence, and record
exactly one warning whenever a profile is not explicit.
"""

import pytest

from packdeployer.plan.capabilities import (
    KnownTag,
    UnrecognizedTag,
    parse_tag,
    parse_tags,
    tag_names,
    unrecognized,
)
from packdeployer.plan.inference import ProfileClassifier
from packdeployer.plan.model import DeploymentProfile, InferenceSource, Role


@pytest.mark.unit
class TestCapabilityTags:
    """Test tag parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("http-endpoint", KnownTag.HTTP_ENDPOINT),
            ("HTTP_Endpoint", KnownTag.HTTP_ENDPOINT),
            (" scheduled ", KnownTag.SCHEDULED),
            ("cron", KnownTag.SCHEDULED),
            ("queue", KnownTag.QUEUE_CONSUMER),
            ("oneshot", KnownTag.ONE_SHOT),
            ("service", KnownTag.LONG_LIVED),
        ],
    )
    def test_known_tags_and_aliases(self, raw, expected):
        assert parse_tag(raw) is expected

    def test_unrecognized_tag_keeps_raw_string(self):
        tag = parse_tag("gpu-accelerated")

        assert tag == UnrecognizedTag("gpu-accelerated")
        assert str(tag) == "gpu-accelerated"

    def test_non_string_tag_is_rejected(self):
        with pytest.raises(TypeError):
            parse_tag(42)

    def test_tag_helpers(self):
        tags = parse_tags(["worker", "zeta", "http-endpoint", "alpha"])

        assert tag_names(tags) == ["alpha", "http-endpoint", "worker", "zeta"]
        assert unrecognized(tags) == ["alpha", "zeta"]


@pytest.mark.unit
class TestProfileInference:
    """Test deployment profile selection."""

    def setup_method(self):
        self.classifier = ProfileClassifier()

    @pytest.mark.parametrize(
        "tags,expected",
        [
            (["http-endpoint"], DeploymentProfile.HTTP_ENDPOINT),
            (["scheduled"], DeploymentProfile.SCHEDULED_SOURCE),
            (["queue-consumer"], DeploymentProfile.QUEUE_CONSUMER),
            (["one-shot"], DeploymentProfile.ONE_SHOT_JOB),
            (["long-lived"], DeploymentProfile.LONG_LIVED_SERVICE),
            (["long-lived", "http-endpoint"], DeploymentProfile.HTTP_ENDPOINT),
            (["one-shot", "scheduled"], DeploymentProfile.SCHEDULED_SOURCE),
            (["queue-consumer", "one-shot", "long-lived"], DeploymentProfile.QUEUE_CONSUMER),
        ],
    )
    def test_precedence(self, tags, expected):
        result = self.classifier.classify("c", parse_tags(tags))

        assert result.profile == expected
        assert result.source == InferenceSource.INFERRED
        assert len(result.warnings) == 1

    def test_inferred_warning_names_component_and_tag(self):
        result = self.classifier.classify("dev.greentic.api", parse_tags(["http-endpoint", "long-lived"]))

        assert result.warnings == (
            "component dev.greentic.api: profile http_endpoint inferred from capability tag 'http-endpoint'",
        )

    def test_default_profile_with_single_warning(self):
        result = self.classifier.classify("dev.greentic.bare", parse_tags(["gpu", "worker"]))

        assert result.profile == DeploymentProfile.LONG_LIVED_SERVICE
        assert result.source == InferenceSource.INFERRED
        assert len(result.warnings) == 1
        assert "conservative default long_lived_service" in result.warnings[0]
        assert "dev.greentic.bare" in result.warnings[0]

    def test_explicit_profile_has_no_warning(self):
        result = self.classifier.classify(
            "c", parse_tags(["http-endpoint"]), explicit_profile="queue-consumer"
        )

        assert result.profile == DeploymentProfile.QUEUE_CONSUMER
        assert result.source == InferenceSource.EXPLICIT
        assert result.warnings == ()

    def test_explicit_custom_profile_is_accepted(self):
        result = self.classifier.classify("c", frozenset(), explicit_profile="GPU-Batch")

        assert result.profile.value == "gpu_batch"
        assert result.profile == DeploymentProfile.parse("gpu_batch")

    def test_unknown_profile_is_not_registered(self):
        first = DeploymentProfile.parse("edge-function")
        second = DeploymentProfile.parse("edge_function")

        assert first == second
        assert first is not second
        assert DeploymentProfile.parse("HTTP-Endpoint") is DeploymentProfile.HTTP_ENDPOINT

    def test_blank_explicit_profile_falls_back_to_inference(self):
        result = self.classifier.classify("c", parse_tags(["scheduled"]), explicit_profile="  ")

        assert result.profile == DeploymentProfile.SCHEDULED_SOURCE
        assert result.source == InferenceSource.INFERRED

    def test_deterministic(self):
        tags = parse_tags(["one-shot", "queue-consumer", "x-custom"])
        results = {self.classifier.classify("c", tags, world="greentic:w/worker") for _ in range(10)}

        assert len(results) == 1


@pytest.mark.unit
class TestRoleInference:
    """Test role selection and external exposure."""

    def setup_method(self):
        self.classifier = ProfileClassifier()

    @pytest.mark.parametrize(
        "world,expected",
        [
            ("greentic:events/event-provider", Role.EVENT_PROVIDER),
            ("greentic:events/events_provider", Role.EVENT_PROVIDER),
            ("greentic:events/bridge", Role.EVENT_BRIDGE),
            ("greentic:messaging/adapter", Role.MESSAGING_ADAPTER),
            ("greentic:worker/worker", Role.WORKER),
            ("greentic:misc/tool", Role.OTHER),
        ],
    )
    def test_role_from_world(self, world, expected):
        assert self.classifier.infer_role(frozenset(), world) == expected

    def test_role_from_tags(self):
        assert self.classifier.infer_role(parse_tags(["messaging"])) == Role.MESSAGING_ADAPTER
        assert self.classifier.infer_role(parse_tags(["event-bridge"])) == Role.EVENT_BRIDGE

    def test_explicit_role_wins(self):
        role = self.classifier.infer_role(parse_tags(["worker"]), "greentic:worker/worker", "event-provider")
        assert role == Role.EVENT_PROVIDER

    def test_unknown_explicit_role_is_ignored(self):
        assert self.classifier.infer_role(frozenset(), "greentic:worker/worker", "wizard") == Role.WORKER

    def test_external_exposure(self):
        http = self.classifier.classify("a", parse_tags(["http-endpoint"]))
        provider = self.classifier.classify("b", parse_tags(["scheduled"]), world="greentic:events/event-provider")
        worker = self.classifier.classify("c", parse_tags(["queue-consumer"]), world="greentic:worker/worker")

        assert http.is_external
        assert provider.is_external
        assert not worker.is_external
