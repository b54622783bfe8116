#!/usr/bin/env python3
"""
Unit tests for the deployment plan builder and plan model.
"""

import pytest

from packdeployer.core.errors import ConfigurationError
from packdeployer.packs.manifest import PackManifest, read_manifest
from packdeployer.plan.builder import PlanBuilder, oauth_redirect_url
from packdeployer.plan.model import DeploymentPlan, DeploymentProfile, InferenceSource, Role


def manifest_with(components=None, annotations=None):
    return PackManifest.from_dict(
        {
            "pack_id": "dev.greentic.sample",
            "version": "1.2.3",
            "components": components or [],
            "annotations": annotations or {},
        }
    )


@pytest.mark.unit
class TestPlanBuilder:
    """Test plan construction from pack manifests."""

    def setup_method(self):
        self.builder = PlanBuilder()

    def test_build_sample_pack(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")
        by_id = {c.component_id: c for c in plan.components}

        assert plan.tenant == "acme"
        assert plan.environment == "staging"
        assert plan.pack_id == "dev.greentic.sample"
        assert by_id["dev.greentic.webhook"].profile == DeploymentProfile.HTTP_ENDPOINT
        assert by_id["dev.greentic.webhook"].role == Role.EVENT_PROVIDER
        assert by_id["dev.greentic.worker"].profile == DeploymentProfile.QUEUE_CONSUMER
        assert by_id["dev.greentic.worker"].role == Role.WORKER
        assert by_id["dev.greentic.nightly"].profile == DeploymentProfile.SCHEDULED_SOURCE
        assert by_id["dev.greentic.bare"].profile == DeploymentProfile.LONG_LIVED_SERVICE
        assert plan.external_components == ["dev.greentic.webhook"]

    def test_every_inferred_component_has_one_warning(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        for component in plan.components:
            assert component.inference_source == InferenceSource.INFERRED
            assert len(component.warnings) == 1
        assert len(plan.warnings) == len(plan.components)

    def test_oauth_redirect_url(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        assert len(plan.oauth_clients) == 1
        client = plan.oauth_clients[0]
        assert client.provider_id == "slack"
        assert client.logical_client_id == "acme-staging-slack"
        assert client.redirect_url == "https://deploy.greentic.ai/oauth/slack/callback/acme/staging"

    def test_oauth_redirect_url_uses_base_domain(self):
        assert (
            oauth_redirect_url("example.test", "teams", "t1", "prod")
            == "https://example.test/oauth/teams/callback/t1/prod"
        )

    def test_secrets_are_collapsed_and_sorted(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        assert [s.name for s in plan.secrets] == ["CACHE_URL", "SLACK_BOT_TOKEN", "WEBHOOK_TOKEN"]
        assert plan.secret("cache_url").required is False
        assert plan.secret("webhook_token").required is True
        assert all(not s.is_resolved for s in plan.secrets)

    def test_optional_secret_upgraded_when_also_required(self):
        manifest = manifest_with(
            components=[
                {"id": "a", "secrets": [{"key": "API_KEY", "required": False}]},
                {"id": "b", "secrets": ["api_key"]},
            ]
        )

        plan = self.builder.build(manifest, "acme", "dev")

        assert len(plan.secrets) == 1
        assert plan.secrets[0].name == "API_KEY"
        assert plan.secrets[0].required is True

    def test_runners_messaging_and_channels(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        assert [r.name for r in plan.runners] == [f"runner-{c.component_id}" for c in plan.components]
        assert all(r.replicas == 1 for r in plan.runners)
        assert plan.messaging.logical_cluster == "nats-staging-acme"
        assert plan.messaging.subjects == ("audit", "orders.created")
        assert [(c.name, c.kind, c.oauth_required) for c in plan.channels] == [
            ("support", "slack", True),
            ("site", "webchat", False),
        ]
        assert plan.channels[0].ingress_urls == ("https://deploy.greentic.ai/ingress/staging/acme/slack",)

    def test_production_replicas(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "prod")

        assert plan.messaging.replicas == 3
        assert all(r.replicas == 2 for r in plan.runners)

    def test_telemetry(self, app_pack):
        plan = PlanBuilder(telemetry_endpoint="https://otel.example.test").build(
            read_manifest(app_pack), "acme", "staging"
        )

        assert plan.telemetry.otlp_endpoint == "https://otel.example.test"
        assert dict(plan.telemetry.resource_attributes)["greentic.tenant"] == "acme"

    def test_explicit_profile_and_role_annotations(self):
        manifest = manifest_with(
            components=[{"id": "api", "capabilities": ["http-endpoint"]}],
            annotations={
                "greentic.profiles": {"api": "one-shot-job"},
                "greentic.roles": {"api": "worker"},
            },
        )

        component = self.builder.build(manifest, "acme", "dev").components[0]

        assert component.profile == DeploymentProfile.ONE_SHOT_JOB
        assert component.inference_source == InferenceSource.EXPLICIT
        assert component.role == Role.WORKER
        assert component.warnings == ()

    def test_idempotent(self, app_pack):
        manifest = read_manifest(app_pack)

        first = self.builder.build(manifest, "acme", "staging")
        second = self.builder.build(manifest, "acme", "staging")

        assert first == second
        assert first.structural_dict() == second.structural_dict()

    def test_plan_round_trips_through_dict(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        assert DeploymentPlan.from_dict(plan.to_dict()) == plan

    def test_summary(self, app_pack):
        plan = self.builder.build(read_manifest(app_pack), "acme", "staging")

        assert plan.summary() == "Plan for acme @ staging: 4 runners, 2 channels, 4 components, 3 secrets"


@pytest.mark.unit
class TestPlanBuilderValidation:
    """Test malformed metadata handling."""

    def setup_method(self):
        self.builder = PlanBuilder()

    @pytest.mark.parametrize("tenant", ["", "acme corp", "../etc"])
    def test_invalid_tenant(self, tenant):
        with pytest.raises(ConfigurationError, match="invalid tenant"):
            self.builder.build(manifest_with(), tenant, "dev")

    def test_capabilities_must_be_a_list(self):
        manifest = manifest_with(components=[{"id": "api", "capabilities": "http-endpoint"}])

        with pytest.raises(ConfigurationError) as exc_info:
            self.builder.build(manifest, "acme", "dev")

        assert exc_info.value.context.component == "api"
        assert exc_info.value.context.identifier == "capabilities"

    def test_capability_must_be_a_string(self):
        manifest = manifest_with(components=[{"id": "api", "capabilities": ["http-endpoint", 7]}])

        with pytest.raises(ConfigurationError, match="unparsable"):
            self.builder.build(manifest, "acme", "dev")

    def test_component_without_id(self):
        manifest = manifest_with(components=[{"capabilities": []}])

        with pytest.raises(ConfigurationError, match="no valid 'id'"):
            self.builder.build(manifest, "acme", "dev")

    def test_duplicate_component(self):
        manifest = manifest_with(components=[{"id": "api"}, {"id": "api"}])

        with pytest.raises(ConfigurationError, match="more than once"):
            self.builder.build(manifest, "acme", "dev")

    def test_non_string_explicit_profile(self):
        manifest = manifest_with(components=[{"id": "api", "profile": ["http"]}])

        with pytest.raises(ConfigurationError) as exc_info:
            self.builder.build(manifest, "acme", "dev")

        assert exc_info.value.context.identifier == "profile"

    def test_empty_secret_name(self):
        manifest = manifest_with(components=[{"id": "api", "secrets": [""]}])

        with pytest.raises(ConfigurationError, match="non-empty string"):
            self.builder.build(manifest, "acme", "dev")

    def test_annotation_must_be_mapping(self):
        manifest = manifest_with(annotations={"greentic.oauth": ["slack"]})

        with pytest.raises(ConfigurationError, match="greentic.oauth"):
            self.builder.build(manifest, "acme", "dev")

    def test_channel_without_kind(self):
        manifest = manifest_with(annotations={"connectors": {"channels": [{"name": "support"}]}})

        with pytest.raises(ConfigurationError, match="kind"):
            self.builder.build(manifest, "acme", "dev")
