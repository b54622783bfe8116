#!/usr/bin/env python3
"""
Unit tests for ConfigLoader.

Tests the configuration loader's ability to:
1. Apply built-in defaults
2. Layer config file, environment and CLI values in priority order
3. Validate required settings, pack references and output formats
"""

import os
from pathlib import Path

import pytest
import yaml

from packdeployer.config.loader import Action, ConfigLoader, DeployerConfig, OutputFormat
from packdeployer.core.errors import ConfigurationError


@pytest.fixture
def pack_dir(tmp_path, make_pack):
    return make_pack(tmp_path, "dev.greentic.sample")


@pytest.mark.unit
class TestDeepMerge:
    """Test dictionary merging."""

    def test_nested_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": [1, 2]}
        override = {"a": {"y": 3}, "b": [9]}

        assert ConfigLoader.deep_merge(base, override) == {"a": {"x": 1, "y": 3}, "b": [9]}

    def test_none_does_not_replace(self):
        assert ConfigLoader.deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_base_is_not_mutated(self):
        base = {"a": {"x": 1}}
        ConfigLoader.deep_merge(base, {"a": {"x": 2}})

        assert base == {"a": {"x": 1}}


@pytest.mark.unit
class TestLoadConfig:
    """Test full configuration loading."""

    def test_defaults(self, pack_dir):
        config = ConfigLoader.load_config(
            Action.PLAN, {"provider": "AWS", "tenant": "acme", "pack_path": str(pack_dir)}, environ={}
        )

        assert config.provider == "aws"
        assert config.strategy == "iac-only"
        assert config.environment == "dev"
        assert config.providers_dir == Path("providers/deployer")
        assert config.fallback_dirs == [Path("dist"), Path("examples")]
        assert config.output == OutputFormat.TEXT
        assert config.output_dir == Path("deploy/aws/acme/dev")
        assert config.yes is False

    def test_layer_priority(self, tmp_path, pack_dir):
        config_file = tmp_path / "deployer.yaml"
        config_file.write_text(
            yaml.safe_dump({"environment": "from-file", "base_domain": "file.example", "packs_dir": "file-packs"})
        )
        environ = {"PACK_DEPLOYER_ENV": "from-env", "PACK_DEPLOYER_PACKS_DIR": "env-packs"}

        config = ConfigLoader.load_config(
            Action.APPLY,
            {"provider": "aws", "tenant": "acme", "pack_path": str(pack_dir), "environment": "from-cli"},
            config_file=config_file,
            environ=environ,
        )

        assert config.environment == "from-cli"
        assert config.packs_dir == Path("env-packs")
        assert config.base_domain == "file.example"

    def test_config_file_from_environment(self, tmp_path, pack_dir):
        config_file = tmp_path / "deployer.yaml"
        config_file.write_text("strategy: serverless\n")

        config = ConfigLoader.load_config(
            Action.PLAN,
            {"provider": "aws", "tenant": "acme", "pack_path": str(pack_dir)},
            environ={"PACK_DEPLOYER_CONFIG": str(config_file)},
        )

        assert config.strategy == "serverless"

    def test_dispatch_tables_from_environment(self):
        layer = ConfigLoader.env_layer({"PACK_DEPLOYER_DISPATCH_TABLES": os.pathsep.join(["a.yaml", "b.yaml"])})

        assert layer["dispatch_tables"] == ["a.yaml", "b.yaml"]

    @pytest.mark.parametrize("missing", ["provider", "tenant"])
    def test_missing_required(self, pack_dir, missing):
        values = {"provider": "aws", "tenant": "acme", "pack_path": str(pack_dir)}
        del values[missing]

        with pytest.raises(ConfigurationError, match=f"missing required setting '{missing}'"):
            ConfigLoader.load_config(Action.PLAN, values, environ={})

    def test_missing_pack_path(self, tmp_path):
        with pytest.raises(ConfigurationError, match="does not exist"):
            ConfigLoader.load_config(
                Action.PLAN,
                {"provider": "aws", "tenant": "acme", "pack_path": str(tmp_path / "absent")},
                environ={},
            )

    def test_pack_ref(self):
        config = ConfigLoader.load_config(
            Action.PLAN,
            {
                "provider": "aws",
                "tenant": "acme",
                "pack_id": "dev.greentic.sample",
                "pack_version": "1.0.0",
                "pack_digest": "sha256:abc",
            },
            environ={},
        )

        assert config.pack_ref.pack_id == "dev.greentic.sample"
        assert config.pack_path is None

    def test_pack_ref_requires_version_and_digest(self):
        with pytest.raises(ConfigurationError, match="--pack-digest"):
            ConfigLoader.load_config(
                Action.PLAN,
                {"provider": "aws", "tenant": "acme", "pack_id": "dev.a", "pack_version": "1.0.0"},
                environ={},
            )

    def test_unsupported_output(self, pack_dir):
        with pytest.raises(ConfigurationError, match="unsupported output format"):
            ConfigLoader.load_config(
                Action.PLAN,
                {"provider": "aws", "tenant": "acme", "pack_path": str(pack_dir), "output": "xml"},
                environ={},
            )

    def test_invalid_config_file(self, tmp_path, pack_dir):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("- a list\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            ConfigLoader.load_config(
                Action.PLAN,
                {"provider": "aws", "tenant": "acme", "pack_path": str(pack_dir)},
                config_file=config_file,
                environ={},
            )


@pytest.mark.unit
class TestDeployerConfig:
    """Test config helpers."""

    def test_error_context(self):
        config = DeployerConfig(action=Action.PLAN, provider="GCP", tenant="acme", strategy="IaC-Only")
        context = config.error_context(operation="x")

        assert (context.provider, context.strategy, context.tenant, context.environment) == (
            "gcp",
            "iac-only",
            "acme",
            "dev",
        )

    def test_needs_secrets(self):
        assert not Action.PLAN.needs_secrets
        assert Action.APPLY.needs_secrets
        assert Action.DESTROY.needs_secrets
