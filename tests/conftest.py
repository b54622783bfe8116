"""
Pytest configuration and shared fixtures for pack-deployer tests.

Provides pack factories (directory and .gtpack), a workspace with provider
deployment packs laid out like a real checkout, and configuration builders.
Every test runs with DEPLOY_TARGET_* and PACK_DEPLOYER_* variables removed.
"""

import json
import os
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import yaml

from packdeployer.config.loader import Action, DeployerConfig
from packdeployer.core.errors import set_error_handler

DEFAULT_PROVIDERS = ("aws", "azure", "gcp", "k8s", "local", "generic")


# ============================================================================
# Environment isolation
# ============================================================================

@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove deployer-related variables and the process error handler."""
    for key in list(os.environ):
        if key.startswith("DEPLOY_TARGET_") or key.startswith("PACK_DEPLOYER_"):
            monkeypatch.delenv(key, raising=False)
    set_error_handler(None)
    yield
    set_error_handler(None)


# ============================================================================
# Pack factories
# ============================================================================

def _write_pack(
    root: Path,
    pack_id: str,
    flows: Optional[List[str]] = None,
    components: Optional[List[Dict]] = None,
    annotations: Optional[Dict] = None,
    version: str = "0.1.0",
    archive: bool = False,
    fmt: str = "yaml",
    name: Optional[str] = None,
    marker: Optional[str] = None,
) -> Path:
    manifest = {
        "pack_id": pack_id,
        "version": version,
        "components": components or [],
        "flows": [{"id": flow} for flow in (flows or [])],
        "annotations": annotations or {},
    }
    if marker:
        manifest["annotations"]["test.marker"] = marker
    text = json.dumps(manifest) if fmt == "json" else yaml.safe_dump(manifest)
    manifest_name = "manifest.json" if fmt == "json" else "manifest.yaml"

    root.mkdir(parents=True, exist_ok=True)
    if archive:
        path = root / f"{name or pack_id}.gtpack"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr(manifest_name, text)
        return path

    path = root / (name or pack_id)
    path.mkdir(parents=True, exist_ok=True)
    (path / manifest_name).write_text(text)
    return path


@pytest.fixture
def make_pack():
    """Factory writing a pack directory (or .gtpack with archive=True) under a root."""
    return _write_pack


APP_COMPONENTS = [
    {
        "id": "dev.greentic.webhook",
        "world": "greentic:events/event-provider",
        "capabilities": ["http-endpoint", "long-lived"],
        "secrets": ["WEBHOOK_TOKEN"],
    },
    {
        "id": "dev.greentic.worker",
        "world": "greentic:worker/worker",
        "capabilities": ["queue-consumer"],
        "secrets": [{"key": "webhook_token"}, {"key": "CACHE_URL", "required": False}],
    },
    {
        "id": "dev.greentic.nightly",
        "world": "greentic:jobs/runner",
        "capabilities": ["scheduled", "one-shot"],
    },
    {
        "id": "dev.greentic.bare",
        "world": "greentic:misc/tool",
        "capabilities": [],
    },
]

APP_ANNOTATIONS = {
    "greentic.secrets": {"SLACK_BOT_TOKEN": {}},
    "greentic.oauth": {"slack": {}},
    "greentic.messaging": {"subjects": ["orders.created", "audit"]},
    "connectors": {"channels": [{"name": "support", "kind": "slack"}, {"name": "site", "kind": "webchat"}]},
}


@pytest.fixture
def app_pack(tmp_path, make_pack):
    """Application pack with a representative component mix."""
    return make_pack(
        tmp_path / "apps",
        "dev.greentic.sample",
        components=[dict(c) for c in APP_COMPONENTS],
        annotations=json.loads(json.dumps(APP_ANNOTATIONS)),
    )


@pytest.fixture
def workspace(tmp_path, monkeypatch, make_pack):
    """
    Working directory with deployment packs for every default provider under
    providers/deployer and an empty packs/ directory.
    """
    monkeypatch.chdir(tmp_path)
    providers = tmp_path / "providers" / "deployer"
    for provider in DEFAULT_PROVIDERS:
        make_pack(
            providers,
            f"greentic.demo.deploy.{provider}",
            flows=[f"deploy_{provider}_iac"],
            name=f"greentic.demo.deploy.{provider}",
        )
    (tmp_path / "packs").mkdir()
    return tmp_path


@pytest.fixture
def make_config(tmp_path):
    """Factory for DeployerConfig rooted in tmp_path."""

    def factory(**overrides) -> DeployerConfig:
        values = dict(
            action=Action.PLAN,
            provider="aws",
            tenant="acme",
            environment="staging",
            providers_dir=tmp_path / "providers" / "deployer",
            packs_dir=tmp_path / "packs",
            fallback_dirs=[tmp_path / "dist", tmp_path / "examples"],
            deploy_root=tmp_path / "deploy",
            cache_dir=tmp_path / "cache",
        )
        values.update(overrides)
        return DeployerConfig(**values)

    return factory
