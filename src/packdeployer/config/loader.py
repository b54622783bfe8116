#!/usr/bin/env python3
"""
Configuration loader with multi-layer merging for deployer invocations.

Layers (low to high priority):
1. System defaults (built-in presets/defaults.yaml)
2. User file (--config or PACK_DEPLOYER_CONFIG)
3. Environment variables (PACK_DEPLOYER_*)
4. User CLI flags
"""

import os
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from packdeployer.core.errors import ConfigurationError, create_error_context
from packdeployer.packs.sources import PackRef

ENV_PREFIX = "PACK_DEPLOYER_"

# Environment variable -> config key
ENV_KEYS = {
    "PACK_DEPLOYER_ENV": "environment",
    "PACK_DEPLOYER_BASE_DOMAIN": "base_domain",
    "PACK_DEPLOYER_DISTRIBUTOR_URL": "distributor_url",
    "PACK_DEPLOYER_DISTRIBUTOR_TOKEN": "distributor_token",
    "PACK_DEPLOYER_PROVIDERS_DIR": "providers_dir",
    "PACK_DEPLOYER_PACKS_DIR": "packs_dir",
    "PACK_DEPLOYER_DEPLOY_ROOT": "deploy_root",
    "PACK_DEPLOYER_OTLP_ENDPOINT": "telemetry_endpoint",
    "PACK_DEPLOYER_CACHE_DIR": "cache_dir",
}


class Action(Enum):
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"

    @property
    def needs_secrets(self) -> bool:
        return self in (Action.APPLY, Action.DESTROY)


class OutputFormat(Enum):
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


@dataclass
class DeployerConfig:
    """Complete configuration of one deployer invocation."""

    action: Action
    provider: str
    tenant: str
    strategy: str = "iac-only"
    environment: str = "dev"
    pack_path: Optional[Path] = None
    pack_ref: Optional[PackRef] = None
    distributor_url: Optional[str] = None
    distributor_token: Optional[str] = None
    providers_dir: Path = Path("providers/deployer")
    packs_dir: Path = Path("packs")
    provider_pack: Optional[Path] = None
    fallback_dirs: List[Path] = field(default_factory=lambda: [Path("dist"), Path("examples")])
    dispatch_tables: List[Path] = field(default_factory=list)
    deploy_root: Path = Path("deploy")
    cache_dir: Path = Path(".pack-deployer/cache")
    base_domain: str = "deploy.greentic.ai"
    telemetry_endpoint: Optional[str] = None
    yes: bool = False
    preview: bool = False
    dry_run: bool = False
    output: OutputFormat = OutputFormat.TEXT

    def __post_init__(self):
        self.provider = self.provider.lower()
        self.strategy = self.strategy.lower()

    @property
    def output_dir(self) -> Path:
        """deploy/<provider>/<tenant>/<environment>"""
        return self.deploy_root / self.provider / self.tenant / self.environment

    def error_context(self, **kwargs):
        return create_error_context(
            provider=self.provider,
            strategy=self.strategy,
            tenant=self.tenant,
            environment=self.environment,
            **kwargs,
        )


class ConfigLoader:
    """Layered configuration loader."""

    PRESET_DIR = Path(__file__).parent / "presets"

    @classmethod
    def load_preset(cls, preset_path: str) -> Dict[str, Any]:
        """
        Load a preset YAML file.

        Args:
            preset_path: Path of the preset relative to PRESET_DIR

        Returns:
            Preset configuration, or empty dict if not found
        """
        full_path = cls.PRESET_DIR / preset_path
        if not full_path.exists():
            return {}
        with open(full_path) as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def load_file(cls, path: Path) -> Dict[str, Any]:
        """Load a user config file (YAML or JSON, YAML being a superset)."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"config file not found: {path}",
                context=create_error_context(operation="load_config", file_path=str(path)),
            )
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"config file {path} is invalid: {e}",
                context=create_error_context(operation="load_config", file_path=str(path)),
                cause=e,
            )
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"config file {path} must contain a mapping",
                context=create_error_context(operation="load_config", file_path=str(path)),
            )
        return data

    @classmethod
    def deep_merge(cls, base: Dict, override: Dict) -> Dict:
        """
        Deep merge two dictionaries. Override wins conflicts.
        Nested dicts are merged, lists/primitives are replaced.
        None values in override do not replace existing values.
        """
        result = deepcopy(base)
        for key, value in override.items():
            if value is None:
                continue
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls.deep_merge(result[key], value)
            else:
                result[key] = deepcopy(value)
        return result

    @classmethod
    def env_layer(cls, environ: Mapping[str, str]) -> Dict[str, Any]:
        layer: Dict[str, Any] = {}
        for env_key, config_key in ENV_KEYS.items():
            value = environ.get(env_key)
            if value:
                layer[config_key] = value
        tables = environ.get("PACK_DEPLOYER_DISPATCH_TABLES")
        if tables:
            layer["dispatch_tables"] = [p for p in tables.split(os.pathsep) if p]
        return layer

    @classmethod
    def merge_layers(
        cls,
        cli_values: Dict[str, Any],
        config_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        environ = os.environ if environ is None else environ
        merged = cls.load_preset("defaults.yaml")

        config_file = config_file or environ.get("PACK_DEPLOYER_CONFIG")
        if config_file:
            merged = cls.deep_merge(merged, cls.load_file(Path(config_file)))

        merged = cls.deep_merge(merged, cls.env_layer(environ))
        return cls.deep_merge(merged, cli_values)

    @classmethod
    def load_config(
        cls,
        action: Action,
        cli_values: Dict[str, Any],
        config_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> DeployerConfig:
        """
        Build a DeployerConfig from all layers.

        Raises:
            ConfigurationError: On missing required values, an inconsistent
                pack reference or a pack path that does not exist
        """
        merged = cls.merge_layers(cli_values, config_file, environ)

        for required in ("provider", "tenant"):
            if not merged.get(required):
                raise ConfigurationError(
                    f"missing required setting '{required}'",
                    context=create_error_context(operation="load_config", identifier=required),
                    suggestions=[f"Pass --{required}"],
                )

        pack_ref = cls.build_pack_ref(merged)
        pack_path = Path(merged["pack_path"]) if merged.get("pack_path") else None
        if pack_ref is None and (pack_path is None or not pack_path.exists()):
            raise ConfigurationError(
                f"pack path {pack_path} does not exist (and no --pack-id provided)",
                context=create_error_context(
                    operation="load_config",
                    provider=merged["provider"],
                    tenant=merged["tenant"],
                    identifier=str(pack_path),
                ),
            )

        try:
            output = OutputFormat(str(merged.get("output", "text")).lower())
        except ValueError:
            raise ConfigurationError(
                f"unsupported output format '{merged.get('output')}'",
                context=create_error_context(operation="load_config", identifier="output"),
                suggestions=["Use one of: text, json, yaml"],
            )

        return DeployerConfig(
            action=action,
            provider=merged["provider"],
            tenant=merged["tenant"],
            strategy=merged.get("strategy", "iac-only"),
            environment=merged.get("environment", "dev"),
            pack_path=pack_path,
            pack_ref=pack_ref,
            distributor_url=merged.get("distributor_url"),
            distributor_token=merged.get("distributor_token"),
            providers_dir=Path(merged.get("providers_dir", "providers/deployer")),
            packs_dir=Path(merged.get("packs_dir", "packs")),
            provider_pack=Path(merged["provider_pack"]) if merged.get("provider_pack") else None,
            fallback_dirs=[Path(p) for p in merged.get("fallback_dirs", ["dist", "examples"])],
            dispatch_tables=[Path(p) for p in merged.get("dispatch_tables", [])],
            deploy_root=Path(merged.get("deploy_root", "deploy")),
            cache_dir=Path(merged.get("cache_dir", ".pack-deployer/cache")),
            base_domain=merged.get("base_domain", "deploy.greentic.ai"),
            telemetry_endpoint=merged.get("telemetry_endpoint"),
            yes=bool(merged.get("yes", False)),
            preview=bool(merged.get("preview", False)),
            dry_run=bool(merged.get("dry_run", False)),
            output=output,
        )

    @classmethod
    def build_pack_ref(cls, merged: Dict[str, Any]) -> Optional[PackRef]:
        pack_id = merged.get("pack_id")
        if not pack_id:
            return None
        for flag, key in (("--pack-version", "pack_version"), ("--pack-digest", "pack_digest")):
            if not merged.get(key):
                raise ConfigurationError(
                    f"when using --pack-id you must set {flag}",
                    context=create_error_context(operation="load_config", identifier=pack_id),
                )
        return PackRef(pack_id=pack_id, version=merged["pack_version"], digest=merged["pack_digest"])
