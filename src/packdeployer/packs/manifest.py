#!/usr/bin/env python3
"""
Pack manifest loading.

A pack is either a directory or a ``.gtpack`` zip archive holding a
``manifest.json`` or ``manifest.yaml`` at its root. The manifest lists the
pack's components, flows and annotations:

    pack_id: dev.greentic.sample
    version: 0.1.0
    components:
      - id: dev.greentic.webhook
        world: greentic:events/event-provider
        capabilities: [http-endpoint]
        secrets: [WEBHOOK_TOKEN]
    flows:
      - id: deploy_aws_iac
    annotations:
      greentic.secrets: {SLACK_BOT_TOKEN: {}}
      greentic.oauth: {slack: {}}
      connectors: {channels: [{name: support, kind: slack}]}

Values are kept raw here; the plan builder validates component fields.
"""

import json
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from packdeployer.core.errors import ConfigurationError, create_error_context

PACK_ARCHIVE_SUFFIX = ".gtpack"
MANIFEST_NAMES = ("manifest.json", "manifest.yaml", "manifest.yml")


@dataclass
class ComponentMetadata:
    """Raw component entry from a pack manifest."""

    id: Any
    world: Any = ""
    capabilities: Any = field(default_factory=list)
    profile: Optional[str] = None
    role: Optional[str] = None
    secrets: Any = field(default_factory=list)


@dataclass
class PackManifest:
    """Parsed pack manifest."""

    pack_id: str
    version: str
    components: List[ComponentMetadata] = field(default_factory=list)
    flows: List[str] = field(default_factory=list)
    annotations: Dict[str, Any] = field(default_factory=dict)
    kind: str = "application"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<memory>") -> "PackManifest":
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"pack manifest in {source} must be a mapping",
                context=create_error_context(operation="load_manifest", file_path=source),
            )
        pack_id = data.get("pack_id")
        if not pack_id or not isinstance(pack_id, str):
            raise ConfigurationError(
                f"pack manifest in {source} is missing 'pack_id'",
                context=create_error_context(
                    operation="load_manifest", file_path=source, identifier="pack_id"
                ),
            )

        components = []
        for index, entry in enumerate(data.get("components") or []):
            if not isinstance(entry, dict):
                raise ConfigurationError(
                    f"component entry #{index} in {source} must be a mapping",
                    context=create_error_context(
                        operation="load_manifest", file_path=source, identifier=f"components[{index}]"
                    ),
                )
            components.append(
                ComponentMetadata(
                    id=entry.get("id"),
                    world=entry.get("world", ""),
                    capabilities=entry.get("capabilities", []),
                    profile=entry.get("profile"),
                    role=entry.get("role"),
                    secrets=entry.get("secrets", []),
                )
            )

        flows = []
        for entry in data.get("flows") or []:
            flow_id = entry.get("id") if isinstance(entry, dict) else entry
            if flow_id:
                flows.append(str(flow_id))

        return cls(
            pack_id=pack_id,
            version=str(data.get("version", "0.0.0")),
            components=components,
            flows=flows,
            annotations=data.get("annotations") or {},
            kind=data.get("kind", "application"),
        )


def _parse_manifest_text(name: str, text: Union[str, bytes], source: str) -> Dict[str, Any]:
    try:
        if name.endswith(".json"):
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"pack manifest {source} is invalid: {e}",
            context=create_error_context(operation="load_manifest", file_path=source),
            cause=e,
        )


def is_pack_candidate(path: Path) -> bool:
    return path.is_dir() or path.suffix == PACK_ARCHIVE_SUFFIX


def read_manifest(path: Union[str, Path]) -> PackManifest:
    """
    Read the manifest of a pack directory or archive.

    Args:
        path: Pack directory or .gtpack archive

    Returns:
        Parsed PackManifest

    Raises:
        ConfigurationError: If the pack or its manifest is missing or malformed
    """
    path = Path(path)
    context = create_error_context(operation="load_manifest", file_path=str(path))

    if path.is_dir():
        for name in MANIFEST_NAMES:
            candidate = path / name
            if candidate.exists():
                data = _parse_manifest_text(name, candidate.read_text(), str(candidate))
                return PackManifest.from_dict(data, source=str(candidate))
        raise ConfigurationError(f"pack manifest missing in {path}", context=context)

    if not path.exists():
        raise ConfigurationError(f"pack not found: {path}", context=context)

    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
            for name in MANIFEST_NAMES:
                if name in names:
                    data = _parse_manifest_text(name, archive.read(name), f"{path}!{name}")
                    return PackManifest.from_dict(data, source=f"{path}!{name}")
    except zipfile.BadZipFile as e:
        raise ConfigurationError(f"pack archive {path} is not a valid zip file", context=context, cause=e)

    raise ConfigurationError(f"pack manifest missing in archive {path}", context=context)
