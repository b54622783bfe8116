#!/usr/bin/env python3
"""
Static dispatch table: (provider, strategy) -> (pack_id, flow_id).

The table is data. The built-in entries ship as ``defaults.yaml`` next to this
module; additional YAML/JSON files with the same ``targets:`` layout extend or
override them, later files winning.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import yaml

from packdeployer.core.errors import ConfigurationError, create_error_context

logger = logging.getLogger(__name__)

DEFAULT_TABLE = Path(__file__).parent / "defaults.yaml"


@dataclass(frozen=True)
class DispatchMapping:
    """One table entry."""

    provider: str
    strategy: str
    pack_id: str
    flow_id: str


class DispatchTable:
    """Lookup table keyed by lower-cased (provider, strategy)."""

    def __init__(self, mappings: Iterable[DispatchMapping] = ()):
        self._entries: Dict[Tuple[str, str], DispatchMapping] = {}
        for mapping in mappings:
            self.add(mapping)

    @classmethod
    def load(cls, extra_paths: Iterable[Path] = (), include_defaults: bool = True) -> "DispatchTable":
        """
        Load the built-in table plus extra table files.

        Args:
            extra_paths: Additional table files, applied in order
            include_defaults: Whether to start from the built-in entries

        Returns:
            Populated DispatchTable

        Raises:
            ConfigurationError: If a table file is missing or malformed
        """
        table = cls()
        paths = ([DEFAULT_TABLE] if include_defaults else []) + [Path(p) for p in extra_paths]
        for path in paths:
            for mapping in cls.read_file(path):
                table.add(mapping)
            logger.debug("loaded dispatch table %s", path)
        return table

    @staticmethod
    def read_file(path: Path) -> List[DispatchMapping]:
        context = create_error_context(operation="load_dispatch_table", file_path=str(path))
        if not path.exists():
            raise ConfigurationError(f"dispatch table not found: {path}", context=context)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"dispatch table {path} is invalid: {e}", context=context, cause=e)

        entries = data.get("targets") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ConfigurationError(f"dispatch table {path} must contain a 'targets' list", context=context)

        mappings = []
        for index, entry in enumerate(entries):
            missing = [
                key for key in ("provider", "strategy", "pack_id", "flow_id")
                if not isinstance(entry, dict) or not entry.get(key)
            ]
            if missing:
                raise ConfigurationError(
                    f"dispatch table {path} entry #{index} is missing {', '.join(missing)}",
                    context=context,
                )
            mappings.append(
                DispatchMapping(
                    provider=str(entry["provider"]).lower(),
                    strategy=str(entry["strategy"]).lower(),
                    pack_id=str(entry["pack_id"]),
                    flow_id=str(entry["flow_id"]),
                )
            )
        return mappings

    def add(self, mapping: DispatchMapping) -> None:
        key = (mapping.provider.lower(), mapping.strategy.lower())
        if key in self._entries:
            logger.debug("dispatch mapping %s/%s overridden", *key)
        self._entries[key] = mapping

    def lookup(self, provider: str, strategy: str) -> Optional[DispatchMapping]:
        return self._entries.get((provider.lower(), strategy.lower()))

    def entries(self) -> List[DispatchMapping]:
        return [self._entries[key] for key in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)
