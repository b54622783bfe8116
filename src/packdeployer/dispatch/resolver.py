#!/usr/bin/env python3
"""
Dispatch resolver - maps (provider, strategy) to a deployment pack and flow.

Resolution order:
1. Direct pack override (--provider-pack) short-circuits everything else
2. DEPLOY_TARGET_<PROVIDER>_<STRATEGY>_PACK_ID/_FLOW_ID, then
   DEPLOY_TARGET_<PROVIDER>_PACK_ID/_FLOW_ID
3. Static dispatch table
4. Pack discovery over the configured sources, first match wins
5. Flow check against the located pack

Resolution does not depend on the application plan and is repeated for
every invocation.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from packdeployer.config.loader import DeployerConfig
from packdeployer.core.errors import (
    ConfigurationError,
    DispatchResolutionError,
    PackFetchError,
    create_error_context,
)
from packdeployer.packs.manifest import PackManifest, read_manifest
from packdeployer.packs.sources import DistributorPackSource, PackSource, filesystem_sources
from packdeployer.plan.model import Target

from .table import DispatchTable

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEPLOY_TARGET"


def sanitize_key(value: str) -> str:
    """Upper-case ``value`` and replace anything but ASCII letters and digits with '_'."""
    return "".join(c.upper() if c.isascii() and c.isalnum() else "_" for c in value)


def override_keys(provider: str, strategy: str) -> List[Tuple[str, str]]:
    """(pack key, flow key) pairs in lookup order."""
    prefixes = [
        f"{ENV_PREFIX}_{sanitize_key(provider)}_{sanitize_key(strategy)}",
        f"{ENV_PREFIX}_{sanitize_key(provider)}",
    ]
    return [(f"{prefix}_PACK_ID", f"{prefix}_FLOW_ID") for prefix in prefixes]


@dataclass(frozen=True)
class DispatchTarget:
    """Resolved deployment pack and flow for one (provider, strategy)."""

    provider: str
    strategy: str
    pack_id: str
    flow_id: str
    origin: str
    mapping: str = "default-table"
    pack_path: Optional[Path] = None
    candidates: Tuple[str, ...] = ()

    @property
    def platform(self) -> Optional[Target]:
        """The known infrastructure platform for ``provider``, None for custom providers."""
        try:
            return Target(self.provider.lower())
        except ValueError:
            return None

    def to_dict(self) -> Dict:
        return {
            "provider": self.provider,
            "strategy": self.strategy,
            "pack_id": self.pack_id,
            "flow_id": self.flow_id,
            "origin": self.origin,
            "mapping": self.mapping,
            "pack_path": str(self.pack_path) if self.pack_path else None,
            "candidates": list(self.candidates),
        }


@dataclass
class SearchRecord:
    """What one discovery location held."""

    label: str
    location: str
    pack_ids: List[str] = field(default_factory=list)
    note: Optional[str] = None

    def describe(self) -> str:
        found = ", ".join(self.pack_ids) if self.pack_ids else "none"
        if self.note:
            found = f"{found}; {self.note}"
        return f"{self.location}: {found}"


class DispatchResolver:
    """Resolves dispatch targets against overrides, the table and pack sources."""

    def __init__(
        self,
        config: DeployerConfig,
        environ: Optional[Mapping[str, str]] = None,
        table: Optional[DispatchTable] = None,
        sources: Optional[List[PackSource]] = None,
    ):
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.table = table if table is not None else DispatchTable.load(config.dispatch_tables)
        self.sources = sources if sources is not None else self.default_sources(config)

    @staticmethod
    def default_sources(config: DeployerConfig) -> List[PackSource]:
        """
        Discovery chain: <providers_dir>/<provider>, providers dir, packs dir,
        fallback dirs, then the distributor when one is configured.
        """
        provider_path = config.providers_dir / config.provider
        locations = [
            ("providers-dir", provider_path if provider_path.exists() else None),
            ("providers-dir", config.providers_dir),
            ("packs-dir", config.packs_dir),
        ]
        locations += [(path.name or str(path), path) for path in config.fallback_dirs]
        sources = filesystem_sources(locations)
        if config.distributor_url:
            sources.append(DistributorPackSource(config.distributor_url, config.distributor_token))
        return sources

    def resolve(self, provider: Optional[str] = None, strategy: Optional[str] = None) -> DispatchTarget:
        """
        Resolve a dispatch target.

        Args:
            provider: Provider name, the configured provider when None
            strategy: Strategy name, the configured strategy when None

        Returns:
            DispatchTarget with the located pack

        Raises:
            DispatchResolutionError: On incomplete overrides, unmapped pairs,
                missing packs or missing flows
        """
        provider = (provider or self.config.provider).lower()
        strategy = (strategy or self.config.strategy).lower()

        if self.config.provider_pack is not None:
            return self._resolve_direct(provider, strategy, self.config.provider_pack)

        pack_id, flow_id, mapping = self.resolve_mapping(provider, strategy)
        logger.info(
            "dispatch %s/%s -> %s flow %s (%s)", provider, strategy, pack_id, flow_id, mapping
        )

        path, manifest, origin, candidates = self._discover(provider, strategy, pack_id)
        self._ensure_flow(provider, strategy, pack_id, flow_id, manifest)

        return DispatchTarget(
            provider=provider,
            strategy=strategy,
            pack_id=pack_id,
            flow_id=flow_id,
            origin=origin,
            mapping=mapping,
            pack_path=path,
            candidates=tuple(candidates),
        )

    def resolve_mapping(self, provider: str, strategy: str) -> Tuple[str, str, str]:
        """
        (pack_id, flow_id, mapping source) from overrides or the table.

        Raises:
            DispatchResolutionError: On a half-set override pair or no mapping
        """
        for pack_key, flow_key in override_keys(provider, strategy):
            pack_id = self.environ.get(pack_key)
            flow_id = self.environ.get(flow_key)
            if pack_id and flow_id:
                return pack_id, flow_id, f"env {pack_key}"
            if pack_id or flow_id:
                raise DispatchResolutionError(
                    f"Incomplete deployment mapping overrides. Both {pack_key} and {flow_key} must be set.",
                    context=self._context(provider, strategy, identifier=flow_key if pack_id else pack_key),
                    suggestions=[f"Set {pack_key} and {flow_key} together, or unset both"],
                )

        entry = self.table.lookup(provider, strategy)
        if entry is not None:
            return entry.pack_id, entry.flow_id, "default-table"

        pack_key, flow_key = override_keys(provider, strategy)[0]
        raise DispatchResolutionError(
            f"No deployment pack mapping for provider={provider} strategy={strategy}. "
            f"Configure {pack_key} / {flow_key} or extend the dispatch table.",
            context=self._context(provider, strategy, identifier=f"{provider}/{strategy}"),
            suggestions=[
                "Known mappings: "
                + ", ".join(f"{e.provider}/{e.strategy}" for e in self.table.entries())
            ],
        )

    def overrides_set(self, provider: str, strategy: str) -> Dict[str, str]:
        """Override keys present in the environment and their values."""
        found = {}
        for keys in override_keys(provider, strategy):
            for key in keys:
                if key in self.environ:
                    found[key] = self.environ[key]
        return found

    def _resolve_direct(self, provider: str, strategy: str, path: Path) -> DispatchTarget:
        try:
            manifest = read_manifest(path)
        except ConfigurationError as e:
            raise DispatchResolutionError(
                f"explicit deployment pack {path} could not be read: {e.message}",
                context=self._context(provider, strategy, identifier=str(path), file_path=str(path)),
                cause=e,
            )
        if not manifest.flows:
            raise DispatchResolutionError(
                f"Flow not found in {manifest.pack_id} (available flows: none)",
                context=self._context(provider, strategy, identifier=manifest.pack_id, file_path=str(path)),
            )

        flow_id = manifest.flows[0]
        entry = self.table.lookup(provider, strategy)
        if entry is not None and entry.flow_id in manifest.flows:
            flow_id = entry.flow_id

        logger.info("dispatch %s/%s -> %s flow %s (provider-pack)", provider, strategy, manifest.pack_id, flow_id)
        return DispatchTarget(
            provider=provider,
            strategy=strategy,
            pack_id=manifest.pack_id,
            flow_id=flow_id,
            origin=f"override -> {path}",
            mapping="provider-pack",
            pack_path=Path(path),
            candidates=(f"{manifest.pack_id} (override {path})",),
        )

    def _discover(self, provider: str, strategy: str, pack_id: str):
        searched: List[SearchRecord] = []
        candidates: List[str] = []

        for source in self.sources:
            record = SearchRecord(label=source.label, location=source.describe())
            searched.append(record)

            if source.enumerable:
                record.pack_ids = source.available()
                candidates.extend(f"{found} ({record.location})" for found in record.pack_ids)
                if pack_id not in record.pack_ids:
                    continue

            try:
                path = source.materialize(pack_id, cache_dir=self.config.cache_dir)
                manifest = read_manifest(path)
            except (PackFetchError, ConfigurationError) as e:
                record.note = e.message
                logger.debug("%s: %s", record.location, e.message)
                continue

            if manifest.pack_id != pack_id:
                record.note = f"served {manifest.pack_id}"
                continue
            if not source.enumerable:
                candidates.append(f"{pack_id} ({record.location})")

            origin = f"{source.label} -> {path}"
            logger.debug("found %s at %s", pack_id, origin)
            return path, manifest, origin, candidates

        raise DispatchResolutionError(
            self._not_found_message(provider, strategy, pack_id, searched),
            context=self._context(
                provider,
                strategy,
                identifier=pack_id,
                additional_info={
                    "searched": {record.location: record.pack_ids for record in searched},
                    "overrides": self.overrides_set(provider, strategy),
                },
            ),
            suggestions=[
                "Pass --provider-pack <path> to point at the pack directly",
                "Set --providers-dir or --packs-dir to the directory holding the pack",
            ],
        )

    def _not_found_message(
        self, provider: str, strategy: str, pack_id: str, searched: List[SearchRecord]
    ) -> str:
        locations = "; ".join(record.describe() for record in searched) or "no locations configured"
        overrides = self.overrides_set(provider, strategy)
        override_text = (
            ", ".join(f"{key}={value}" for key, value in sorted(overrides.items()))
            if overrides
            else "none set"
        )
        return (
            f"Deployment pack {pack_id} not found; searched {locations}. "
            f"Override keys: {override_text}"
        )

    def _ensure_flow(
        self, provider: str, strategy: str, pack_id: str, flow_id: str, manifest: PackManifest
    ) -> None:
        if flow_id in manifest.flows:
            return
        available = ", ".join(manifest.flows) if manifest.flows else "none"
        raise DispatchResolutionError(
            f"Flow {flow_id} not found in {pack_id} (available flows: {available})",
            context=self._context(provider, strategy, identifier=flow_id),
        )

    def _context(self, provider: str, strategy: str, **kwargs):
        return create_error_context(
            operation="resolve_dispatch",
            provider=provider,
            strategy=strategy,
            tenant=self.config.tenant,
            environment=self.config.environment,
            **kwargs,
        )
