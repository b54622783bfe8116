#!/usr/bin/env python3
"""
Pack sources.

Every place a pack can come from implements one interface,
``resolve(pack_id, version, digest) -> bytes``, returning the pack as
``.gtpack`` archive bytes:

- FilesystemPackSource: a local pack path, or directories of packs
- DistributorPackSource: a remote distributor over HTTP, with bounded retry

Consumers that need a path on disk call ``materialize``; sources backed by
the filesystem return the pack in place, others write the bytes to a
digest-named archive in a cache directory.
"""

import hashlib
import io
import logging
import re
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import requests

from packdeployer.core.errors import (
    ConfigurationError,
    PackFetchError,
    create_error_context,
)
from packdeployer.core.retry import RetryStrategy, retry_on_failure

from .manifest import PACK_ARCHIVE_SUFFIX, PackManifest, is_pack_candidate, read_manifest

logger = logging.getLogger(__name__)

SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
FETCH_ATTEMPTS = 3
FETCH_TIMEOUT = 30


@dataclass(frozen=True)
class PackRef:
    """Registry reference to a pack: identifier, version and content digest."""

    pack_id: str
    version: str
    digest: str

    def __post_init__(self):
        if not SEMVER_RE.match(self.version):
            raise ConfigurationError(
                f"invalid pack version '{self.version}'",
                context=create_error_context(operation="pack_ref", identifier=self.pack_id),
            )
        if not self.digest.startswith("sha256:"):
            raise ConfigurationError(
                f"unsupported pack digest '{self.digest}' (expected sha256:<hex>)",
                context=create_error_context(operation="pack_ref", identifier=self.pack_id),
            )


def compute_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def verify_digest(expected: Optional[str], data: bytes, pack_id: str) -> None:
    if not expected:
        return
    actual = compute_digest(data)
    if actual != expected:
        raise PackFetchError(
            f"digest mismatch for pack {pack_id}: expected {expected}, got {actual}",
            context=create_error_context(operation="verify_digest", identifier=pack_id),
        )


def archive_directory(root: Path) -> bytes:
    """Pack a directory into .gtpack (zip) bytes with a stable entry order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            info = zipfile.ZipInfo(path.relative_to(root).as_posix(), date_time=(1980, 1, 1, 0, 0, 0))
            archive.writestr(info, path.read_bytes())
    return buffer.getvalue()


class PackSource(ABC):
    """Capability interface for obtaining packs."""

    label: str = "source"
    enumerable: bool = False

    @abstractmethod
    def resolve(self, pack_id: str, version: Optional[str] = None, digest: Optional[str] = None) -> bytes:
        """
        Return the pack as archive bytes.

        Raises:
            PackFetchError: If the pack cannot be obtained or fails verification
        """

    def describe(self) -> str:
        return self.label

    def available(self) -> List[str]:
        """Pack ids this source can enumerate; remote sources list nothing."""
        return []

    def materialize(
        self,
        pack_id: str,
        version: Optional[str] = None,
        digest: Optional[str] = None,
        cache_dir: Path = Path(".pack-deployer/cache"),
    ) -> Path:
        """
        Return a local path holding the pack, reusing the digest-named cache.

        Raises:
            PackFetchError: If the pack cannot be obtained
        """
        cache_dir = Path(cache_dir)
        if digest:
            cached = cache_dir / (digest.replace(":", "-") + PACK_ARCHIVE_SUFFIX)
            if cached.exists():
                logger.debug("using cached pack %s at %s", pack_id, cached)
                return cached

        data = self.resolve(pack_id, version, digest)
        cached = cache_dir / (compute_digest(data).replace(":", "-") + PACK_ARCHIVE_SUFFIX)
        cache_dir.mkdir(parents=True, exist_ok=True)
        cached.write_bytes(data)
        return cached


class FilesystemPackSource(PackSource):
    """
    Packs on the local filesystem.

    ``root`` is either a pack itself (directory with a manifest, or an
    archive) or a directory whose entries are packs. Entries are visited in
    sorted order and the first matching pack id wins.
    """

    def __init__(self, root: Path, label: str = "filesystem"):
        self.root = Path(root)
        self.label = label
        self.enumerable = True

    def describe(self) -> str:
        return f"{self.label} ({self.root})"

    def candidates(self) -> List[Tuple[Path, PackManifest]]:
        """All readable packs under the root; unreadable entries are skipped."""
        if not self.root.exists():
            return []
        if self.root.is_file() or self._is_pack(self.root):
            paths = [self.root]
        else:
            paths = [p for p in sorted(self.root.iterdir()) if is_pack_candidate(p)]

        found = []
        for path in paths:
            try:
                found.append((path, read_manifest(path)))
            except ConfigurationError as e:
                logger.debug("skipping %s: %s", path, e)
        return found

    @staticmethod
    def _is_pack(path: Path) -> bool:
        return path.is_dir() and any(
            (path / name).exists() for name in ("manifest.json", "manifest.yaml", "manifest.yml")
        )

    def available(self) -> List[str]:
        return [manifest.pack_id for _, manifest in self.candidates()]

    def locate(self, pack_id: str, version: Optional[str] = None) -> Optional[Path]:
        for path, manifest in self.candidates():
            if manifest.pack_id == pack_id and (version is None or manifest.version == version):
                return path
        return None

    def resolve(self, pack_id: str, version: Optional[str] = None, digest: Optional[str] = None) -> bytes:
        path = self.locate(pack_id, version)
        if path is None:
            raise PackFetchError(
                f"pack {pack_id} not found in {self.describe()}",
                context=create_error_context(operation="resolve_pack", identifier=pack_id),
            )
        data = archive_directory(path) if path.is_dir() else path.read_bytes()
        verify_digest(digest, data, pack_id)
        return data

    def materialize(
        self,
        pack_id: str,
        version: Optional[str] = None,
        digest: Optional[str] = None,
        cache_dir: Path = Path(".pack-deployer/cache"),
    ) -> Path:
        path = self.locate(pack_id, version)
        if path is None:
            raise PackFetchError(
                f"pack {pack_id} not found in {self.describe()}",
                context=create_error_context(operation="resolve_pack", identifier=pack_id),
            )
        if digest:
            data = archive_directory(path) if path.is_dir() else path.read_bytes()
            verify_digest(digest, data, pack_id)
        return path


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, PackFetchError) and error.transient


class DistributorPackSource(PackSource):
    """Fetches packs from a distributor: GET {url}/packs/{id}/{version}."""

    label = "distributor"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = FETCH_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def describe(self) -> str:
        return f"{self.label} ({self.base_url})"

    def pack_url(self, pack_id: str, version: Optional[str]) -> str:
        return f"{self.base_url}/packs/{pack_id}/{version or 'latest'}"

    def resolve(self, pack_id: str, version: Optional[str] = None, digest: Optional[str] = None) -> bytes:
        data = self._fetch(pack_id, version, digest)
        verify_digest(digest, data, pack_id)
        return data

    @retry_on_failure(
        max_attempts=FETCH_ATTEMPTS,
        strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
        base_delay=1.0,
        max_delay=8.0,
        exceptions=(PackFetchError,),
        should_retry=_is_transient,
    )
    def _fetch(self, pack_id: str, version: Optional[str], digest: Optional[str]) -> bytes:
        url = self.pack_url(pack_id, version)
        headers = {"Accept": "application/vnd.greentic.pack.v1+gtpack, application/octet-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if digest:
            headers["X-Pack-Digest"] = digest
        context = create_error_context(operation="fetch_pack", identifier=pack_id, file_path=url)

        logger.info("fetching pack %s@%s from %s", pack_id, version or "latest", url)
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise PackFetchError(
                f"failed to reach distributor at {url}: {e}", transient=True, context=context, cause=e
            )

        if response.status_code >= 500:
            raise PackFetchError(
                f"distributor returned {response.status_code} for {url}", transient=True, context=context
            )
        if response.status_code != 200:
            raise PackFetchError(f"distributor returned {response.status_code} for {url}", context=context)
        return response.content


def filesystem_sources(locations: Iterable[Tuple[str, Optional[Path]]]) -> List[PackSource]:
    """Build labelled filesystem sources, skipping unset locations."""
    return [FilesystemPackSource(path, label) for label, path in locations if path is not None]
