"""
Pack access: manifest parsing and the pack source abstraction
(local filesystem or remote distributor).
"""

from .manifest import ComponentMetadata, PackManifest, is_pack_candidate, read_manifest
from .sources import (
    DistributorPackSource,
    FilesystemPackSource,
    PackRef,
    PackSource,
    compute_digest,
    filesystem_sources,
)

__all__ = [
    "ComponentMetadata",
    "PackManifest",
    "is_pack_candidate",
    "read_manifest",
    "DistributorPackSource",
    "FilesystemPackSource",
    "PackRef",
    "PackSource",
    "compute_digest",
    "filesystem_sources",
]
