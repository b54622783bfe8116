"""
Dispatch resolution: (provider, strategy) -> deployment pack and flow.
"""

from .resolver import DispatchResolver, DispatchTarget, override_keys, sanitize_key
from .table import DispatchMapping, DispatchTable

__all__ = [
    "DispatchMapping",
    "DispatchResolver",
    "DispatchTable",
    "DispatchTarget",
    "override_keys",
    "sanitize_key",
]
