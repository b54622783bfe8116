"""
Execution layer: executor contract, registry and the legacy fallback.
"""

from .executor import (
    LEGACY_PROVIDERS,
    ExecutionResult,
    ExecutionStatus,
    Executor,
    InvocationRequest,
    LegacyFallbackExecutor,
)
from .registry import ExecutorRegistry, default_registry, dispatch

__all__ = [
    "LEGACY_PROVIDERS",
    "ExecutionResult",
    "ExecutionStatus",
    "Executor",
    "ExecutorRegistry",
    "InvocationRequest",
    "LegacyFallbackExecutor",
    "default_registry",
    "dispatch",
]
