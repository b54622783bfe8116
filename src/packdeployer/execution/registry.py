#!/usr/bin/env python3
"""
Executor registry and executor dispatch.

The registry is a capability object: one is built per invocation (or injected
by the host) and passed down the pipeline. Registration is last-write-wins
within a registry instance, and ``scoped`` installs an executor temporarily.
"""

import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from packdeployer.core.errors import (
    DeployerError,
    ExecutorError,
    PersistenceError,
    UnsupportedProviderError,
)

from .executor import (
    LEGACY_PLATFORMS,
    LEGACY_PROVIDERS,
    ExecutionResult,
    ExecutionStatus,
    Executor,
    InvocationRequest,
    LegacyFallbackExecutor,
)

logger = logging.getLogger(__name__)


class CallableExecutor:
    """Adapts a plain ``fn(config, plan, target)`` to the Executor protocol."""

    def __init__(self, func: Callable[..., Any], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", "callable")

    def execute(self, config, plan, target) -> ExecutionResult:
        result = self.func(config, plan, target)
        if isinstance(result, ExecutionResult):
            return result
        return ExecutionResult(status=ExecutionStatus.SUCCESS, message=str(result or ""))


def executor_name(executor: Any) -> str:
    return getattr(executor, "name", None) or type(executor).__name__


class ExecutorRegistry:
    """Single-slot executor registry."""

    def __init__(self, executor: Optional[Executor] = None):
        self._executor: Optional[Executor] = None
        if executor is not None:
            self.register(executor)

    def register(self, executor: Any) -> None:
        """
        Register an executor, replacing any previous one.

        Args:
            executor: Object with an ``execute`` method, or a callable of the
                same shape
        """
        if not isinstance(executor, Executor):
            if not callable(executor):
                raise TypeError(f"executor must define execute() or be callable, got {executor!r}")
            executor = CallableExecutor(executor)
        if self._executor is not None:
            logger.debug(
                "replacing executor %s with %s", executor_name(self._executor), executor_name(executor)
            )
        self._executor = executor

    def clear(self) -> None:
        self._executor = None

    @property
    def current(self) -> Optional[Executor]:
        return self._executor

    @contextmanager
    def scoped(self, executor: Any) -> Iterator[Executor]:
        """Install ``executor`` for the duration of the block."""
        previous = self._executor
        self.register(executor)
        try:
            yield self._executor
        finally:
            self._executor = previous


_default_registry = ExecutorRegistry()


def default_registry() -> ExecutorRegistry:
    """Process-level registry for hosts that register executors globally."""
    return _default_registry


def ensure_output_dir(request: InvocationRequest) -> None:
    """
    Create the output directory and check it is writable.

    Raises:
        PersistenceError: If the directory cannot be created or written
    """
    context = request.config.error_context(operation="prepare_output", file_path=str(request.output_dir))
    try:
        request.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PersistenceError(
            f"cannot create output directory {request.output_dir}: {e}", context=context, cause=e
        )
    if not os.access(request.output_dir, os.W_OK):
        raise PersistenceError(f"output directory {request.output_dir} is not writable", context=context)


def select_executor(registry: ExecutorRegistry, request: InvocationRequest) -> Executor:
    """
    The registered executor, else the legacy fallback for legacy providers.

    Raises:
        UnsupportedProviderError: If nothing can serve the provider
    """
    if registry.current is not None:
        return registry.current

    provider = request.target.provider
    if request.target.platform in LEGACY_PLATFORMS:
        logger.info("no executor registered; using legacy fallback for %s", provider)
        return LegacyFallbackExecutor()

    raise UnsupportedProviderError(
        f"provider {provider} is unsupported without a registered executor",
        context=request.config.error_context(operation="dispatch", identifier=provider),
        suggestions=[
            f"Register an executor, or use one of the built-in providers: {', '.join(LEGACY_PROVIDERS)}"
        ],
    )


def dispatch(registry: ExecutorRegistry, request: InvocationRequest) -> ExecutionResult:
    """
    Invoke the executor for ``request``.

    Returns:
        Successful ExecutionResult

    Raises:
        PersistenceError: If the output directory is not usable
        UnsupportedProviderError: If no executor serves the provider
        ExecutorError: If the executor raises or reports failure
    """
    ensure_output_dir(request)
    executor = select_executor(registry, request)
    name = executor_name(executor)
    context = request.config.error_context(operation="execute", identifier=request.target.pack_id)

    logger.info(
        "invoking %s for %s flow %s -> %s", name, request.target.pack_id, request.target.flow_id, request.output_dir
    )
    try:
        result = executor.execute(request.config, request.plan, request.target)
    except DeployerError:
        raise
    except Exception as e:
        raise ExecutorError(f"executor {name} failed: {e}", context=context, cause=e)

    if not isinstance(result, ExecutionResult):
        raise ExecutorError(f"executor {name} returned {type(result).__name__}, expected ExecutionResult", context=context)
    if not result.executor:
        result.executor = name
    if result.is_failed:
        raise ExecutorError(f"executor {name} reported failure: {result.message}", context=context)
    return result
