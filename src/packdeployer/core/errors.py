#!/usr/bin/env python3
"""
Unified error handling for packdeployer.

Defines the structured error hierarchy raised by the planning, dispatch,
secrets, execution and persistence layers, plus a Rich-based handler that
renders them for operators.

Error kinds:
- ConfigurationError: malformed bundle/plan input or CLI configuration
- DispatchResolutionError: mapping or discovery failure (missing pack/flow)
- SecretResolutionError: missing secret or backend failure during apply/destroy
- ExecutorError: delegate invocation failure
- PersistenceError: I/O failure writing plan/diagnostics/artifacts
- PackFetchError: transient failure fetching a bundle from a distributor
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text


class ErrorCategory(Enum):
    """Error category enumeration."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    DISPATCH = "dispatch"
    SECRETS = "secrets"
    EXECUTOR = "executor"
    PERSISTENCE = "persistence"
    FETCH = "fetch"


@dataclass
class ErrorContext:
    """Context attached to a deployer error."""

    operation: Optional[str] = None
    phase: Optional[str] = None
    component: Optional[str] = None
    provider: Optional[str] = None
    strategy: Optional[str] = None
    tenant: Optional[str] = None
    environment: Optional[str] = None
    identifier: Optional[str] = None
    file_path: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return only the populated fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}


def create_error_context(**kwargs) -> ErrorContext:
    """Convenience constructor for ErrorContext."""
    return ErrorContext(**kwargs)


class DeployerError(Exception):
    """Base class for all structured packdeployer errors."""

    title: str = "Deployer Error"
    emoji: str = "❌"

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        context: Optional[ErrorContext] = None,
        recoverable: bool = False,
        suggestions: Optional[List[str]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext()
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        """Single-line description including context, suitable for stderr."""
        details = ", ".join(
            f"{key}={value}"
            for key, value in self.context.to_dict().items()
            if key not in ("additional_info", "operation")
        )
        if details:
            return f"{self.kind}: {self.message} ({details})"
        return f"{self.kind}: {self.message}"


class ConfigurationError(DeployerError):
    """Malformed bundle, plan input or CLI configuration."""

    title = "Configuration Error"
    emoji = "⚙️"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, ErrorCategory.CONFIGURATION, **kwargs)


class ValidationError(DeployerError):
    """Invalid command line arguments."""

    title = "Validation Error"
    emoji = "⚠️"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, ErrorCategory.VALIDATION, **kwargs)


class DispatchResolutionError(DeployerError):
    """Provider/strategy mapping or pack discovery failed."""

    title = "Dispatch Resolution Error"
    emoji = "🧭"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, ErrorCategory.DISPATCH, **kwargs)


class SecretResolutionError(DeployerError):
    """A required secret is missing or the backend failed."""

    title = "Secret Resolution Error"
    emoji = "🔑"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, ErrorCategory.SECRETS, **kwargs)


class ExecutorError(DeployerError):
    """The deployment delegate failed."""

    title = "Executor Error"
    emoji = "🚀"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, ErrorCategory.EXECUTOR, **kwargs)


class UnsupportedProviderError(ExecutorError):
    """No executor registered and the provider has no built-in fallback."""

    title = "Unsupported Provider"


class PersistenceError(DeployerError):
    """Writing plan, diagnostics or artifacts failed."""

    title = "Persistence Error"
    emoji = "💾"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, ErrorCategory.PERSISTENCE, **kwargs)


class PackFetchError(DeployerError):
    """Fetching a bundle from a remote distributor failed."""

    title = "Pack Fetch Error"
    emoji = "🔌"

    def __init__(self, message: str, transient: bool = False, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, ErrorCategory.FETCH, **kwargs)
        self.transient = transient


class ErrorHandler:
    """Renders deployer errors on a Rich console."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console(stderr=True)
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)

    def handle_error(
        self,
        error: BaseException,
        context: Optional[ErrorContext] = None,
        show_traceback: bool = False,
    ) -> None:
        if isinstance(error, DeployerError):
            title = f"{error.emoji} {error.title}"
            body = self._format_body(error.message, context or error.context, error)
        else:
            title = f"💥 {type(error).__name__}"
            body = self._format_body(str(error), context, None)

        self.logger.debug("handling %s: %s", type(error).__name__, error)
        self.console.print(Panel(body, title=title, border_style="red", expand=False))

        if show_traceback and self.verbose:
            self.console.print_exception()

    def _format_body(
        self,
        message: str,
        context: Optional[ErrorContext],
        error: Optional[DeployerError],
    ) -> Text:
        text = Text(message, style="bold")
        if context is not None:
            for key, value in context.to_dict().items():
                text.append(f"\n  {key}: ", style="dim")
                text.append(str(value))
        if error is not None:
            if error.cause is not None:
                text.append("\nCaused by: ", style="dim")
                text.append(f"{type(error.cause).__name__}: {error.cause}")
            for suggestion in error.suggestions:
                text.append("\n  💡 ", style="yellow")
                text.append(suggestion)
        return text


_error_handler: Optional[ErrorHandler] = None


def set_error_handler(handler: Optional[ErrorHandler]) -> None:
    global _error_handler
    _error_handler = handler


def get_error_handler() -> Optional[ErrorHandler]:
    return _error_handler


def handle_error(
    error: BaseException,
    context: Optional[ErrorContext] = None,
    show_traceback: bool = False,
) -> None:
    """Route an error to the installed handler, or to logging if none is set."""
    if _error_handler is None:
        logging.error("%s: %s", type(error).__name__, error)
        return
    _error_handler.handle_error(error, context=context, show_traceback=show_traceback)
