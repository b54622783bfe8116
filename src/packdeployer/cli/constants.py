#!/usr/bin/env python3
"""
Constants for the pack-deployer CLI
"""

from packdeployer.core.errors import (
    ConfigurationError,
    DeployerError,
    DispatchResolutionError,
    ExecutorError,
    PersistenceError,
    SecretResolutionError,
    ValidationError,
)


# Exit codes
class ExitCode:
    """Exit codes for CLI commands."""

    SUCCESS = 0
    FAILURE = 1
    CONFIGURATION_ERROR = 2
    DISPATCH_ERROR = 3
    SECRET_ERROR = 4
    EXECUTOR_ERROR = 5
    PERSISTENCE_ERROR = 6
    INVALID_ARGS = 7


# Most specific class first
ERROR_EXIT_CODES = (
    (ValidationError, ExitCode.INVALID_ARGS),
    (ConfigurationError, ExitCode.CONFIGURATION_ERROR),
    (DispatchResolutionError, ExitCode.DISPATCH_ERROR),
    (SecretResolutionError, ExitCode.SECRET_ERROR),
    (ExecutorError, ExitCode.EXECUTOR_ERROR),
    (PersistenceError, ExitCode.PERSISTENCE_ERROR),
)


def exit_code_for(error: DeployerError) -> int:
    for error_type, code in ERROR_EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return ExitCode.FAILURE


# Valid values for validation
VALID_OUTPUT_FORMATS = ["text", "json", "yaml"]
