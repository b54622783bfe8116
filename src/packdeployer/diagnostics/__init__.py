"""
Diagnostics: plan snapshots and invocation records in the output directory.
"""

from .writer import (
    INVOCATION_FILE,
    PLAN_FILE,
    RUNNER_CMD_FILE,
    DiagnosticsRecord,
    DiagnosticsWriter,
    Outcome,
)

__all__ = [
    "INVOCATION_FILE",
    "PLAN_FILE",
    "RUNNER_CMD_FILE",
    "DiagnosticsRecord",
    "DiagnosticsWriter",
    "Outcome",
]
