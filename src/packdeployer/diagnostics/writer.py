#!/usr/bin/env python3
"""
Persisted output layout.

deploy/<provider>/<tenant>/<environment>/
    plan.json                    serialized DeploymentPlan
    ._deployer_invocation.json   DiagnosticsRecord of the last invocation
    ._runner_cmd.txt             human-readable runner command
    ...                          executor artifacts
"""

import json
import logging
import shlex
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from packdeployer.core.errors import PersistenceError, create_error_context
from packdeployer.plan.model import DeploymentPlan

logger = logging.getLogger(__name__)

PLAN_FILE = "plan.json"
INVOCATION_FILE = "._deployer_invocation.json"
RUNNER_CMD_FILE = "._runner_cmd.txt"


class Outcome:
    PLANNED = "planned"
    PREVIEW = "preview"
    DRY_RUN = "dry-run"
    CANCELLED = "cancelled"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class DiagnosticsRecord:
    """One invocation, as left behind for inspection."""

    provider: str
    strategy: str
    tenant: str
    environment: str
    pack_id: str
    flow_id: str
    origin: str
    output_dir: str
    outcome: str
    invocation: Dict[str, Any] = field(default_factory=dict)
    runner_cmd: List[str] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DiagnosticsWriter:
    """Writes plan snapshots and invocation records under a deploy root."""

    def __init__(self, deploy_root: Path = Path("deploy")):
        self.deploy_root = Path(deploy_root)

    def output_dir(self, provider: str, tenant: str, environment: str) -> Path:
        return self.deploy_root / provider / tenant / environment

    def write_plan(self, output_dir: Path, plan: DeploymentPlan) -> Path:
        path = Path(output_dir) / PLAN_FILE
        self._write_json(path, plan.to_dict())
        logger.info("wrote plan to %s", path)
        return path

    def write_invocation(self, record: DiagnosticsRecord) -> Path:
        """
        Write the invocation record and runner command, replacing earlier ones.

        Raises:
            PersistenceError: On I/O failure
        """
        output_dir = Path(record.output_dir)
        path = output_dir / INVOCATION_FILE
        self._write_json(path, record.to_dict())

        lines = [shlex.join(record.runner_cmd) if record.runner_cmd else "# no runner invocation"]
        lines.append(f"# pack {record.pack_id or '-'} flow {record.flow_id or '-'} ({record.origin or 'unresolved'})")
        lines.append(f"# outcome: {record.outcome}")
        if record.error:
            lines.append(f"# error: {record.error}")
        self._write_text(output_dir / RUNNER_CMD_FILE, "\n".join(lines) + "\n")

        logger.debug("wrote diagnostics to %s", path)
        return path

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        self._write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")

    @staticmethod
    def _write_text(path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
        except OSError as e:
            raise PersistenceError(
                f"failed to write {path}: {e}",
                context=create_error_context(operation="write_diagnostics", file_path=str(path)),
                cause=e,
            )
