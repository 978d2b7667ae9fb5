"""Structured JSON logging callback for canvasflow run events."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from canvasflow.callbacks.base import BaseCallback
from canvasflow.types import ExecutionLog, LogLevel, NodeExecution, Workflow, WorkflowExecution

logger = logging.getLogger("canvasflow.audit")

_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LoggingCallback(BaseCallback):
    """Emits one self-contained JSON log line per lifecycle event.

    Each line carries ``event`` and ``ts`` plus event-specific fields.
    Run log lines keep their own level (info/warn/error); everything else is
    INFO.  Logger name: canvasflow.audit (configure in your logging setup).
    """

    def on_run_start(
        self, workflow: Workflow, execution: WorkflowExecution, **kwargs: Any
    ) -> None:
        logger.info(json.dumps({
            "event": "run_start",
            "ts": _now(),
            "execution_id": execution.id,
            "workflow_id": workflow.id,
            "workflow_name": workflow.name[:200],
            "node_count": len(workflow.nodes),
        }))

    def on_log(self, log: ExecutionLog, **kwargs: Any) -> None:
        logger.log(_LEVELS.get(log.level, logging.INFO), json.dumps({
            "event": "log",
            "ts": log.timestamp.isoformat(),
            "node_id": log.node_id or "",
            "level": log.level.value,
            "message": log.message[:500],
        }))

    def on_node_update(
        self, node_id: str, node_execution: NodeExecution, **kwargs: Any
    ) -> None:
        logger.info(json.dumps({
            "event": "node_update",
            "ts": _now(),
            "node_id": node_id,
            "status": node_execution.status.value,
            "duration_ms": node_execution.duration,
            "output_keys": sorted((node_execution.outputs or {}).keys()),
            "error": node_execution.error,
        }))

    def on_run_complete(self, execution: WorkflowExecution, **kwargs: Any) -> None:
        logger.info(json.dumps({
            "event": "run_complete",
            "ts": _now(),
            "execution_id": execution.id,
            "workflow_id": execution.workflow_id,
            "status": execution.status.value,
            "duration_ms": execution.duration,
            "node_count": len(execution.node_executions),
        }))
