"""Accumulates the run log and per-node records into one WorkflowExecution snapshot.

Every mutation is reported straight away to the live subscribers
(``on_log`` / ``on_node_update`` callables and callback objects).
Subscriber failures are logged and swallowed.
"""

import logging
from typing import Any, Callable, Optional

from canvasflow.types import (
    ExecutionLog,
    ExecutionStatus,
    LogLevel,
    NodeExecution,
    NodeStatus,
    Workflow,
    WorkflowExecution,
    elapsed_ms,
    utcnow,
)

logger = logging.getLogger(__name__)

LogHandler = Callable[[ExecutionLog], None]
NodeUpdateHandler = Callable[[str, NodeExecution], None]


class ExecutionRecorder:
    """Owns the snapshot of a single run."""

    def __init__(
        self,
        execution: WorkflowExecution,
        on_log: Optional[LogHandler] = None,
        on_node_update: Optional[NodeUpdateHandler] = None,
        callbacks: Optional[list] = None,
    ):
        self.execution = execution
        self._on_log = on_log
        self._on_node_update = on_node_update
        self._callbacks = callbacks or []

    # ── Subscribers ──────────────────────────────────────────────────────

    def _notify(self, hook: str, *args: Any) -> None:
        """Invoke one hook on every callback object, isolating failures."""
        for cb in self._callbacks:
            fn = getattr(cb, hook, None)
            if fn is None:
                continue
            try:
                fn(*args)
            except Exception as cb_exc:
                logger.warning(f"[Recorder] Callback error on '{hook}': {cb_exc}")

    def run_started(self, workflow: Workflow) -> None:
        self._notify("on_run_start", workflow, self.execution)

    def run_finished(self) -> None:
        self._notify("on_run_complete", self.execution)

    # ── Log stream ───────────────────────────────────────────────────────

    def log(self, level: LogLevel, message: str, node_id: Optional[str] = None) -> ExecutionLog:
        entry = ExecutionLog(node_id=node_id, message=message, level=level)
        self.execution.logs.append(entry)
        if self._on_log is not None:
            try:
                self._on_log(entry)
            except Exception as cb_exc:
                logger.warning(f"[Recorder] on_log subscriber failed: {cb_exc}")
        self._notify("on_log", entry)
        return entry

    def info(self, message: str, node_id: Optional[str] = None) -> ExecutionLog:
        return self.log(LogLevel.INFO, message, node_id)

    def warn(self, message: str, node_id: Optional[str] = None) -> ExecutionLog:
        return self.log(LogLevel.WARN, message, node_id)

    def error(self, message: str, node_id: Optional[str] = None) -> ExecutionLog:
        return self.log(LogLevel.ERROR, message, node_id)

    # ── Node records ─────────────────────────────────────────────────────

    def _node_updated(self, record: NodeExecution) -> None:
        snapshot = record.model_copy(deep=True)
        if self._on_node_update is not None:
            try:
                self._on_node_update(record.node_id, snapshot)
            except Exception as cb_exc:
                logger.warning(f"[Recorder] on_node_update subscriber failed: {cb_exc}")
        self._notify("on_node_update", record.node_id, snapshot)

    def node_started(self, node_id: str) -> NodeExecution:
        record = NodeExecution(node_id=node_id, status=NodeStatus.RUNNING)
        self.execution.node_executions[node_id] = record
        self._node_updated(record)
        return record

    def node_succeeded(self, record: NodeExecution, outputs: dict[str, Any]) -> None:
        record.end_time = utcnow()
        record.duration = elapsed_ms(record.start_time, record.end_time)
        record.outputs = outputs
        record.error = None
        record.status = NodeStatus.SUCCESS
        self._node_updated(record)

    def node_failed(self, record: NodeExecution, message: str) -> None:
        record.end_time = utcnow()
        record.duration = elapsed_ms(record.start_time, record.end_time)
        record.error = message
        record.status = NodeStatus.ERROR
        self._node_updated(record)

    # ── Run status ───────────────────────────────────────────────────────

    def set_status(self, status: ExecutionStatus) -> None:
        self.execution.status = status

    def finish(self) -> WorkflowExecution:
        """Stamp end time and duration; the snapshot is final after this."""
        self.execution.end_time = utcnow()
        self.execution.duration = elapsed_ms(self.execution.start_time, self.execution.end_time)
        return self.execution
