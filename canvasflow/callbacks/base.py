"""Base callback protocol for canvasflow run lifecycle hooks.

Callbacks observe a run without influencing it.  They are called
synchronously, in registration order, every time the engine records
something.  An exception raised by a callback is logged and swallowed:
a broken subscriber never aborts a workflow.

Usage:
    class PrintCallback(BaseCallback):
        def on_log(self, log, **kw):
            print(log.level.value, log.message)

    engine = ExecutionEngine(registry, callbacks=[PrintCallback()])
"""

from typing import Any, Protocol, runtime_checkable

from canvasflow.types import ExecutionLog, NodeExecution, Workflow, WorkflowExecution


@runtime_checkable
class ExecutionCallback(Protocol):
    """Protocol defining hooks for run lifecycle events.

    All methods are optional in spirit; subclass BaseCallback to get no-op
    defaults and override only the hooks you need.
    """

    def on_run_start(
        self,
        workflow: Workflow,
        execution: WorkflowExecution,
        **kwargs: Any,
    ) -> None:
        """Called once, before validation, when execute_workflow() begins."""
        ...

    def on_log(self, log: ExecutionLog, **kwargs: Any) -> None:
        """Called for every log line as it is appended to the snapshot."""
        ...

    def on_node_update(
        self,
        node_id: str,
        node_execution: NodeExecution,
        **kwargs: Any,
    ) -> None:
        """Called when a node starts and when it reaches success or error."""
        ...

    def on_run_complete(self, execution: WorkflowExecution, **kwargs: Any) -> None:
        """Called once with the final snapshot (success, error, or cancelled)."""
        ...


class BaseCallback:
    """Concrete base with no-op implementations of all hooks."""

    def on_run_start(
        self, workflow: Workflow, execution: WorkflowExecution, **kwargs: Any
    ) -> None:
        pass

    def on_log(self, log: ExecutionLog, **kwargs: Any) -> None:
        pass

    def on_node_update(
        self, node_id: str, node_execution: NodeExecution, **kwargs: Any
    ) -> None:
        pass

    def on_run_complete(self, execution: WorkflowExecution, **kwargs: Any) -> None:
        pass
