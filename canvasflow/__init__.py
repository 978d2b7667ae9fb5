"""canvasflow: execution engine for canvas-built block workflows.

Usage:
    from canvasflow import ExecutionEngine, Workflow, default_registry

    engine = ExecutionEngine(default_registry())
    execution = await engine.execute_workflow(workflow, env={"API_KEY": "..."})
"""

from canvasflow.types import (
    Workflow, WorkflowNode, WorkflowEdge,
    WorkflowExecution, NodeExecution, ExecutionLog,
    ExecutionStatus, NodeStatus, LogLevel,
)
from canvasflow.exceptions import (
    CanvasflowError, WorkflowValidationError, BlockNotFoundError,
    BlockExecutionError, BlockIOError, IOTimeoutError, IOAbortedError,
    WorkflowLoadError,
)
from canvasflow.blocks import BlockRegistry, default_registry
from canvasflow.execution import (
    ExecutionEngine, RunContext, CancellationToken,
    execute_workflow, start_workflow,
)
from canvasflow.version import __version__

__all__ = [
    "Workflow", "WorkflowNode", "WorkflowEdge",
    "WorkflowExecution", "NodeExecution", "ExecutionLog",
    "ExecutionStatus", "NodeStatus", "LogLevel",
    "CanvasflowError", "WorkflowValidationError", "BlockNotFoundError",
    "BlockExecutionError", "BlockIOError", "IOTimeoutError", "IOAbortedError",
    "WorkflowLoadError",
    "BlockRegistry", "default_registry",
    "ExecutionEngine", "RunContext", "CancellationToken",
    "execute_workflow", "start_workflow",
    "__version__",
]
