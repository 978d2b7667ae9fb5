"""Workflow execution: templates, run context, recorder, engine."""

from canvasflow.execution.context import CancellationToken, Fetcher, RunContext
from canvasflow.execution.engine import ExecutionEngine, execute_workflow, start_workflow
from canvasflow.execution.recorder import ExecutionRecorder
from canvasflow.execution.templates import TemplateScope, lookup_path, resolve_templates

__all__ = [
    "CancellationToken",
    "Fetcher",
    "RunContext",
    "ExecutionEngine",
    "execute_workflow",
    "start_workflow",
    "ExecutionRecorder",
    "TemplateScope",
    "lookup_path",
    "resolve_templates",
]
