"""Workflow graph helpers: traversal, aliases, loading."""

from canvasflow.workflows.aliases import AMBIGUOUS, build_alias_map, resolve_alias
from canvasflow.workflows.dag import (
    get_children,
    get_parents,
    get_single_parent,
)
from canvasflow.workflows.loader import load_execution, load_workflow

__all__ = [
    "AMBIGUOUS",
    "build_alias_map",
    "resolve_alias",
    "get_children",
    "get_parents",
    "get_single_parent",
    "load_execution",
    "load_workflow",
]
