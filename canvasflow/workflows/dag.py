"""
Graph query helpers for workflow traversal.

All functions operate on WorkflowEdge lists and are pure
(no side effects, no I/O) so they can be called from the engine
and tests alike.
"""

from __future__ import annotations

from typing import Optional

from canvasflow.types import WorkflowEdge


# ── Traversal helpers ─────────────────────────────────────────────────────────


def get_children(node_id: str, edges: list[WorkflowEdge]) -> list[str]:
    """Return target node IDs of all outgoing edges of node_id, in edge order."""
    return [e.target for e in edges if e.source == node_id]


def get_parents(node_id: str, edges: list[WorkflowEdge]) -> list[str]:
    """Return source node IDs of all incoming edges of node_id, in edge order."""
    return [e.source for e in edges if e.target == node_id]


def get_single_parent(node_id: str, edges: list[WorkflowEdge]) -> Optional[str]:
    """
    Return the predecessor of node_id when it has exactly one incoming edge.

    Zero or several incoming edges yield None: ``prev`` has no meaning for
    root nodes or fan-in nodes.
    """
    parents = get_parents(node_id, edges)
    return parents[0] if len(parents) == 1 else None

