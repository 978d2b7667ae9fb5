"""Alias map: human-friendly node names (alias, refName or block type) → node id.

Duplicate names are not an error.  The second node claiming a name turns the
entry into AMBIGUOUS, and lookups through an ambiguous name resolve to nothing.
"""

from __future__ import annotations

from typing import Optional, Union

from canvasflow.types import WorkflowNode


class _Ambiguous:
    """Sentinel stored in place of a node id when several nodes share a name."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "AMBIGUOUS"

    def __bool__(self) -> bool:
        return False


AMBIGUOUS = _Ambiguous()

AliasMap = dict[str, Union[str, _Ambiguous]]


def node_name(node: WorkflowNode) -> str:
    """Name a node is addressable by: ``data.alias``, then ``data.refName``, then its type."""
    data = node.data or {}
    raw = data.get("alias")
    if raw is None:
        raw = data.get("refName")
    if raw is None:
        raw = node.type
    return str(raw).strip()


def build_alias_map(nodes: list[WorkflowNode]) -> AliasMap:
    alias_map: AliasMap = {}
    for node in nodes:
        name = node_name(node)
        if not name:
            continue
        if name in alias_map:
            alias_map[name] = AMBIGUOUS
        else:
            alias_map[name] = node.id
    return alias_map


def resolve_alias(name: str, alias_map: AliasMap) -> Optional[str]:
    """
    Map a template root or get_node_output reference to a node id.

    Returns the aliased node id, ``None`` when the alias is ambiguous, or the
    name itself when it is not a known alias (it is then treated as a node id).
    """
    target = alias_map.get(name)
    if target is None:
        return name
    if target is AMBIGUOUS:
        return None
    return target
