"""``{{...}}`` template resolution for node configuration.

Only dotted path lookups are supported, never computation:

    {{env.API_KEY}}          caller-supplied environment
    {{prev.status}}          single predecessor's outputs
    {{http.data.items.0}}    alias / block type / node id, then a path

A missing value prints as the empty string.  Every placeholder is replaced
inside its surrounding text, so the result of resolving a string is always a
string.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from canvasflow.workflows.aliases import AliasMap, resolve_alias

_TEMPLATE_RE = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


@dataclass
class TemplateScope:
    """Everything a placeholder may read from while one node is being prepared."""

    env: dict[str, str] = field(default_factory=dict)
    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    alias_map: AliasMap = field(default_factory=dict)
    prev_id: Optional[str] = None


def lookup_path(obj: Any, path: str) -> Any:
    """Navigate a dot-separated path through nested dicts (and lists by
    non-negative index).

    Returns None as soon as a segment is missing or the current value is not
    a container.  An empty path returns obj itself.
    """
    if not path:
        return obj
    val: Any = obj
    for part in path.split("."):
        if isinstance(val, dict):
            if part not in val:
                return None
            val = val[part]
        elif isinstance(val, (list, tuple)) and part.isdecimal():
            idx = int(part)
            if idx >= len(val):
                return None
            val = val[idx]
        else:
            return None
    return val


def stringify(value: Any) -> str:
    """Text form of a resolved value as the editor displays it."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def resolve_expression(expr: str, scope: TemplateScope) -> Any:
    """Resolve the inside of one placeholder; None means "missing"."""
    root, _, rest = expr.strip().partition(".")
    if not root:
        return None

    if root == "env":
        return scope.env.get(rest) if rest else None

    if root == "prev":
        if scope.prev_id is None:
            return None
        return lookup_path(scope.outputs.get(scope.prev_id), rest)

    target_id = resolve_alias(root, scope.alias_map)
    if target_id is None:
        return None
    outputs = scope.outputs.get(target_id)
    if outputs is None:
        return None
    return lookup_path(outputs, rest)


def resolve_string(text: str, scope: TemplateScope) -> str:
    if "{{" not in text:
        return text
    return _TEMPLATE_RE.sub(
        lambda m: stringify(resolve_expression(m.group(1), scope)), text
    )


def resolve_templates(value: Any, scope: TemplateScope) -> Any:
    """Recursively resolve placeholders in strings inside dicts, lists and tuples.

    Non-string scalars are returned unchanged.  The input is never mutated.
    """
    if isinstance(value, str):
        return resolve_string(value, scope)
    if isinstance(value, dict):
        return {k: resolve_templates(v, scope) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_templates(v, scope) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_templates(v, scope) for v in value)
    return value
