"""Starter block: the entry point of every full-workflow run."""

from typing import Any

from canvasflow.types import utcnow


async def starter(ctx) -> dict[str, Any]:
    """Workflow entry point. Publishes the start time and any configured payload."""
    result: dict[str, Any] = {"started_at": utcnow().isoformat()}
    payload = ctx.inputs.get("payload")
    if isinstance(payload, dict):
        result.update(payload)
    elif payload is not None:
        result["payload"] = payload
    return result
