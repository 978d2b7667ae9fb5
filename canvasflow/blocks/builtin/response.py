"""Response block: the final, human-readable output of a workflow."""

import json
from typing import Any

from canvasflow.types import utcnow


def _summarize(outputs: dict[str, Any]) -> str:
    lines = []
    for node_id, out in outputs.items():
        pretty = out if isinstance(out, str) else json.dumps(out, indent=2, default=str)
        lines.append(f"- {node_id}:\n{pretty}")
    if not lines:
        return "Workflow completed."
    return "Workflow completed. Outputs:\n" + "\n\n".join(lines)


async def response(ctx) -> dict[str, Any]:
    """Final output of the workflow.

    Inputs:
        message: Text to return (placeholders already resolved).  When empty,
            a summary of every upstream node's outputs is produced instead.
        data: Optional structured payload passed through as-is.
        showPrevJson: When truthy, attach the outputs of the most recently
            finished upstream node (or those of ``previewNode``) as ``preview``.
        previewNode: Alias or node id to preview instead.
    """
    inputs = ctx.inputs
    message = inputs.get("message")
    all_outputs = {
        k: v for k, v in (ctx.get_node_output("*") or {}).items() if k != ctx.node_id
    }

    if isinstance(message, str):
        final_message = message.strip()
    elif message is None:
        final_message = ""
    else:
        final_message = json.dumps(message, default=str)
    if not final_message:
        final_message = _summarize(all_outputs)

    result: dict[str, Any] = {
        "message": final_message,
        "timestamp": utcnow().isoformat(),
        "workflowId": ctx.workflow_id,
    }
    if "data" in inputs:
        result["data"] = inputs["data"]

    if inputs.get("showPrevJson"):
        preview_ref = str(inputs.get("previewNode") or "").strip()
        if preview_ref:
            result["preview"] = ctx.get_node_output(preview_ref)
        else:
            # most recently recorded upstream node
            result["preview"] = list(all_outputs.values())[-1] if all_outputs else None

    ctx.set_node_output("response", result)
    ctx.log(f"Final response: {final_message}")
    return result
