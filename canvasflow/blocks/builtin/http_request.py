"""HTTP request block: one outbound call through the run context's fetch capability."""

import json
from typing import Any

import httpx

from canvasflow.exceptions import BlockExecutionError

_PLACEHOLDER_URL = "https://example.com/"


def _parse_mapping(value: Any, field: str) -> dict:
    """Headers/query may arrive as a dict or, from a text field, as a JSON string."""
    if value in (None, ""):
        return {}
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as exc:
            raise BlockExecutionError(f"{field} must be a JSON object: {exc.msg}") from exc
        if isinstance(parsed, dict):
            return parsed
    raise BlockExecutionError(f"{field} must be a JSON object")


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def http_request(ctx) -> dict[str, Any]:
    """Make an HTTP request. Outputs: status, data, headers, ok."""
    inputs = ctx.inputs
    method = str(inputs.get("method") or "GET").upper()
    url = str(inputs.get("url") or "").strip()

    if not url:
        if ctx.is_single_node_execution:
            ctx.log("No url configured; returning placeholder response for test run")
            return {"status": 200, "data": {}, "headers": {}, "ok": True, "url": _PLACEHOLDER_URL}
        raise BlockExecutionError("url is required", node_id=ctx.node_id)

    request_kwargs: dict[str, Any] = {
        "headers": _parse_mapping(inputs.get("headers"), "headers"),
    }
    query = _parse_mapping(inputs.get("query"), "query")
    if query:
        request_kwargs["params"] = query

    body = inputs.get("body")
    if body not in (None, "") and method not in ("GET", "HEAD"):
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        else:
            request_kwargs["content"] = str(body).encode()

    ctx.log(f"{method} {url}")
    response = await ctx.fetch(method, url, **request_kwargs)

    return {
        "status": response.status_code,
        "ok": response.is_success,
        "data": _parse_body(response),
        "headers": dict(response.headers),
        "url": str(response.url),
    }
