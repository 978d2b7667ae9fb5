"""Run context handed to a block's ``run()``, plus the cancellation primitives behind it.

The context is the block's only window onto the run: its resolved inputs,
the caller's environment, an outbound-HTTP capability bounded by a per-call
timeout and the workflow stop signal, a log sink, and read/write access to
the shared node output store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from canvasflow.exceptions import IOAbortedError, IOTimeoutError
from canvasflow.execution.templates import TemplateScope, resolve_templates
from canvasflow.types import WorkflowNode
from canvasflow.workflows.aliases import AliasMap, resolve_alias

logger = logging.getLogger(__name__)

DEFAULT_IO_TIMEOUT = 30.0


class CancellationToken:
    """Engine-wide stop signal.  One per run; set once, never reset."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class Fetcher:
    """Outbound HTTP for blocks: ``await ctx.fetch("GET", url, params=..., json=...)``.

    Each call races three things: the request itself, a fixed timeout, and the
    run's CancellationToken.  Whichever finishes first decides the outcome;
    the losers are cancelled and awaited before returning, on every exit path.

    Keyword arguments are passed through to ``httpx.AsyncClient.request``.
    """

    def __init__(
        self,
        token: CancellationToken,
        timeout_seconds: float = DEFAULT_IO_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(transport=self.transport, timeout=None) as client:
            return await client.request(method.upper(), url, **kwargs)

    async def __call__(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self.token.cancelled:
            raise IOAbortedError(f"Request to {url} aborted: workflow stopped", url=url)

        request_task = asyncio.ensure_future(self._send(method, url, **kwargs))
        abort_task = asyncio.ensure_future(self.token.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, abort_task},
                timeout=self.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if request_task in done:
                return request_task.result()
            if abort_task in done:
                raise IOAbortedError(f"Request to {url} aborted: workflow stopped", url=url)
            raise IOTimeoutError(
                f"Request to {url} timed out after {self.timeout_seconds:g}s",
                url=url,
                timeout_seconds=self.timeout_seconds,
            )
        finally:
            pending = [t for t in (request_task, abort_task) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)


class RunContext:
    """What a block sees while it runs.

    Attributes:
        workflow_id: Id of the workflow being executed.
        node_id: Id of the node this block is running for.
        inputs: The node's ``data`` with every ``{{...}}`` placeholder resolved.
        env: Caller-supplied environment, unchanged.
        fetch: Timeout- and stop-aware HTTP capability (see Fetcher).
        abort_signal: The run's CancellationToken.
        is_single_node_execution: True when only this node is being re-run;
            blocks may substitute placeholders for missing required inputs.
    """

    def __init__(
        self,
        workflow_id: str,
        node: WorkflowNode,
        env: dict[str, str],
        outputs: dict[str, dict[str, Any]],
        alias_map: AliasMap,
        prev_id: Optional[str],
        fetch: Fetcher,
        abort_signal: CancellationToken,
        log_fn: Callable[[str, Optional[str]], None],
        is_single_node_execution: bool = False,
    ):
        self.workflow_id = workflow_id
        self.node_id = node.id
        self.node_type = node.type
        self.env = env
        self.prev_id = prev_id
        self.fetch = fetch
        self.abort_signal = abort_signal
        self.is_single_node_execution = is_single_node_execution
        self._outputs = outputs
        self._alias_map = alias_map
        self._log_fn = log_fn

        scope = TemplateScope(env=env, outputs=outputs, alias_map=alias_map, prev_id=prev_id)
        self.inputs: dict[str, Any] = resolve_templates(node.data or {}, scope)

    def log(self, message: Any) -> None:
        """Append an info line to the run log, tagged with this node."""
        self._log_fn(str(message), self.node_id)

    def get_node_output(self, ref: str, key: Optional[str] = None) -> Any:
        """Read another node's recorded outputs.

        ``ref`` may be ``"*"`` (the whole output store), ``"prev"`` (the single
        predecessor), an alias / block type, or a node id.  Ambiguous aliases
        and unknown nodes yield None.
        """
        if ref == "*":
            return self._outputs
        if ref == "prev" and self.prev_id:
            target_id: Optional[str] = self.prev_id
        else:
            target_id = resolve_alias(ref, self._alias_map)
        if target_id is None:
            return None
        outputs = self._outputs.get(target_id)
        if key is None or outputs is None:
            return outputs
        return outputs.get(key)

    def set_node_output(self, key: str, value: Any) -> None:
        """Publish one output key now; later nodes see it even if this block fails afterwards."""
        self._outputs.setdefault(self.node_id, {})[key] = value

    def own_outputs(self) -> dict[str, Any]:
        """Copy of everything this node has published via set_node_output."""
        return dict(self._outputs.get(self.node_id) or {})
