"""Workflow execution engine. Walks the graph and runs one block per node.

Orchestrates: validate → alias map → [restore outputs] → BFS over reachable
nodes, and for each node: resolve templates → build run context → await
block.run() → record outputs.

Execution is strictly sequential.  Independent branches run one after the
other in BFS enqueue order, never concurrently.  The first node error stops
the run; nothing further is dequeued.
"""

import asyncio
import copy
import logging
from collections import deque
from typing import Any, Callable, Optional

import httpx

from canvasflow.blocks.registry import normalize_result
from canvasflow.config import CanvasConfig, config as default_config
from canvasflow.exceptions import BlockNotFoundError, WorkflowValidationError
from canvasflow.execution.context import CancellationToken, Fetcher, RunContext
from canvasflow.execution.recorder import ExecutionRecorder, LogHandler, NodeUpdateHandler
from canvasflow.types import (
    ExecutionStatus,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
    utcnow,
)
from canvasflow.workflows.aliases import AliasMap, build_alias_map
from canvasflow.workflows.dag import get_children, get_single_parent

logger = logging.getLogger(__name__)

STARTER_TYPE = "starter"


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__ or "Unknown error"


class ExecutionEngine:
    """Runs workflows against an injected block catalog.

    Constructor dependencies:
        - blocks: BlockRegistry, any object exposing ``lookup(type) -> (block, ok)``,
          or a bare lookup callable with that signature
        - on_log: called with every ExecutionLog as it is produced
        - on_node_update: called with (node_id, NodeExecution) on node start and finish
        - callbacks: ExecutionCallback objects (e.g. LoggingCallback)
        - config: CanvasConfig
        - http_transport: optional httpx transport for ctx.fetch (tests, proxies)

    One engine instance drives one run at a time; each execute_workflow() call
    builds its own output store, recorder and cancellation token.
    """

    def __init__(
        self,
        blocks: Any,
        on_log: Optional[LogHandler] = None,
        on_node_update: Optional[NodeUpdateHandler] = None,
        callbacks: Optional[list] = None,
        config: Optional[CanvasConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        lookup = getattr(blocks, "lookup", None)
        if lookup is None and callable(blocks):
            lookup = blocks
        if lookup is None:
            raise TypeError("blocks must provide lookup(type) -> (block, found)")
        self._lookup: Callable[[str], tuple[Any, bool]] = lookup
        self.on_log = on_log
        self.on_node_update = on_node_update
        self.callbacks = callbacks or []
        self.config = config or default_config
        self.http_transport = http_transport
        self._token: Optional[CancellationToken] = None
        self._scheduled_token: Optional[CancellationToken] = None

    # ── Control ──────────────────────────────────────────────────────────────

    def stop(self) -> None:
        """Request cooperative cancellation.

        Observed before the next node is dequeued; a node already running
        finishes (its outbound calls are aborted).  Calling stop() on an engine
        whose run has been scheduled but not yet started cancels that run
        before any node executes.  Without a live or scheduled run this is a
        no-op.
        """
        if self._token is not None:
            self._token.cancel()

    def start(
        self,
        workflow: Workflow,
        env: Optional[dict[str, str]] = None,
        only_node_id: Optional[str] = None,
        existing_execution: Optional[WorkflowExecution] = None,
    ) -> "asyncio.Task[WorkflowExecution]":
        """Schedule execute_workflow() as a task.  stop() applies from this point on."""
        self._scheduled_token = CancellationToken()
        self._token = self._scheduled_token
        return asyncio.ensure_future(
            self.execute_workflow(
                workflow, env, only_node_id=only_node_id, existing_execution=existing_execution
            )
        )

    # ── Entry point ──────────────────────────────────────────────────────────

    async def execute_workflow(
        self,
        workflow: Workflow,
        env: Optional[dict[str, str]] = None,
        only_node_id: Optional[str] = None,
        existing_execution: Optional[WorkflowExecution] = None,
    ) -> WorkflowExecution:
        """Execute a workflow and return its execution snapshot.

        Args:
            workflow:           The graph to run.
            env:                Flat string map exposed as ``{{env.X}}`` and ``ctx.env``.
            only_node_id:       Single-node mode: run just this node, no successors.
            existing_execution: Prior snapshot.  In single-node mode its recorded
                                node outputs seed the output store and the returned
                                snapshot continues it (same id, logs and node records).

        Returns:
            The WorkflowExecution, with status success, error or cancelled.
            Never raises for workflow or node failures; they are encoded in the
            snapshot.
        """
        env = dict(env or {})
        single_node_id = (only_node_id or "").strip() or None

        token = self._scheduled_token or CancellationToken()
        self._scheduled_token = None
        self._token = token

        execution = self._new_execution(workflow, single_node_id, existing_execution)
        recorder = ExecutionRecorder(
            execution,
            on_log=self.on_log,
            on_node_update=self.on_node_update,
            callbacks=self.callbacks,
        )
        recorder.run_started(workflow)

        logger.info(
            f"[Engine] execute_workflow wf={workflow.id} exec={execution.id} "
            f"nodes={len(workflow.nodes)} only_node={single_node_id}"
        )

        try:
            start_node = self._validate(workflow, single_node_id)
        except WorkflowValidationError as exc:
            logger.warning(f"[Engine] Workflow {workflow.id} rejected: {exc}")
            recorder.set_status(ExecutionStatus.ERROR)
            recorder.error(f"Workflow failed: {exc}")
            return self._finish(recorder)

        recorder.info(f"Starting workflow: {workflow.name or workflow.id}")

        alias_map = build_alias_map(workflow.nodes)
        outputs: dict[str, dict[str, Any]] = {}
        if single_node_id:
            self._restore_outputs(execution, outputs, recorder)

        fetcher = Fetcher(
            token,
            timeout_seconds=self.config.io_timeout_seconds,
            transport=self.http_transport,
        )
        await self._walk(
            workflow, start_node, env, outputs, alias_map,
            fetcher, token, recorder, single_node_id,
        )
        return self._finish(recorder)

    # ── Graph walker ─────────────────────────────────────────────────────────

    async def _walk(
        self,
        workflow: Workflow,
        start_node: WorkflowNode,
        env: dict[str, str],
        outputs: dict[str, dict[str, Any]],
        alias_map: AliasMap,
        fetcher: Fetcher,
        token: CancellationToken,
        recorder: ExecutionRecorder,
        single_node_id: Optional[str],
    ) -> None:
        """Visited-once BFS from start_node; fail-fast on the first node error."""
        node_map = {n.id: n for n in workflow.nodes}
        visited: set[str] = set()
        queue: deque[str] = deque([start_node.id])

        while True:
            if token.cancelled:
                recorder.set_status(ExecutionStatus.CANCELLED)
                recorder.warn("Workflow cancelled")
                logger.info(f"[Engine] Workflow {workflow.id} cancelled")
                return
            if not queue:
                break

            node_id = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)

            node = node_map.get(node_id)
            if node is None:
                logger.warning(f"[Engine] Edge points at unknown node '{node_id}', skipping")
                continue

            try:
                await self._execute_node(
                    workflow, node, env, outputs, alias_map,
                    fetcher, token, recorder, single_node_id is not None,
                )
            except Exception as exc:
                message = _error_message(exc)
                logger.error(f"[Engine] Node '{node.id}' failed: {message}", exc_info=True)
                recorder.set_status(ExecutionStatus.ERROR)
                recorder.error(f'Node "{node.id}" failed: {message}')
                return

            if single_node_id is None:
                for child_id in get_children(node_id, workflow.edges):
                    if child_id not in visited:
                        queue.append(child_id)

        recorder.set_status(ExecutionStatus.SUCCESS)
        recorder.info("Workflow completed")

    # ── Node execution unit ──────────────────────────────────────────────────

    async def _execute_node(
        self,
        workflow: Workflow,
        node: WorkflowNode,
        env: dict[str, str],
        outputs: dict[str, dict[str, Any]],
        alias_map: AliasMap,
        fetcher: Fetcher,
        token: CancellationToken,
        recorder: ExecutionRecorder,
        single_node: bool,
    ) -> None:
        """Run one node's block and record the result.  Re-raises block errors."""
        record = recorder.node_started(node.id)
        chatty = node.type != STARTER_TYPE or self.config.log_starter_nodes
        if chatty:
            recorder.info(f"{node.type}: {node.id}", node.id)

        try:
            block, found = self._lookup(node.type)
            if not found or block is None or not callable(getattr(block, "run", None)):
                raise BlockNotFoundError(
                    f"Block type {node.type} not found or not executable",
                    block_type=node.type,
                )

            # a re-run node starts from an empty slot, not its restored outputs
            outputs.pop(node.id, None)
            context = RunContext(
                workflow_id=workflow.id,
                node=node,
                env=env,
                outputs=outputs,
                alias_map=alias_map,
                prev_id=get_single_parent(node.id, workflow.edges),
                fetch=fetcher,
                abort_signal=token,
                log_fn=recorder.info,
                is_single_node_execution=single_node,
            )

            result = await block.run(context)

            merged = {**context.own_outputs(), **normalize_result(result)}
            outputs[node.id] = merged
            recorder.node_succeeded(record, dict(merged))

        except Exception as exc:
            message = _error_message(exc)
            recorder.node_failed(record, message)
            recorder.error(f"Node failed: {message}", node.id)
            raise

        if chatty:
            recorder.info(f"{node.type} completed", node.id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _new_execution(
        self,
        workflow: Workflow,
        single_node_id: Optional[str],
        existing_execution: Optional[WorkflowExecution],
    ) -> WorkflowExecution:
        if existing_execution is not None and single_node_id:
            execution = existing_execution.model_copy(deep=True)
            execution.status = ExecutionStatus.RUNNING
            execution.start_time = utcnow()
            execution.end_time = None
            execution.duration = None
            return execution
        if existing_execution is not None:
            logger.warning(
                "[Engine] existing_execution is only used in single-node mode; starting fresh"
            )
        return WorkflowExecution(workflow_id=workflow.id)

    def _validate(self, workflow: Workflow, single_node_id: Optional[str]) -> WorkflowNode:
        """Return the node to start from, or raise WorkflowValidationError."""
        if not workflow.nodes:
            raise WorkflowValidationError("Workflow has no nodes", violations=["no nodes"])

        limit = self.config.max_workflow_nodes
        if limit and len(workflow.nodes) > limit:
            raise WorkflowValidationError(
                f"Workflow has {len(workflow.nodes)} nodes; maximum allowed is {limit}",
                violations=["too many nodes"],
            )

        starter = workflow.get_node(workflow.starter_id)
        if starter is None:
            raise WorkflowValidationError(
                "Start node not found", violations=[f"starter_id={workflow.starter_id!r}"]
            )

        if single_node_id:
            selected = workflow.get_node(single_node_id)
            if selected is None:
                raise WorkflowValidationError(
                    "Selected node not found", violations=[f"only_node_id={single_node_id!r}"]
                )
            return selected
        return starter

    def _restore_outputs(
        self,
        execution: WorkflowExecution,
        outputs: dict[str, dict[str, Any]],
        recorder: ExecutionRecorder,
    ) -> None:
        """Seed the output store from a previous run's node records."""
        for node_id, node_execution in execution.node_executions.items():
            if node_execution.outputs is None:
                continue
            outputs[node_id] = copy.deepcopy(node_execution.outputs)
            recorder.info(f"Restored outputs from previous execution: {node_id}")

    def _finish(self, recorder: ExecutionRecorder) -> WorkflowExecution:
        execution = recorder.finish()
        logger.info(
            f"[Engine] Execution {execution.id} finished: status={execution.status.value} "
            f"duration={execution.duration}ms"
        )
        self._token = None
        recorder.run_finished()
        return execution


# ── Convenience entry points ─────────────────────────────────────────────────


async def execute_workflow(
    workflow: Workflow,
    blocks: Any,
    env: Optional[dict[str, str]] = None,
    on_log: Optional[LogHandler] = None,
    on_node_update: Optional[NodeUpdateHandler] = None,
    only_node_id: Optional[str] = None,
    existing_execution: Optional[WorkflowExecution] = None,
    **engine_kwargs: Any,
) -> WorkflowExecution:
    """Run a workflow on a fresh engine and return the snapshot."""
    engine = ExecutionEngine(blocks, on_log=on_log, on_node_update=on_node_update, **engine_kwargs)
    return await engine.execute_workflow(
        workflow, env, only_node_id=only_node_id, existing_execution=existing_execution
    )


def start_workflow(
    workflow: Workflow,
    blocks: Any,
    env: Optional[dict[str, str]] = None,
    on_log: Optional[LogHandler] = None,
    on_node_update: Optional[NodeUpdateHandler] = None,
    only_node_id: Optional[str] = None,
    existing_execution: Optional[WorkflowExecution] = None,
    **engine_kwargs: Any,
) -> tuple[ExecutionEngine, "asyncio.Task[WorkflowExecution]"]:
    """Schedule a run and return (engine, task) so the caller can ``engine.stop()`` it.

    Must be called from inside a running event loop.
    """
    engine = ExecutionEngine(blocks, on_log=on_log, on_node_update=on_node_update, **engine_kwargs)
    task = engine.start(
        workflow, env, only_node_id=only_node_id, existing_execution=existing_execution
    )
    return engine, task
