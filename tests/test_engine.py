"""ExecutionEngine: traversal, fail-fast, cancellation, single-node re-runs."""

import asyncio

import pytest

from canvasflow.blocks import BlockRegistry
from canvasflow.config import config as default_config
from canvasflow.execution import ExecutionEngine, execute_workflow, start_workflow
from canvasflow.types import (
    ExecutionStatus,
    LogLevel,
    NodeExecution,
    NodeStatus,
    WorkflowExecution,
)


@pytest.fixture
def engine(registry, config):
    return ExecutionEngine(registry, config=config)


def test_engine_defaults_to_shared_config(registry):
    assert ExecutionEngine(registry).config is default_config


# ── Happy path ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_chain_resolves_prev_outputs(engine, scripted, chain_workflow):
    """starter → A → B: B's {{prev.x}} sees A's returned {x: 1}."""
    execution = await engine.execute_workflow(chain_workflow)

    assert execution.status == ExecutionStatus.SUCCESS
    assert scripted.calls["B"].inputs["msg"] == "1"
    assert execution.node_executions["A"].outputs == {"x": 1}
    assert execution.node_executions["B"].outputs == {"ran": "B"}
    assert execution.node_executions["B"].status == NodeStatus.SUCCESS
    assert execution.end_time is not None
    assert execution.duration is not None and execution.duration >= 0


@pytest.mark.asyncio
async def test_set_output_and_return_are_merged(engine, make_workflow):
    """set_node_output keys come first, the returned object overrides on conflict."""
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("A", "task", {"set": {"count": 3, "k": "set"}, "result": {"k": "returned"}}),
            ("B", "task", {"msg": "{{prev.count}}-{{prev.k}}"}),
        ],
        [("starter", "A"), ("A", "B")],
    )
    execution = await engine.execute_workflow(wf)

    assert execution.node_executions["A"].outputs == {"count": 3, "k": "returned"}
    assert execution.status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_prev_count_resolves_to_string(engine, scripted, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("A", "task", {"set": {"count": 3}}),
            ("B", "task", {"value": "{{prev.count}}"}),
        ],
        [("starter", "A"), ("A", "B")],
    )
    await engine.execute_workflow(wf)
    assert scripted.calls["B"].inputs["value"] == "3"


@pytest.mark.asyncio
async def test_bare_return_value_is_wrapped(engine, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("A", "task", {"result": 42})],
        [("starter", "A")],
    )
    execution = await engine.execute_workflow(wf)
    assert execution.node_executions["A"].outputs == {"value": 42}


@pytest.mark.asyncio
async def test_env_is_passed_through(engine, scripted, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("A", "task", {"auth": "Bearer {{env.TOKEN}}"})],
        [("starter", "A")],
    )
    await engine.execute_workflow(wf, env={"TOKEN": "t0k"})
    assert scripted.calls["A"].inputs["auth"] == "Bearer t0k"
    assert scripted.calls["A"].env == {"TOKEN": "t0k"}


# ── Traversal ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_diamond_runs_shared_node_once(engine, scripted, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("a", "task", {}),
            ("b", "task", {}),
            ("d", "task", {"p": "{{prev.ran}}"}),
            ("unreachable", "task", {}),
        ],
        [("starter", "a"), ("starter", "b"), ("a", "d"), ("b", "d")],
    )
    execution = await engine.execute_workflow(wf)

    assert scripted.order == ["a", "b", "d"]
    assert "unreachable" not in execution.node_executions
    # fan-in: prev means nothing for d
    assert scripted.calls["d"].inputs["p"] == ""


@pytest.mark.asyncio
async def test_cycle_terminates(engine, scripted, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("a", "task", {}), ("b", "task", {})],
        [("starter", "a"), ("a", "b"), ("b", "a")],
    )
    execution = await engine.execute_workflow(wf)
    assert execution.status == ExecutionStatus.SUCCESS
    assert scripted.order == ["a", "b"]


@pytest.mark.asyncio
async def test_bfs_order_follows_edge_declaration(engine, scripted, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("x", "task", {}), ("y", "task", {}), ("x2", "task", {}),
        ],
        [("starter", "y"), ("starter", "x"), ("y", "x2")],
    )
    await engine.execute_workflow(wf)
    assert scripted.order == ["y", "x", "x2"]


@pytest.mark.asyncio
async def test_duplicate_type_alias_resolves_empty(engine, scripted, make_workflow):
    """Two unaliased http.request nodes make {{http.request...}} / type lookups ambiguous."""
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("h1", "http.request", {"result": {"status": 200}}),
            ("h2", "http.request", {"result": {"status": 201}}),
            ("t", "task", {"s": "{{http.status}}", "full": "{{http.request.status}}"}),
        ],
        [("starter", "h1"), ("h1", "h2"), ("h2", "t")],
    )
    execution = await engine.execute_workflow(wf)
    assert execution.status == ExecutionStatus.SUCCESS
    assert scripted.calls["t"].inputs == {"s": "", "full": ""}


@pytest.mark.asyncio
async def test_shared_alias_resolves_empty(engine, scripted, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("a", "task", {"alias": "x", "result": {"field": 1}}),
            ("b", "task", {"alias": "x", "result": {"field": 2}}),
            ("c", "task", {"v": "{{x.field}}", "direct": "{{a.field}}"}),
        ],
        [("starter", "a"), ("a", "b"), ("b", "c")],
    )
    await engine.execute_workflow(wf)
    assert scripted.calls["c"].inputs["v"] == ""
    assert scripted.calls["c"].inputs["direct"] == "1"


# ── Fail-fast ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_node_error_stops_the_run(engine, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("A", "task", {"fail": "boom"}),
            ("B", "task", {}),
        ],
        [("starter", "A"), ("A", "B")],
    )
    execution = await engine.execute_workflow(wf)

    assert execution.status == ExecutionStatus.ERROR
    assert execution.node_executions["A"].status == NodeStatus.ERROR
    assert execution.node_executions["A"].error == "boom"
    assert execution.node_executions["A"].end_time is not None
    assert "B" not in execution.node_executions
    assert any("boom" in log.message and log.level == LogLevel.ERROR for log in execution.logs)


@pytest.mark.asyncio
async def test_error_skips_queued_siblings(engine, scripted, make_workflow):
    wf = make_workflow(
        [
            ("starter", "starter", {}),
            ("bad", "task", {"fail": "nope"}),
            ("sibling", "task", {}),
        ],
        [("starter", "bad"), ("starter", "sibling")],
    )
    execution = await engine.execute_workflow(wf)
    assert execution.status == ExecutionStatus.ERROR
    assert "sibling" not in execution.node_executions
    assert "sibling" not in scripted.calls


@pytest.mark.asyncio
async def test_set_outputs_before_failure_stay_visible_in_store(make_workflow, config):
    seen = {}
    reg = BlockRegistry()

    async def starter(ctx):
        ctx.set_node_output("partial", "yes")
        seen["store"] = ctx.get_node_output("*")
        raise ValueError("late failure")

    reg.register("starter", starter)
    wf = make_workflow([("starter", "starter", {})])
    execution = await ExecutionEngine(reg, config=config).execute_workflow(wf)

    assert execution.status == ExecutionStatus.ERROR
    assert seen["store"]["starter"] == {"partial": "yes"}
    assert execution.node_executions["starter"].outputs is None


@pytest.mark.asyncio
async def test_unknown_block_type_fails_run(engine, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("m", "mystery", {})],
        [("starter", "m")],
    )
    execution = await engine.execute_workflow(wf)
    assert execution.status == ExecutionStatus.ERROR
    assert execution.node_executions["m"].error == "Block type mystery not found or not executable"


# ── Validation ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_empty_workflow_is_rejected(engine, make_workflow):
    execution = await engine.execute_workflow(make_workflow([]))
    assert execution.status == ExecutionStatus.ERROR
    assert execution.node_executions == {}
    assert len(execution.logs) == 1
    assert "Workflow has no nodes" in execution.logs[0].message


@pytest.mark.asyncio
async def test_missing_starter_is_rejected(engine, make_workflow):
    wf = make_workflow([("A", "task", {})], starter_id="nope")
    execution = await engine.execute_workflow(wf)
    assert execution.status == ExecutionStatus.ERROR
    assert execution.node_executions == {}
    assert "Start node not found" in execution.logs[-1].message


@pytest.mark.asyncio
async def test_missing_selected_node_is_rejected(engine, chain_workflow):
    execution = await engine.execute_workflow(chain_workflow, only_node_id="ghost")
    assert execution.status == ExecutionStatus.ERROR
    assert "Selected node not found" in execution.logs[-1].message


# ── Cancellation ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_stop_before_first_dequeue_cancels(registry, config, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("A", "task", {}), ("B", "task", {})],
        [("starter", "A"), ("A", "B")],
    )
    engine, task = start_workflow(wf, registry, config=config)
    engine.stop()
    execution = await task

    assert execution.status == ExecutionStatus.CANCELLED
    assert execution.node_executions == {}


@pytest.mark.asyncio
async def test_stop_mid_run_lets_current_node_finish(config, make_workflow):
    reg = BlockRegistry()
    ran = []
    holder = {}

    async def starter(ctx):
        ran.append(ctx.node_id)
        return {}

    async def stopper(ctx):
        ran.append(ctx.node_id)
        holder["engine"].stop()
        await asyncio.sleep(0)
        assert ctx.abort_signal.cancelled
        return {"done": True}

    reg.register("starter", starter)
    reg.register("stopper", stopper)
    reg.register("task", starter)
    wf = make_workflow(
        [("starter", "starter", {}), ("S", "stopper", {}), ("after", "task", {})],
        [("starter", "S"), ("S", "after")],
    )
    engine = ExecutionEngine(reg, config=config)
    holder["engine"] = engine
    execution = await engine.execute_workflow(wf)

    assert execution.status == ExecutionStatus.CANCELLED
    assert ran == ["starter", "S"]
    assert execution.node_executions["S"].status == NodeStatus.SUCCESS
    assert all(r.status != NodeStatus.ERROR for r in execution.node_executions.values())


@pytest.mark.asyncio
async def test_stop_on_idle_engine_does_not_cancel_next_run(engine, chain_workflow):
    engine.stop()
    first = await engine.execute_workflow(chain_workflow)
    engine.stop()
    second = await engine.execute_workflow(chain_workflow)

    assert first.status == ExecutionStatus.SUCCESS
    assert second.status == ExecutionStatus.SUCCESS
    assert set(second.node_executions) == {"starter", "A", "B"}


@pytest.mark.asyncio
async def test_each_scheduled_run_gets_a_fresh_token(engine, chain_workflow):
    first_task = engine.start(chain_workflow)
    engine.stop()
    first = await first_task
    second = await engine.start(chain_workflow)

    assert first.status == ExecutionStatus.CANCELLED
    assert second.status == ExecutionStatus.SUCCESS


# ── Single-node mode ─────────────────────────────────────────────────────────


def _prior_execution(outputs_by_node):
    return WorkflowExecution(
        id="exec-prior",
        workflow_id="wf-test",
        status=ExecutionStatus.SUCCESS,
        node_executions={
            nid: NodeExecution(node_id=nid, status=NodeStatus.SUCCESS, outputs=out)
            for nid, out in outputs_by_node.items()
        },
    )


@pytest.mark.asyncio
async def test_single_node_rerun_uses_prior_outputs(engine, scripted, chain_workflow):
    prior = _prior_execution({"A": {"x": 9}})

    execution = await engine.execute_workflow(
        chain_workflow, only_node_id="B", existing_execution=prior
    )

    assert execution.status == ExecutionStatus.SUCCESS
    assert scripted.order == ["B"]
    assert scripted.calls["B"].inputs["msg"] == "9"
    assert scripted.calls["B"].is_single_node_execution is True
    assert execution.id == "exec-prior"
    # the caller's snapshot is not mutated
    assert "B" not in prior.node_executions


@pytest.mark.asyncio
async def test_single_node_get_node_output_reads_restored_store(config, make_workflow):
    reg = BlockRegistry()
    seen = {}

    async def probe(ctx):
        seen["value"] = ctx.get_node_output("upstream", "value")
        return {}

    reg.register("starter", probe)
    reg.register("probe", probe)
    wf = make_workflow(
        [("starter", "starter", {}), ("upstream", "task", {}), ("me", "probe", {})],
        [("starter", "upstream"), ("upstream", "me")],
    )
    prior = _prior_execution({"upstream": {"value": 42}})

    execution = await ExecutionEngine(reg, config=config).execute_workflow(
        wf, only_node_id="me", existing_execution=prior
    )

    assert execution.status == ExecutionStatus.SUCCESS
    assert seen["value"] == 42
    assert execution.node_executions["upstream"].outputs == {"value": 42}
    assert execution.node_executions["me"].status == NodeStatus.SUCCESS


@pytest.mark.asyncio
async def test_single_node_rerun_drops_its_own_stale_outputs(engine, chain_workflow):
    prior = _prior_execution({"A": {"x": 9}, "B": {"stale": 1}})

    execution = await engine.execute_workflow(
        chain_workflow, only_node_id="B", existing_execution=prior
    )

    assert execution.node_executions["B"].outputs == {"ran": "B"}


@pytest.mark.asyncio
async def test_single_node_without_prior_does_not_traverse(engine, scripted, chain_workflow):
    execution = await engine.execute_workflow(chain_workflow, only_node_id="A")
    assert scripted.order == ["A"]
    assert set(execution.node_executions) == {"A"}


@pytest.mark.asyncio
async def test_full_run_ignores_existing_execution(engine, chain_workflow):
    prior = _prior_execution({"ghost": {"v": 1}})
    execution = await engine.execute_workflow(chain_workflow, existing_execution=prior)
    assert execution.id != "exec-prior"
    assert "ghost" not in execution.node_executions


# ── Live callbacks ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_live_callbacks_fire(registry, config, chain_workflow):
    logs, updates = [], []
    execution = await execute_workflow(
        chain_workflow, registry,
        on_log=logs.append,
        on_node_update=lambda nid, rec: updates.append((nid, rec.status)),
        config=config,
    )

    assert [log.id for log in logs] == [log.id for log in execution.logs]
    assert updates == [
        ("starter", NodeStatus.RUNNING), ("starter", NodeStatus.SUCCESS),
        ("A", NodeStatus.RUNNING), ("A", NodeStatus.SUCCESS),
        ("B", NodeStatus.RUNNING), ("B", NodeStatus.SUCCESS),
    ]


@pytest.mark.asyncio
async def test_failing_subscribers_do_not_abort(registry, config, chain_workflow):
    def broken_log(log):
        raise RuntimeError("subscriber down")

    def broken_update(nid, rec):
        raise RuntimeError("subscriber down")

    engine = ExecutionEngine(
        registry, on_log=broken_log, on_node_update=broken_update, config=config
    )
    execution = await engine.execute_workflow(chain_workflow)
    assert execution.status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_block_log_is_tagged_with_node(engine, make_workflow):
    wf = make_workflow(
        [("starter", "starter", {}), ("A", "task", {"log": "hello {{prev.started}}"})],
        [("starter", "A")],
    )
    execution = await engine.execute_workflow(wf)
    entry = next(log for log in execution.logs if log.message == "hello true")
    assert entry.node_id == "A"
    assert entry.level == LogLevel.INFO


@pytest.mark.asyncio
async def test_starter_node_is_quiet_by_default(engine, chain_workflow):
    execution = await engine.execute_workflow(chain_workflow)
    assert not any(log.node_id == "starter" for log in execution.logs)
    assert any(log.node_id == "A" for log in execution.logs)
