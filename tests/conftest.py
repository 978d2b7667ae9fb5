"""Test fixtures: fake blocks, a fresh registry, workflow builders.

All tests should use these fixtures for consistency.
"""

import pytest

from canvasflow.blocks import BlockRegistry
from canvasflow.config import CanvasConfig
from canvasflow.types import Workflow, WorkflowEdge, WorkflowNode


class ScriptedBlock:
    """Fake block driven entirely by the node's (resolved) configuration.

    Recognised inputs:
        set:    dict published key by key via ctx.set_node_output
        log:    message sent to ctx.log
        fail:   raise RuntimeError(fail)
        result: returned as-is (dict or bare value); defaults to {"ran": node_id}

    Every call's context is kept in ``calls`` keyed by node id.
    """

    def __init__(self):
        self.calls = {}
        self.order = []

    async def run(self, ctx):
        self.calls[ctx.node_id] = ctx
        self.order.append(ctx.node_id)
        for key, value in (ctx.inputs.get("set") or {}).items():
            ctx.set_node_output(key, value)
        if ctx.inputs.get("log"):
            ctx.log(ctx.inputs["log"])
        if ctx.inputs.get("fail"):
            raise RuntimeError(ctx.inputs["fail"])
        if "result" in ctx.inputs:
            return ctx.inputs["result"]
        return {"ran": ctx.node_id}


@pytest.fixture
def config():
    """Test configuration with safe defaults."""
    return CanvasConfig(io_timeout_seconds=2.0, log_starter_nodes=False)


@pytest.fixture
def scripted():
    return ScriptedBlock()


@pytest.fixture
def registry(scripted):
    """Registry with a pass-through starter and the scripted block under a few type names."""
    reg = BlockRegistry()

    async def starter(ctx):
        return {"started": True}

    reg.register("starter", starter)
    reg.register("task", scripted)
    reg.register("http.request", scripted)
    return reg


@pytest.fixture
def make_workflow():
    """Build a Workflow from compact tuples.

    nodes: list of (id, type, data) tuples
    edges: list of (source, target) tuples; edge ids are generated
    """
    def _make(nodes, edges=(), starter_id="starter", name="test workflow"):
        return Workflow(
            id="wf-test",
            name=name,
            starter_id=starter_id,
            nodes=[WorkflowNode(id=i, type=t, data=d or {}) for i, t, d in nodes],
            edges=[
                WorkflowEdge(id=f"e{n}", source=s, target=t)
                for n, (s, t) in enumerate(edges, start=1)
            ],
        )
    return _make


@pytest.fixture
def chain_workflow(make_workflow):
    """starter → A → B, where A returns {x: 1} and B templates {{prev.x}}."""
    return make_workflow(
        [
            ("starter", "starter", {}),
            ("A", "task", {"result": {"x": 1}}),
            ("B", "task", {"msg": "{{prev.x}}"}),
        ],
        [("starter", "A"), ("A", "B")],
    )
