"""All shared types, enums, and type aliases. Everything imports from here."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ──────────────────────────────────────────────────────────────

class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

class NodeStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"       # a node is never cancelled on its own

class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class _CamelModel(BaseModel):
    """Accepts and emits the camelCase keys the editor layer uses."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Workflow definition (immutable input) ──────────────────────────────

class WorkflowNode(_CamelModel):
    id: str
    type: str                           # names a registered block implementation
    data: dict[str, Any] = Field(default_factory=dict)  # may contain {{...}} and "alias"
    position: Optional[dict[str, float]] = None  # canvas only, ignored by the engine

class WorkflowEdge(_CamelModel):
    id: str
    source: str
    target: str

class Workflow(_CamelModel):
    id: str
    name: str = ""
    starter_id: str
    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# ── Execution snapshot ─────────────────────────────────────────────────

class ExecutionLog(_CamelModel):
    id: str = Field(default_factory=lambda: f"log-{uuid.uuid4().hex}")
    node_id: Optional[str] = None
    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = Field(default_factory=utcnow)

class NodeExecution(_CamelModel):
    node_id: str
    status: NodeStatus = NodeStatus.RUNNING
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[int] = None      # milliseconds
    outputs: Optional[dict[str, Any]] = None
    error: Optional[str] = None         # present only on failure

class WorkflowExecution(_CamelModel):
    id: str = Field(default_factory=lambda: f"exec-{uuid.uuid4().hex[:12]}")
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[int] = None      # milliseconds
    logs: list[ExecutionLog] = Field(default_factory=list)
    node_executions: dict[str, NodeExecution] = Field(default_factory=dict)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two timestamps."""
    return int((end - start).total_seconds() * 1000)
