"""Block catalog: block type name → runnable implementation.

The engine never reaches for a global catalog.  A BlockRegistry (or any
object with a compatible ``lookup``) is injected into ExecutionEngine, so
tests can run workflows against a handful of fake blocks.
"""

from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel

from canvasflow.exceptions import BlockNotFoundError


# ── Block contract ─────────────────────────────────────────────────────────────


@runtime_checkable
class Block(Protocol):
    """Anything with ``async run(context) -> result``.

    Raise to fail the node (the message is recorded verbatim); any returned
    value counts as success.
    """

    async def run(self, context: Any) -> Any:
        ...


@dataclass(frozen=True)
class StructuredResult:
    """Block returned a mapping; its keys become node outputs."""
    data: dict[str, Any]


@dataclass(frozen=True)
class ScalarResult:
    """Block returned a bare value; it is recorded as ``{"value": value}``."""
    value: Any


BlockResult = Union[StructuredResult, ScalarResult]


def classify_result(result: Any) -> BlockResult:
    if isinstance(result, (StructuredResult, ScalarResult)):
        return result
    if isinstance(result, BaseModel):
        return StructuredResult(result.model_dump())
    if isinstance(result, dict):
        return StructuredResult(dict(result))
    return ScalarResult(result)


def normalize_result(result: Any) -> dict[str, Any]:
    """Turn whatever a block returned into the dict merged into its outputs."""
    classified = classify_result(result)
    if isinstance(classified, StructuredResult):
        return dict(classified.data)
    return {"value": classified.value}


class FunctionBlock:
    """Adapts a plain ``async def fn(ctx)`` (or sync function) to the Block contract."""

    def __init__(self, fn: Callable[[Any], Union[Any, Awaitable[Any]]]):
        self.fn = fn
        functools.update_wrapper(self, fn)

    async def run(self, context: Any) -> Any:
        result = self.fn(context)
        if inspect.isawaitable(result):
            result = await result
        return result


class BlockDefinition(BaseModel):
    """Catalog metadata for a registered block."""
    type: str                           # matched against WorkflowNode.type
    name: str = ""
    description: str = ""
    category: str = "general"


# ── Registry ──────────────────────────────────────────────────────────────────


class BlockRegistry:
    """Central registry of runnable blocks."""

    def __init__(self):
        self._definitions: dict[str, BlockDefinition] = {}
        self._implementations: dict[str, Block] = {}

    def register(
        self,
        block_type: str,
        implementation: Union[Block, Callable[..., Any]],
        name: str = "",
        description: str = "",
        category: str = "general",
    ) -> None:
        """Register a block under its type name, replacing any previous one.

        Args:
            block_type: Type name nodes refer to (e.g. "http.request")
            implementation: Object with an async ``run(ctx)``, or a function
                taking the run context
            name: Display name (defaults to the type)
            description: What the block does
            category: Catalog grouping
        """
        if not hasattr(implementation, "run") and callable(implementation):
            implementation = FunctionBlock(implementation)
        if not callable(getattr(implementation, "run", None)):
            raise TypeError(f"Block '{block_type}' has no callable run()")
        if not description:
            doc = inspect.getdoc(implementation) or ""
            description = doc.split("\n")[0]
        self._definitions[block_type] = BlockDefinition(
            type=block_type, name=name or block_type,
            description=description, category=category,
        )
        self._implementations[block_type] = implementation

    def block(self, block_type: str, **meta: Any):
        """Decorator form of register()::

            @registry.block("echo")
            async def echo(ctx):
                return ctx.inputs
        """
        def decorator(fn):
            self.register(block_type, fn, **meta)
            return fn
        return decorator

    def get(self, block_type: str) -> Block:
        """Return the implementation for block_type.

        Raises:
            BlockNotFoundError: if nothing runnable is registered under that type
        """
        impl = self._implementations.get(block_type)
        if impl is None:
            raise BlockNotFoundError(
                f"Block type {block_type} not found or not executable",
                block_type=block_type,
            )
        return impl

    def lookup(self, block_type: str) -> tuple[Optional[Block], bool]:
        """Non-raising form of get(): (implementation, found)."""
        impl = self._implementations.get(block_type)
        return impl, impl is not None

    def definition(self, block_type: str) -> Optional[BlockDefinition]:
        return self._definitions.get(block_type)

    def list_blocks(self) -> list[BlockDefinition]:
        """List all registered block definitions."""
        return list(self._definitions.values())

    def list_types(self) -> list[str]:
        return list(self._implementations)

    def __contains__(self, block_type: str) -> bool:
        return block_type in self._implementations

    def __len__(self) -> int:
        return len(self._implementations)
