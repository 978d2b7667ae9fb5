"""Block contract, registry, and the built-in blocks."""

from canvasflow.blocks.registry import (
    Block,
    BlockDefinition,
    BlockRegistry,
    BlockResult,
    FunctionBlock,
    ScalarResult,
    StructuredResult,
    normalize_result,
)


def default_registry() -> BlockRegistry:
    """Fresh registry holding the built-in blocks (starter, http.request, response)."""
    from canvasflow.blocks.builtin import http_request, response, starter

    registry = BlockRegistry()
    registry.register("starter", starter, name="Start", category="io")
    registry.register("http.request", http_request, name="HTTP Request", category="network")
    registry.register("response", response, name="Response", category="io")
    return registry


__all__ = [
    "Block",
    "BlockDefinition",
    "BlockRegistry",
    "BlockResult",
    "FunctionBlock",
    "ScalarResult",
    "StructuredResult",
    "normalize_result",
    "default_registry",
]
