#!/usr/bin/env python3
"""
Pinto MCP Server

Provides MCP tools for AI agents to read and write Pinto diagrams.
Tools run the toolchain in-process; no backend needs to be running.
"""

import json
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .ast_builder import parse
from .compiler import parse_and_compile
from .decompiler import decompile
from .models import CompileOptions, LayoutAlgorithm, LayoutDirection
from .validation import validate_document, validation_summary

# Create MCP server
mcp = FastMCP("pinto")


# ============================================================================
# TOOLCHAIN TOOLS
# ============================================================================

@mcp.tool()
def pinto_parse(source: str) -> str:
    """
    Parse Pinto DSL source into a document AST.

    Args:
        source: DSL text, e.g. 'a -> b: "calls"'

    Returns the statements, or the lexical/syntax errors with
    their line and column.
    """
    document = parse(source)
    return json.dumps({"success": document.ok, "document": document.to_json_dict()}, indent=2)


@mcp.tool()
async def pinto_compile(
    source: str,
    algorithm: Optional[str] = None,
    direction: Optional[str] = None,
    node_spacing: Optional[float] = None,
) -> str:
    """
    Compile Pinto DSL source into canvas shapes.

    Documents where every node has x and y keep those positions; otherwise
    nodes are placed by the layout engine.

    Args:
        source: DSL text
        algorithm: Layout algorithm (layered, force, stress, radial, box);
            overrides any @layout directive in the source
        direction: Flow direction for layered layouts (DOWN, RIGHT, UP, LEFT)
        node_spacing: Gap between nodes

    Returns the shapes (rectangles, ellipses, arrows, lines) or the parse errors.
    """
    overrides: dict[str, Any] = {}
    try:
        if algorithm is not None:
            overrides["algorithm"] = LayoutAlgorithm(algorithm)
        if direction is not None:
            overrides["direction"] = LayoutDirection(direction)
        if node_spacing is not None:
            overrides["node_spacing"] = node_spacing
        options = CompileOptions(**overrides) if overrides else None
    except ValueError as e:
        # Also covers pydantic ValidationError
        return json.dumps({"success": False, "error": f"Invalid options: {e}"}, indent=2)

    result = await parse_and_compile(source, options)
    payload = result.to_json_dict()
    return json.dumps({
        "success": not result.errors,
        "shapes": payload["shapes"],
        "errors": payload["errors"],
    }, indent=2)


@mcp.tool()
def pinto_decompile(shapes: list[dict], include_positions: bool = True) -> str:
    """
    Reconstruct Pinto DSL source from canvas shapes.

    Args:
        shapes: Shape objects as produced by pinto_compile
        include_positions: Emit x/y for every node; set to false to get
            text that recompiles with automatic layout

    Returns the DSL source.
    """
    source = decompile(shapes, include_positions=include_positions)
    return json.dumps({"success": True, "source": source}, indent=2)


@mcp.tool()
def pinto_validate(source: str) -> str:
    """
    Lint Pinto DSL source.

    Checks for:
    - Parse errors
    - Self-referencing and duplicate edges
    - Orphan nodes
    - Repeated or unknown @layout directives

    Returns a list of issues with severity levels (error, warning, info).
    """
    issues = validate_document(parse(source))
    return json.dumps({
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    }, indent=2)


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
