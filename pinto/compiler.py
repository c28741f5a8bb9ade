"""
Layout compiler - turns a DocumentAST into canvas shapes.

Two mutually exclusive modes, chosen per document:
- Explicit: every node carries both `x` and `y`; shapes are placed at those
  coordinates and edges run between node centres. The layout engine is
  never consulted.
- Automatic: nodes and edges are handed to a layout engine, which returns
  node positions and routed edge sections.

Shape mapping:
- rect     -> rectangle, corner radius 4
- circle   -> ellipse
- diamond  -> rectangle, corner radius 0 (no diamond primitive on the canvas)
- cylinder -> rectangle, corner radius 8 (no cylinder primitive on the canvas)
- `--` edges become line shapes, every other arrow an arrow shape
"""

import logging
from typing import Optional

from .ast_builder import parse
from .errors import LayoutFailure
from .layout import GraphLayoutEngine, LayoutEngine
from .models import (
    ArrowShape,
    ArrowType,
    CompileOptions,
    CompileResult,
    DocumentAST,
    EdgeStatement,
    EllipseShape,
    FreeArrowStatement,
    GroupStatement,
    LayoutAlgorithm,
    LayoutEdge,
    LayoutGraph,
    LayoutNode,
    LayoutResult,
    LayoutStatement,
    LineShape,
    NodeStatement,
    Point,
    RectangleShape,
    Shape,
    ShapeKind,
    Statement,
)

logger = logging.getLogger(__name__)


# Default dimensions (width, height) per shape
SHAPE_DIMENSIONS: dict[ShapeKind, tuple[float, float]] = {
    ShapeKind.RECT: (120, 60),
    ShapeKind.CIRCLE: (80, 80),
    ShapeKind.DIAMOND: (100, 100),
    ShapeKind.CYLINDER: (80, 100),
}

DEFAULT_SHAPE = ShapeKind.RECT
DEFAULT_STROKE = "#000000"
DEFAULT_FILL = "#ffffff"
DEFAULT_STROKE_WIDTH = 2
CONNECTOR_FILL = "transparent"


class CompileGraph:
    """Nodes, edges and directives gathered from a document, groups flattened."""

    def __init__(self):
        self.nodes: dict[str, NodeStatement] = {}
        self.edges: list[EdgeStatement] = []
        self.free_arrows: list[FreeArrowStatement] = []
        self.layouts: list[LayoutStatement] = []

    @classmethod
    def from_statements(cls, statements: list[Statement]) -> "CompileGraph":
        graph = cls()
        graph._add_all(statements)
        for edge in graph.edges:
            for node_id in (edge.source, edge.target):
                if node_id not in graph.nodes:
                    graph.nodes[node_id] = NodeStatement(id=node_id)
        return graph

    def _add_all(self, statements: list[Statement]) -> None:
        for stmt in statements:
            match stmt:
                case NodeStatement():
                    existing = self.nodes.get(stmt.id)
                    if existing is None:
                        # Copy so merging never mutates the caller's AST
                        self.nodes[stmt.id] = stmt.model_copy(deep=True)
                    else:
                        existing.merge(stmt)
                case EdgeStatement():
                    self.edges.append(stmt)
                case GroupStatement():
                    self._add_all(stmt.children)
                case LayoutStatement():
                    self.layouts.append(stmt)
                case FreeArrowStatement():
                    self.free_arrows.append(stmt)
                case _:
                    raise TypeError(f"Unhandled statement: {type(stmt).__name__}")

    def has_explicit_positions(self) -> bool:
        """True when every node has both x and y (vacuously true with no nodes)."""
        return all(
            node.style is not None and node.style.x is not None and node.style.y is not None
            for node in self.nodes.values()
        )


def node_size(node: NodeStatement) -> tuple[float, float]:
    """Width and height: explicit style values, else the shape default."""
    default_width, default_height = SHAPE_DIMENSIONS[node.shape or DEFAULT_SHAPE]
    style = node.style
    width = style.width if style is not None and style.width is not None else default_width
    height = style.height if style is not None and style.height is not None else default_height
    return width, height


def create_node_shape(
    node: NodeStatement,
    x: float,
    y: float,
    width: float,
    height: float,
) -> Shape:
    """Create the canvas shape for a node at an absolute position."""
    style = node.style
    base = {
        "x": x,
        "y": y,
        "width": width,
        "height": height,
        "rotation": 0,
        "stroke": (style.stroke if style is not None else None) or DEFAULT_STROKE,
        "stroke_width": (
            style.stroke_width
            if style is not None and style.stroke_width is not None
            else DEFAULT_STROKE_WIDTH
        ),
        "fill": (style.fill if style is not None else None) or DEFAULT_FILL,
        "opacity": 1,
    }

    shape = node.shape or DEFAULT_SHAPE
    match shape:
        case ShapeKind.RECT:
            return RectangleShape(**base, corner_radius=4)
        case ShapeKind.CIRCLE:
            return EllipseShape(**base)
        case ShapeKind.DIAMOND:
            # TODO: switch to a diamond primitive once the canvas has one
            return RectangleShape(**base, corner_radius=0)
        case ShapeKind.CYLINDER:
            # TODO: switch to a cylinder primitive once the canvas has one
            return RectangleShape(**base, corner_radius=8)
        case _:
            raise TypeError(f"Unhandled node shape: {shape!r}")


def apply_anchors(points: list[Point], edge: EdgeStatement) -> list[Point]:
    """Replace first/last point coordinates with the edge's anchor overrides."""
    if not points:
        return points
    first, last = points[0], points[-1]
    points[0] = Point(
        x=edge.x1 if edge.x1 is not None else first.x,
        y=edge.y1 if edge.y1 is not None else first.y,
    )
    points[-1] = Point(
        x=edge.x2 if edge.x2 is not None else last.x,
        y=edge.y2 if edge.y2 is not None else last.y,
    )
    return points


def create_connector(points: list[Point], arrow_type: ArrowType) -> Shape:
    """Create a line or arrow shape through absolute points."""
    base = {
        "x": 0,
        "y": 0,
        "rotation": 0,
        "stroke": DEFAULT_STROKE,
        "stroke_width": DEFAULT_STROKE_WIDTH,
        "fill": CONNECTOR_FILL,
        "opacity": 1,
        "points": points,
    }
    if arrow_type == ArrowType.LINE:
        return LineShape(**base)
    return ArrowShape(
        **base,
        start_arrow=arrow_type in (ArrowType.LEFT, ArrowType.BOTH),
        end_arrow=arrow_type != ArrowType.LEFT,
    )


def _center_line(source: tuple[float, float], target: tuple[float, float]) -> list[Point]:
    return [Point(x=source[0], y=source[1]), Point(x=target[0], y=target[1])]


def resolve_options(
    options: Optional[CompileOptions],
    layouts: list[LayoutStatement],
) -> CompileOptions:
    """
    Apply the document's last `@layout` directive unless the caller chose
    an algorithm explicitly.
    """
    options = options or CompileOptions()
    if not layouts or "algorithm" in options.model_fields_set:
        return options

    name = layouts[-1].algorithm
    try:
        algorithm = LayoutAlgorithm(name)
    except ValueError:
        logger.warning("Ignoring @layout directive with unknown algorithm %r", name)
        return options
    return options.model_copy(update={"algorithm": algorithm})


def _compile_explicit(graph: CompileGraph) -> list[Shape]:
    shapes: list[Shape] = []
    centers: dict[str, tuple[float, float]] = {}

    for node_id, node in graph.nodes.items():
        width, height = node_size(node)
        x, y = node.style.x, node.style.y
        shapes.append(create_node_shape(node, x, y, width, height))
        centers[node_id] = (x + width / 2, y + height / 2)

    for edge in graph.edges:
        points = apply_anchors(_center_line(centers[edge.source], centers[edge.target]), edge)
        shapes.append(create_connector(points, edge.arrow_type))

    return shapes


async def _compile_automatic(
    graph: CompileGraph,
    options: CompileOptions,
    engine: LayoutEngine,
) -> list[Shape]:
    layout_graph = LayoutGraph(options=options)
    for node_id, node in graph.nodes.items():
        width, height = node_size(node)
        layout_graph.nodes.append(
            LayoutNode(id=node_id, width=width, height=height, label=node.label)
        )
    for i, edge in enumerate(graph.edges):
        layout_graph.edges.append(
            LayoutEdge(id=f"e{i}", source=edge.source, target=edge.target, label=edge.label)
        )

    try:
        result = await engine.layout(layout_graph)
    except Exception as exc:
        raise LayoutFailure(f"Layout engine failed: {exc}") from exc

    if not isinstance(result, LayoutResult):
        raise LayoutFailure(f"Layout engine returned {type(result).__name__}, not a LayoutResult")

    positions = {n.id: n for n in result.nodes}
    missing = [node_id for node_id in graph.nodes if node_id not in positions]
    if missing:
        raise LayoutFailure(
            f"Layout engine returned no position for: {', '.join(missing)}",
            node_ids=missing,
        )

    # Nothing is assembled until the engine has answered
    shapes: list[Shape] = []
    for node_id, node in graph.nodes.items():
        placed = positions[node_id]
        shapes.append(create_node_shape(node, placed.x, placed.y, placed.width, placed.height))

    routes = {e.id: e for e in result.edges}
    for i, edge in enumerate(graph.edges):
        routed = routes.get(f"e{i}")
        if routed is not None and routed.sections:
            points: list[Point] = []
            for section in routed.sections:
                points.append(section.start_point)
                points.extend(section.bend_points)
                points.append(section.end_point)
        else:
            # No routing information: straight line between the node centres
            points = _center_line(
                positions[edge.source].center(), positions[edge.target].center()
            )
        points = [p.model_copy() for p in points]
        shapes.append(create_connector(apply_anchors(points, edge), edge.arrow_type))

    return shapes


async def compile(
    ast: DocumentAST,
    options: Optional[CompileOptions] = None,
    engine: Optional[LayoutEngine] = None,
) -> list[Shape]:
    """
    Compile a document into a fresh list of shapes.

    Args:
        ast: Parsed document (its errors are not consulted)
        options: Layout options; a document `@layout` directive fills in
            the algorithm when the caller did not set one
        engine: Layout engine for automatic mode (GraphLayoutEngine if None)

    Returns:
        Node shapes, then edge connectors, then free arrows

    Raises:
        LayoutFailure: automatic mode could not obtain positions
    """
    graph = CompileGraph.from_statements(ast.statements)
    options = resolve_options(options, graph.layouts)

    if graph.has_explicit_positions():
        logger.debug("Compiling %d node(s) at explicit positions", len(graph.nodes))
        shapes = _compile_explicit(graph)
    else:
        logger.debug(
            "Compiling %d node(s) with %s layout", len(graph.nodes), options.algorithm.value
        )
        shapes = await _compile_automatic(graph, options, engine or GraphLayoutEngine())

    for arrow in graph.free_arrows:
        points = [Point(x=arrow.x1, y=arrow.y1), Point(x=arrow.x2, y=arrow.y2)]
        shapes.append(create_connector(points, arrow.arrow_type))

    return shapes


async def parse_and_compile(
    code: str,
    options: Optional[CompileOptions] = None,
    engine: Optional[LayoutEngine] = None,
) -> CompileResult:
    """Parse then compile; with parse errors no shapes are produced."""
    ast = parse(code)
    if ast.errors:
        return CompileResult(errors=ast.errors)
    shapes = await compile(ast, options, engine)
    return CompileResult(shapes=shapes)
