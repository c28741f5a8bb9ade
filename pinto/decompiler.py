"""
Decompiler - infers a node/edge graph from raw shapes and writes DSL text.

Best effort and lossy: rectangles and ellipses become nodes, arrows and
lines become edges when both of their endpoints land on (or within
CONNECTION_THRESHOLD of) a node's bounding box. Freehand strokes are
ignored; a text shape whose centre lies inside a node box becomes that
node's label.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from .compiler import DEFAULT_STROKE, DEFAULT_STROKE_WIDTH, SHAPE_DIMENSIONS
from .lexer import KEYWORDS
from .models import (
    ArrowShape,
    ArrowType,
    EllipseShape,
    FreehandShape,
    LineShape,
    Point,
    RectangleShape,
    Shape,
    ShapeAdapter,
    ShapeKind,
    TextShape,
)

logger = logging.getLogger(__name__)


# Max distance from a connector endpoint to a node's bounding box
CONNECTION_THRESHOLD = 50

DEFAULT_FILLS = {"#ffffff", "transparent"}

ARROW_SYMBOLS: dict[ArrowType, str] = {
    ArrowType.RIGHT: "->",
    ArrowType.LEFT: "<-",
    ArrowType.BOTH: "<->",
    ArrowType.DOTTED: "-->",
    ArrowType.THICK: "==>",
    ArrowType.LINE: "--",
}

# Colors the lexer can read back as a style value
_COLOR_VALUE = re.compile(r"#[0-9A-Fa-f]{3,6}|[A-Za-z_][A-Za-z0-9_]*")


@dataclass
class DecompiledNode:
    id: str
    shape_id: str
    shape: ShapeKind
    x: float
    y: float
    width: float
    height: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    label: Optional[str] = None

    def contains(self, px: float, py: float) -> bool:
        return (
            self.x <= px <= self.x + self.width
            and self.y <= py <= self.y + self.height
        )

    def distance_to(self, point: Point) -> float:
        """0 inside the bounding box, else the distance to its nearest edge."""
        dx = max(self.x - point.x, 0.0, point.x - (self.x + self.width))
        dy = max(self.y - point.y, 0.0, point.y - (self.y + self.height))
        return math.hypot(dx, dy)


@dataclass
class DecompiledEdge:
    source: str
    target: str
    arrow_type: ArrowType
    label: Optional[str] = None


def generate_node_id(index: int) -> str:
    """a..z for the first 26 nodes, then node27, node28, ..."""
    if index < 26:
        return chr(ord("a") + index)
    return f"node{index + 1}"


def node_kind(shape: Shape) -> Optional[ShapeKind]:
    """DSL shape for node-capable shapes, None for everything else."""
    match shape:
        case RectangleShape():
            return ShapeKind.RECT
        case EllipseShape():
            return ShapeKind.CIRCLE
        case LineShape() | ArrowShape() | FreehandShape() | TextShape():
            return None
        case _:
            raise TypeError(f"Unhandled shape: {type(shape).__name__}")


def connector_arrow_type(shape: Union[LineShape, ArrowShape]) -> ArrowType:
    if isinstance(shape, LineShape):
        return ArrowType.LINE
    if shape.start_arrow and shape.end_arrow:
        return ArrowType.BOTH
    if shape.start_arrow:
        return ArrowType.LEFT
    return ArrowType.RIGHT


def _round(value: float) -> int:
    # Half-up, so 0.5 -> 1 and -0.5 -> 0
    return math.floor(value + 0.5)


def _color_literal(value: Optional[str]) -> Optional[str]:
    if value is None or not _COLOR_VALUE.fullmatch(value) or value in KEYWORDS:
        return None
    return value


def _candidates(point: Point, nodes: list[DecompiledNode]) -> list[str]:
    """Node ids within the threshold of `point`, nearest first."""
    scored = []
    for index, node in enumerate(nodes):
        dist = node.distance_to(point)
        if dist <= CONNECTION_THRESHOLD:
            scored.append((dist, index, node.id))
    scored.sort()
    return [node_id for _, _, node_id in scored]


def _resolve_pair(start: list[str], end: list[str]) -> Optional[tuple[str, str]]:
    """Pick distinct endpoint nodes, substituting runners-up on a collision."""
    if not start or not end:
        return None
    source, target = start[0], end[0]
    if source != target:
        return source, target
    for alternative in end[1:]:
        if alternative != source:
            return source, alternative
    for alternative in start[1:]:
        if alternative != target:
            return alternative, target
    return None


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _collect_nodes(shapes: list[Shape]) -> list[DecompiledNode]:
    nodes: list[DecompiledNode] = []
    for shape in shapes:
        kind = node_kind(shape)
        if kind is None:
            continue
        if not _finite(shape.x, shape.y, shape.width, shape.height, shape.stroke_width):
            logger.warning("Skipping shape %s: non-finite geometry", shape.id)
            continue
        node = DecompiledNode(
            id=generate_node_id(len(nodes)),
            shape_id=shape.id,
            shape=kind,
            x=shape.x,
            y=shape.y,
            width=shape.width,
            height=shape.height,
        )
        if shape.fill not in DEFAULT_FILLS:
            node.fill = _color_literal(shape.fill)
        if shape.stroke != DEFAULT_STROKE:
            node.stroke = _color_literal(shape.stroke)
        if _round(shape.stroke_width) != DEFAULT_STROKE_WIDTH:
            node.stroke_width = shape.stroke_width
        nodes.append(node)
    return nodes


def _attach_labels(shapes: list[Shape], nodes: list[DecompiledNode]) -> None:
    for shape in shapes:
        if not isinstance(shape, TextShape) or not shape.text.strip():
            continue
        cx, cy = shape.center()
        for node in nodes:
            if node.label is None and node.contains(cx, cy):
                # Labels cannot contain quotes; there are no escapes in the DSL
                node.label = shape.text.replace('"', "'").strip()
                break


def _collect_edges(shapes: list[Shape], nodes: list[DecompiledNode]) -> list[DecompiledEdge]:
    by_shape_id = {node.shape_id: node.id for node in nodes}
    edges: list[DecompiledEdge] = []

    for shape in shapes:
        if not isinstance(shape, (LineShape, ArrowShape)):
            continue
        points = shape.absolute_points()
        if len(points) < 2:
            continue
        if not _finite(*(c for p in points for c in (p.x, p.y))):
            logger.warning("Dropping connector %s: non-finite point", shape.id)
            continue

        start = _candidates(points[0], nodes)
        end = _candidates(points[-1], nodes)
        # An explicit connection to a known node beats geometry
        if shape.start_connection is not None and shape.start_connection.shape_id in by_shape_id:
            start = [by_shape_id[shape.start_connection.shape_id]]
        if shape.end_connection is not None and shape.end_connection.shape_id in by_shape_id:
            end = [by_shape_id[shape.end_connection.shape_id]]

        pair = _resolve_pair(start, end)
        if pair is None:
            logger.warning("Dropping connector %s: endpoints do not resolve to two nodes", shape.id)
            continue
        edges.append(DecompiledEdge(
            source=pair[0],
            target=pair[1],
            arrow_type=connector_arrow_type(shape),
        ))
    return edges


def format_node(node: DecompiledNode, include_positions: bool = True) -> str:
    """Render one node line: id(shape[, prop: value, ...])[: "label"]."""
    props = [node.shape.value]
    if include_positions:
        props.append(f"x: {_round(node.x)}")
        props.append(f"y: {_round(node.y)}")

    default_width, default_height = SHAPE_DIMENSIONS[node.shape]
    if _round(node.width) != default_width or _round(node.height) != default_height:
        props.append(f"width: {_round(node.width)}")
        props.append(f"height: {_round(node.height)}")
    if node.fill:
        props.append(f"fill: {node.fill}")
    if node.stroke:
        props.append(f"stroke: {node.stroke}")
    if node.stroke_width is not None:
        props.append(f"strokeWidth: {_round(node.stroke_width)}")

    line = f"{node.id}({', '.join(props)})"
    if node.label:
        line += f': "{node.label}"'
    return line


def format_edge(edge: DecompiledEdge) -> str:
    line = f"{edge.source} {ARROW_SYMBOLS[edge.arrow_type]} {edge.target}"
    if edge.label:
        line += f': "{edge.label}"'
    return line


def decompile(
    shapes: Sequence[Union[Shape, dict[str, Any]]],
    include_positions: bool = True,
) -> str:
    """
    Reconstruct DSL source from a list of shapes.

    Never fails; shapes that cannot be interpreted are skipped.

    Args:
        shapes: Canvas shapes, as models or plain dicts; dicts that do not
            validate as a shape are logged and skipped
        include_positions: Emit x/y so the text recompiles at the same
            coordinates; without them it recompiles with automatic layout

    Returns:
        DSL source text (empty for no shapes)
    """
    models: list[Shape] = []
    for index, shape in enumerate(shapes):
        if isinstance(shape, BaseModel):
            models.append(shape)
            continue
        try:
            models.append(ShapeAdapter.validate_python(shape))
        except ValidationError as e:
            logger.warning("Skipping invalid shape at index %d: %s", index, e)

    nodes = _collect_nodes(models)
    _attach_labels(models, nodes)
    edges = _collect_edges(models, nodes)

    lines = [format_node(node, include_positions) for node in nodes]
    if nodes and edges:
        lines.append("")
    lines.extend(format_edge(edge) for edge in edges)

    logger.debug("Decompiled %d node(s) and %d edge(s)", len(nodes), len(edges))
    return "\n".join(lines)
