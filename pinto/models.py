"""
Core data models for the Pinto diagram DSL.

These models define the canonical schema shared by every stage:
- Document AST: statements (nodes, edges, groups, layout directives, free arrows)
  plus the parse errors that were recovered while building it
- Shapes: the geometric primitives produced by the compiler and read back by
  the decompiler (rectangle, ellipse, line, arrow, freehand, text)
- Layout graph: the request/response contract of the graph-layout engine

Field Naming Convention:
- Python attributes are snake_case, JSON is camelCase (`strokeWidth`, `arrowType`)
- Edges use `source` and `target` in Python and `from`/`to` on the wire
- Either spelling is accepted on input
"""

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class PintoModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict, leaving out unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Enums ---

class ShapeKind(str, Enum):
    """Canonical node shapes of the DSL (after synonym folding)."""
    RECT = "rect"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    CYLINDER = "cylinder"


class ArrowType(str, Enum):
    """Edge kinds, one per arrow operator."""
    RIGHT = "right"    # ->
    LEFT = "left"      # <-
    BOTH = "both"      # <->
    DOTTED = "dotted"  # -->
    THICK = "thick"    # ==>
    LINE = "line"      # --


class LayoutAlgorithm(str, Enum):
    """Algorithms understood by the layout engine."""
    LAYERED = "layered"
    FORCE = "force"
    STRESS = "stress"
    RADIAL = "radial"
    BOX = "box"


class LayoutDirection(str, Enum):
    """Flow direction for layered layouts."""
    DOWN = "DOWN"
    RIGHT = "RIGHT"
    UP = "UP"
    LEFT = "LEFT"


# --- Document AST ---

class Location(PintoModel):
    """Source span, 1-based lines and columns, end column inclusive."""
    start_line: int
    start_column: int
    end_line: int
    end_column: int


class ParseError(PintoModel):
    """A lexical or syntax diagnostic."""
    message: str
    location: Optional[Location] = None


class StyleProps(PintoModel):
    """
    Sparse style/geometry property bag.

    A field left as None means "unset"; defaults are applied by the
    compiler, never here.
    """
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    x1: Optional[float] = None
    y1: Optional[float] = None
    x2: Optional[float] = None
    y2: Optional[float] = None

    def set_fields(self) -> dict[str, Any]:
        """Only the properties that carry a value."""
        return self.model_dump(exclude_none=True)

    def merged(self, other: Optional["StyleProps"]) -> "StyleProps":
        """Key-by-key merge; values set on `other` win."""
        if other is None:
            return self
        return self.model_copy(update=other.set_fields())


class NodeStatement(PintoModel):
    """A node, keyed by its (possibly dotted) id."""
    type: Literal["node"] = "node"
    id: str
    label: Optional[str] = None
    shape: Optional[ShapeKind] = None
    style: Optional[StyleProps] = None

    def merge(self, other: "NodeStatement") -> None:
        """Fold a later occurrence of the same id into this record."""
        if other.label is not None:
            self.label = other.label
        if other.shape is not None:
            self.shape = other.shape
        if other.style is not None:
            self.style = (self.style or StyleProps()).merged(other.style)


class EdgeStatement(PintoModel):
    """A directed (or undirected, for `line`) connection between two nodes."""
    type: Literal["edge"] = "edge"
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    arrow_type: ArrowType = ArrowType.RIGHT
    label: Optional[str] = None
    # Anchor overrides for the first/last connector point
    x1: Optional[float] = None
    y1: Optional[float] = None
    x2: Optional[float] = None
    y2: Optional[float] = None


class GroupStatement(PintoModel):
    """A named block of nested statements."""
    type: Literal["group"] = "group"
    id: str
    style: Optional[StyleProps] = None
    children: list["Statement"] = Field(default_factory=list)


class LayoutStatement(PintoModel):
    """An `@layout: <algorithm>` directive."""
    type: Literal["layout"] = "layout"
    algorithm: str


class FreeArrowStatement(PintoModel):
    """An arrow at absolute coordinates, not attached to any node."""
    type: Literal["freeArrow"] = "freeArrow"
    x1: float = 0
    y1: float = 0
    x2: float = 0
    y2: float = 0
    arrow_type: ArrowType = ArrowType.RIGHT


Statement = Annotated[
    Union[NodeStatement, EdgeStatement, GroupStatement, LayoutStatement, FreeArrowStatement],
    Field(discriminator="type"),
]

GroupStatement.model_rebuild()


class DocumentAST(PintoModel):
    """
    Result of a parse call.

    `statements` and `errors` are never both non-empty.
    """
    statements: list[Statement] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# --- Shapes ---

def generate_shape_id() -> str:
    """Generate a unique shape ID."""
    return str(uuid.uuid4())


class Point(PintoModel):
    x: float
    y: float


class Connection(PintoModel):
    """Reference from a connector endpoint to another shape."""
    shape_id: str


class BaseShape(PintoModel):
    """Fields every canvas shape carries."""
    id: str = Field(default_factory=generate_shape_id)
    x: float = 0
    y: float = 0
    rotation: float = 0
    stroke: str = "#000000"
    stroke_width: float = 2
    fill: str = "#ffffff"
    opacity: float = 1


class BoxShape(BaseShape):
    width: float = 0
    height: float = 0

    def center(self) -> tuple[float, float]:
        """Get the center point of the shape."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


class RectangleShape(BoxShape):
    type: Literal["rectangle"] = "rectangle"
    corner_radius: float = 0


class EllipseShape(BoxShape):
    type: Literal["ellipse"] = "ellipse"


class PathShape(BaseShape):
    """A shape described by points relative to its own (x, y)."""
    points: list[Point] = Field(default_factory=list)

    def absolute_points(self) -> list[Point]:
        return [Point(x=self.x + p.x, y=self.y + p.y) for p in self.points]


class LineShape(PathShape):
    type: Literal["line"] = "line"
    start_connection: Optional[Connection] = None
    end_connection: Optional[Connection] = None


class ArrowShape(PathShape):
    type: Literal["arrow"] = "arrow"
    start_arrow: bool = False
    end_arrow: bool = True
    start_connection: Optional[Connection] = None
    end_connection: Optional[Connection] = None


class FreehandShape(PathShape):
    type: Literal["freehand"] = "freehand"


class TextShape(BoxShape):
    type: Literal["text"] = "text"
    text: str = ""
    font_size: float = 16
    font_family: str = "sans-serif"


Shape = Annotated[
    Union[RectangleShape, EllipseShape, LineShape, ArrowShape, FreehandShape, TextShape],
    Field(discriminator="type"),
]

# Validate canvas payloads (plain dicts) into shape models
ShapeAdapter = TypeAdapter(Shape)
ShapeListAdapter = TypeAdapter(list[Shape])


# --- Compile options and layout graph ---

class CompileOptions(PintoModel):
    """Per-call configuration of the layout compiler."""
    algorithm: LayoutAlgorithm = LayoutAlgorithm.LAYERED
    direction: LayoutDirection = LayoutDirection.DOWN
    node_spacing: float = Field(default=50, ge=0)
    edge_spacing: float = Field(default=20, ge=0)


class LayoutNode(PintoModel):
    id: str
    width: float
    height: float
    label: Optional[str] = None


class LayoutEdge(PintoModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None


class LayoutGraph(PintoModel):
    """What the compiler hands to the layout engine."""
    nodes: list[LayoutNode] = Field(default_factory=list)
    edges: list[LayoutEdge] = Field(default_factory=list)
    options: CompileOptions = Field(default_factory=CompileOptions)


class PositionedNode(PintoModel):
    id: str
    x: float
    y: float
    width: float
    height: float

    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


class EdgeSection(PintoModel):
    """One routed piece of an edge: start, optional bends, end."""
    start_point: Point
    bend_points: list[Point] = Field(default_factory=list)
    end_point: Point


class RoutedEdge(PintoModel):
    id: str
    sections: list[EdgeSection] = Field(default_factory=list)


class LayoutResult(PintoModel):
    """What the layout engine hands back."""
    nodes: list[PositionedNode] = Field(default_factory=list)
    edges: list[RoutedEdge] = Field(default_factory=list)


class CompileResult(PintoModel):
    """Output of parse_and_compile: shapes, or the errors that prevented them."""
    shapes: list[Shape] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)
