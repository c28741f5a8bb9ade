"""
Pinto - a diagram DSL toolchain.

Lexer, parser, AST builder, layout compiler and decompiler for the Pinto
diagram language. This package is the single source of truth used by the
CLI, the HTTP API and the MCP tools.
"""

__version__ = "0.1.0"

from .models import (
    # Enums
    ShapeKind,
    ArrowType,
    LayoutAlgorithm,
    LayoutDirection,
    # Document AST
    Location,
    ParseError,
    StyleProps,
    NodeStatement,
    EdgeStatement,
    GroupStatement,
    LayoutStatement,
    FreeArrowStatement,
    Statement,
    DocumentAST,
    # Shapes
    Point,
    Connection,
    RectangleShape,
    EllipseShape,
    LineShape,
    ArrowShape,
    FreehandShape,
    TextShape,
    Shape,
    ShapeAdapter,
    ShapeListAdapter,
    # Compilation
    CompileOptions,
    CompileResult,
    LayoutGraph,
    LayoutNode,
    LayoutEdge,
    LayoutResult,
    PositionedNode,
    RoutedEdge,
    EdgeSection,
)

from .errors import PintoError, LayoutFailure
from .lexer import Token, TokenKind, tokenize
from .parser import parse_cst
from .ast_builder import ASTBuilder, parse
from .layout import LayoutEngine, GraphLayoutEngine
from .compiler import compile, parse_and_compile, SHAPE_DIMENSIONS
from .decompiler import decompile, CONNECTION_THRESHOLD
from .validation import validate_document, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    "__version__",
    # Enums
    "ShapeKind",
    "ArrowType",
    "LayoutAlgorithm",
    "LayoutDirection",
    # Document AST
    "Location",
    "ParseError",
    "StyleProps",
    "NodeStatement",
    "EdgeStatement",
    "GroupStatement",
    "LayoutStatement",
    "FreeArrowStatement",
    "Statement",
    "DocumentAST",
    # Shapes
    "Point",
    "Connection",
    "RectangleShape",
    "EllipseShape",
    "LineShape",
    "ArrowShape",
    "FreehandShape",
    "TextShape",
    "Shape",
    "ShapeAdapter",
    "ShapeListAdapter",
    # Compilation
    "CompileOptions",
    "CompileResult",
    "LayoutGraph",
    "LayoutNode",
    "LayoutEdge",
    "LayoutResult",
    "PositionedNode",
    "RoutedEdge",
    "EdgeSection",
    # Errors
    "PintoError",
    "LayoutFailure",
    # Pipeline
    "Token",
    "TokenKind",
    "tokenize",
    "parse_cst",
    "ASTBuilder",
    "parse",
    "LayoutEngine",
    "GraphLayoutEngine",
    "compile",
    "parse_and_compile",
    "SHAPE_DIMENSIONS",
    "decompile",
    "CONNECTION_THRESHOLD",
    # Validation
    "validate_document",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
