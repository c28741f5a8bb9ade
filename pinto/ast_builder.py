"""
AST assembly - the semantic pass over the CST.

Walks the concrete syntax tree bottom-up and produces the flat statement list
of a DocumentAST:
- every node reference updates a per-document registry keyed by node id
  (label/shape overwritten only when supplied, style merged key by key)
- edge chains `a -> b -> c` become one EdgeStatement per arrow
- nodes known only to the registry are inserted at the front of the final
  statement list, each at position 0
- numeric style properties given a non-number value are dropped with a
  warning
"""

import logging

from .lexer import Token, TokenKind, tokenize
from .models import (
    ArrowType,
    DocumentAST,
    EdgeStatement,
    FreeArrowStatement,
    GroupStatement,
    LayoutStatement,
    NodeStatement,
    ShapeKind,
    Statement,
    StyleProps,
)
from .parser import (
    DocumentCst,
    EdgeOrNodeCst,
    FreeArrowDefCst,
    GroupDefCst,
    LayoutDefCst,
    NodeRefCst,
    StatementCst,
    StylePropCst,
    parse_cst,
)

logger = logging.getLogger(__name__)


SHAPE_FOR_KEYWORD: dict[TokenKind, ShapeKind] = {
    TokenKind.RECT: ShapeKind.RECT,
    TokenKind.BOX: ShapeKind.RECT,
    TokenKind.RECTANGLE: ShapeKind.RECT,
    TokenKind.CIRCLE: ShapeKind.CIRCLE,
    TokenKind.OVAL: ShapeKind.CIRCLE,
    TokenKind.ELLIPSE: ShapeKind.CIRCLE,
    TokenKind.DIAMOND: ShapeKind.DIAMOND,
    TokenKind.CYLINDER: ShapeKind.CYLINDER,
    TokenKind.DATABASE: ShapeKind.CYLINDER,
    TokenKind.DB: ShapeKind.CYLINDER,
}

ARROW_FOR_OPERATOR: dict[TokenKind, ArrowType] = {
    TokenKind.ARROW_RIGHT: ArrowType.RIGHT,
    TokenKind.ARROW_LEFT: ArrowType.LEFT,
    TokenKind.ARROW_BOTH: ArrowType.BOTH,
    TokenKind.ARROW_DOTTED: ArrowType.DOTTED,
    TokenKind.ARROW_THICK: ArrowType.THICK,
    TokenKind.LINE: ArrowType.LINE,
}

# DSL property name -> StyleProps attribute
TEXT_PROPS = {"fill": "fill", "stroke": "stroke"}
NUMERIC_PROPS = {
    "strokeWidth": "stroke_width",
    "x": "x",
    "y": "y",
    "width": "width",
    "height": "height",
    "x1": "x1",
    "y1": "y1",
    "x2": "x2",
    "y2": "y2",
}
ANCHOR_PROPS = ("x1", "y1", "x2", "y2")


def _label_text(token: Token) -> str:
    # No escape processing: everything between the quotes, verbatim
    return token.text[1:-1]


class ASTBuilder:
    """
    Builds a DocumentAST from a DocumentCst.

    Holds the node registry for exactly one document; create a new builder
    per parse call.
    """

    def __init__(self):
        self._nodes: dict[str, NodeStatement] = {}

    def build(self, doc: DocumentCst) -> DocumentAST:
        statements = self._collect(doc.statements)

        defined = {s.id for s in statements if isinstance(s, NodeStatement)}
        for node_id, node in self._nodes.items():
            if node_id not in defined:
                statements.insert(0, node)

        return DocumentAST(statements=statements)

    def _collect(self, items: list[StatementCst]) -> list[Statement]:
        statements: list[Statement] = []
        for item in items:
            match item:
                case GroupDefCst():
                    statements.append(self._group(item))
                case LayoutDefCst():
                    statements.append(LayoutStatement(algorithm=item.algorithm.text))
                case FreeArrowDefCst():
                    statements.append(self._free_arrow(item))
                case EdgeOrNodeCst():
                    statements.extend(self._edge_chain(item))
                case _:
                    raise TypeError(f"Unhandled statement node: {type(item).__name__}")
        return statements

    def _group(self, group: GroupDefCst) -> GroupStatement:
        return GroupStatement(
            id=group.name.text,
            style=self._style(group.style) if group.style is not None else None,
            children=self._collect(group.body),
        )

    def _free_arrow(self, arrow: FreeArrowDefCst) -> FreeArrowStatement:
        props = self._style(arrow.props)
        return FreeArrowStatement(
            x1=props.x1 or 0,
            y1=props.y1 or 0,
            x2=props.x2 or 0,
            y2=props.y2 or 0,
        )

    def _edge_chain(self, chain: EdgeOrNodeCst) -> list[EdgeStatement]:
        edges: list[EdgeStatement] = []
        previous = self._register(self._node(chain.left))

        for link in chain.links:
            current = self._register(self._node(link.node))
            edge = EdgeStatement(
                source=previous.id,
                target=current.id,
                arrow_type=ARROW_FOR_OPERATOR[link.arrow.kind],
            )
            if link.anchor is not None:
                anchors = self._style(link.anchor)
                for name in ANCHOR_PROPS:
                    value = getattr(anchors, name)
                    if value is not None:
                        setattr(edge, name, value)
            if link.label is not None:
                edge.label = _label_text(link.label)
            edges.append(edge)
            previous = current

        return edges

    def _node(self, ref: NodeRefCst) -> NodeStatement:
        node_id = ref.node_id.text
        if ref.sub_id is not None:
            node_id = f"{node_id}.{ref.sub_id.text}"

        node = NodeStatement(id=node_id)
        if ref.shape_spec is not None:
            node.shape = SHAPE_FOR_KEYWORD[ref.shape_spec.shape.kind]
            if ref.shape_spec.props:
                node.style = self._style(ref.shape_spec.props)
        if ref.label is not None:
            node.label = _label_text(ref.label)
        return node

    def _register(self, node: NodeStatement) -> NodeStatement:
        """Add a node to the registry, or merge it into the existing record."""
        existing = self._nodes.get(node.id)
        if existing is None:
            self._nodes[node.id] = node
            return node

        if existing.shape is not None and node.shape is not None and existing.shape != node.shape:
            logger.warning(
                "Node %r redeclared as %s (was %s); keeping the later shape",
                node.id, node.shape.value, existing.shape.value,
            )
        existing.merge(node)
        return existing

    def _style(self, props: list[StylePropCst]) -> StyleProps:
        values: dict[str, object] = {}
        for prop in props:
            key, token = prop.key.text, prop.value
            if key in TEXT_PROPS:
                values[TEXT_PROPS[key]] = token.text
            elif key in NUMERIC_PROPS:
                if token.kind != TokenKind.NUMBER:
                    logger.warning(
                        "Ignoring non-numeric value %r for style property %r", token.text, key,
                    )
                    continue
                values[NUMERIC_PROPS[key]] = int(token.text)
            else:
                logger.debug("Ignoring unknown style property %r", key)
        return StyleProps(**values)


def parse(text: str) -> DocumentAST:
    """
    Parse DSL source into a DocumentAST.

    Never raises. When any lexical or syntax error is found the result
    carries the errors and no statements.

    Args:
        text: DSL source

    Returns:
        DocumentAST with either statements or errors
    """
    tokens, lex_errors = tokenize(text)
    if lex_errors:
        return DocumentAST(errors=lex_errors)

    cst, syntax_errors = parse_cst(tokens)
    if syntax_errors:
        return DocumentAST(errors=syntax_errors)

    return ASTBuilder().build(cst)
