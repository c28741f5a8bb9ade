"""
Parser for the Pinto DSL: tokens in, concrete syntax tree out.

Grammar:

    Document     := Statement*
    Statement    := GroupDef | LayoutDef | FreeArrowDef | EdgeOrNode
    GroupDef     := 'group' Identifier StyleSpec? '{' Statement* '}'
    LayoutDef    := '@layout' ':' Identifier
    FreeArrowDef := 'arrow' '(' StyleProps ')'
    EdgeOrNode   := NodeRef (Arrow NodeRef AnchorSpec? LabelSpec?)*
    NodeRef      := Identifier ('.' Identifier)? ShapeSpec? LabelSpec?
    ShapeSpec    := '(' ShapeType (',' StyleProps)? ')'
    AnchorSpec   := '(' StyleProps ')'
    StyleSpec    := '(' StyleProps ')'
    StyleProps   := StyleProp (',' StyleProp)*
    StyleProp    := Identifier ':' (ColorLiteral | NumberLiteral | Identifier)
    LabelSpec    := ':' StringLiteral

The parser recovers from syntax errors: the failing statement is dropped,
the error is recorded with the offending token's span, and parsing resumes
at the next token that can start a statement.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

from .lexer import ARROW_OPERATORS, SHAPE_KEYWORDS, Token, TokenKind
from .models import ParseError

logger = logging.getLogger(__name__)


# --- Concrete syntax tree ---

@dataclass
class StylePropCst:
    key: Token
    value: Token


@dataclass
class ShapeSpecCst:
    shape: Token
    props: list[StylePropCst] = field(default_factory=list)


@dataclass
class NodeRefCst:
    node_id: Token
    sub_id: Token | None = None
    shape_spec: ShapeSpecCst | None = None
    label: Token | None = None


@dataclass
class ChainLinkCst:
    """One `Arrow NodeRef AnchorSpec? LabelSpec?` step of an edge chain."""
    arrow: Token
    node: NodeRefCst
    anchor: list[StylePropCst] | None = None
    label: Token | None = None


@dataclass
class EdgeOrNodeCst:
    left: NodeRefCst
    links: list[ChainLinkCst] = field(default_factory=list)


@dataclass
class GroupDefCst:
    name: Token
    style: list[StylePropCst] | None = None
    body: list["StatementCst"] = field(default_factory=list)


@dataclass
class LayoutDefCst:
    algorithm: Token


@dataclass
class FreeArrowDefCst:
    keyword: Token
    props: list[StylePropCst] = field(default_factory=list)


StatementCst = Union[GroupDefCst, LayoutDefCst, FreeArrowDefCst, EdgeOrNodeCst]


@dataclass
class DocumentCst:
    statements: list[StatementCst] = field(default_factory=list)


STATEMENT_START = frozenset({
    TokenKind.GROUP, TokenKind.LAYOUT, TokenKind.ARROW, TokenKind.IDENTIFIER,
})

STYLE_VALUE_KINDS = (TokenKind.COLOR, TokenKind.NUMBER, TokenKind.IDENTIFIER)


class _Unexpected(Exception):
    """Internal: aborts the current statement so the parser can resynchronise."""

    def __init__(self, error: ParseError):
        self.error = error
        super().__init__(error.message)


class Parser:
    """
    Recursive-descent parser over a token list.

    One instance parses one token list; create a new Parser per call.
    """

    def __init__(self, tokens: list[Token]):
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            raise ValueError("Token list must end with an EOF token")
        self.tokens = tokens
        self.pos = 0
        self.errors: list[ParseError] = []

    # --- Token helpers ---

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def at(self, *kinds: TokenKind) -> bool:
        return self.peek().kind in kinds

    def advance(self) -> Token:
        token = self.peek()
        if token.kind != TokenKind.EOF:
            self.pos += 1
        return token

    def fail(self, expected: str) -> _Unexpected:
        token = self.peek()
        return _Unexpected(ParseError(
            message=f"Expected {expected} but found {token.describe()}",
            location=token.location(),
        ))

    def expect(self, kind: TokenKind, expected: str | None = None) -> Token:
        if not self.at(kind):
            raise self.fail(expected or f"'{kind.value}'")
        return self.advance()

    def synchronize(self, start: int, in_group: bool) -> None:
        """Skip to the next token that can begin a statement (or close the group)."""
        if self.pos == start:
            self.advance()
        while not self.at(TokenKind.EOF):
            if self.at(*STATEMENT_START):
                return
            if in_group and self.at(TokenKind.RBRACE):
                return
            self.advance()

    # --- Rules ---

    def document(self) -> DocumentCst:
        doc = DocumentCst()
        while not self.at(TokenKind.EOF):
            stmt = self.statement(in_group=False)
            if stmt is not None:
                doc.statements.append(stmt)
        return doc

    def statement(self, in_group: bool) -> StatementCst | None:
        start = self.pos
        try:
            if self.at(TokenKind.GROUP):
                return self.group_def()
            if self.at(TokenKind.LAYOUT):
                return self.layout_def()
            if self.at(TokenKind.ARROW):
                return self.free_arrow_def()
            if self.at(TokenKind.IDENTIFIER):
                return self.edge_or_node()
            raise self.fail("a statement")
        except _Unexpected as exc:
            self.errors.append(exc.error)
            self.synchronize(start, in_group)
            return None

    def group_def(self) -> GroupDefCst:
        self.expect(TokenKind.GROUP)
        group = GroupDefCst(name=self.expect(TokenKind.IDENTIFIER, "a group name"))
        if self.at(TokenKind.LPAREN):
            group.style = self.paren_style_props()
        self.expect(TokenKind.LBRACE)
        while not self.at(TokenKind.RBRACE, TokenKind.EOF):
            stmt = self.statement(in_group=True)
            if stmt is not None:
                group.body.append(stmt)
        self.expect(TokenKind.RBRACE)
        return group

    def layout_def(self) -> LayoutDefCst:
        self.expect(TokenKind.LAYOUT)
        self.expect(TokenKind.COLON)
        return LayoutDefCst(algorithm=self.expect(TokenKind.IDENTIFIER, "a layout algorithm name"))

    def free_arrow_def(self) -> FreeArrowDefCst:
        keyword = self.expect(TokenKind.ARROW)
        return FreeArrowDefCst(keyword=keyword, props=self.paren_style_props())

    def edge_or_node(self) -> EdgeOrNodeCst:
        chain = EdgeOrNodeCst(left=self.node_ref())
        while self.at(*ARROW_OPERATORS):
            link = ChainLinkCst(arrow=self.advance(), node=self.node_ref())
            if self.at(TokenKind.LPAREN):
                link.anchor = self.paren_style_props()
            if self.at(TokenKind.COLON):
                link.label = self.label_spec()
            chain.links.append(link)
        return chain

    def node_ref(self) -> NodeRefCst:
        ref = NodeRefCst(node_id=self.expect(TokenKind.IDENTIFIER, "a node id"))
        if self.at(TokenKind.DOT):
            self.advance()
            ref.sub_id = self.expect(TokenKind.IDENTIFIER, "a sub-node id")
        # '(' starts a shape spec only when a shape keyword follows; otherwise
        # it belongs to the anchor spec of the enclosing chain link
        if self.at(TokenKind.LPAREN) and self.peek(1).kind in SHAPE_KEYWORDS:
            ref.shape_spec = self.shape_spec()
        if self.at(TokenKind.COLON):
            ref.label = self.label_spec()
        return ref

    def shape_spec(self) -> ShapeSpecCst:
        self.expect(TokenKind.LPAREN)
        if self.peek().kind not in SHAPE_KEYWORDS:
            raise self.fail("a shape type")
        spec = ShapeSpecCst(shape=self.advance())
        if self.at(TokenKind.COMMA):
            self.advance()
            spec.props = self.style_props()
        self.expect(TokenKind.RPAREN)
        return spec

    def paren_style_props(self) -> list[StylePropCst]:
        """StyleSpec, AnchorSpec and the body of FreeArrowDef share this shape."""
        self.expect(TokenKind.LPAREN)
        props = self.style_props()
        self.expect(TokenKind.RPAREN)
        return props

    def style_props(self) -> list[StylePropCst]:
        props = [self.style_prop()]
        while self.at(TokenKind.COMMA):
            self.advance()
            props.append(self.style_prop())
        return props

    def style_prop(self) -> StylePropCst:
        key = self.expect(TokenKind.IDENTIFIER, "a property name")
        self.expect(TokenKind.COLON)
        if not self.at(*STYLE_VALUE_KINDS):
            raise self.fail("a color, number or identifier")
        return StylePropCst(key=key, value=self.advance())

    def label_spec(self) -> Token:
        self.expect(TokenKind.COLON)
        return self.expect(TokenKind.STRING, "a string label")


def parse_cst(tokens: list[Token]) -> tuple[DocumentCst, list[ParseError]]:
    """
    Parse a token list into a CST.

    Returns:
        (document CST with every statement that parsed cleanly, syntax errors)
    """
    parser = Parser(tokens)
    doc = parser.document()
    logger.debug(
        "Parsed %d statement(s) with %d syntax error(s)", len(doc.statements), len(parser.errors)
    )
    return doc, parser.errors
