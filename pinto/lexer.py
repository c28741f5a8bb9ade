"""
Lexer/Tokenizer for the Pinto DSL.

Converts raw DSL text into a list of tokens with source location tracking.
Lines and columns are 1-based; a token's end column is the column of its
last character.

Match priority at each position:
whitespace/comment, arrow operators (longest first), string, color, number,
keywords, identifier, punctuation. Keywords never split a longer word:
`rectangle1` is one identifier, not `rectangle` followed by `1`.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .models import Location, ParseError

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    """Token types in the Pinto DSL."""

    # Literals
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    COLOR = "color"

    # Keywords
    GROUP = "group"
    ARROW = "arrow"
    LAYOUT = "@layout"

    # Shape keywords
    RECT = "rect"
    BOX = "box"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    OVAL = "oval"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    CYLINDER = "cylinder"
    DATABASE = "database"
    DB = "db"

    # Arrow operators
    ARROW_BOTH = "<->"
    ARROW_DOTTED = "-->"
    ARROW_THICK = "==>"
    ARROW_LEFT = "<-"
    ARROW_RIGHT = "->"
    LINE = "--"

    # Punctuation
    LBRACE = "{"
    RBRACE = "}"
    LPAREN = "("
    RPAREN = ")"
    COLON = ":"
    COMMA = ","
    DOT = "."

    EOF = "end of input"


KEYWORDS: dict[str, TokenKind] = {
    "group": TokenKind.GROUP,
    "arrow": TokenKind.ARROW,
    "rect": TokenKind.RECT,
    "box": TokenKind.BOX,
    "rectangle": TokenKind.RECTANGLE,
    "circle": TokenKind.CIRCLE,
    "oval": TokenKind.OVAL,
    "ellipse": TokenKind.ELLIPSE,
    "diamond": TokenKind.DIAMOND,
    "cylinder": TokenKind.CYLINDER,
    "database": TokenKind.DATABASE,
    "db": TokenKind.DB,
}

SHAPE_KEYWORDS = frozenset({
    TokenKind.RECT, TokenKind.BOX, TokenKind.RECTANGLE,
    TokenKind.CIRCLE, TokenKind.OVAL, TokenKind.ELLIPSE,
    TokenKind.DIAMOND,
    TokenKind.CYLINDER, TokenKind.DATABASE, TokenKind.DB,
})

# Longest first so `<->` is never read as `<-` followed by `>`
ARROW_OPERATORS: list[TokenKind] = [
    TokenKind.ARROW_BOTH,
    TokenKind.ARROW_DOTTED,
    TokenKind.ARROW_THICK,
    TokenKind.ARROW_LEFT,
    TokenKind.ARROW_RIGHT,
    TokenKind.LINE,
]

PUNCTUATION: dict[str, TokenKind] = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ":": TokenKind.COLON,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
}

WHITESPACE_RE = re.compile(r"\s+")
COMMENT_RE = re.compile(r"#[^\n]*")
STRING_RE = re.compile(r'"[^"]*"')
COLOR_RE = re.compile(r"#[0-9A-Fa-f]{3,6}(?![A-Za-z0-9_])")
NUMBER_RE = re.compile(r"-?\d+")
WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
LAYOUT_RE = re.compile(r"@layout(?![A-Za-z0-9_])")


@dataclass
class Token:
    """A single token with its source span."""
    kind: TokenKind
    text: str
    offset: int
    line: int
    column: int
    end_line: int
    end_column: int

    def location(self) -> Location:
        return Location(
            start_line=self.line,
            start_column=self.column,
            end_line=self.end_line,
            end_column=self.end_column,
        )

    def describe(self) -> str:
        """Human-readable form used in error messages."""
        if self.kind == TokenKind.EOF:
            return "end of input"
        return f"'{self.text}'"


class Lexer:
    """
    Tokenizer for Pinto DSL.

    Never raises: unrecognised character runs become ParseError records and
    scanning resumes right after them.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: list[Token] = []
        self.errors: list[ParseError] = []
        # Start (offset, line, column) of an unrecognised run being collected
        self._bad_start: tuple[int, int, int] | None = None

    def _advance(self, length: int) -> tuple[int, int]:
        """Move past `length` characters; return the (line, column) of the last one."""
        end_line, end_column = self.line, self.column
        for ch in self.text[self.pos:self.pos + length]:
            end_line, end_column = self.line, self.column
            if ch == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos += length
        return end_line, end_column

    def _emit(self, kind: TokenKind, length: int) -> None:
        self._flush_bad_run()
        offset, line, column = self.pos, self.line, self.column
        text = self.text[offset:offset + length]
        end_line, end_column = self._advance(length)
        self.tokens.append(Token(kind, text, offset, line, column, end_line, end_column))

    def _skip(self, length: int) -> None:
        self._flush_bad_run()
        self._advance(length)

    def _flush_bad_run(self) -> None:
        if self._bad_start is None:
            return
        offset, line, column = self._bad_start
        self._bad_start = None
        skipped = self.text[offset:self.pos]
        end_column = column + len(skipped) - 1
        self.errors.append(ParseError(
            message=(
                f"Unexpected character(s) '{skipped}' at line {line}, column {column}; "
                f"skipped {len(skipped)} character(s)"
            ),
            location=Location(
                start_line=line,
                start_column=column,
                end_line=line,
                end_column=end_column,
            ),
        ))

    def _previous_kind(self) -> TokenKind | None:
        return self.tokens[-1].kind if self.tokens else None

    def _scan_one(self) -> bool:
        """Try every rule at the current position; False if none matched."""
        text, pos = self.text, self.pos

        m = WHITESPACE_RE.match(text, pos)
        if m:
            self._skip(m.end() - pos)
            return True

        if text[pos] == "#":
            # A color literal is only meaningful as a style value, right after ':'
            if self._previous_kind() == TokenKind.COLON:
                m = COLOR_RE.match(text, pos)
                if m:
                    self._emit(TokenKind.COLOR, m.end() - pos)
                    return True
            m = COMMENT_RE.match(text, pos)
            self._skip(m.end() - pos)
            return True

        for kind in ARROW_OPERATORS:
            if text.startswith(kind.value, pos):
                self._emit(kind, len(kind.value))
                return True

        m = STRING_RE.match(text, pos)
        if m:
            self._emit(TokenKind.STRING, m.end() - pos)
            return True

        m = NUMBER_RE.match(text, pos)
        if m:
            self._emit(TokenKind.NUMBER, m.end() - pos)
            return True

        m = LAYOUT_RE.match(text, pos)
        if m:
            self._emit(TokenKind.LAYOUT, m.end() - pos)
            return True

        # Whole-word match: a keyword only wins if nothing identifier-like follows it
        m = WORD_RE.match(text, pos)
        if m:
            kind = KEYWORDS.get(m.group(0), TokenKind.IDENTIFIER)
            self._emit(kind, m.end() - pos)
            return True

        kind = PUNCTUATION.get(text[pos])
        if kind is not None:
            self._emit(kind, 1)
            return True

        return False

    def tokenize(self) -> tuple[list[Token], list[ParseError]]:
        while self.pos < len(self.text):
            if not self._scan_one():
                if self._bad_start is None:
                    self._bad_start = (self.pos, self.line, self.column)
                self._advance(1)
        self._flush_bad_run()

        self.tokens.append(Token(
            TokenKind.EOF, "", self.pos, self.line, self.column, self.line, self.column
        ))
        logger.debug("Lexed %d tokens with %d error(s)", len(self.tokens), len(self.errors))
        return self.tokens, self.errors


def tokenize(text: str) -> tuple[list[Token], list[ParseError]]:
    """
    Tokenize DSL text.

    Args:
        text: DSL source

    Returns:
        (tokens ending with an EOF token, lexical errors)
    """
    return Lexer(text).tokenize()
