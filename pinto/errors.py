"""
Exceptions raised by the Pinto toolchain.

Lexical and syntax problems in DSL source are never raised; they
come back as ParseError records on the DocumentAST. Only failures that leave
the caller without a usable result are exceptions.
"""


class PintoError(Exception):
    """Base exception for all Pinto errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LayoutFailure(PintoError):
    """
    Raised when automatic layout cannot produce positions.

    Examples:
    - The layout engine raised
    - The engine returned no position for a node it was given
    """

    def __init__(self, message: str, node_ids: list[str] | None = None):
        self.node_ids = node_ids or []
        super().__init__(message)
