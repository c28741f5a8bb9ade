"""
Document lint - structural checks over a parsed DocumentAST.

Shared by `pinto check`, POST /api/validate and the pinto_validate tool.
Nothing reported here prevents a document from compiling, except parse
errors, which are passed through as ERROR issues.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from .models import (
    EdgeStatement,
    FreeArrowStatement,
    GroupStatement,
    LayoutAlgorithm,
    LayoutStatement,
    NodeStatement,
)

if TYPE_CHECKING:
    from .models import DocumentAST, Statement


class IssueSeverity(str, Enum):
    ERROR = "error"      # Document did not parse
    WARNING = "warning"  # Probably not what the author meant
    INFO = "info"        # Worth knowing, often intentional


@dataclass
class ValidationIssue:
    """One finding; `code` is a stable identifier for the check that raised it."""
    severity: IssueSeverity
    code: str
    message: str
    node_id: str | None = None
    line: int | None = None

    def to_dict(self) -> dict:
        data = {"type": self.severity.value, "code": self.code, "message": self.message}
        if self.node_id:
            data["node_id"] = self.node_id
        if self.line is not None:
            data["line"] = self.line
        return data


KNOWN_ALGORITHMS = sorted(a.value for a in LayoutAlgorithm)


def _flatten(statements: list["Statement"]) -> list["Statement"]:
    flat: list["Statement"] = []
    for stmt in statements:
        match stmt:
            case GroupStatement():
                flat.extend(_flatten(stmt.children))
            case NodeStatement() | EdgeStatement() | LayoutStatement() | FreeArrowStatement():
                flat.append(stmt)
            case _:
                raise TypeError(f"Unhandled statement: {type(stmt).__name__}")
    return flat


def _check_self_loops(edges: list[EdgeStatement]) -> Iterator[ValidationIssue]:
    for edge in edges:
        if edge.source == edge.target:
            yield ValidationIssue(
                IssueSeverity.WARNING, "self-loop",
                f"Self-referencing edge on {edge.source}", node_id=edge.source,
            )


def _check_duplicate_edges(edges: list[EdgeStatement]) -> Iterator[ValidationIssue]:
    counts = Counter((e.source, e.target) for e in edges)
    for (source, target), count in counts.items():
        # One issue per extra copy
        for _ in range(count - 1):
            yield ValidationIssue(
                IssueSeverity.WARNING, "duplicate-edge",
                f"Duplicate edge from {source} to {target}", node_id=source,
            )


def _check_orphans(nodes: list[NodeStatement], edges: list[EdgeStatement]) -> Iterator[ValidationIssue]:
    # Orphans only count once the document has edges
    if not edges:
        return
    linked = {e.source for e in edges} | {e.target for e in edges}
    orphans = [n.id for n in nodes if n.id not in linked]
    if orphans:
        yield ValidationIssue(
            IssueSeverity.INFO, "orphan-nodes",
            f"Orphan nodes (no connections): {', '.join(orphans)}",
        )


def _check_layouts(layouts: list[LayoutStatement]) -> Iterator[ValidationIssue]:
    if len(layouts) > 1:
        yield ValidationIssue(
            IssueSeverity.WARNING, "repeated-layout",
            f"{len(layouts)} @layout directives; only the last one applies",
        )
    for layout in layouts:
        if layout.algorithm not in KNOWN_ALGORITHMS:
            yield ValidationIssue(
                IssueSeverity.WARNING, "unknown-layout",
                f"Unknown layout algorithm '{layout.algorithm}' "
                f"(expected one of: {', '.join(KNOWN_ALGORITHMS)})",
            )


def validate_document(doc: "DocumentAST") -> list[ValidationIssue]:
    """
    Lint a parsed document.

    A document with parse errors yields one ERROR per error and nothing
    else. Otherwise the checks are: empty document (INFO), self-loops and
    duplicate edges (WARNING), orphan nodes when the document has edges
    (INFO), repeated or unknown @layout directives (WARNING).

    Args:
        doc: Result of parse()

    Returns:
        Issues in check order
    """
    if doc.errors:
        return [
            ValidationIssue(
                IssueSeverity.ERROR, "parse-error", error.message,
                line=error.location.start_line if error.location else None,
            )
            for error in doc.errors
        ]

    statements = _flatten(doc.statements)
    if not statements:
        return [ValidationIssue(IssueSeverity.INFO, "empty", "Document has no statements")]

    nodes = [s for s in statements if isinstance(s, NodeStatement)]
    edges = [s for s in statements if isinstance(s, EdgeStatement)]
    layouts = [s for s in statements if isinstance(s, LayoutStatement)]

    issues: list[ValidationIssue] = []
    issues.extend(_check_self_loops(edges))
    issues.extend(_check_duplicate_edges(edges))
    issues.extend(_check_orphans(nodes, edges))
    issues.extend(_check_layouts(layouts))
    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts per severity plus a `valid` flag (no errors)."""
    counts = Counter(issue.severity for issue in issues)
    return {
        "total": len(issues),
        "errors": counts[IssueSeverity.ERROR],
        "warnings": counts[IssueSeverity.WARNING],
        "info": counts[IssueSeverity.INFO],
        "valid": counts[IssueSeverity.ERROR] == 0,
    }
