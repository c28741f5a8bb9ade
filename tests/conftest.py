"""Shared pytest fixtures for Pinto tests."""

import pytest

from pinto.models import (
    EdgeSection,
    LayoutGraph,
    LayoutResult,
    Point,
    PositionedNode,
    RoutedEdge,
)


class RecordingEngine:
    """
    Layout engine stand-in.

    Places nodes on a row 200 units apart and routes every edge as one
    straight section between node centres. Records each graph it is given.
    """

    def __init__(self, route_edges: bool = True):
        self.calls: list[LayoutGraph] = []
        self.route_edges = route_edges

    async def layout(self, graph: LayoutGraph) -> LayoutResult:
        self.calls.append(graph)
        nodes = [
            PositionedNode(id=n.id, x=i * 200.0, y=0.0, width=n.width, height=n.height)
            for i, n in enumerate(graph.nodes)
        ]
        by_id = {n.id: n for n in nodes}
        edges = []
        for e in graph.edges:
            sections = []
            if self.route_edges:
                sx, sy = by_id[e.source].center()
                tx, ty = by_id[e.target].center()
                sections.append(EdgeSection(
                    start_point=Point(x=sx, y=sy),
                    bend_points=[Point(x=sx, y=sy + 10)],
                    end_point=Point(x=tx, y=ty),
                ))
            edges.append(RoutedEdge(id=e.id, sections=sections))
        return LayoutResult(nodes=nodes, edges=edges)


class FailingEngine:
    async def layout(self, graph: LayoutGraph) -> LayoutResult:
        raise RuntimeError("engine exploded")


class ForgetfulEngine:
    """Returns positions for nothing."""

    async def layout(self, graph: LayoutGraph) -> LayoutResult:
        return LayoutResult()


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def failing_engine() -> FailingEngine:
    return FailingEngine()


@pytest.fixture
def forgetful_engine() -> ForgetfulEngine:
    return ForgetfulEngine()
