"""Tests for the decompiler."""

import logging
import math

import pytest

from pinto.ast_builder import parse
from pinto.compiler import compile
from pinto.decompiler import CONNECTION_THRESHOLD, decompile, generate_node_id
from pinto.models import (
    ArrowShape,
    Connection,
    EdgeStatement,
    EllipseShape,
    FreehandShape,
    LineShape,
    NodeStatement,
    Point,
    RectangleShape,
    TextShape,
)


def rect(x, y, **kwargs):
    return RectangleShape(x=x, y=y, width=120, height=60, **kwargs)


def arrow(x1, y1, x2, y2, **kwargs):
    return ArrowShape(points=[Point(x=x1, y=y1), Point(x=x2, y=y2)], **kwargs)


class TestNodes:
    def test_empty(self):
        assert decompile([]) == ""

    def test_rect_and_ellipse(self):
        source = decompile([
            rect(10, 20),
            EllipseShape(x=300, y=0, width=80, height=80),
        ])
        assert source.splitlines() == [
            "a(rect, x: 10, y: 20)",
            "b(circle, x: 300, y: 0)",
        ]

    def test_non_default_size_and_style(self):
        shape = RectangleShape(
            x=0.4, y=0.5, width=200, height=60,
            fill="#ff0000", stroke="navy", stroke_width=3,
        )
        assert decompile([shape]) == (
            "a(rect, x: 0, y: 1, width: 200, height: 60, fill: #ff0000, stroke: navy, strokeWidth: 3)"
        )

    def test_unwritable_color_is_dropped(self):
        shape = rect(0, 0, fill="rgba(0, 0, 0, 0.5)")
        assert decompile([shape]) == "a(rect, x: 0, y: 0)"

    def test_positions_can_be_left_out(self):
        assert decompile([rect(10, 20)], include_positions=False) == "a(rect)"

    def test_text_inside_node_becomes_label(self):
        shapes = [rect(0, 0), TextShape(x=20, y=20, width=80, height=20, text='say "hi"')]
        assert decompile(shapes) == "a(rect, x: 0, y: 0): \"say 'hi'\""

    def test_freehand_ignored(self):
        shapes = [FreehandShape(points=[Point(x=0, y=0), Point(x=5, y=5)])]
        assert decompile(shapes) == ""

    def test_dicts_are_accepted(self):
        shape = {"type": "rectangle", "x": 0, "y": 0, "width": 120, "height": 60}
        assert decompile([shape]) == "a(rect, x: 0, y: 0)"

    def test_invalid_dicts_are_skipped(self, caplog):
        shapes = [
            {"type": "hexagon"},
            {"type": "rectangle", "x": 0, "y": 0, "width": 120, "height": 60},
            {"type": "ellipse", "x": "left"},
        ]
        with caplog.at_level(logging.WARNING, logger="pinto.decompiler"):
            assert decompile(shapes) == "a(rect, x: 0, y: 0)"
        assert "index 0" in caplog.text
        assert "index 2" in caplog.text

    def test_non_finite_node_is_skipped(self):
        shapes = [rect(math.nan, 0), rect(0, 0), rect(300, 0, stroke_width=math.inf)]
        assert decompile(shapes) == "a(rect, x: 0, y: 0)"

    def test_node_ids(self):
        assert [generate_node_id(i) for i in (0, 25, 26, 27)] == ["a", "z", "node27", "node28"]


class TestEdges:
    def test_arrow_between_borders(self):
        source = decompile([rect(0, 0), rect(300, 0), arrow(120, 30, 300, 30)])
        lines = source.splitlines()
        assert lines[:2] == ["a(rect, x: 0, y: 0)", "b(rect, x: 300, y: 0)"]
        assert lines[2] == ""
        assert lines[3] == "a -> b"

    @pytest.mark.parametrize("start_arrow,end_arrow,symbol", [
        (False, True, "->"),
        (True, False, "<-"),
        (True, True, "<->"),
    ])
    def test_arrow_heads(self, start_arrow, end_arrow, symbol):
        shapes = [
            rect(0, 0), rect(300, 0),
            arrow(120, 30, 300, 30, start_arrow=start_arrow, end_arrow=end_arrow),
        ]
        assert decompile(shapes).splitlines()[-1] == f"a {symbol} b"

    def test_line_shape(self):
        shapes = [
            rect(0, 0), rect(300, 0),
            LineShape(points=[Point(x=120, y=30), Point(x=300, y=30)]),
        ]
        assert decompile(shapes).splitlines()[-1] == "a -- b"

    def test_points_are_relative_to_shape_origin(self):
        shapes = [rect(0, 0), rect(300, 0), arrow(0, 0, 180, 0, x=120, y=30)]
        assert decompile(shapes).splitlines()[-1] == "a -> b"

    def test_endpoint_within_threshold_connects(self):
        gap = CONNECTION_THRESHOLD
        shapes = [rect(0, 0), rect(400, 0), arrow(120 + gap, 30, 400 - gap, 30)]
        assert decompile(shapes).splitlines()[-1] == "a -> b"

    def test_far_arrow_produces_no_edge(self):
        shapes = [rect(0, 0), rect(400, 0), arrow(500, 500, 900, 900)]
        source = decompile(shapes)
        assert "->" not in source
        assert len(source.splitlines()) == 2

    def test_dropped_connector_is_logged(self, caplog):
        shapes = [rect(0, 0), rect(400, 0), arrow(500, 500, 900, 900)]
        with caplog.at_level(logging.WARNING, logger="pinto.decompiler"):
            decompile(shapes)
        assert "Dropping connector" in caplog.text

    def test_non_finite_connector_is_skipped(self):
        shapes = [rect(0, 0), rect(300, 0), arrow(120, 30, math.inf, 30)]
        source = decompile(shapes)
        assert source.splitlines() == ["a(rect, x: 0, y: 0)", "b(rect, x: 300, y: 0)"]

    def test_one_far_endpoint_produces_no_edge(self):
        shapes = [rect(0, 0), rect(400, 0), arrow(120, 30, 260, 30)]
        assert "->" not in decompile(shapes)

    def test_both_endpoints_on_one_node_is_dropped(self):
        shapes = [rect(0, 0), rect(400, 0), arrow(10, 10, 100, 50)]
        assert "->" not in decompile(shapes)

    def test_collision_uses_runner_up(self):
        # Both ends are nearest to a; the end is also within reach of b
        shapes = [rect(0, 0), rect(150, 0), arrow(60, 30, 125, 30)]
        assert decompile(shapes).splitlines()[-1] == "a -> b"

    def test_explicit_connections_win(self):
        left, right = rect(0, 0), rect(300, 0)
        shape = arrow(
            1000, 1000, 2000, 2000,
            start_connection=Connection(shape_id=right.id),
            end_connection=Connection(shape_id=left.id),
        )
        assert decompile([left, right, shape]).splitlines()[-1] == "b -> a"


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_two_nodes_one_arrow_recompile(self):
        shapes = [rect(0, 0), rect(300, 0), arrow(120, 30, 300, 30)]
        source = decompile(shapes, include_positions=False)
        lines = [line for line in source.splitlines() if line]
        assert len(lines) == 3
        assert sum("->" in line for line in lines) == 1

        doc = parse(source)
        assert doc.errors == []
        nodes = [s for s in doc.statements if isinstance(s, NodeStatement)]
        edges = [s for s in doc.statements if isinstance(s, EdgeStatement)]
        assert sorted(n.id for n in nodes) == ["a", "b"]
        assert [(e.source, e.target) for e in edges] == [("a", "b")]

        # No positions in the text, so this goes through automatic layout
        compiled = await compile(doc)
        assert sum(isinstance(s, RectangleShape) for s in compiled) == 2
        assert sum(isinstance(s, ArrowShape) for s in compiled) == 1

    @pytest.mark.asyncio
    async def test_explicit_document_round_trip(self):
        original = parse('a(rect, x: 0, y: 0): "Start"\nb(circle, x: 300, y: 0)\na -> b')
        shapes = await compile(original)
        shapes.append(TextShape(x=0, y=0, width=120, height=60, text="Start"))

        source = decompile(shapes)
        again = parse(source)
        assert again.errors == []
        nodes = {n.label: n for n in again.statements if isinstance(n, NodeStatement)}
        assert nodes["Start"].style.x == 0
        edges = [s for s in again.statements if isinstance(s, EdgeStatement)]
        assert len(edges) == 1
        assert edges[0].source == nodes["Start"].id
