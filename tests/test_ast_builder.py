"""Tests for parse(): lexing, parsing and the semantic pass together."""

import logging

from pinto.ast_builder import parse
from pinto.models import (
    ArrowType,
    EdgeStatement,
    FreeArrowStatement,
    GroupStatement,
    LayoutStatement,
    NodeStatement,
    ShapeKind,
)


class TestParseBasics:
    def test_empty_document(self):
        doc = parse("")
        assert doc.statements == []
        assert doc.errors == []
        assert doc.to_json_dict() == {"statements": [], "errors": []}

    def test_keyword_prefixed_identifier(self):
        doc = parse('rectangle1(rect): "x"')
        assert doc.errors == []
        [node] = doc.statements
        assert isinstance(node, NodeStatement)
        assert node.id == "rectangle1"
        assert node.shape == ShapeKind.RECT
        assert node.label == "x"

    def test_single_edge_synthesizes_nodes_in_reverse(self):
        doc = parse("a -> b")
        assert doc.errors == []
        assert [s.type for s in doc.statements] == ["node", "node", "edge"]
        assert [s.id for s in doc.statements[:2]] == ["b", "a"]
        edge = doc.statements[2]
        assert (edge.source, edge.target, edge.arrow_type) == ("a", "b", ArrowType.RIGHT)

    def test_edge_wire_format(self):
        edge = parse("a -> b").statements[2]
        assert edge.to_json_dict() == {
            "type": "edge", "from": "a", "to": "b", "arrowType": "right",
        }

    def test_chain_produces_one_edge_per_arrow(self):
        doc = parse("a -> b <-> c -- d")
        edges = [s for s in doc.statements if isinstance(s, EdgeStatement)]
        assert [(e.source, e.target, e.arrow_type) for e in edges] == [
            ("a", "b", ArrowType.RIGHT),
            ("b", "c", ArrowType.BOTH),
            ("c", "d", ArrowType.LINE),
        ]
        nodes = [s.id for s in doc.statements if isinstance(s, NodeStatement)]
        assert nodes == ["d", "c", "b", "a"]

    def test_shape_synonyms_fold(self):
        doc = parse("a(box)\nb(oval)\nc(db)\nd(ellipse)\ne(database)")
        shapes = {s.id: s.shape for s in doc.statements}
        assert shapes == {
            "a": ShapeKind.RECT,
            "b": ShapeKind.CIRCLE,
            "c": ShapeKind.CYLINDER,
            "d": ShapeKind.CIRCLE,
            "e": ShapeKind.CYLINDER,
        }

    def test_dotted_ids_are_joined(self):
        doc = parse("api.gateway -> api.auth")
        edge = doc.statements[-1]
        assert (edge.source, edge.target) == ("api.gateway", "api.auth")


class TestStyles:
    def test_style_properties(self):
        doc = parse("a(rect, fill: #ff0000, stroke: navy, strokeWidth: 3, x: 10, y: -20)")
        assert doc.errors == []
        style = doc.statements[0].style
        assert style.fill == "#ff0000"
        assert style.stroke == "navy"
        assert style.stroke_width == 3
        assert (style.x, style.y) == (10, -20)

    def test_numeric_property_with_identifier_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pinto.ast_builder"):
            doc = parse("a(rect, x: left, y: 5)")
        assert doc.errors == []
        [node] = doc.statements
        assert node.style.x is None
        assert node.style.y == 5
        assert "non-numeric value 'left'" in caplog.text

    def test_unknown_property_is_ignored(self):
        doc = parse("a(rect, shadow: 4)")
        assert doc.errors == []
        assert doc.statements[0].style.set_fields() == {}

    def test_edge_anchors(self):
        doc = parse("a -> b (x1: 1, y1: 2, x2: 3, y2: 4)")
        edge = doc.statements[-1]
        assert (edge.x1, edge.y1, edge.x2, edge.y2) == (1, 2, 3, 4)


class TestMerging:
    def test_redeclaration_merges_fields(self):
        doc = parse('a(rect, fill: red): "First"\na -> b\na(rect, stroke: blue)')
        a = next(s for s in doc.statements if isinstance(s, NodeStatement) and s.id == "a")
        assert a.label == "First"
        assert a.style.fill == "red"
        assert a.style.stroke == "blue"

    def test_later_shape_wins(self, caplog):
        doc = parse("a(rect)\na(circle)")
        assert [s.shape for s in doc.statements] == [ShapeKind.CIRCLE]
        assert "redeclared" in caplog.text

    def test_label_on_edge_target_labels_the_node(self):
        doc = parse('a -> b: "calls"')
        b = next(s for s in doc.statements if isinstance(s, NodeStatement) and s.id == "b")
        edge = doc.statements[-1]
        assert b.label == "calls"
        assert edge.label is None

    def test_fresh_registry_per_call(self):
        parse('a(circle): "one"')
        doc = parse("a")
        assert doc.statements[0].shape is None
        assert doc.statements[0].label is None


class TestOtherStatements:
    def test_group(self):
        doc = parse("group backend (fill: #eee) {\n  api -> db\n}")
        assert doc.errors == []
        group = next(s for s in doc.statements if isinstance(s, GroupStatement))
        assert group.id == "backend"
        assert group.style.fill == "#eee"
        assert [c.type for c in group.children] == ["edge"]
        # Nodes referenced inside the group are hoisted to the top level
        assert [s.id for s in doc.statements[:2]] == ["db", "api"]

    def test_layout_directive(self):
        doc = parse("@layout: radial")
        assert doc.statements == [LayoutStatement(algorithm="radial")]

    def test_free_arrow_defaults_missing_coordinates(self):
        doc = parse("arrow(x1: 5, y2: 7)")
        [arrow] = doc.statements
        assert isinstance(arrow, FreeArrowStatement)
        assert (arrow.x1, arrow.y1, arrow.x2, arrow.y2) == (5, 0, 0, 7)
        assert arrow.arrow_type == ArrowType.RIGHT


class TestErrors:
    def test_syntax_error_discards_all_statements(self):
        doc = parse("a -> b\nc -> (")
        assert doc.statements == []
        assert len(doc.errors) == 1
        assert doc.errors[0].location.start_line == 2

    def test_lexical_errors_returned_alone(self):
        doc = parse("a -> b\n$ (")
        assert doc.statements == []
        assert len(doc.errors) == 1
        assert doc.errors[0].message.startswith("Unexpected character(s) '$'")
