"""
Layout engine for automatic-layout compilation.

The compiler talks to any object satisfying the LayoutEngine protocol:
it sends a LayoutGraph (node sizes, edges, options) and receives absolute
node positions plus routed edge sections. GraphLayoutEngine is the default
implementation and provides these strategies:
- Layered: Hierarchical layers along the flow direction, orthogonal routing
- Force: Force-directed layout using spring physics
- Stress: Kamada-Kawai stress minimisation
- Radial: Rings of BFS depth around the root nodes
- Box: Rows of boxes packed largest first

Layout functions position boxes in-place and return the modified list.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Protocol

import networkx as nx

from .models import (
    EdgeSection,
    LayoutAlgorithm,
    LayoutDirection,
    LayoutGraph,
    LayoutResult,
    Point,
    PositionedNode,
    RoutedEdge,
)

logger = logging.getLogger(__name__)


# Barycenter passes used to reduce crossings in layered layouts
ORDERING_SWEEPS = 4


class LayoutEngine(Protocol):
    """Graph-layout collaborator used by the compiler in automatic mode."""

    async def layout(self, graph: LayoutGraph) -> LayoutResult:
        ...


@dataclass
class Box:
    """A node being laid out; x/y is the top-left corner."""
    id: str
    width: float
    height: float
    x: float = 0.0
    y: float = 0.0

    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def build_graph(graph: LayoutGraph) -> nx.DiGraph:
    """Build a networkx DiGraph; node order follows the LayoutGraph."""
    g = nx.DiGraph()
    for node in graph.nodes:
        g.add_node(node.id)
    for edge in graph.edges:
        if edge.source not in g or edge.target not in g:
            raise ValueError(
                f"Edge {edge.id} references unknown node "
                f"({edge.source} -> {edge.target})"
            )
        g.add_edge(edge.source, edge.target)
    return g


def _acyclic(g: nx.DiGraph) -> nx.DiGraph:
    """Copy of `g` with self-loops and one edge per cycle removed."""
    dag = g.copy()
    dag.remove_edges_from(list(nx.selfloop_edges(dag)))
    while not nx.is_directed_acyclic_graph(dag):
        cycle = nx.find_cycle(dag)
        u, v = cycle[-1][:2]
        dag.remove_edge(u, v)
    return dag


def _cell_size(boxes: list[Box], spacing: float) -> float:
    return max(max(max(b.width, b.height) for b in boxes), 1.0) + spacing


def layered_layout(
    boxes: list[Box],
    g: nx.DiGraph,
    direction: LayoutDirection = LayoutDirection.DOWN,
    spacing: float = 50,
) -> list[Box]:
    """
    Arrange boxes in hierarchical layers based on edge directions.

    Nodes with no incoming edges sit in the first layer; every node is one
    layer past its deepest predecessor. Cycles are broken before layering.

    Args:
        boxes: Boxes to arrange
        g: Graph whose edges define the hierarchy
        direction: Flow direction of the layers
        spacing: Gap between layers and between boxes in a layer

    Returns:
        The same list of boxes (modified in-place)
    """
    if not boxes:
        return boxes

    dag = _acyclic(g)
    box_map = {b.id: b for b in boxes}

    # Longest-path layering
    level: dict[str, int] = {}
    for node_id in nx.topological_sort(dag):
        preds = [level[p] + 1 for p in dag.predecessors(node_id)]
        level[node_id] = max(preds, default=0)

    layers: list[list[str]] = [[] for _ in range(max(level.values()) + 1)]
    for b in boxes:
        layers[level[b.id]].append(b.id)

    # Barycenter ordering, alternating downward and upward sweeps
    for sweep in range(ORDERING_SWEEPS):
        downward = sweep % 2 == 0
        indices = range(1, len(layers)) if downward else range(len(layers) - 2, -1, -1)
        for i in indices:
            position = {
                nid: idx for layer in layers for idx, nid in enumerate(layer)
            }
            neighbours = dag.predecessors if downward else dag.successors

            def barycenter(nid: str) -> float:
                linked = [position[n] for n in neighbours(nid)]
                if not linked:
                    return position[nid]
                return sum(linked) / len(linked)

            layers[i] = sorted(layers[i], key=barycenter)

    vertical = direction in (LayoutDirection.DOWN, LayoutDirection.UP)

    def main_size(b: Box) -> float:
        return b.height if vertical else b.width

    def cross_size(b: Box) -> float:
        return b.width if vertical else b.height

    thickness = [max(main_size(box_map[n]) for n in layer) for layer in layers]
    extents = [
        sum(cross_size(box_map[n]) for n in layer) + spacing * (len(layer) - 1)
        for layer in layers
    ]
    widest = max(extents)
    total_main = sum(thickness) + spacing * (len(layers) - 1)

    main_pos = 0.0
    for layer, depth, extent in zip(layers, thickness, extents):
        cross_pos = (widest - extent) / 2
        for nid in layer:
            b = box_map[nid]
            # Centre each box within its layer band
            main = main_pos + (depth - main_size(b)) / 2
            if direction in (LayoutDirection.UP, LayoutDirection.LEFT):
                main = total_main - main - main_size(b)
            if vertical:
                b.x, b.y = cross_pos, main
            else:
                b.x, b.y = main, cross_pos
            cross_pos += cross_size(b) + spacing
        main_pos += depth + spacing

    return boxes


def force_layout(
    boxes: list[Box],
    g: nx.DiGraph,
    iterations: int = 100,
    repulsion: float = 5000,
    attraction: float = 0.01,
    damping: float = 0.1,
    min_distance: float = 50
) -> list[Box]:
    """
    Arrange boxes using a force-directed layout algorithm.

    Simulates physical forces:
    - All nodes repel each other (like charged particles)
    - Connected nodes attract each other (like springs)

    Args:
        boxes: Boxes to arrange
        g: Graph whose edges attract their endpoints
        iterations: Number of simulation iterations
        repulsion: Strength of repulsion between all nodes
        attraction: Strength of attraction along edges
        damping: Factor to reduce movement each iteration
        min_distance: Minimum distance to clamp forces

    Returns:
        The same list of boxes (modified in-place)
    """
    if len(boxes) < 2:
        return boxes

    # Simulate on centres, seeded on a circle
    radius = min_distance * len(boxes) / math.pi
    centers: dict[str, tuple[float, float]] = {}
    for i, b in enumerate(boxes):
        angle = 2 * math.pi * i / len(boxes)
        centers[b.id] = (radius * math.cos(angle), radius * math.sin(angle))

    for _ in range(iterations):
        forces: dict[str, tuple[float, float]] = {b.id: (0.0, 0.0) for b in boxes}

        # Repulsion between all node pairs (Coulomb's law)
        for i, b1 in enumerate(boxes):
            for b2 in boxes[i + 1:]:
                x1, y1 = centers[b1.id]
                x2, y2 = centers[b2.id]
                dx, dy = x1 - x2, y1 - y2
                dist = max(min_distance, math.hypot(dx, dy))
                force = repulsion / (dist * dist)
                fx, fy = force * dx / dist, force * dy / dist

                f1x, f1y = forces[b1.id]
                f2x, f2y = forces[b2.id]
                forces[b1.id] = (f1x + fx, f1y + fy)
                forces[b2.id] = (f2x - fx, f2y - fy)

        # Attraction along edges (Hooke's law)
        for source, target in g.edges():
            if source == target:
                continue
            sx, sy = centers[source]
            tx, ty = centers[target]
            dx, dy = tx - sx, ty - sy
            dist = max(min_distance, math.hypot(dx, dy))
            force = dist * attraction
            fx, fy = force * dx / dist, force * dy / dist

            f1x, f1y = forces[source]
            f2x, f2y = forces[target]
            forces[source] = (f1x + fx, f1y + fy)
            forces[target] = (f2x - fx, f2y - fy)

        for b in boxes:
            fx, fy = forces[b.id]
            cx, cy = centers[b.id]
            centers[b.id] = (cx + fx * damping, cy + fy * damping)

    for b in boxes:
        cx, cy = centers[b.id]
        b.x, b.y = cx - b.width / 2, cy - b.height / 2
    return boxes


def stress_layout(boxes: list[Box], g: nx.DiGraph, spacing: float = 50) -> list[Box]:
    """
    Arrange boxes by Kamada-Kawai stress minimisation.

    Graph distance between nodes is matched to geometric distance, one
    graph hop being one box plus `spacing`.
    """
    if len(boxes) < 3:
        return layered_layout(boxes, g, LayoutDirection.RIGHT, spacing)

    undirected = g.to_undirected()
    undirected.remove_edges_from(list(nx.selfloop_edges(undirected)))
    positions = nx.kamada_kawai_layout(undirected, scale=1.0)

    scale = _cell_size(boxes, spacing) * math.sqrt(len(boxes))
    for b in boxes:
        px, py = positions[b.id]
        b.x = float(px) * scale - b.width / 2
        b.y = float(py) * scale - b.height / 2
    return boxes


def radial_layout(boxes: list[Box], g: nx.DiGraph, spacing: float = 50) -> list[Box]:
    """
    Arrange boxes on concentric rings by BFS depth from the roots.

    Roots are nodes without incoming edges; a component with no such node
    is entered from its first node in input order.
    """
    if not boxes:
        return boxes

    undirected = g.to_undirected()
    depth: dict[str, int] = {}
    roots = [b.id for b in boxes if g.in_degree(b.id) == 0] or [boxes[0].id]
    for b in boxes:
        if b.id in depth:
            continue
        sources = [r for r in roots if r not in depth and nx.has_path(undirected, r, b.id)]
        if not sources:
            sources = [b.id]
        for level, layer in enumerate(nx.bfs_layers(undirected, sources)):
            for nid in layer:
                depth.setdefault(nid, level)

    rings: dict[int, list[Box]] = {}
    for b in boxes:
        rings.setdefault(depth[b.id], []).append(b)

    step = _cell_size(boxes, spacing)
    for level, ring in rings.items():
        radius = level * step
        if len(ring) > 1:
            # Keep neighbours on a ring at least one cell apart
            radius = max(radius, step * len(ring) / (2 * math.pi))
        for i, b in enumerate(ring):
            angle = 2 * math.pi * i / len(ring)
            b.x = radius * math.cos(angle) - b.width / 2
            b.y = radius * math.sin(angle) - b.height / 2
    return boxes


def box_layout(boxes: list[Box], padding: float = 50) -> list[Box]:
    """
    Pack boxes tightly using a simple row-based bin-packing algorithm.

    Args:
        boxes: Boxes to pack
        padding: Space between boxes

    Returns:
        The same list of boxes (modified in-place)
    """
    if not boxes:
        return boxes

    # Sort by area (largest first for better packing)
    sorted_boxes = sorted(boxes, key=lambda b: b.width * b.height, reverse=True)

    total_area = sum((b.width + padding) * (b.height + padding) for b in boxes)
    max_width = max(max(b.width for b in boxes), math.sqrt(total_area) * 1.5)

    current_x = 0.0
    current_y = 0.0
    row_height = 0.0
    for b in sorted_boxes:
        if current_x + b.width > max_width and current_x > 0:
            # Start new row
            current_x = 0.0
            current_y += row_height + padding
            row_height = 0.0

        b.x = current_x
        b.y = current_y
        current_x += b.width + padding
        row_height = max(row_height, b.height)

    return boxes


def normalize(boxes: list[Box], margin: float) -> list[Box]:
    """Shift boxes so the top-left-most edges sit at (margin, margin)."""
    if not boxes:
        return boxes
    dx = margin - min(b.x for b in boxes)
    dy = margin - min(b.y for b in boxes)
    for b in boxes:
        b.x += dx
        b.y += dy
    return boxes


def clip_to_border(box: Box, toward: tuple[float, float]) -> Point:
    """Point where the segment from the box centre to `toward` leaves the box."""
    cx, cy = box.center()
    dx, dy = toward[0] - cx, toward[1] - cy
    if dx == 0 and dy == 0:
        return Point(x=cx, y=cy)
    limits = []
    if dx:
        limits.append(box.width / 2 / abs(dx))
    if dy:
        limits.append(box.height / 2 / abs(dy))
    t = min(min(limits), 1.0)
    return Point(x=cx + dx * t, y=cy + dy * t)


def _port_offsets(edges: list[tuple[str, str, str]], key: int, spacing: float) -> dict[str, float]:
    """Spread edges sharing an endpoint `spacing` apart along that side."""
    grouped: dict[str, list[str]] = {}
    for edge in edges:
        grouped.setdefault(edge[key], []).append(edge[0])
    offsets: dict[str, float] = {}
    for edge_ids in grouped.values():
        for i, edge_id in enumerate(edge_ids):
            offsets[edge_id] = (i - (len(edge_ids) - 1) / 2) * spacing
    return offsets


def route_orthogonal(
    edges: list[tuple[str, str, str]],
    box_map: dict[str, Box],
    direction: LayoutDirection,
    edge_spacing: float,
) -> dict[str, list[EdgeSection]]:
    """
    Route (edge_id, source, target) triples for a layered layout.

    Each edge leaves its source on the side facing the target layer, turns
    halfway between the layers and enters the target on the facing side.
    Self-loops get no sections.
    """
    vertical = direction in (LayoutDirection.DOWN, LayoutDirection.UP)
    routable = [e for e in edges if e[1] != e[2]]
    out_offsets = _port_offsets(routable, 1, edge_spacing)
    in_offsets = _port_offsets(routable, 2, edge_spacing)

    routes: dict[str, list[EdgeSection]] = {}
    for edge_id, source_id, target_id in routable:
        src, dst = box_map[source_id], box_map[target_id]
        (scx, scy), (tcx, tcy) = src.center(), dst.center()

        if vertical:
            half = min(src.width, dst.width) / 2
            out = max(-half, min(half, out_offsets[edge_id]))
            inn = max(-half, min(half, in_offsets[edge_id]))
            forward = tcy >= scy
            start = Point(x=scx + out, y=src.y + src.height if forward else src.y)
            end = Point(x=tcx + inn, y=dst.y if forward else dst.y + dst.height)
            mid = (start.y + end.y) / 2
            bends = [] if start.x == end.x else [Point(x=start.x, y=mid), Point(x=end.x, y=mid)]
        else:
            half = min(src.height, dst.height) / 2
            out = max(-half, min(half, out_offsets[edge_id]))
            inn = max(-half, min(half, in_offsets[edge_id]))
            forward = tcx >= scx
            start = Point(x=src.x + src.width if forward else src.x, y=scy + out)
            end = Point(x=dst.x if forward else dst.x + dst.width, y=tcy + inn)
            mid = (start.x + end.x) / 2
            bends = [] if start.y == end.y else [Point(x=mid, y=start.y), Point(x=mid, y=end.y)]

        routes[edge_id] = [EdgeSection(start_point=start, bend_points=bends, end_point=end)]
    return routes


def route_straight(
    edges: list[tuple[str, str, str]],
    box_map: dict[str, Box],
) -> dict[str, list[EdgeSection]]:
    """Route each edge as one straight section between the two box borders."""
    routes: dict[str, list[EdgeSection]] = {}
    for edge_id, source_id, target_id in edges:
        if source_id == target_id:
            continue
        src, dst = box_map[source_id], box_map[target_id]
        routes[edge_id] = [EdgeSection(
            start_point=clip_to_border(src, dst.center()),
            end_point=clip_to_border(dst, src.center()),
        )]
    return routes


class GraphLayoutEngine:
    """
    Default layout engine backed by networkx.

    The computation runs in a worker thread so awaiting it does not block
    the event loop.
    """

    async def layout(self, graph: LayoutGraph) -> LayoutResult:
        return await asyncio.to_thread(self.layout_sync, graph)

    def layout_sync(self, graph: LayoutGraph) -> LayoutResult:
        options = graph.options
        g = build_graph(graph)
        boxes = [Box(id=n.id, width=n.width, height=n.height) for n in graph.nodes]
        spacing = options.node_spacing

        algorithm = options.algorithm
        if algorithm == LayoutAlgorithm.LAYERED:
            layered_layout(boxes, g, options.direction, spacing)
        elif algorithm == LayoutAlgorithm.FORCE:
            # Springs of strength 0.01 balance repulsion at about 1.5 cells
            cell = _cell_size(boxes, spacing) if boxes else spacing
            force_layout(
                boxes, g,
                iterations=200,
                repulsion=0.01 * (1.5 * cell) ** 3,
                damping=1.0,
                min_distance=cell,
            )
        elif algorithm == LayoutAlgorithm.STRESS:
            stress_layout(boxes, g, spacing)
        elif algorithm == LayoutAlgorithm.RADIAL:
            radial_layout(boxes, g, spacing)
        elif algorithm == LayoutAlgorithm.BOX:
            box_layout(boxes, spacing)
        else:
            raise ValueError(f"Unknown layout algorithm: {algorithm}")

        normalize(boxes, spacing)
        box_map = {b.id: b for b in boxes}
        triples = [(e.id, e.source, e.target) for e in graph.edges]
        if algorithm == LayoutAlgorithm.LAYERED:
            routes = route_orthogonal(triples, box_map, options.direction, options.edge_spacing)
        else:
            routes = route_straight(triples, box_map)

        logger.debug(
            "Laid out %d node(s) and %d edge(s) with %s",
            len(boxes), len(triples), algorithm.value,
        )
        return LayoutResult(
            nodes=[
                PositionedNode(id=b.id, x=b.x, y=b.y, width=b.width, height=b.height)
                for b in boxes
            ],
            edges=[
                RoutedEdge(id=edge_id, sections=routes.get(edge_id, []))
                for edge_id, _, _ in triples
            ],
        )
