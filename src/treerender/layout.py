"""Compact top-down tree layout for label-addressed graphs."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .errors import CyclicGraph
from .fonts import TextMeasurer, measurer_for
from .graph import GenericGraph
from .options import DEFAULT_FONT_SIZE

logger = logging.getLogger(__name__)

BOX_PADDING_X = 10.0
BOX_PADDING_Y = 6.0
SIBLING_GAP = 20.0
ROOT_GAP = 40.0
MIN_RANK_GAP = 30.0
EDGE_LABEL_PADDING = 8.0

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def as_bbox(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.right, self.bottom)


@dataclass
class LayoutResult:
    boxes: Dict[str, Box]
    spans: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    tree_edges: Set[int] = field(default_factory=set)
    roots: List[str] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0


def layout_graph(
    graph: GenericGraph,
    font_size: float = DEFAULT_FONT_SIZE,
    measurer: Optional[TextMeasurer] = None,
) -> LayoutResult:
    """Place every vertex so that sibling subtrees never overlap.

    Pass one measures subtree widths bottom-up; pass two centres each parent
    over the span of its children. Extra roots are laid out as separate trees
    from left to right.
    """
    measurer = measurer or measurer_for()
    sizes = {vertex: vertex_size(graph, vertex, font_size, measurer) for vertex in graph.vertices}
    label_sizes = [edge_label_size(graph, idx, font_size, measurer) for idx in range(len(graph.edges))]

    outgoing: Dict[str, List[int]] = {vertex: [] for vertex in graph.vertices}
    indegree: Dict[str, int] = {vertex: 0 for vertex in graph.vertices}
    for idx, edge in enumerate(graph.edges):
        outgoing[edge.source].append(idx)
        indegree[edge.target] += 1

    children: Dict[str, List[Tuple[str, int]]] = {vertex: [] for vertex in graph.vertices}
    depth: Dict[str, int] = {}
    state: Dict[str, int] = {vertex: _WHITE for vertex in graph.vertices}
    roots: List[str] = []

    preorder: List[str] = []

    def _visit(start: str) -> None:
        # explicit stack of (vertex, remaining out-edges); depth is not limited by the call stack
        state[start] = _GRAY
        depth[start] = 0
        preorder.append(start)
        stack: List[Tuple[str, Iterator[int]]] = [(start, iter(outgoing[start]))]
        while stack:
            vertex, pending = stack[-1]
            for edge_idx in pending:
                target = graph.edges[edge_idx].target
                if state[target] == _GRAY:
                    raise CyclicGraph(target)
                if state[target] == _WHITE:
                    children[vertex].append((target, edge_idx))
                    state[target] = _GRAY
                    depth[target] = depth[vertex] + 1
                    preorder.append(target)
                    stack.append((target, iter(outgoing[target])))
                    break
            else:
                state[vertex] = _BLACK
                stack.pop()

    for vertex in graph.vertices:
        if indegree[vertex] == 0:
            roots.append(vertex)
            _visit(vertex)
    for vertex in graph.vertices:
        if state[vertex] == _WHITE:
            roots.append(vertex)
            _visit(vertex)

    subtree_width: Dict[str, float] = {}
    children_span: Dict[str, float] = {}

    def _slot_width(child: str, edge_idx: int) -> float:
        return max(subtree_width[child], label_sizes[edge_idx][0] + EDGE_LABEL_PADDING)

    # reversed pre-order sees every child before its parent
    for vertex in reversed(preorder):
        slots = [_slot_width(child, edge_idx) for child, edge_idx in children[vertex]]
        span = sum(slots) + SIBLING_GAP * max(len(slots) - 1, 0)
        children_span[vertex] = span
        subtree_width[vertex] = max(sizes[vertex][0], span)

    max_depth = max(depth.values(), default=-1)
    row_height = [0.0] * (max_depth + 1)
    for vertex, level in depth.items():
        row_height[level] = max(row_height[level], sizes[vertex][1])
    gap_above = [0.0] * (max_depth + 1)
    for vertex in graph.vertices:
        for child, edge_idx in children[vertex]:
            needed = label_sizes[edge_idx][1] + 2 * EDGE_LABEL_PADDING
            gap_above[depth[child]] = max(gap_above[depth[child]], needed)
    row_top = [0.0] * (max_depth + 1)
    cursor = 0.0
    for level in range(max_depth + 1):
        if level > 0:
            cursor += max(MIN_RANK_GAP, gap_above[level])
        row_top[level] = cursor
        cursor += row_height[level]

    boxes: Dict[str, Box] = {}
    spans: Dict[str, Tuple[float, float]] = {}

    def _place(root: str, root_left: float) -> None:
        pending: List[Tuple[str, float]] = [(root, root_left)]
        while pending:
            vertex, left = pending.pop()
            width = subtree_width[vertex]
            spans[vertex] = (left, left + width)
            center = left + width / 2.0
            box_w, box_h = sizes[vertex]
            top = row_top[depth[vertex]] + (row_height[depth[vertex]] - box_h) / 2.0
            boxes[vertex] = Box(x=center - box_w / 2.0, y=top, width=box_w, height=box_h)
            slot_left = center - children_span[vertex] / 2.0
            placed: List[Tuple[str, float]] = []
            for child, edge_idx in children[vertex]:
                slot = _slot_width(child, edge_idx)
                placed.append((child, slot_left + (slot - subtree_width[child]) / 2.0))
                slot_left += slot + SIBLING_GAP
            # pushed right to left so boxes are filled in pre-order
            pending.extend(reversed(placed))

    left = 0.0
    for root in roots:
        _place(root, left)
        left += subtree_width[root] + ROOT_GAP

    tree_edges = {edge_idx for vertex in graph.vertices for _, edge_idx in children[vertex]}
    total_width = max((box.right for box in boxes.values()), default=0.0)
    total_width = max([total_width] + [span[1] for span in spans.values()])
    total_height = max((box.bottom for box in boxes.values()), default=0.0)
    logger.debug(
        "laid out %d vertices in %d trees (%.1f x %.1f)",
        len(boxes),
        len(roots),
        total_width,
        total_height,
    )
    return LayoutResult(
        boxes=boxes,
        spans=spans,
        tree_edges=tree_edges,
        roots=roots,
        width=total_width,
        height=total_height,
    )


def vertex_size(
    graph: GenericGraph, vertex: str, font_size: float, measurer: TextMeasurer
) -> Tuple[float, float]:
    attrs = graph.vertices[vertex]
    size = _attr_float(attrs, "fontsize", font_size)
    text_w, text_h = measurer.text_size(vertex, size)
    width = text_w + 2 * BOX_PADDING_X
    height = text_h + 2 * BOX_PADDING_Y
    if attrs.get("shape", "ellipse") != "box":
        width *= math.sqrt(2.0)
        height *= math.sqrt(2.0)
    return (width, height)


def edge_label_size(
    graph: GenericGraph, edge_idx: int, font_size: float, measurer: TextMeasurer
) -> Tuple[float, float]:
    edge = graph.edges[edge_idx]
    if not edge.label:
        return (0.0, 0.0)
    return measurer.text_size(edge.label, _attr_float(edge.attrs, "fontsize", font_size))


def _attr_float(attrs: Dict[str, str], key: str, default: float) -> float:
    raw = attrs.get(key)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring non-numeric %s=%r", key, raw)
        return float(default)
    return value if value > 0 else float(default)


__all__ = ["Box", "LayoutResult", "layout_graph", "vertex_size", "edge_label_size"]
