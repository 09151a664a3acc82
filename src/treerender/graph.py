"""Label-addressed directed multigraph rebuilt from graph text."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple


@dataclass
class GraphEdge:
    source: str
    target: str
    label: Optional[str] = None
    attrs: Dict[str, str] = field(default_factory=dict)


class GenericGraph:
    """Vertices are keyed by label; adding an existing label merges attributes, later values winning."""

    def __init__(self, title: Optional[str] = None, *, directed: bool = True) -> None:
        self.title = title
        self.directed = directed
        self.attrs: Dict[str, str] = {}
        self.vertices: Dict[str, Dict[str, str]] = {}
        self.edges: List[GraphEdge] = []

    def add_vertex(self, label: str, attrs: Optional[Dict[str, str]] = None) -> str:
        merged = self.vertices.setdefault(label, {})
        if attrs:
            merged.update(attrs)
        return label

    def add_edge(
        self,
        source: str,
        target: str,
        label: Optional[str] = None,
        attrs: Optional[Dict[str, str]] = None,
    ) -> GraphEdge:
        self.add_vertex(source)
        self.add_vertex(target)
        edge = GraphEdge(source=source, target=target, label=label, attrs=dict(attrs or {}))
        self.edges.append(edge)
        return edge

    def out_edges(self, vertex: str) -> List[Tuple[int, GraphEdge]]:
        return [(idx, edge) for idx, edge in enumerate(self.edges) if edge.source == vertex]

    def in_degree(self, vertex: str) -> int:
        return sum(1 for edge in self.edges if edge.target == vertex)

    def __contains__(self, vertex: object) -> bool:
        return vertex in self.vertices

    def __iter__(self) -> Iterator[str]:
        return iter(self.vertices)

    def __len__(self) -> int:
        return len(self.vertices)

    def __repr__(self) -> str:
        return f"GenericGraph(title={self.title!r}, vertices={len(self.vertices)}, edges={len(self.edges)})"


__all__ = ["GraphEdge", "GenericGraph"]
