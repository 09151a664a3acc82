"""Emit decision trees as Graphviz DOT text."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO, Tuple

from .errors import TreeIndexError, UnsupportedModelKind
from .labels import TRUNCATION_MARK, labels_for
from .model import ALL_TREES, Tree, TreeGraph, TreeNode
from .options import TITLE_FONT_SIZE, RenderOptions

logger = logging.getLogger(__name__)

HEADER = """/*
Generated by treerender.

Render with Graphviz:
    dot -Tpng tree.gv -o tree.png
*/"""


@dataclass(frozen=True)
class GraphText:
    text: str
    title: str
    vertex_count: int
    edge_count: int

    def write(self, stream: TextIO) -> None:
        stream.write(self.text)
        if not self.text.endswith("\n"):
            stream.write("\n")

    def __str__(self) -> str:
        return self.text


def tree_graph_for(source: Any, tree_index: int = ALL_TREES) -> TreeGraph:
    """Resolve a model, tree or tree graph into the trees to print."""
    if isinstance(source, TreeGraph):
        if tree_index == ALL_TREES:
            return source
        picked = [tree for tree in source.trees if tree.index == tree_index]
        if not picked:
            raise TreeIndexError(f"tree index {tree_index} not present in graph")
        return TreeGraph(trees=picked, name=source.name)
    if isinstance(source, Tree):
        return TreeGraph(trees=[source], name=source.name)
    convert = getattr(source, "convert", None)
    if not callable(convert):
        kind = getattr(source, "algorithm", None) or type(source).__name__
        raise UnsupportedModelKind(f"model kind {kind!r} is not backed by decision trees")
    return convert(tree_index)


def emit(source: Any, options: Optional[RenderOptions] = None, tree_index: int = ALL_TREES) -> GraphText:
    """Emit DOT text for one tree, or every tree, of ``source``."""
    options = options or RenderOptions()
    graph = tree_graph_for(source, tree_index)
    labels = labels_for(options)
    title = options.title if options.title is not None else _default_title(graph)

    lines: List[str] = [HEADER, "", "digraph G {"]
    lines.append(f"graph [fontsize={TITLE_FONT_SIZE}, labelloc=t, label={_dot_quote(title)}]")
    vertex_count = 0
    edge_count = 0
    for tree in graph.trees:
        vertices, edges = _emit_tree(lines, tree, labels, options)
        vertex_count += vertices
        edge_count += edges
    lines.append("")
    lines.append("}")

    logger.debug(
        "emitted %d trees: %d vertices, %d edges (max_levels=%d)",
        len(graph.trees),
        vertex_count,
        edge_count,
        options.max_levels,
    )
    return GraphText(text="\n".join(lines) + "\n", title=title, vertex_count=vertex_count, edge_count=edge_count)


def _emit_tree(lines: List[str], tree: Tree, labels, options: RenderOptions) -> Tuple[int, int]:
    levels = _visible_levels(tree, options.max_levels)
    truncated = {
        node.node_id for node in levels.get(options.max_levels, []) if not node.is_leaf
    }

    lines.append("")
    lines.append(f"subgraph cluster_{tree.index} {{")
    lines.append("/* Nodes */")
    vertex_count = 0
    for level in sorted(levels):
        lines.append("")
        lines.append(f"/* Level {level} */")
        lines.append("{")
        for node in levels[level]:
            lines.append(_node_statement(tree, node, labels, options, node.node_id in truncated))
            vertex_count += 1
        lines.append("}")

    lines.append("")
    lines.append("/* Edges */")
    edge_count = 0
    for level in sorted(levels):
        if level >= options.max_levels:
            continue
        for node in levels[level]:
            for branch, child in enumerate(tree.children(node)):
                attrs = [f"fontsize={options.font_size}"]
                if child.node_id in truncated:
                    attrs.append("style=dashed")
                attrs.append(f"label={_dot_quote(labels.edge_label(node.split, branch))}")
                lines.append(
                    f"{_dot_quote(_dot_name(tree, node))} -> {_dot_quote(_dot_name(tree, child))} "
                    f"[{', '.join(attrs)}]"
                )
                edge_count += 1

    lines.append("")
    lines.append(f"fontsize={TITLE_FONT_SIZE}")
    lines.append(f"label={_dot_quote(tree.name or f'Tree {tree.index}')}")
    lines.append("}")
    return vertex_count, edge_count


def _visible_levels(tree: Tree, max_levels: int) -> Dict[int, List[TreeNode]]:
    levels: Dict[int, List[TreeNode]] = {}
    frontier = [tree.root]
    level = 0
    while frontier and level <= max_levels:
        levels[level] = frontier
        frontier = [child for node in frontier for child in tree.children(node)]
        level += 1
    return levels


def _node_statement(tree: Tree, node: TreeNode, labels, options: RenderOptions, truncated: bool) -> str:
    label = labels.node_label(node)
    attrs: List[str] = []
    if not node.is_leaf:
        attrs.append("shape=box")
    if truncated:
        attrs.append("style=dashed")
        label = f"{label}\n{TRUNCATION_MARK}"
    attrs.append(f"fontsize={options.font_size}")
    attrs.append(f"label={_dot_quote(label)}")
    return f"{_dot_quote(_dot_name(tree, node))} [{', '.join(attrs)}]"


def _dot_name(tree: Tree, node: TreeNode) -> str:
    return f"SG_{tree.index}_Node_{node.node_id}"


def _default_title(graph: TreeGraph) -> str:
    if len(graph.trees) == 1:
        return f"Tree {graph.trees[0].index}"
    return f"{graph.name or 'model'}: {len(graph.trees)} trees"


def _dot_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


__all__ = ["GraphText", "emit", "tree_graph_for"]
