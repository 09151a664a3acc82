"""Public API for treerender."""
from .emitter import GraphText, emit
from .errors import (
    CyclicGraph,
    MalformedGraphText,
    ModelFileError,
    RenderTargetUnwritable,
    TreeIndexError,
    TreeRenderError,
    UnsupportedModelKind,
)
from .graph import GenericGraph, GraphEdge
from .importer import import_graph_text
from .layout import Box, LayoutResult, layout_graph
from .model import ALL_TREES, Tree, TreeGraph, TreeModel, TreeNode, load_model
from .options import RenderOptions
from .pipeline import RenderResult, render_dot, render_png
from .raster import render_graph, save_png

__all__ = [
    "ALL_TREES",
    "Box",
    "CyclicGraph",
    "GenericGraph",
    "GraphEdge",
    "GraphText",
    "LayoutResult",
    "MalformedGraphText",
    "ModelFileError",
    "RenderOptions",
    "RenderResult",
    "RenderTargetUnwritable",
    "Tree",
    "TreeGraph",
    "TreeIndexError",
    "TreeModel",
    "TreeNode",
    "TreeRenderError",
    "UnsupportedModelKind",
    "emit",
    "import_graph_text",
    "layout_graph",
    "load_model",
    "render_dot",
    "render_graph",
    "render_png",
    "save_png",
]
