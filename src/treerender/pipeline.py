"""Run the emit -> import -> layout -> rasterize sequence for one render."""
from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Optional, TextIO, Union

from PIL import Image

from .emitter import GraphText, emit
from .errors import RenderTargetUnwritable
from .fonts import measurer_for
from .graph import GenericGraph
from .importer import import_graph_text
from .layout import LayoutResult, layout_graph
from .model import ALL_TREES
from .options import RenderOptions
from .raster import render_graph, save_png

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".gv"


@dataclass
class RenderResult:
    graph_text: GraphText
    graph: GenericGraph
    layout: LayoutResult
    image: Image.Image


def render_dot(
    source: Any,
    options: Optional[RenderOptions] = None,
    tree_index: int = ALL_TREES,
    destination: Union[str, Path, TextIO, None] = None,
) -> GraphText:
    """Emit DOT text and write it to ``destination`` when one is given."""
    graph_text = emit(source, options, tree_index)
    if destination is not None:
        write_graph_text(graph_text, destination)
    return graph_text


def render_png(
    source: Any,
    options: Optional[RenderOptions] = None,
    tree_index: int = ALL_TREES,
    destination: Union[str, Path, BinaryIO, None] = None,
    *,
    font_path: Optional[str] = None,
) -> RenderResult:
    """Emit DOT, round-trip it through a temporary file, lay it out and rasterize it."""
    options = options or RenderOptions()
    graph_text = emit(source, options, tree_index)
    measurer = measurer_for(font_path)
    with temporary_graph_text(graph_text) as path:
        text = path.read_text(encoding="utf-8")
        graph = import_graph_text(text)
        layout = layout_graph(graph, font_size=options.font_size, measurer=measurer)
        image = render_graph(graph, layout, font_size=options.font_size, measurer=measurer)
        if destination is not None:
            save_png(image, destination)
    return RenderResult(graph_text=graph_text, graph=graph, layout=layout, image=image)


def write_graph_text(graph_text: GraphText, destination: Union[str, Path, TextIO]) -> None:
    if hasattr(destination, "write"):
        name = getattr(destination, "name", "<stream>")
        try:
            graph_text.write(destination)
            destination.flush()
        except (OSError, ValueError) as exc:
            raise RenderTargetUnwritable(str(name), str(exc), stage="emit") from exc
        return
    path = Path(destination)
    opened = False
    try:
        with open(path, "w", encoding="utf-8") as fh:
            opened = True
            graph_text.write(fh)
    except OSError as exc:
        if opened:
            path.unlink(missing_ok=True)
        raise RenderTargetUnwritable(str(path), exc.strerror or str(exc), stage="emit") from exc
    logger.debug("wrote graph text to %s", path)


@contextlib.contextmanager
def temporary_graph_text(graph_text: GraphText) -> Iterator[Path]:
    """Write graph text to a uniquely named temp file that is removed on every exit path."""
    fd, name = tempfile.mkstemp(prefix="treerender-", suffix=TEMP_SUFFIX)
    path = Path(name)
    logger.debug("created temporary graph text %s", path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            graph_text.write(fh)
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("removed temporary graph text %s", path)


__all__ = ["RenderResult", "render_dot", "render_png", "write_graph_text", "temporary_graph_text"]
