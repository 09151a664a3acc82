from __future__ import annotations

import io
import tempfile
import unittest
from pathlib import Path

from tree_fixtures import age_model, mixed_tree

from treerender import (
    GenericGraph,
    RenderOptions,
    RenderTargetUnwritable,
    emit,
    import_graph_text,
    layout_graph,
    render_graph,
    save_png,
)
from treerender.model import model_from_dict, tree_from_dict

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _laid_out(graph_text: str):
    graph = import_graph_text(graph_text)
    return graph, layout_graph(graph)


class RenderGraphTests(unittest.TestCase):
    def test_age_tree_paints_on_white_canvas(self) -> None:
        graph, layout = _laid_out(emit(model_from_dict(age_model()), tree_index=0).text)
        image = render_graph(graph, layout)
        self.assertEqual(image.mode, "RGB")
        self.assertGreaterEqual(image.width, int(layout.width))
        self.assertGreaterEqual(image.height, int(layout.height))
        self.assertEqual(image.getpixel((0, 0)), (255, 255, 255))
        self.assertLess(min(image.convert("L").getdata()), 128)

    def test_truncated_and_styled_graphs_render(self) -> None:
        graph, layout = _laid_out(emit(tree_from_dict(mixed_tree()), RenderOptions(max_levels=1)).text)
        self.assertEqual(render_graph(graph, layout).mode, "RGB")

        styled = import_graph_text(
            """
digraph {
  a [shape=box, style="filled,bold", fillcolor=lightblue];
  b [style=dotted, color="#336699"];
  c [style=invis];
  a -> b [style=dashed, label="yes"];
  a -> c [penwidth=3, label="no"];
}
"""
        )
        image = render_graph(styled, layout_graph(styled))
        self.assertIn((173, 216, 230), {color for _, color in image.getcolors(maxcolors=1 << 20)})

    def test_unknown_colour_falls_back_with_warning(self) -> None:
        graph = import_graph_text('digraph { a [color="not-a-colour"] }')
        with self.assertLogs("treerender.raster", level="WARNING") as logs:
            render_graph(graph, layout_graph(graph))
        self.assertIn("not-a-colour", logs.output[0])

    def test_empty_graph_still_yields_an_image(self) -> None:
        graph = GenericGraph()
        image = render_graph(graph, layout_graph(graph))
        self.assertGreater(image.width, 0)
        self.assertGreater(image.height, 0)


class SavePngTests(unittest.TestCase):
    def setUp(self) -> None:
        graph, layout = _laid_out(emit(model_from_dict(age_model()), tree_index=0).text)
        self.image = render_graph(graph, layout)

    def test_save_to_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "tree.png"
            save_png(self.image, target)
            self.assertEqual(target.read_bytes()[:8], PNG_SIGNATURE)

    def test_save_to_stream(self) -> None:
        buffer = io.BytesIO()
        save_png(self.image, buffer)
        self.assertEqual(buffer.getvalue()[:8], PNG_SIGNATURE)

    def test_missing_directory_is_unwritable(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "missing" / "tree.png"
            with self.assertRaises(RenderTargetUnwritable) as ctx:
                save_png(self.image, target)
            self.assertEqual(ctx.exception.code, "E_IO_WRITE")
            self.assertFalse(target.exists())

    def test_closed_stream_is_unwritable(self) -> None:
        buffer = io.BytesIO()
        buffer.close()
        with self.assertRaises(RenderTargetUnwritable):
            save_png(self.image, buffer)


if __name__ == "__main__":
    unittest.main()
