from __future__ import annotations

import unittest

import tree_fixtures  # noqa: F401  (puts src/ on sys.path)

from treerender import MalformedGraphText, import_graph_text


class ImporterGrammarTests(unittest.TestCase):
    def test_vertices_are_keyed_by_label(self) -> None:
        graph = import_graph_text(
            """
digraph G {
  n0 [shape=box, label="age"];
  n1 [label="young"]
  n2 [label="old"]
  n0 -> n1 [label="< 30"];
  n0 -> n2 [label=">= 30"];
}
"""
        )
        self.assertEqual(list(graph.vertices), ["age", "young", "old"])
        self.assertEqual(graph.vertices["age"], {"shape": "box"})
        self.assertEqual([(e.source, e.target, e.label) for e in graph.edges], [
            ("age", "young", "< 30"),
            ("age", "old", ">= 30"),
        ])
        self.assertTrue(graph.directed)

    def test_unlabelled_vertices_use_their_id(self) -> None:
        graph = import_graph_text("digraph { a -> b; c }")
        self.assertEqual(list(graph.vertices), ["a", "b", "c"])
        self.assertIsNone(graph.edges[0].label)

    def test_duplicate_labels_collapse_last_write_wins(self) -> None:
        graph = import_graph_text(
            """
digraph {
  a [label="same", color=red, fontsize=10];
  b [label="same", color=blue];
  c [label="other"];
  a -> c;
  b -> c;
}
"""
        )
        self.assertEqual(list(graph.vertices), ["same", "other"])
        self.assertEqual(graph.vertices["same"], {"color": "blue", "fontsize": "10"})
        self.assertEqual(len(graph.edges), 2)
        self.assertEqual([(e.source, e.target) for e in graph.edges], [("same", "other"), ("same", "other")])

    def test_redeclared_id_takes_its_last_label(self) -> None:
        graph = import_graph_text('digraph { a [label="first"]; a -> b; a [label="second"] }')
        self.assertEqual(list(graph.vertices), ["second", "b"])
        self.assertEqual(graph.edges[0].source, "second")

    def test_multi_edges_keep_declaration_order(self) -> None:
        graph = import_graph_text('digraph { x -> y [label="1"]; x -> y [label="2"]; y -> x [label="3"] }')
        self.assertEqual([e.label for e in graph.edges], ["1", "2", "3"])

    def test_edge_chains_and_subgraph_endpoints(self) -> None:
        graph = import_graph_text("digraph { a -> { b c } -> d; e -> f -> g [color=red] }")
        pairs = [(e.source, e.target) for e in graph.edges]
        self.assertEqual(pairs, [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"), ("e", "f"), ("f", "g")])
        self.assertEqual(graph.edges[-1].attrs, {"color": "red"})
        self.assertEqual(graph.edges[-2].attrs, {"color": "red"})

    def test_defaults_are_scoped_to_subgraphs(self) -> None:
        graph = import_graph_text(
            """
strict digraph "g" {
  node [shape=box];
  edge [style=dashed];
  subgraph cluster_0 {
    node [color=red];
    label="inner title";
    a; a -> b;
  }
  c;
}
"""
        )
        self.assertEqual(graph.vertices["a"], {"shape": "box", "color": "red"})
        self.assertEqual(graph.vertices["c"], {"shape": "box"})
        self.assertEqual(graph.edges[0].attrs, {"style": "dashed"})
        self.assertIsNone(graph.title)

    def test_graph_title_from_attribute_statement_or_assignment(self) -> None:
        self.assertEqual(import_graph_text('digraph { graph [label="T1", fontsize=40] a }').title, "T1")
        graph = import_graph_text('digraph { label="T2"; fontsize=12; a }')
        self.assertEqual(graph.title, "T2")
        self.assertEqual(graph.attrs, {"fontsize": "12"})

    def test_comments_concatenation_ports_and_html(self) -> None:
        graph = import_graph_text(
            """
# preprocessor style line
/* block
   comment */
digraph {
  // line comment
  a [label="multi" + "part"];
  b [label=<<b>bold</b>>];
  a:port1:n -> b:s;
  n1 [label=-3.5]
}
"""
        )
        self.assertEqual(list(graph.vertices), ["multipart", "<b>bold</b>", "-3.5"])
        self.assertEqual((graph.edges[0].source, graph.edges[0].target), ("multipart", "<b>bold</b>"))

    def test_escapes_in_labels(self) -> None:
        graph = import_graph_text(r'digraph { a [label="line1\nline2\lline3"]; b [label="q\"uote \\ back"]; c [label="node \N"] }')
        self.assertEqual(list(graph.vertices), ["line1\nline2\nline3", 'q"uote \\ back', "node c"])

    def test_undirected_graph(self) -> None:
        graph = import_graph_text("graph { a -- b }")
        self.assertFalse(graph.directed)
        self.assertEqual(len(graph.edges), 1)


class MalformedGraphTextTests(unittest.TestCase):
    def assertMalformed(self, text: str, line: int) -> MalformedGraphText:
        with self.assertRaises(MalformedGraphText) as ctx:
            import_graph_text(text)
        self.assertEqual(ctx.exception.line, line, str(ctx.exception))
        return ctx.exception

    def test_unterminated_label(self) -> None:
        err = self.assertMalformed('digraph G {\n  a [label="age];\n  b;\n}\n', 2)
        self.assertIn("unterminated string", str(err))
        self.assertEqual(err.fragment, 'a [label="age];')

    def test_missing_closing_brace(self) -> None:
        self.assertMalformed("digraph G {\n  a -> b;\n", 1)

    def test_wrong_edge_operator(self) -> None:
        self.assertMalformed("digraph {\n a -- b\n}", 2)
        self.assertMalformed("graph {\n a -> b\n}", 2)

    def test_edge_without_target(self) -> None:
        self.assertMalformed("digraph {\n a -> ;\n}", 2)

    def test_attribute_without_value(self) -> None:
        self.assertMalformed("digraph {\n a [label=];\n}", 2)

    def test_unterminated_attribute_list(self) -> None:
        self.assertMalformed("digraph {\n a [label=x", 2)

    def test_missing_header(self) -> None:
        self.assertMalformed("{ a -> b }", 1)

    def test_trailing_content(self) -> None:
        self.assertMalformed("digraph { a }\nextra", 2)

    def test_unterminated_comment(self) -> None:
        self.assertMalformed("digraph {\n /* never closed\n a }", 2)

    def test_unexpected_character(self) -> None:
        self.assertMalformed("digraph {\n a ! b\n}", 2)


if __name__ == "__main__":
    unittest.main()
