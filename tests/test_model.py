from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from tree_fixtures import age_model, mixed_tree

from treerender import ALL_TREES, ModelFileError, TreeIndexError, load_model
from treerender.model import (
    CategoricalSplit,
    MissingSplit,
    NumericSplit,
    OpaqueModel,
    TreeModel,
    model_from_dict,
    tree_from_dict,
)


class TreeLoadingTests(unittest.TestCase):
    def test_nodes_are_numbered_breadth_first(self) -> None:
        tree = tree_from_dict(mixed_tree(), index=3, name="Tree 3")
        self.assertEqual(sorted(tree.nodes), list(range(7)))
        self.assertEqual(tree.root.children, [1, 2])
        self.assertEqual(tree.nodes[1].children, [3, 4])
        self.assertEqual([node.depth for node in tree.children(tree.nodes[2])], [2, 2])
        self.assertIsInstance(tree.root.split, CategoricalSplit)
        self.assertEqual(tree.root.split.left_levels, ("red", "green"))
        self.assertIsInstance(tree.nodes[1].split, MissingSplit)
        self.assertEqual(tree.nodes[1].split.na_direction, "left")
        self.assertEqual(tree.nodes[2].split, NumericSplit("height", 1, 1.23456, "left"))
        self.assertTrue(tree.nodes[6].is_leaf)

    def test_load_model_from_file_and_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "m.json"
            path.write_text(json.dumps(age_model()), encoding="utf-8")
            model = load_model(path)
        self.assertIsInstance(model, TreeModel)
        self.assertEqual((model.name, model.algorithm, len(model.trees)), ("gbm_age", "gbm", 1))
        self.assertEqual(load_model(age_model()).trees[0].root.split.threshold, 30.0)

    def test_models_without_trees_are_opaque(self) -> None:
        model = model_from_dict({"name": "glm_1", "algorithm": "glm"})
        self.assertIsInstance(model, OpaqueModel)
        self.assertFalse(hasattr(model, "convert"))

    def test_convert_selects_trees(self) -> None:
        model = model_from_dict({"name": "m", "trees": [mixed_tree(), mixed_tree()]})
        self.assertEqual(len(model.convert(ALL_TREES)), 2)
        self.assertEqual([tree.index for tree in model.convert(1)], [1])
        for bad in (2, -2):
            with self.assertRaises(TreeIndexError):
                model.convert(bad)


    def test_describe_lists_nodes_breadth_first(self) -> None:
        model = model_from_dict({"name": "m", "trees": [mixed_tree(), mixed_tree()]})
        lines = model.convert(1).describe().splitlines()
        self.assertEqual(
            lines[:4],
            [
                "Tree 1:",
                "  node 0 depth=0 split=color in {red, green} na=right children=[1, 2]",
                "  node 1 depth=1 split=income is NA na=left children=[3, 4]",
                "  node 2 depth=1 split=height < 1.23456 na=left children=[5, 6]",
            ],
        )
        predictions = (-1.125, 2.0, 0.987654, 3.14159)
        expected = [f"  node {i} depth=2 prediction={p!r}" for i, p in zip(range(3, 7), predictions)]
        self.assertEqual(lines[4:], expected)
        self.assertEqual(model.convert(ALL_TREES).describe().count("Tree "), 2)

class TreeValidationTests(unittest.TestCase):
    def assertRejected(self, payload, fragment: str) -> None:
        with self.assertRaises(ModelFileError) as ctx:
            model_from_dict(payload)
        self.assertIn(fragment, str(ctx.exception))

    def test_invalid_payloads(self) -> None:
        leaf = {"prediction": 1.0}
        split = {"feature": "x", "threshold": 1.0}
        self.assertRejected([], "JSON object")
        self.assertRejected({"trees": "nope"}, "list of tree objects")
        self.assertRejected({"trees": [{"split": split, "children": [leaf, leaf, leaf]}]}, "max 2")
        self.assertRejected({"trees": [{"split": split, "children": [leaf, {}]}]}, "has no prediction")
        self.assertRejected({"trees": [{"children": [leaf, leaf]}]}, "needs a split object")
        self.assertRejected({"trees": [{"split": {"threshold": 1.0}, "children": [leaf, leaf]}]}, "names no feature")
        self.assertRejected(
            {"trees": [{"split": dict(split, na="up"), "children": [leaf, leaf]}]}, '"left" or "right"'
        )
        self.assertRejected({"trees": [{"split": {"feature": "x"}, "children": [leaf, leaf]}]}, "needs a threshold")
        self.assertRejected({"trees": [{"prediction": "high"}]}, "must be numeric")

    def test_unreadable_files(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            broken = Path(td) / "broken.json"
            broken.write_text("{", encoding="utf-8")
            with self.assertRaises(ModelFileError) as ctx:
                load_model(broken)
            self.assertIn("not valid JSON", str(ctx.exception))
            with self.assertRaises(ModelFileError):
                load_model(Path(td) / "absent.json")


if __name__ == "__main__":
    unittest.main()
