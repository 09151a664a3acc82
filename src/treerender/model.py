"""Decision-tree graph types and the JSON model loader."""
from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ModelFileError, TreeIndexError

logger = logging.getLogger(__name__)

ALL_TREES = -1
NA_DIRECTIONS = ("left", "right")


@dataclass(frozen=True)
class NumericSplit:
    feature: str
    feature_index: Optional[int]
    threshold: float
    na_direction: Optional[str] = None


@dataclass(frozen=True)
class CategoricalSplit:
    feature: str
    feature_index: Optional[int]
    left_levels: Tuple[str, ...]
    right_levels: Tuple[str, ...]
    left_codes: Tuple[int, ...] = ()
    right_codes: Tuple[int, ...] = ()
    na_direction: Optional[str] = None


@dataclass(frozen=True)
class MissingSplit:
    """Left branch takes missing values, right branch every present value."""

    feature: str
    feature_index: Optional[int]

    @property
    def na_direction(self) -> str:
        return "left"


Split = Union[NumericSplit, CategoricalSplit, MissingSplit]


@dataclass
class TreeNode:
    node_id: int
    depth: int
    split: Optional[Split] = None
    prediction: Optional[float] = None
    weight: Optional[float] = None
    children: List[int] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass
class Tree:
    index: int
    nodes: Dict[int, TreeNode]
    root_id: int = 0
    name: Optional[str] = None

    @property
    def root(self) -> TreeNode:
        return self.nodes[self.root_id]

    def children(self, node: TreeNode) -> List[TreeNode]:
        return [self.nodes[child_id] for child_id in node.children]

    def validate(self) -> None:
        """Raise ModelFileError unless this is a rooted binary tree with consistent depths."""
        if self.root_id not in self.nodes:
            raise ModelFileError(f"tree {self.index}: root node {self.root_id} is missing")
        parents: Dict[int, int] = {}
        for node in self.nodes.values():
            if len(node.children) > 2:
                raise ModelFileError(
                    f"tree {self.index}: node {node.node_id} has {len(node.children)} children (max 2)"
                )
            if node.children and node.split is None:
                raise ModelFileError(f"tree {self.index}: split node {node.node_id} has no split")
            if not node.children and node.prediction is None:
                raise ModelFileError(f"tree {self.index}: leaf node {node.node_id} has no prediction")
            for child_id in node.children:
                if child_id not in self.nodes:
                    raise ModelFileError(
                        f"tree {self.index}: node {node.node_id} points at unknown node {child_id}"
                    )
                if child_id in parents or child_id == self.root_id:
                    raise ModelFileError(f"tree {self.index}: node {child_id} has more than one parent")
                parents[child_id] = node.node_id
        seen = {self.root_id}
        queue = deque([self.root])
        while queue:
            node = queue.popleft()
            for child in self.children(node):
                if child.depth != node.depth + 1:
                    raise ModelFileError(
                        f"tree {self.index}: node {child.node_id} has depth {child.depth}, "
                        f"expected {node.depth + 1}"
                    )
                seen.add(child.node_id)
                queue.append(child)
        unreachable = sorted(set(self.nodes) - seen)
        if unreachable:
            raise ModelFileError(f"tree {self.index}: nodes {unreachable} are not reachable from the root")


@dataclass
class TreeGraph:
    trees: List[Tree]
    name: Optional[str] = None

    def __iter__(self):
        return iter(self.trees)

    def __len__(self) -> int:
        return len(self.trees)

    def describe(self) -> str:
        """Plain listing of every tree, one node per line in breadth-first order."""
        lines: List[str] = []
        for tree in self.trees:
            header = f"Tree {tree.index}"
            if tree.name and tree.name != header:
                header += f" ({tree.name})"
            lines.append(header + ":")
            queue = deque([tree.root])
            while queue:
                node = queue.popleft()
                lines.append(f"  {_describe_node(node)}")
                queue.extend(tree.children(node))
        return "\n".join(lines) + "\n"


@dataclass
class TreeModel:
    """A tree-backed model: every tree can be converted into a TreeGraph."""

    name: str
    algorithm: str
    trees: List[Tree]

    def convert(self, tree_index: int = ALL_TREES) -> TreeGraph:
        if tree_index == ALL_TREES:
            return TreeGraph(trees=list(self.trees), name=self.name)
        if tree_index < 0 or tree_index >= len(self.trees):
            raise TreeIndexError(
                f"tree index {tree_index} out of range (model {self.name!r} has {len(self.trees)} trees)"
            )
        return TreeGraph(trees=[self.trees[tree_index]], name=self.name)


@dataclass
class OpaqueModel:
    """A loaded model with no tree structure (linear models, ensembles of other kinds)."""

    name: str
    algorithm: str


def load_model(source: Union[str, Path, Mapping[str, Any]]) -> Union[TreeModel, OpaqueModel]:
    """Load a model description from a JSON file path or an already-decoded mapping."""
    if isinstance(source, Mapping):
        payload: Any = source
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ModelFileError(f"failed to read model file {path}: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ModelFileError(
                f"model file {path} is not valid JSON (line {exc.lineno}, column {exc.colno})"
            ) from exc
    return model_from_dict(payload)


def model_from_dict(payload: Any) -> Union[TreeModel, OpaqueModel]:
    if not isinstance(payload, Mapping):
        raise ModelFileError("model description must be a JSON object")
    name = str(payload.get("name") or "model")
    algorithm = str(payload.get("algorithm") or "unknown")
    raw_trees = payload.get("trees")
    if raw_trees is None:
        logger.debug("model %r (%s) has no trees", name, algorithm)
        return OpaqueModel(name=name, algorithm=algorithm)
    if not isinstance(raw_trees, Sequence) or isinstance(raw_trees, (str, bytes)):
        raise ModelFileError('"trees" must be a list of tree objects')
    trees = [tree_from_dict(raw, index=idx, name=f"Tree {idx}") for idx, raw in enumerate(raw_trees)]
    logger.debug("loaded model %r (%s) with %d trees", name, algorithm, len(trees))
    return TreeModel(name=name, algorithm=algorithm, trees=trees)


def tree_from_dict(payload: Any, *, index: int = 0, name: Optional[str] = None) -> Tree:
    """Build a Tree from nested node objects, numbering nodes breadth-first from 0."""
    if not isinstance(payload, Mapping):
        raise ModelFileError(f"tree {index}: root must be a JSON object")
    nodes: Dict[int, TreeNode] = {}
    queue = deque([(payload, 0, None)])
    next_id = 0
    while queue:
        raw, depth, parent_id = queue.popleft()
        if not isinstance(raw, Mapping):
            raise ModelFileError(f"tree {index}: node under {parent_id} must be a JSON object")
        node_id = next_id
        next_id += 1
        raw_children = raw.get("children") or []
        if not isinstance(raw_children, Sequence) or isinstance(raw_children, (str, bytes)):
            raise ModelFileError(f"tree {index}: node {node_id} children must be a list")
        node = TreeNode(
            node_id=node_id,
            depth=depth,
            split=_split_from_dict(raw.get("split"), index, node_id) if raw_children else None,
            prediction=_optional_float(raw.get("prediction"), index, node_id, "prediction"),
            weight=_optional_float(raw.get("weight"), index, node_id, "weight"),
        )
        nodes[node_id] = node
        if parent_id is not None:
            nodes[parent_id].children.append(node_id)
        for child in raw_children:
            queue.append((child, depth + 1, node_id))
    tree = Tree(index=index, nodes=nodes, root_id=0, name=name)
    tree.validate()
    return tree


def _split_from_dict(raw: Any, tree_index: int, node_id: int) -> Split:
    if not isinstance(raw, Mapping):
        raise ModelFileError(f"tree {tree_index}: split node {node_id} needs a split object")
    feature = raw.get("feature")
    feature_index = raw.get("feature_index")
    if feature is None and feature_index is None:
        raise ModelFileError(f"tree {tree_index}: split of node {node_id} names no feature")
    if feature_index is not None and not isinstance(feature_index, int):
        raise ModelFileError(f"tree {tree_index}: feature_index of node {node_id} must be an integer")
    feature_name = str(feature) if feature is not None else f"C{feature_index}"
    na_direction = raw.get("na")
    if na_direction is not None and na_direction not in NA_DIRECTIONS:
        raise ModelFileError(
            f'tree {tree_index}: "na" of node {node_id} must be "left" or "right" (got {na_direction!r})'
        )

    if raw.get("missing"):
        return MissingSplit(feature=feature_name, feature_index=feature_index)
    if "threshold" in raw:
        threshold = _optional_float(raw.get("threshold"), tree_index, node_id, "threshold")
        if threshold is None:
            raise ModelFileError(f"tree {tree_index}: threshold of node {node_id} is null")
        return NumericSplit(
            feature=feature_name,
            feature_index=feature_index,
            threshold=threshold,
            na_direction=na_direction,
        )
    if "left_levels" in raw or "right_levels" in raw:
        left_levels = tuple(str(level) for level in raw.get("left_levels") or ())
        right_levels = tuple(str(level) for level in raw.get("right_levels") or ())
        left_codes = tuple(int(code) for code in raw.get("left_codes") or ())
        right_codes = tuple(int(code) for code in raw.get("right_codes") or ())
        return CategoricalSplit(
            feature=feature_name,
            feature_index=feature_index,
            left_levels=left_levels,
            right_levels=right_levels,
            left_codes=left_codes,
            right_codes=right_codes,
            na_direction=na_direction,
        )
    raise ModelFileError(
        f"tree {tree_index}: split of node {node_id} needs a threshold, level lists or \"missing\""
    )


def _describe_node(node: TreeNode) -> str:
    parts = [f"node {node.node_id}", f"depth={node.depth}"]
    split = node.split
    if isinstance(split, NumericSplit):
        parts.append(f"split={split.feature} < {split.threshold!r}")
    elif isinstance(split, CategoricalSplit):
        parts.append(f"split={split.feature} in {{{', '.join(split.left_levels)}}}")
    elif isinstance(split, MissingSplit):
        parts.append(f"split={split.feature} is NA")
    if split is not None and split.na_direction:
        parts.append(f"na={split.na_direction}")
    if node.prediction is not None:
        parts.append(f"prediction={node.prediction!r}")
    if node.weight is not None:
        parts.append(f"weight={node.weight!r}")
    if node.children:
        parts.append(f"children={node.children}")
    return " ".join(parts)


def _optional_float(value: Any, tree_index: int, node_id: int, attr: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ModelFileError(f"tree {tree_index}: {attr} of node {node_id} must be numeric (got {value!r})")
    return float(value)


__all__ = [
    "ALL_TREES",
    "NumericSplit",
    "CategoricalSplit",
    "MissingSplit",
    "Split",
    "TreeNode",
    "Tree",
    "TreeGraph",
    "TreeModel",
    "OpaqueModel",
    "load_model",
    "model_from_dict",
    "tree_from_dict",
]
