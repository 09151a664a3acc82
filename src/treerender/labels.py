"""Label formatting strategies for tree vertices and branches."""
from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from .model import CategoricalSplit, MissingSplit, NumericSplit, Split, TreeNode
from .options import RenderOptions

MAX_LEVELS_PER_EDGE_LABEL = 10
TRUNCATION_MARK = "..."
NA_MARK = "[NA]"

LEFT = 0
RIGHT = 1


class LabelStrategy:
    """Human-readable labels: feature names, thresholds and category names."""

    name = "readable"

    def __init__(self, options: RenderOptions) -> None:
        self.options = options

    def node_label(self, node: TreeNode) -> str:
        if node.split is None:
            return self.options.format_number(node.prediction if node.prediction is not None else float("nan"))
        return self.feature_label(node.split)

    def feature_label(self, split: Split) -> str:
        return split.feature

    def edge_label(self, split: Split, branch: int) -> str:
        if isinstance(split, NumericSplit):
            lines = [self.numeric_branch(split, branch)]
        elif isinstance(split, CategoricalSplit):
            lines = self.categorical_branch(split, branch)
        elif isinstance(split, MissingSplit):
            return self.missing_branch(branch)
        else:  # pragma: no cover - closed set of split kinds
            raise TypeError(f"unknown split kind: {type(split).__name__}")
        if split.na_direction == ("left" if branch == LEFT else "right"):
            lines.insert(0, NA_MARK)
        return "\n".join(lines)

    def numeric_branch(self, split: NumericSplit, branch: int) -> str:
        threshold = self.options.format_number(split.threshold)
        return f"< {threshold}" if branch == LEFT else f">= {threshold}"

    def categorical_branch(self, split: CategoricalSplit, branch: int) -> List[str]:
        levels = split.left_levels if branch == LEFT else split.right_levels
        return _capped([str(level) for level in levels])

    def missing_branch(self, branch: int) -> str:
        return "NA" if branch == LEFT else "not NA"


class InternalLabelStrategy(LabelStrategy):
    """Raw split encoding: column indices and category codes."""

    name = "internal"

    def feature_label(self, split: Split) -> str:
        if split.feature_index is None:
            return split.feature
        return f"x[{split.feature_index}]"

    def categorical_branch(self, split: CategoricalSplit, branch: int) -> List[str]:
        codes = split.left_codes if branch == LEFT else split.right_codes
        if not codes:
            return super().categorical_branch(split, branch)
        shown = [str(code) for code in codes[:MAX_LEVELS_PER_EDGE_LABEL]]
        if len(codes) > MAX_LEVELS_PER_EDGE_LABEL:
            shown.append(TRUNCATION_MARK)
        return ["{" + ", ".join(shown) + "}"]

    def missing_branch(self, branch: int) -> str:
        return "isNA" if branch == LEFT else "!isNA"


class DetailLabels:
    """Wraps a strategy and appends node numbers and weights to vertex labels."""

    def __init__(self, inner: LabelStrategy) -> None:
        self.inner = inner
        self.options = inner.options
        self.name = f"{inner.name}+detail"

    def node_label(self, node: TreeNode) -> str:
        extra = [f"N{node.node_id}"]
        if node.weight is not None:
            extra.append(f"W{self.options.format_number(node.weight)}")
        return self.inner.node_label(node) + "\n\n" + "\n".join(extra)

    def edge_label(self, split: Split, branch: int) -> str:
        return self.inner.edge_label(split, branch)


STRATEGIES: Dict[bool, Callable[[RenderOptions], LabelStrategy]] = {
    False: LabelStrategy,
    True: InternalLabelStrategy,
}


def labels_for(options: RenderOptions):
    strategy = STRATEGIES[bool(options.internal)](options)
    if options.detail:
        return DetailLabels(strategy)
    return strategy


def _capped(levels: Sequence[str]) -> List[str]:
    shown = list(levels[:MAX_LEVELS_PER_EDGE_LABEL])
    if len(levels) > MAX_LEVELS_PER_EDGE_LABEL:
        shown.append(TRUNCATION_MARK)
    return shown or ["(none)"]


__all__ = [
    "LabelStrategy",
    "InternalLabelStrategy",
    "DetailLabels",
    "STRATEGIES",
    "labels_for",
    "TRUNCATION_MARK",
    "MAX_LEVELS_PER_EDGE_LABEL",
]
