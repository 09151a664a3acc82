"""Model payloads shared by the test modules."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
if str(PROJECT_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT / "src"))


def age_tree() -> Dict[str, Any]:
    return {
        "split": {"feature": "age", "feature_index": 0, "threshold": 30.0},
        "weight": 100.0,
        "children": [
            {"prediction": 0.2, "weight": 40.0},
            {"prediction": 0.8, "weight": 60.0},
        ],
    }


def age_model() -> Dict[str, Any]:
    return {"name": "gbm_age", "algorithm": "gbm", "trees": [age_tree()]}


def full_tree(depth: int) -> Dict[str, Any]:
    """Complete binary tree of ``depth`` edge levels with distinct labels everywhere."""
    counter = [0]

    def build(level: int) -> Dict[str, Any]:
        counter[0] += 1
        ident = counter[0]
        if level == depth:
            return {"prediction": ident + 0.5}
        return {
            "split": {"feature": f"f{ident}", "feature_index": ident, "threshold": ident * 1.25},
            "children": [build(level + 1), build(level + 1)],
        }

    return build(0)


def mixed_tree() -> Dict[str, Any]:
    return {
        "split": {
            "feature": "color",
            "feature_index": 2,
            "left_levels": ["red", "green"],
            "right_levels": ["blue"],
            "left_codes": [0, 1],
            "right_codes": [2],
            "na": "right",
        },
        "children": [
            {
                "split": {"feature": "income", "feature_index": 5, "missing": True},
                "children": [{"prediction": -1.125}, {"prediction": 2.0}],
            },
            {
                "split": {"feature": "height", "feature_index": 1, "threshold": 1.23456, "na": "left"},
                "children": [{"prediction": 0.987654}, {"prediction": 3.14159}],
            },
        ],
    }


def forest_model(trees: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"name": "forest", "algorithm": "drf", "trees": trees}
