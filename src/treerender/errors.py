"""Error taxonomy shared by every rendering stage."""
from __future__ import annotations

from typing import Optional


class TreeRenderError(Exception):
    """Structured error with a stable code and the stage that failed."""

    code = "E_INTERNAL"
    stage = "render"

    def __init__(self, message: str, *, code: Optional[str] = None, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return self.message


class ModelFileError(TreeRenderError):
    """Raised when a model file cannot be read or describes an invalid tree."""

    code = "E_MODEL_FILE"
    stage = "model"


class TreeIndexError(TreeRenderError):
    """Raised when a tree index does not exist in the model."""

    code = "E_TREE_INDEX"
    stage = "model"


class UnsupportedModelKind(TreeRenderError):
    """Raised when the supplied model is not backed by decision trees."""

    code = "E_UNSUPPORTED_MODEL"
    stage = "emit"


class MalformedGraphText(TreeRenderError):
    """Raised when graph text cannot be parsed."""

    code = "E_GRAPH_TEXT"
    stage = "import"

    def __init__(self, message: str, *, line: Optional[int] = None, fragment: Optional[str] = None) -> None:
        location = f" at line {line}" if line is not None else ""
        detail = f": {fragment!r}" if fragment else ""
        super().__init__(f"{message}{location}{detail}")
        self.line = line
        self.fragment = fragment


class CyclicGraph(TreeRenderError):
    """Raised when the layout walk reaches a vertex that is still open."""

    code = "E_CYCLIC_GRAPH"
    stage = "layout"

    def __init__(self, vertex: str) -> None:
        super().__init__(f"graph contains a cycle through vertex {vertex!r}")
        self.vertex = vertex


class RenderTargetUnwritable(TreeRenderError):
    """Raised when an output destination cannot be opened or written."""

    code = "E_IO_WRITE"
    stage = "render"

    def __init__(self, target: str, reason: str, *, stage: Optional[str] = None) -> None:
        super().__init__(f"cannot write output {target}: {reason}", stage=stage)
        self.target = target
        self.reason = reason


__all__ = [
    "TreeRenderError",
    "ModelFileError",
    "TreeIndexError",
    "UnsupportedModelKind",
    "MalformedGraphText",
    "CyclicGraph",
    "RenderTargetUnwritable",
]
