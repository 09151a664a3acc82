"""Command-line interface for printing decision trees as DOT or PNG."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .errors import (
    CyclicGraph,
    MalformedGraphText,
    ModelFileError,
    RenderTargetUnwritable,
    TreeIndexError,
    TreeRenderError,
    UnsupportedModelKind,
)
from .emitter import tree_graph_for
from .model import ALL_TREES, load_model, model_from_dict
from .options import DEFAULT_FONT_SIZE, DEFAULT_MAX_LEVELS, RenderOptions
from .pipeline import render_dot, render_png

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {
    "dot": (".dot", ".gv"),
    "png": (".png",),
}


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    stage: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None
    retryable: bool = False


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="treerender",
        description="Emit a human-consumable graph (Graphviz DOT or PNG) of a decision-tree model.",
    )
    parser.add_argument("model", nargs="?", help="Model JSON file (default: stdin)")
    parser.add_argument("-i", "--input", dest="input_path", help="Model JSON file")
    parser.add_argument("--tree", type=int, default=ALL_TREES, help="Tree number to print [default all]")
    parser.add_argument(
        "--levels",
        type=int,
        default=DEFAULT_MAX_LEVELS,
        help=f"Number of edge levels to print below each root [default {DEFAULT_MAX_LEVELS}]",
    )
    parser.add_argument("--title", help="Force the title of the tree graph")
    parser.add_argument("--detail", action="store_true", help="Print node numbers and weights")
    parser.add_argument(
        "-d", "--decimalplaces", type=int, help="Round numeric values to this many decimal places"
    )
    parser.add_argument(
        "-f", "--fontsize", type=int, default=DEFAULT_FONT_SIZE, help=f"Font size [default {DEFAULT_FONT_SIZE}]"
    )
    parser.add_argument(
        "--internal", action="store_true", help="Use the internal split encoding (column indices, level codes)"
    )
    parser.add_argument("--format", choices=["dot", "png"], default="dot", type=str.lower)
    parser.add_argument("-o", "--output", help="Output .dot/.gv or .png path [default stdout]")
    parser.add_argument("--font", help="TrueType font used for PNG output")
    parser.add_argument("--raw", action="store_true", help="Print the tree structure to stderr before emitting")
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")
    return parser


def _read_model(path: Optional[str]):
    if path:
        model_path = Path(path)
        if not model_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {model_path}",
                exit_code=2,
                file=str(model_path),
            )
        return load_model(model_path)

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Pass a model file, use -i FILE, or pipe the model JSON into stdin.",
            exit_code=2,
        )
    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe model JSON into stdin.",
            exit_code=2,
        )
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ModelFileError(f"stdin is not valid JSON (line {exc.lineno}, column {exc.colno})") from exc
    return model_from_dict(payload)


def _options_from_args(args: argparse.Namespace) -> RenderOptions:
    try:
        return RenderOptions(
            decimal_places=args.decimalplaces,
            font_size=args.fontsize,
            max_levels=args.levels,
            detail=args.detail,
            internal=args.internal,
            title=args.title,
        )
    except ValueError as exc:
        raise CliError("E_ARGS", str(exc), exit_code=2) from exc


def _validate_args(args: argparse.Namespace) -> None:
    if args.model and args.input_path:
        raise CliError(
            "E_ARGS",
            "model given both positionally and with --input",
            hint="Use either MODEL or -i MODEL.",
            exit_code=2,
        )
    if args.tree < ALL_TREES:
        raise CliError("E_ARGS", f"invalid --tree argument ({args.tree})", exit_code=2)
    if args.output:
        extensions = FORMAT_EXTENSIONS[args.format]
        if not args.output.lower().endswith(extensions):
            raise CliError(
                "E_ARGS",
                f'output file name "{args.output}" has an invalid extension for format "{args.format}"',
                hint=f"Use one of {', '.join(extensions)} or choose a different --format.",
                exit_code=2,
            )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, TreeRenderError):
        hints = {
            ModelFileError: "Check the model JSON against the documented tree format.",
            TreeIndexError: "Pick a tree index inside the model, or omit --tree to print all trees.",
            UnsupportedModelKind: "Only tree-based models (DRF, GBM, XGBoost style) can be printed.",
            MalformedGraphText: "The intermediate DOT text is corrupt; re-run with --debug.",
            CyclicGraph: "Tree layout needs an acyclic graph.",
            RenderTargetUnwritable: "Check that the output directory exists and is writable.",
        }
        exit_codes = {
            ModelFileError: 3,
            TreeIndexError: 2,
            UnsupportedModelKind: 3,
            MalformedGraphText: 4,
            CyclicGraph: 4,
            RenderTargetUnwritable: 4,
        }
        kind = type(exc)
        return CliError(
            exc.code,
            str(exc),
            hint=hints.get(kind),
            exit_code=exit_codes.get(kind, 1),
            stage=exc.stage,
            file=getattr(exc, "target", None),
            line=getattr(exc, "line", None),
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "stage": err.stage,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    stage = f"{err.stage} stage: " if err.stage else ""
    sys.stderr.write(f"error[{err.code}]: {stage}{err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _run(args: argparse.Namespace) -> int:
    _validate_args(args)
    options = _options_from_args(args)
    model = _read_model(args.model or args.input_path)
    if args.raw:
        model = tree_graph_for(model, args.tree)
        sys.stderr.write(model.describe())
        sys.stderr.flush()

    if args.format == "png":
        destination = args.output if args.output else sys.stdout.buffer
        render_png(model, options, args.tree, destination, font_path=args.font)
    else:
        destination = args.output if args.output else sys.stdout
        render_dot(model, options, args.tree, destination)

    if args.output:
        print(f"Wrote {args.output}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    debug_enabled = "--debug" in raw_argv or os.getenv("TREERENDER_DEBUG") == "1"
    logging.basicConfig(
        level=logging.DEBUG if debug_enabled else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        return _run(args)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint="Run treerender --help for the list of options.",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
