"""Paint a laid-out graph into a Pillow image and write it as PNG."""
from __future__ import annotations

import io
import logging
import math
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from PIL import Image, ImageColor, ImageDraw

from .errors import RenderTargetUnwritable
from .fonts import TextMeasurer, measurer_for
from .graph import GenericGraph
from .layout import Box, LayoutResult
from .options import DEFAULT_FONT_SIZE

logger = logging.getLogger(__name__)

MARGIN = 20.0
BACKGROUND = (255, 255, 255)
FOREGROUND = (0, 0, 0)
ARROW_LENGTH = 9.0
ARROW_HALF_WIDTH = 4.0
LABEL_OFFSET = 5.0
TITLE_GAP = 16.0

Point = Tuple[float, float]
Rect = Tuple[float, float, float, float]


def render_graph(
    graph: GenericGraph,
    layout: LayoutResult,
    font_size: float = DEFAULT_FONT_SIZE,
    measurer: Optional[TextMeasurer] = None,
) -> Image.Image:
    """Rasterize ``graph`` at the positions in ``layout`` onto a white RGB canvas."""
    measurer = measurer or measurer_for()

    edge_paths: List[Tuple[int, Point, Point]] = []
    label_rects: Dict[int, Rect] = {}
    for idx, edge in enumerate(graph.edges):
        start, end = _edge_endpoints(graph, layout, edge.source, edge.target)
        edge_paths.append((idx, start, end))
        if edge.label:
            label_rects[idx] = _edge_label_rect(edge.label, start, end, _fontsize(edge.attrs, font_size), measurer)

    title_rect: Optional[Rect] = None
    title_size = _fontsize(graph.attrs, font_size * 1.5)
    if graph.title:
        title_w, title_h = measurer.text_size(graph.title, title_size)
        top = -(title_h + TITLE_GAP)
        left = (layout.width - title_w) / 2.0
        title_rect = (left, top, left + title_w, top + title_h)

    extents: List[Rect] = [box.as_bbox() for box in layout.boxes.values()]
    extents.extend(label_rects.values())
    for _, start, end in edge_paths:
        extents.append(_points_bbox([start, end]))
    if title_rect is not None:
        extents.append(title_rect)
    if not extents:
        extents.append((0.0, 0.0, 1.0, 1.0))
    min_x = min(rect[0] for rect in extents)
    min_y = min(rect[1] for rect in extents)
    max_x = max(rect[2] for rect in extents)
    max_y = max(rect[3] for rect in extents)
    dx = MARGIN - min_x
    dy = MARGIN - min_y
    size = (int(math.ceil(max_x - min_x + 2 * MARGIN)), int(math.ceil(max_y - min_y + 2 * MARGIN)))

    image = Image.new("RGB", size, BACKGROUND)
    draw = ImageDraw.Draw(image)

    def shift(point: Point) -> Point:
        return (point[0] + dx, point[1] + dy)

    for idx, start, end in edge_paths:
        attrs = graph.edges[idx].attrs
        styles = _styles(attrs)
        if "invis" in styles:
            continue
        color = _color(attrs.get("color"), FOREGROUND)
        width = _pen_width(attrs, styles)
        _stroke([shift(start), shift(end)], draw, color, width, styles)
        _arrowhead(draw, shift(start), shift(end), color)

    for vertex, box in layout.boxes.items():
        _draw_vertex(draw, vertex, graph.vertices.get(vertex, {}), box, dx, dy, font_size, measurer)

    for idx, rect in label_rects.items():
        edge = graph.edges[idx]
        if "invis" in _styles(edge.attrs):
            continue
        fill = _color(edge.attrs.get("fontcolor"), FOREGROUND)
        center = ((rect[0] + rect[2]) / 2.0 + dx, (rect[1] + rect[3]) / 2.0 + dy)
        _draw_text(draw, edge.label or "", center, _fontsize(edge.attrs, font_size), fill, measurer)

    if graph.title and title_rect is not None:
        center = ((title_rect[0] + title_rect[2]) / 2.0 + dx, (title_rect[1] + title_rect[3]) / 2.0 + dy)
        _draw_text(draw, graph.title, center, title_size, _color(graph.attrs.get("fontcolor"), FOREGROUND), measurer)

    logger.debug("rasterized %d vertices and %d edges into %dx%d", len(layout.boxes), len(graph.edges), *size)
    return image


def save_png(image: Image.Image, destination: Union[str, Path, BinaryIO]) -> None:
    """Write ``image`` as PNG to a path or binary stream; the file is closed on every path."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    payload = buffer.getvalue()

    if hasattr(destination, "write"):
        name = getattr(destination, "name", "<stream>")
        try:
            destination.write(payload)
            if hasattr(destination, "flush"):
                destination.flush()
        except (OSError, ValueError) as exc:
            raise RenderTargetUnwritable(str(name), str(exc)) from exc
        return

    path = Path(destination)
    opened = False
    try:
        with open(path, "wb") as fh:
            opened = True
            fh.write(payload)
    except OSError as exc:
        if opened:
            path.unlink(missing_ok=True)
        raise RenderTargetUnwritable(str(path), exc.strerror or str(exc)) from exc
    logger.debug("wrote %d bytes of PNG to %s", len(payload), path)


def _edge_endpoints(graph: GenericGraph, layout: LayoutResult, source: str, target: str) -> Tuple[Point, Point]:
    from_box = layout.boxes[source]
    to_box = layout.boxes[target]
    start_center = from_box.center
    end_center = to_box.center
    if source == target:
        return (from_box.right, start_center[1]), (from_box.right, start_center[1])
    start = _clip_to_shape(start_center, end_center, from_box, graph.vertices.get(source, {}))
    end = _clip_to_shape(end_center, start_center, to_box, graph.vertices.get(target, {}))
    return start, end


def _clip_to_shape(origin: Point, toward: Point, box: Box, attrs: Dict[str, str]) -> Point:
    if attrs.get("shape", "ellipse") == "box":
        clipped = _ray_rect_intersection(origin, toward, box.as_bbox())
        return clipped if clipped is not None else origin
    return _ray_ellipse_intersection(origin, toward, box)


def _ray_rect_intersection(origin: Point, toward: Point, bbox: Rect) -> Optional[Point]:
    ox, oy = origin
    tx, ty = toward
    dx = tx - ox
    dy = ty - oy
    if abs(dx) < 1e-12 and abs(dy) < 1e-12:
        return None

    left, top, right, bottom = bbox
    candidates: List[Tuple[float, float, float]] = []

    if abs(dx) > 1e-12:
        for x in (left, right):
            t = (x - ox) / dx
            if t <= 1e-12:
                continue
            y = oy + t * dy
            if top - 1e-9 <= y <= bottom + 1e-9:
                candidates.append((t, x, y))

    if abs(dy) > 1e-12:
        for y in (top, bottom):
            t = (y - oy) / dy
            if t <= 1e-12:
                continue
            x = ox + t * dx
            if left - 1e-9 <= x <= right + 1e-9:
                candidates.append((t, x, y))

    if not candidates:
        return None
    _, x, y = min(candidates, key=lambda item: item[0])
    return (x, y)


def _ray_ellipse_intersection(origin: Point, toward: Point, box: Box) -> Point:
    dx = toward[0] - origin[0]
    dy = toward[1] - origin[1]
    a = box.width / 2.0
    b = box.height / 2.0
    denom = math.hypot(dx / a, dy / b) if a > 0 and b > 0 else 0.0
    if denom <= 1e-12:
        return origin
    return (origin[0] + dx / denom, origin[1] + dy / denom)


def _edge_label_rect(label: str, start: Point, end: Point, size: float, measurer: TextMeasurer) -> Rect:
    width, height = measurer.text_size(label, size)
    mid_x = (start[0] + end[0]) / 2.0
    mid_y = (start[1] + end[1]) / 2.0
    if end[0] < start[0] - 1e-9:
        left = mid_x - LABEL_OFFSET - width
    else:
        left = mid_x + LABEL_OFFSET
    top = mid_y - height / 2.0
    return (left, top, left + width, top + height)


def _points_bbox(points: List[Point]) -> Rect:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (min(xs), min(ys), max(xs), max(ys))


def _draw_vertex(
    draw: ImageDraw.ImageDraw,
    label: str,
    attrs: Dict[str, str],
    box: Box,
    dx: float,
    dy: float,
    font_size: float,
    measurer: TextMeasurer,
) -> None:
    styles = _styles(attrs)
    if "invis" in styles:
        return
    rect = (box.x + dx, box.y + dy, box.right + dx, box.bottom + dy)
    outline = _color(attrs.get("color"), FOREGROUND)
    fill = _color(attrs.get("fillcolor") or attrs.get("color"), (211, 211, 211)) if "filled" in styles else BACKGROUND
    width = _pen_width(attrs, styles)
    is_box = attrs.get("shape", "ellipse") == "box"

    if is_box:
        draw.rectangle(rect, fill=fill)
        outline_points = [(rect[0], rect[1]), (rect[2], rect[1]), (rect[2], rect[3]), (rect[0], rect[3]), (rect[0], rect[1])]
    else:
        draw.ellipse(rect, fill=fill)
        outline_points = _ellipse_points(rect)
    _stroke(outline_points, draw, outline, width, styles)

    center = (box.center[0] + dx, box.center[1] + dy)
    _draw_text(draw, label, center, _fontsize(attrs, font_size), _color(attrs.get("fontcolor"), FOREGROUND), measurer)


def _ellipse_points(rect: Rect, segments: int = 72) -> List[Point]:
    cx = (rect[0] + rect[2]) / 2.0
    cy = (rect[1] + rect[3]) / 2.0
    a = (rect[2] - rect[0]) / 2.0
    b = (rect[3] - rect[1]) / 2.0
    return [
        (cx + a * math.cos(2 * math.pi * k / segments), cy + b * math.sin(2 * math.pi * k / segments))
        for k in range(segments + 1)
    ]


def _draw_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    center: Point,
    size: float,
    fill: Tuple[int, int, int],
    measurer: TextMeasurer,
) -> None:
    font = measurer.font(size)
    lines = text.split("\n")
    line_height = measurer.line_height(size)
    top = center[1] - line_height * len(lines) / 2.0
    for i, line in enumerate(lines):
        if not line:
            continue
        width = float(font.getlength(line))
        draw.text((center[0] - width / 2.0, top + i * line_height), line, font=font, fill=fill)


def _stroke(
    points: List[Point],
    draw: ImageDraw.ImageDraw,
    color: Tuple[int, int, int],
    width: int,
    styles: List[str],
) -> None:
    if "dashed" in styles:
        _dashed_polyline(draw, points, color, width, dash=6.0, gap=4.0)
    elif "dotted" in styles:
        _dashed_polyline(draw, points, color, width, dash=2.0, gap=3.0)
    else:
        draw.line(points, fill=color, width=width)


def _dashed_polyline(
    draw: ImageDraw.ImageDraw,
    points: List[Point],
    color: Tuple[int, int, int],
    width: int,
    *,
    dash: float,
    gap: float,
) -> None:
    period = dash + gap
    phase = 0.0
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        length = math.hypot(x1 - x0, y1 - y0)
        if length <= 1e-9:
            continue
        ux = (x1 - x0) / length
        uy = (y1 - y0) / length
        pos = 0.0
        while pos < length:
            in_period = (phase + pos) % period
            if in_period < dash:
                seg_end = min(length, pos + (dash - in_period))
                draw.line(
                    [(x0 + ux * pos, y0 + uy * pos), (x0 + ux * seg_end, y0 + uy * seg_end)],
                    fill=color,
                    width=width,
                )
            else:
                seg_end = min(length, pos + (period - in_period))
            pos = seg_end
        phase = (phase + length) % period


def _arrowhead(draw: ImageDraw.ImageDraw, start: Point, end: Point, color: Tuple[int, int, int]) -> None:
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length = math.hypot(dx, dy)
    if length <= 1e-9:
        return
    ux, uy = dx / length, dy / length
    base_x = end[0] - ux * ARROW_LENGTH
    base_y = end[1] - uy * ARROW_LENGTH
    draw.polygon(
        [
            end,
            (base_x - uy * ARROW_HALF_WIDTH, base_y + ux * ARROW_HALF_WIDTH),
            (base_x + uy * ARROW_HALF_WIDTH, base_y - ux * ARROW_HALF_WIDTH),
        ],
        fill=color,
    )


def _styles(attrs: Dict[str, str]) -> List[str]:
    return [token.strip().lower() for token in attrs.get("style", "").split(",") if token.strip()]


def _pen_width(attrs: Dict[str, str], styles: List[str]) -> int:
    try:
        width = float(attrs.get("penwidth", "1"))
    except ValueError:
        width = 1.0
    if "bold" in styles:
        width = max(width, 2.0)
    return max(1, int(round(width)))


def _fontsize(attrs: Dict[str, str], default: float) -> float:
    try:
        value = float(attrs.get("fontsize", default))
    except ValueError:
        return default
    return value if value > 0 else default


def _color(value: Optional[str], default: Tuple[int, int, int]) -> Tuple[int, int, int]:
    if not value:
        return default
    try:
        rgb = ImageColor.getrgb(value)
    except ValueError:
        logger.warning("unknown colour %r; using default", value)
        return default
    return rgb[:3]


__all__ = ["render_graph", "save_png"]
