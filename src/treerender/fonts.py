"""Pillow font lookup and text measurement shared by layout and rasterization."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "sans-serif"
GENERIC_FONT_FALLBACKS = {
    "sans-serif": ["DejaVu Sans", "Liberation Sans", "Helvetica", "Arial"],
    "serif": ["DejaVu Serif", "Liberation Serif", "Times New Roman", "Times"],
    "monospace": ["DejaVu Sans Mono", "Liberation Mono", "Courier New", "Courier"],
}


class TextMeasurer:
    """Caches Pillow fonts and exposes width/line height helpers."""

    FONT_DIRS = [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("~/.fonts").expanduser(),
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self, font_path: Optional[str] = None, family: str = DEFAULT_FONT_FAMILY) -> None:
        self.font_path = font_path
        self.family = family
        self._font_cache: Dict[int, ImageFont.ImageFont] = {}
        self._font_paths: Dict[str, Optional[str]] = {}

    def font(self, size: float):
        key_size = max(1, int(round(size)))
        if key_size in self._font_cache:
            return self._font_cache[key_size]

        candidates: List[str] = []
        if self.font_path:
            candidates.append(self.font_path)
        for fam in GENERIC_FONT_FALLBACKS.get(self.family.lower(), [self.family]):
            resolved = self._locate_font(fam)
            if resolved:
                candidates.append(resolved)
        candidates.append("DejaVuSans.ttf")

        font = None
        for candidate in candidates:
            try:
                font = ImageFont.truetype(candidate, key_size)
                break
            except OSError:
                continue
        if font is None:
            logger.warning("no TrueType font found for %r; using Pillow's default font", self.family)
            font = ImageFont.load_default(size=key_size)

        self._font_cache[key_size] = font
        return font

    def measure(self, text: str, size: float) -> float:
        font = self.font(size)
        return max((float(font.getlength(line)) for line in text.split("\n")), default=0.0)

    def line_height(self, size: float) -> float:
        font = self.font(size)
        try:
            ascent, descent = font.getmetrics()
            return float(ascent + descent)
        except AttributeError:
            return 1.2 * size

    def text_size(self, text: str, size: float) -> Tuple[float, float]:
        lines = text.split("\n")
        return self.measure(text, size), self.line_height(size) * len(lines)

    def _locate_font(self, family: str) -> Optional[str]:
        key = family.lower()
        if key in self._font_paths:
            return self._font_paths[key]
        normalized = re.sub(r"[^a-z0-9]+", "", family, flags=re.IGNORECASE).lower()
        best_match: Optional[Tuple[int, str]] = None
        for directory in self.FONT_DIRS:
            if not directory.exists():
                continue
            for path in sorted(directory.rglob("*.ttf")):
                stem = re.sub(r"[^a-z0-9]+", "", path.stem, flags=re.IGNORECASE).lower()
                if stem == normalized:
                    score = 0
                elif stem.startswith(normalized):
                    score = 1
                else:
                    continue
                if best_match is None or score < best_match[0]:
                    best_match = (score, str(path))
        resolved = best_match[1] if best_match else None
        self._font_paths[key] = resolved
        return resolved


_MEASURERS: Dict[Optional[str], TextMeasurer] = {}


def measurer_for(font_path: Optional[str] = None) -> TextMeasurer:
    if font_path not in _MEASURERS:
        _MEASURERS[font_path] = TextMeasurer(font_path=font_path)
    return _MEASURERS[font_path]


__all__ = ["TextMeasurer", "measurer_for"]
