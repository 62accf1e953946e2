"""Fit slide text into a fixed viewport.

Two strategies are provided: a measured binary search (default) that probes
real text extents through a :class:`TextMeasurer`, and a character-count
heuristic for surfaces that cannot measure text. The measured search wraps
lines that are wider than the margin box before measuring, so long slides
shrink and break instead of overflowing.
"""
from __future__ import annotations

import logging
import math
import re
from typing import List, Optional, Protocol, Tuple

from PIL import Image, ImageDraw, ImageFont

try:
    from .models import FitResult
except Exception:
    from models import FitResult

logger = logging.getLogger("takahashi")

# A word plus its trailing whitespace; CJK runs without spaces stay one token.
WRAP_TOKEN_RE = re.compile(r"\S+\s*|\s+")


class TextMeasurer(Protocol):
    def measure(self, text: str, font_size: int) -> Tuple[float, float]:
        ...


class PillowTextMeasurer:
    """Measure rendered text extents with Pillow.

    Each call builds its own font and a 1x1 scratch image, and closes the
    image before returning, so nothing is kept between measurements.
    """

    def __init__(self, font_path: Optional[str] = None, spacing_ratio: float = 0.2) -> None:
        self.font_path = font_path
        self.spacing_ratio = spacing_ratio

    def load_font(self, font_size: int):
        size = max(1, int(font_size))
        if self.font_path:
            return ImageFont.truetype(self.font_path, size=size)
        return ImageFont.load_default(size=size)

    def spacing(self, font_size: int) -> int:
        return int(round(font_size * self.spacing_ratio))

    def measure(self, text: str, font_size: int) -> Tuple[float, float]:
        font = self.load_font(font_size)
        with Image.new("L", (1, 1)) as scratch:
            draw = ImageDraw.Draw(scratch)
            left, top, right, bottom = draw.multiline_textbbox(
                (0, 0),
                text,
                font=font,
                spacing=self.spacing(font_size),
                align="center",
            )
        return float(right - left), float(bottom - top)


class FontFitter:
    def __init__(
        self,
        measurer: Optional[TextMeasurer] = None,
        min_vw: float = 10.0,
        max_vw: float = 40.0,
        margin: float = 0.9,
        wrap: bool = True,
    ) -> None:
        """Initialize.

        Args:
            measurer (TextMeasurer): defaults to :class:`PillowTextMeasurer`
            min_vw (float): preferred smallest size, in percent of container width
            max_vw (float): largest size, in percent of container width
            margin (float): fraction of the container the text may occupy
            wrap (bool): break lines wider than the margin box before measuring

        Returns:
            None:
        """
        if min_vw <= 0 or max_vw < min_vw:
            raise ValueError("Expected 0 < min_vw <= max_vw")
        if not 0 < margin <= 1:
            raise ValueError("margin must be in (0, 1]")
        self.measurer = measurer or PillowTextMeasurer()
        self.min_vw = min_vw
        self.max_vw = max_vw
        self.margin = margin
        self.wrap = wrap

    def size_bounds(self, width: int) -> Tuple[int, int]:
        lo = max(1, int(math.floor(self.min_vw * width / 100.0)))
        hi = max(lo, int(math.floor(self.max_vw * width / 100.0)))
        return lo, hi

    def _line_width(self, line: str, size: int) -> float:
        if not line:
            return 0.0
        return self.measurer.measure(line, size)[0]

    def _wrap_line(self, line: str, size: int, max_width: float) -> List[str]:
        if not line.strip() or self._line_width(line, size) <= max_width:
            return [line]
        out: List[str] = []
        current = ""
        for token in WRAP_TOKEN_RE.findall(line):
            candidate = current + token
            if self._line_width(candidate.rstrip(), size) <= max_width:
                current = candidate
                continue
            if current.strip():
                out.append(current.rstrip())
            current = ""
            word = token.rstrip()
            if self._line_width(word, size) <= max_width:
                current = token
                continue
            # Break inside the word, one character at a time.
            for ch in word:
                if current and self._line_width(current + ch, size) > max_width:
                    out.append(current)
                    current = ""
                current += ch
            current += token[len(word):]
        if current.strip():
            out.append(current.rstrip())
        return out

    def layout(self, text: str, size: int, width: int) -> str:
        """Text as it would be drawn at ``size`` inside a container ``width`` px wide."""
        if not self.wrap:
            return text
        max_width = self.margin * width
        lines: List[str] = []
        for line in text.split("\n"):
            lines.extend(self._wrap_line(line, size, max_width))
        return "\n".join(lines)

    def _fits(self, text: str, size: int, width: int, height: int) -> Tuple[bool, str]:
        laid_out = self.layout(text, size, width)
        w, h = self.measurer.measure(laid_out, size)
        return w <= self.margin * width and h <= self.margin * height, laid_out

    def _search(self, text: str, left: int, right: int, width: int, height: int):
        best, best_text, probes = None, text, 0
        while left <= right:
            mid = (left + right) // 2
            probes += 1
            ok, laid_out = self._fits(text, mid, width, height)
            if ok:
                best, best_text = mid, laid_out
                left = mid + 1
            else:
                right = mid - 1
        return best, best_text, probes

    def fit(self, text: str, width: int, height: int) -> Optional[FitResult]:
        """Largest font size whose measured box stays within the margin.

        Sizes between ``min_vw`` and ``max_vw`` are tried first. Text that
        does not fit even at ``min_vw`` is searched again below it, down to
        1px; only a container too small for a single glyph yields
        ``fits=False``.

        Args:
            text (str): slide text, may contain newlines
            width (int): container width in px
            height (int): container height in px

        Returns:
            Optional[FitResult]: ``None`` while the container has no size yet
        """
        if width <= 0 or height <= 0:
            return None
        lo, hi = self.size_bounds(width)
        if not (text or "").strip():
            return FitResult(font_size=hi, text=text or "", width=width, height=height, probes=0)

        probes = 1
        ok, laid_out = self._fits(text, lo, width, height)
        if ok:
            best, best_text, n = self._search(text, lo + 1, hi, width, height)
            probes += n
            if best is None:
                best, best_text = lo, laid_out
            return FitResult(font_size=best, text=best_text, width=width, height=height, probes=probes)

        logger.debug("Text does not fit at %spx; searching smaller sizes: %r", lo, text[:40])
        best, best_text, n = self._search(text, 1, lo - 1, width, height)
        probes += n
        if best is None:
            laid_out = self.layout(text, 1, width)
            return FitResult(font_size=1, text=laid_out, width=width, height=height, probes=probes, fits=False)
        return FitResult(font_size=best, text=best_text, width=width, height=height, probes=probes)


def heuristic_font_size(
    text: str,
    width: int,
    base_vw: float = 15.0,
    threshold: int = 5,
    penalty_vw: float = 1.2,
    min_vw: float = 4.0,
) -> Optional[int]:
    """Character-count fallback: shrink by ``penalty_vw`` per char past ``threshold``."""
    if width <= 0:
        return None
    lines = (text or "").split("\n")
    longest = max((len(line.strip()) for line in lines), default=0)
    vw = max(min_vw, base_vw - penalty_vw * max(0, longest - threshold))
    return max(1, int(vw * width / 100.0))
