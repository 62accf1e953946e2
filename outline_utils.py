"""Dash-bullet outline parsing for Takahashi-style decks.

Grammar (one slide per marker line)::

    - Slide text
      - memo (only with grammar="nested")

Anything that is not a marker line is ignored. Parsing never raises; bad input
simply yields an empty deck.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

try:
    from .models import Slide
    from .tag_utils import ANSWER_RE
except Exception:
    from models import Slide
    from tag_utils import ANSWER_RE

logger = logging.getLogger("takahashi")

GRAMMARS = ("flat", "nested")

MARKER_RE = re.compile(r"^(\s*)- (.*)$")
SHAPE_RE = re.compile(r"^- [^\n]*\S", re.MULTILINE)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def answer_region(text: str) -> str:
    """Inner content of the first <answer> block, or the text unchanged."""
    m = ANSWER_RE.search(text)
    return m.group(1) if m else text


def parse_outline(text: Optional[str], grammar: str = "flat") -> List[Slide]:
    """Parse outline text into an ordered list of slides.

    ``grammar="flat"`` treats every dash line as a new slide regardless of
    indentation. ``grammar="nested"`` keeps unindented dash lines as slides and
    attaches indented dash lines to the open slide as memos.
    """
    if not isinstance(text, str) or not text.strip():
        return []
    if grammar not in GRAMMARS:
        logger.warning("Unknown outline grammar %r; using 'flat'.", grammar)
        grammar = "flat"

    body = answer_region(normalize_newlines(text))
    slides: List[Slide] = []
    current: Optional[Slide] = None

    for line in body.split("\n"):
        if not line.strip():
            continue
        m = MARKER_RE.match(line)
        if not m:
            continue
        indent, content = m.group(1), m.group(2).strip()
        if not content:
            continue

        if grammar == "nested" and indent:
            if current is not None:
                current.memos.append(content)
            continue

        if current is not None:
            slides.append(current)
        current = Slide(text=content)

    if current is not None:
        slides.append(current)
    return slides


def serialize_outline(slides: Iterable[Slide], include_memos: bool = True) -> str:
    lines: List[str] = []
    for sl in slides:
        lines.append(f"- {sl.text}")
        if include_memos:
            lines.extend(f"  - {memo}" for memo in sl.memos)
    return "\n".join(lines) + ("\n" if lines else "")


def has_slide_marker(text: Optional[str]) -> bool:
    """Minimal shape check for transformer output: at least one ``- text`` line."""
    if not isinstance(text, str):
        return False
    return bool(SHAPE_RE.search(answer_region(normalize_newlines(text))))
