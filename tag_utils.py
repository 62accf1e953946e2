"""Split LLM responses into <reasoning> and <answer> parts."""
from __future__ import annotations

import re
from typing import Iterable, Iterator, Optional

try:
    from .models import ReasoningAnswer
except Exception:
    from models import ReasoningAnswer

REASONING_RE = re.compile(r"<reasoning>(.*?)</reasoning>", re.DOTALL)
ANSWER_RE = re.compile(r"<answer>(.*?)</answer>", re.DOTALL)

_OPEN = {"reasoning": "<reasoning>", "answer": "<answer>"}
_CLOSE = {"reasoning": "</reasoning>", "answer": "</answer>"}


def extract_reasoning_answer(text: Optional[str]) -> ReasoningAnswer:
    """Return the first reasoning/answer regions of ``text``.

    Missing reasoning gives ``""``; missing answer falls back to the whole
    trimmed input, since untagged output is assumed to already be the answer.
    """
    t = text if isinstance(text, str) else ""
    m_reason = REASONING_RE.search(t)
    m_answer = ANSWER_RE.search(t)
    reasoning = m_reason.group(1).strip() if m_reason else ""
    answer = m_answer.group(1).strip() if m_answer else t.strip()
    return ReasoningAnswer(reasoning=reasoning, answer=answer)


def _partial_region(t: str, name: str) -> Optional[str]:
    start = t.find(_OPEN[name])
    if start == -1:
        return None
    start += len(_OPEN[name])
    end = t.find(_CLOSE[name], start)
    body = t[start:] if end == -1 else t[start:end]
    # Drop a half-received closing tag such as "</ans".
    tail = body.rfind("<")
    if end == -1 and tail != -1 and _CLOSE[name].startswith(body[tail:]):
        body = body[:tail]
    return body.strip()


def extract_partial(snapshot: Optional[str]) -> ReasoningAnswer:
    """Like :func:`extract_reasoning_answer` but tolerant of unclosed tags.

    Used on streamed snapshots. While the reasoning is still open and no
    answer has started, the answer stays empty so that half-written reasoning
    never shows up as the outline.
    """
    t = snapshot if isinstance(snapshot, str) else ""
    reasoning = _partial_region(t, "reasoning")
    answer = _partial_region(t, "answer")
    if answer is None:
        answer = "" if reasoning is not None else t.strip()
    return ReasoningAnswer(reasoning=reasoning or "", answer=answer)


def iter_extractions(snapshots: Iterable[str]) -> Iterator[ReasoningAnswer]:
    for snap in snapshots:
        yield extract_partial(snap)
