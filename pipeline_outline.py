from __future__ import annotations

import textwrap
from typing import Callable, Iterator, List, Optional

import requests

try:
    from .llm import LLMSession, SessionNotReadyError
    from .outline_utils import has_slide_marker
    from .pipeline_common import logger
except Exception:
    from llm import LLMSession, SessionNotReadyError
    from outline_utils import has_slide_marker
    from pipeline_common import logger


class TransformError(RuntimeError):
    pass


SYSTEM_PROMPT = textwrap.dedent(
    """
    ###Task###
    You are an expert at building presentations with the Takahashi method.
    Convert the user's text into a Takahashi-method deck following the rules.
    ###Rules###
    - One slide carries exactly one message.
    - Keep each slide to 15 characters or fewer; shorter is better.
    - Each slide is a single short phrase or a single word.
    - There is no limit on the number of slides; keep the tempo brisk.
    - Avoid decorative symbols and punctuation; use plain words.
    - Write in the same language as the input text.
    - Each slide is one line of the form "- text shown on the slide".
    - Everything after "- " is shown on the slide, so output nothing else there.
    ###Format###
    First think inside <reasoning></reasoning>, then put only the slide lines
    inside <answer></answer>.
    ###Example###
    <reasoning>The text explains the Takahashi method and why it works.</reasoning>
    <answer>
    - Takahashi method
    - Huge letters
    - One slide
    - One message
    - Brisk tempo
    - Simple
    - The end
    </answer>
    """
).strip()


class OutlineBuilder:
    def __init__(self, session: LLMSession) -> None:
        """Initialize.

        Args:
            session (LLMSession): provides the chat client once ready

        Returns:
            None:
        """
        self.session = session

    @staticmethod
    def build_messages(raw_text: str, feedback: str = "", previous: str = "") -> List[dict]:
        """Build chat messages for one transform request.

        Args:
            raw_text (str):
            feedback (str): reviewer guidance for a regeneration round
            previous (str): outline being revised

        Returns:
            List[dict]:
        """
        previous_block = f"\n[Previous outline]\n{previous.strip()}\n" if previous.strip() else ""
        feedback_block = f"\n[Reviewer feedback]\n{feedback.strip()}\n" if feedback.strip() else ""
        user_prompt = f"""
[Input text]
{raw_text.strip()}
{previous_block}{feedback_block}
[Output]
Create a Takahashi-method presentation for the input text.
""".strip()
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    def stream(self, raw_text: str, feedback: str = "", previous: str = "") -> Iterator[str]:
        """Yield growing snapshots of the response; each call sends a new request."""
        if not (raw_text or "").strip():
            raise TransformError("Input text is empty.")
        try:
            client = self.session.client
        except SessionNotReadyError as exc:
            raise TransformError(str(exc)) from exc

        messages = self.build_messages(raw_text, feedback=feedback, previous=previous)
        parts: List[str] = []
        try:
            for delta in client.stream(messages):
                parts.append(delta)
                yield "".join(parts)
        except requests.RequestException as exc:
            raise TransformError(f"Takahashi conversion failed: {exc}") from exc

    def transform(
        self,
        raw_text: str,
        on_progress: Optional[Callable[[str], None]] = None,
        feedback: str = "",
        previous: str = "",
    ) -> str:
        """Convert ``raw_text`` into a candidate outline string.

        Args:
            raw_text (str):
            on_progress (Callable[[str], None]): receives each partial snapshot
            feedback (str):
            previous (str):

        Returns:
            str: the full response, reasoning and answer tags included
        """
        content = ""
        for snapshot in self.stream(raw_text, feedback=feedback, previous=previous):
            content = snapshot
            if on_progress:
                on_progress(snapshot)

        return self.validate(content)

    @staticmethod
    def validate(content: str) -> str:
        """Reject empty output and output without a single '- text' line."""
        content = (content or "").strip()
        if not content:
            raise TransformError("The LLM returned an empty response.")
        if not has_slide_marker(content):
            logger.debug("Rejected LLM output:\n%s", content[:2000])
            raise TransformError("Takahashi conversion failed: no '- text' slide lines in the response.")
        logger.debug("LLM output:\n%s", content)
        return content
