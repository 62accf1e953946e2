"""
Pytest configuration and shared fakes.
"""

import logging
import sys
import tempfile
from pathlib import Path
from typing import Generator, List

import pytest
from rich.logging import RichHandler

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from llm import LLMConfig, LLMSession  # noqa: E402


class FakeMeasurer:
    """Monospace model: each char is 0.6em wide, each line 1.2em tall."""

    def __init__(self):
        self.calls = 0

    def measure(self, text: str, font_size: int):
        self.calls += 1
        lines = text.split("\n")
        width = max(len(line) for line in lines) * font_size * 0.6
        height = len(lines) * font_size * 1.2
        return width, height


class FakeChatClient:
    """Stands in for ChatClient; replays canned replies."""

    def __init__(self, reply: str = "OK", chunks: List[str] = None):
        self.reply = reply
        self.chunks = list(chunks or [])
        self.invocations = []
        self.streams = []

    def invoke(self, prompt):
        self.invocations.append(prompt)
        return self.reply

    def stream(self, prompt):
        self.streams.append(prompt)
        for c in self.chunks:
            yield c


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_measurer() -> FakeMeasurer:
    return FakeMeasurer()


def make_ready_session(client: FakeChatClient) -> LLMSession:
    session = LLMSession(LLMConfig(), client_factory=lambda cfg: client, skip_sanity=True)
    session.initialize()
    return session


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Undo setup_logging() so each test starts from pytest's own handlers."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers and isinstance(h, (RichHandler, logging.FileHandler)):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
