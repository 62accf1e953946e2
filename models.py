"""Pydantic models for slides, navigation and LLM session state."""
from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Slide(BaseModel):
    text: str
    memos: List[str] = Field(default_factory=list)


class ReasoningAnswer(BaseModel):
    reasoning: str = ""
    answer: str = ""


class NavigationState(BaseModel):
    current_index: int = 0
    deck_length: int = 0


class FitResult(BaseModel):
    font_size: int
    text: str = ""
    width: int = 0
    height: int = 0
    probes: int = 0
    fits: bool = True


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class SessionStatus(BaseModel):
    state: SessionState = SessionState.UNINITIALIZED
    progress: float = 0.0
    label: str = ""
    error: str = ""
