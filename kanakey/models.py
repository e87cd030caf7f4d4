"""
Pydantic models for observing a Kanakey input session.

Renderers only ever see these frozen snapshots; the engine recomputes one
after every operation that changes its state.

Usage:
    from kanakey.models import SessionSnapshot

    def render(snapshot: SessionSnapshot):
        for i, seg in enumerate(snapshot.segments):
            marker = '>' if i == snapshot.focus else ' '
            print(marker, seg.display, seg.candidates)
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def display_text(reading: str, candidates: List[str], selected_index: Optional[int]) -> str:
    """Selected candidate, or the raw reading when nothing valid is selected."""
    if selected_index is not None and 0 <= selected_index < len(candidates):
        return candidates[selected_index]
    return reading


class Mode(str, Enum):
    """Input mode of an engine."""
    IDLE = "idle"
    COMPOSING = "composing"
    REVIEWING = "reviewing"


class SegmentView(BaseModel):
    """Read-only view of one conversion segment."""
    reading: str = Field(..., description="Slice of the converted reading")
    candidates: List[str] = Field(default_factory=list, description="Loaded candidates, best first")
    selected_index: Optional[int] = Field(None, description="Chosen candidate, None if nothing chosen")
    loading: bool = Field(False, description="True while a candidate load is in flight")

    class Config:
        frozen = True

    @property
    def display(self) -> str:
        """Selected candidate, or the raw reading."""
        return display_text(self.reading, self.candidates, self.selected_index)


class SessionSnapshot(BaseModel):
    """Read-only view of the whole engine."""
    mode: Mode = Field(Mode.IDLE, description="Current input mode")
    composing: str = Field("", description="Text to show in the host field")
    segments: List[SegmentView] = Field(default_factory=list, description="Conversion segments, in order")
    focus: int = Field(0, description="Index of the focused segment")
    generation: int = Field(0, description="Session token; changes whenever earlier loads become stale")

    class Config:
        frozen = True

    @property
    def focused(self) -> Optional[SegmentView]:
        if 0 <= self.focus < len(self.segments):
            return self.segments[self.focus]
        return None

    @property
    def reading(self) -> str:
        """Full reading under conversion (empty outside reviewing)."""
        return ''.join(seg.reading for seg in self.segments)
