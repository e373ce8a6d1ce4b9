from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TranscriptLine(BaseModel):
    """A single line of a session transcript. Immutable for the run."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Absolute position in the transcript")
    speaker: str
    text: str
    timestamp: Optional[datetime] = None


class ExcludedRange(BaseModel):
    """An inclusive span of lines kept out of causal pairing."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)
    reason: str = "excluded"  # "ooc_hard" | "ooc_soft" | "combat" | ...


class EligibilityMask(BaseModel):
    """Per-line inclusion flags, indexed by ``TranscriptLine.index``."""

    eligible: List[bool] = Field(default_factory=list)
    excluded_ranges: List[ExcludedRange] = Field(default_factory=list)

    def is_eligible(self, index: int) -> bool:
        if index < 0 or index >= len(self.eligible):
            return False
        return self.eligible[index]

    def reasons_for(self, index: int) -> List[str]:
        """All exclusion reasons covering *index* (there can be several)."""
        return [
            r.reason for r in self.excluded_ranges if r.start <= index <= r.end
        ]


class Actor(BaseModel):
    """A resolved speaker identity."""

    id: str
    canonical_name: str
    aliases: List[str] = Field(default_factory=list)
    role: Literal["player", "narrator"] = "player"

    @property
    def is_narrator(self) -> bool:
        return self.role == "narrator"
