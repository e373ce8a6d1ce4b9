from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CauseDetection(BaseModel):
    """Output of a cause detector for one line of text."""

    is_cause: bool = False
    type: str = "declare"  # "question" | "declare" | "propose" | "request" | ...
    mass: float = Field(default=0.0, ge=0.0, le=1.0, description="Detector-intrinsic salience")


class EffectDetection(BaseModel):
    """Output of an effect detector for one line of text."""

    is_effect: bool = False
    type: str = "other"  # "roll" | "information" | "deterministic" | "commitment" | ...
    mass: float = Field(default=0.0, ge=0.0, le=1.0)
    roll_type: Optional[str] = None
    roll_subtype: Optional[str] = None
