from __future__ import annotations

from abc import ABC, abstractmethod

from causeloom.models.detection import CauseDetection, EffectDetection
from causeloom.models.transcript import Actor


class CauseDetector(ABC):
    """Classifies a line of text as a cause (player intent) or not."""

    name: str = "cause"

    @abstractmethod
    def detect(self, text: str) -> CauseDetection:
        """Return the detection for *text*. Must be pure."""


class EffectDetector(ABC):
    """Classifies a line of text as an effect (narrator resolution) or not."""

    name: str = "effect"

    @abstractmethod
    def detect(self, text: str) -> EffectDetection:
        """Return the detection for *text*. Must be pure."""


class ActorResolver(ABC):
    """Maps a raw speaker name to a known actor."""

    @abstractmethod
    def resolve(self, speaker: str) -> Actor | None:
        """Return the actor behind *speaker*, or ``None`` if unknown."""
