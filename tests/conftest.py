from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from causeloom.detectors.base import CauseDetector, EffectDetector
from causeloom.models.detection import CauseDetection, EffectDetection
from causeloom.models.graph import GraphNode, NodeKind
from causeloom.models.params import HierarchyParams
from causeloom.models.transcript import TranscriptLine
from causeloom.services.candidates import CandidateGenerator
from causeloom.services.engine import CausalHierarchyEngine


# ─── Synthetic detectors ────────────────────────────────────────────────


class KeywordCauseDetector(CauseDetector):
    """Questions and first-person statements are causes."""

    name = "keyword_cause"

    def __init__(self, mass: float = 0.5):
        self.mass = mass

    def detect(self, text: str) -> CauseDetection:
        if text.rstrip().endswith("?"):
            return CauseDetection(is_cause=True, type="question", mass=self.mass)
        if text.lower().startswith("i "):
            return CauseDetection(is_cause=True, type="declare", mass=self.mass)
        return CauseDetection(is_cause=False)


class KeywordEffectDetector(EffectDetector):
    """Lines addressed to "you" are effects; lines mentioning a roll are roll effects."""

    name = "keyword_effect"

    def __init__(self, mass: float = 0.5):
        self.mass = mass

    def detect(self, text: str) -> EffectDetection:
        lowered = text.lower()
        if "roll" in lowered:
            return EffectDetection(is_effect=True, type="roll", mass=self.mass)
        if lowered.startswith(("you", "yes", "no")):
            return EffectDetection(is_effect=True, type="information", mass=self.mass)
        return EffectDetection(is_effect=False)


class ExplodingCauseDetector(CauseDetector):
    name = "exploding_cause"

    def detect(self, text: str) -> CauseDetection:
        raise RuntimeError("classifier offline")


class MalformedEffectDetector(EffectDetector):
    name = "malformed_effect"

    def detect(self, text: str):
        return {"is_effect": True}


# ─── Builders ───────────────────────────────────────────────────────────


def make_lines(entries: Iterable[Tuple[int, str, str]]) -> List[TranscriptLine]:
    """``(index, speaker, text)`` triples to transcript lines."""
    return [TranscriptLine(index=i, speaker=speaker, text=text) for i, speaker, text in entries]


def make_leaf(
    node_id: str,
    cause: int,
    effect: Optional[int],
    mass: float,
    cause_text: str = "",
    effect_text: str = "",
) -> GraphNode:
    """A leaf node with mass_base == mass, for annealer and composer tests."""
    claimed = effect is not None
    end = effect if claimed else cause
    return GraphNode(
        id=node_id,
        session_id="test",
        node_kind=NodeKind.LINK if claimed else NodeKind.SINGLETON,
        span_start_index=min(cause, end),
        span_end_index=max(cause, end),
        center_index=(cause + end) / 2,
        mass_base=mass,
        mass=mass,
        link_mass=mass,
        claimed=claimed,
        cause_text=cause_text,
        cause_anchor_index=cause,
        effect_text=effect_text if claimed else None,
        effect_anchor_index=effect,
    )


# ─── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def cause_detector() -> KeywordCauseDetector:
    return KeywordCauseDetector()


@pytest.fixture
def effect_detector() -> KeywordEffectDetector:
    return KeywordEffectDetector()


@pytest.fixture
def generator(cause_detector, effect_detector) -> CandidateGenerator:
    return CandidateGenerator(cause_detector, effect_detector)


@pytest.fixture
def engine(cause_detector, effect_detector) -> CausalHierarchyEngine:
    return CausalHierarchyEngine(cause_detector, effect_detector, params=HierarchyParams())


@pytest.fixture
def tavern_lines() -> List[TranscriptLine]:
    entries: Dict[int, Tuple[str, str]] = {
        0: ("Alice", "Can I look around the tavern?"),
        1: ("DM", "You see a hooded stranger by the tavern fire."),
        2: ("Bob", "I walk over to the hooded stranger."),
        3: ("DM", "You notice the stranger hides a silver dagger."),
        4: ("Alice", "Nice."),
        5: ("Alice", "I ask the stranger about the silver dagger."),
        6: ("DM", "Roll persuasion for the stranger."),
        7: ("Bob", "Is the fire still burning?"),
        8: ("DM", "Yes, the tavern fire is still burning."),
        40: ("Alice", "I leave for the mountain pass."),
        41: ("DM", "You reach the mountain pass at dusk."),
    }
    return make_lines((i, s, t) for i, (s, t) in sorted(entries.items()))
