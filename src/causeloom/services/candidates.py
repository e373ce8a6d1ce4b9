"""Cause/effect detection over eligible lines and local candidate scoring.

Every eligible player line the cause detector accepts becomes a cause;
every eligible narrator line the effect detector accepts becomes an effect.
A line is offered to exactly one of the two detectors, so no line is ever
both.  Narrators are told apart by the actor resolver or, without one, by
name ("DM", "GM", ...).
Candidates are then discovered from both sides:

    forward   each cause looks at the next ``k_local`` effects
    backward  each effect looks at the previous ``k_local`` causes

and a pairing found twice keeps its better-scored discovery.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from causeloom.detectors.base import ActorResolver, CauseDetector, EffectDetector
from causeloom.detectors.roster import DEFAULT_NARRATOR_NAMES, is_narrator_speaker
from causeloom.errors import DetectorError
from causeloom.models.detection import CauseDetection, EffectDetection
from causeloom.models.graph import Direction, EdgeCandidate
from causeloom.models.params import CandidateParams, LeverParams
from causeloom.models.transcript import EligibilityMask, TranscriptLine
from causeloom.scoring.evidence import (
    LexicalCorpusStats,
    lever_strength,
    lexical_signals,
    locality_to_tau,
)
from causeloom.scoring.features import (
    ensure_finite,
    hill_curve,
    is_yes_no_answer_like,
    token_overlap,
    tokenize,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectedCause:
    index: int
    text: str
    actor: str
    detection: CauseDetection
    tokens: FrozenSet[str]


@dataclass(frozen=True)
class DetectedEffect:
    index: int
    text: str
    detection: EffectDetection
    tokens: FrozenSet[str]


class CandidateGenerator:
    """Finds and scores local cause -> effect pairings."""

    def __init__(
        self,
        cause_detector: CauseDetector,
        effect_detector: EffectDetector,
        actor_resolver: Optional[ActorResolver] = None,
        params: Optional[CandidateParams] = None,
        levers: Optional[LeverParams] = None,
        narrator_names: Iterable[str] = DEFAULT_NARRATOR_NAMES,
    ):
        self._cause_detector = cause_detector
        self._effect_detector = effect_detector
        self._actors = actor_resolver
        self._params = params or CandidateParams()
        self._levers = levers
        self._narrator_names = tuple(narrator_names)
        self._corpus: Optional[LexicalCorpusStats] = None

    # ── Detection ───────────────────────────────────────────────────────

    def detect(
        self,
        lines: Sequence[TranscriptLine],
        mask: EligibilityMask,
    ) -> Tuple[List[DetectedCause], List[DetectedEffect]]:
        """Run the detectors over eligible lines, in increasing index order."""
        causes: List[DetectedCause] = []
        effects: List[DetectedEffect] = []
        if self._levers is not None:
            self._corpus = LexicalCorpusStats.from_texts(line.text for line in lines)

        for line in lines:
            if not mask.is_eligible(line.index):
                continue

            if self._actors is not None:
                actor = self._actors.resolve(line.speaker)
                if actor is None:
                    continue
                actor_id, narrator = actor.id, actor.is_narrator
            else:
                actor_id = line.speaker
                narrator = is_narrator_speaker(line.speaker, self._narrator_names)

            if not narrator:
                cause = self._detect_cause(line)
                if cause.is_cause:
                    causes.append(DetectedCause(
                        index=line.index,
                        text=line.text,
                        actor=actor_id,
                        detection=cause,
                        tokens=tokenize(line.text),
                    ))
            else:
                effect = self._detect_effect(line)
                if effect.is_effect:
                    effects.append(DetectedEffect(
                        index=line.index,
                        text=line.text,
                        detection=effect,
                        tokens=tokenize(line.text),
                    ))

        log.info("Detected %d causes and %d effects", len(causes), len(effects))
        return causes, effects

    def _detect_cause(self, line: TranscriptLine) -> CauseDetection:
        name = type(self._cause_detector).__name__
        try:
            detection = self._cause_detector.detect(line.text)
        except Exception as exc:
            raise DetectorError(name, line.index, str(exc)) from exc
        if not isinstance(detection, CauseDetection):
            raise DetectorError(
                name, line.index, f"expected CauseDetection, got {type(detection).__name__}"
            )
        return detection

    def _detect_effect(self, line: TranscriptLine) -> EffectDetection:
        name = type(self._effect_detector).__name__
        try:
            detection = self._effect_detector.detect(line.text)
        except Exception as exc:
            raise DetectorError(name, line.index, str(exc)) from exc
        if not isinstance(detection, EffectDetection):
            raise DetectorError(
                name, line.index, f"expected EffectDetection, got {type(detection).__name__}"
            )
        return detection

    # ── Scoring ─────────────────────────────────────────────────────────

    def score(
        self,
        cause: DetectedCause,
        effect: DetectedEffect,
        direction: Direction,
    ) -> EdgeCandidate:
        """Score one pairing: ``hill(d) * (1 + beta_lex * overlap) + boosts``.

        With levers set, the same features feed the evidence mix instead and
        the boosts add to the evidence.
        """
        p = self._params
        distance = max(1, effect.index - cause.index)

        answer_boost = p.answer_boost if is_yes_no_answer_like(effect.text) else 0.0
        if direction == Direction.BACKWARD and effect.detection.type == "roll":
            answer_boost += p.roll_backward_boost

        if self._levers is None:
            distance_score = hill_curve(distance, p.hill_tau, p.hill_steepness)
            lexical_score = token_overlap(cause.tokens, effect.tokens)
            strength_ce = distance_score * (1.0 + p.beta_lex * lexical_score) + answer_boost
        else:
            tau = locality_to_tau(self._levers.locality)
            distance_score = hill_curve(distance, tau, p.hill_steepness)
            signals = lexical_signals(cause.tokens, effect.tokens, self._corpus)
            lexical_score = signals.lexical
            strength_ce = lever_strength(self._levers, distance_score, signals, answer_boost)
        ensure_finite(strength_ce, f"strength_ce for ({cause.index}, {effect.index})")

        return EdgeCandidate(
            cause_index=cause.index,
            effect_index=effect.index,
            direction=direction,
            distance=distance,
            distance_score=distance_score,
            lexical_score=lexical_score,
            answer_boost=answer_boost,
            strength_ce=strength_ce,
        )

    # ── Candidate pool ──────────────────────────────────────────────────

    def generate(
        self,
        causes: Sequence[DetectedCause],
        effects: Sequence[DetectedEffect],
    ) -> List[EdgeCandidate]:
        """Build the merged candidate pool, ordered by (cause, effect)."""
        k = self._params.k_local
        cause_indices = [c.index for c in causes]
        effect_indices = [e.index for e in effects]
        by_pair: Dict[Tuple[int, int], EdgeCandidate] = {}

        for cause in causes:
            start = bisect.bisect_right(effect_indices, cause.index)
            for effect in effects[start : start + k]:
                self._offer(by_pair, cause, self.score(cause, effect, Direction.FORWARD))

        for effect in effects:
            end = bisect.bisect_left(cause_indices, effect.index)
            for cause in causes[max(0, end - k) : end]:
                self._offer(by_pair, cause, self.score(cause, effect, Direction.BACKWARD))

        pool = [by_pair[key] for key in sorted(by_pair)]
        log.info(
            "Candidate pool: %d pairings from %d causes x %d effects (k_local=%d)",
            len(pool), len(causes), len(effects), k,
        )
        return pool

    def _offer(
        self,
        by_pair: Dict[Tuple[int, int], EdgeCandidate],
        cause: DetectedCause,
        edge: EdgeCandidate,
    ) -> None:
        p = self._params
        if edge.strength_ce < p.min_score_for(cause.detection.mass):
            return
        if p.max_span is not None and edge.distance > p.max_span:
            return
        key = (edge.cause_index, edge.effect_index)
        existing = by_pair.get(key)
        if existing is None or _prefer(edge, existing):
            by_pair[key] = edge


def _prefer(new: EdgeCandidate, old: EdgeCandidate) -> bool:
    """Higher strength wins, then smaller distance, then forward discovery."""
    if new.strength_ce != old.strength_ce:
        return new.strength_ce > old.strength_ce
    if new.distance != old.distance:
        return new.distance < old.distance
    return new.direction == Direction.FORWARD and old.direction == Direction.BACKWARD
