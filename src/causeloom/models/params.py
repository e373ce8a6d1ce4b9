"""Tunable parameters for every stage of the causal hierarchy engine.

All groups validate at construction time, so a misconfigured run fails
before any scoring starts.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from causeloom.models.graph import Tier


class CandidateParams(BaseModel):
    """Round 1: cause -> effect candidate windowing and scoring."""

    k_local: int = Field(default=8, ge=0, description="Nearest effects per cause (and causes per effect)")
    hill_tau: float = Field(default=8.0, gt=0, description="Half-value distance of the Hill curve")
    hill_steepness: float = Field(default=2.2, gt=0)
    beta_lex: float = Field(default=2.0, ge=0, description="Lexical overlap multiplier")
    answer_boost: float = Field(default=0.15, ge=0, description="Bonus for yes/no-like effects")
    roll_backward_boost: float = Field(
        default=0.10, ge=0, description="Bonus for roll effects found by backward scan"
    )
    min_pair_strength: float = Field(default=0.0, ge=0)
    strong_min_score: float = Field(
        default=0.0, ge=0, description="Score floor for pairings of strong causes"
    )
    weak_min_score: float = Field(
        default=0.0, ge=0, description="Score floor for pairings of weak causes"
    )
    strong_cause_mass: float = Field(
        default=0.7, ge=0, le=1, description="Detection mass at which a cause counts as strong"
    )
    max_span: Optional[int] = Field(
        default=None, ge=1, description="Drop pairings farther apart than this many lines"
    )

    def min_score_for(self, cause_mass: float) -> float:
        """Score a pairing needs to enter the pool, given its cause's detection mass."""
        floor = self.strong_min_score if cause_mass >= self.strong_cause_mass else self.weak_min_score
        return max(self.min_pair_strength, floor)


class AbsorbParams(BaseModel):
    """Attachment of stray eligible lines to nearby nodes as context."""

    enabled: bool = True
    radius_base: float = Field(default=4.0, ge=0)
    radius_per_mass: float = Field(default=1.0, ge=0)
    cap_base: float = Field(default=1.0, ge=0)
    cap_per_mass: float = Field(default=0.5, ge=0)
    min_strength: float = Field(default=0.5, ge=0)
    hill_tau: float = Field(default=4.0, gt=0)
    hill_steepness: float = Field(default=2.2, gt=0)
    beta_lex: float = Field(default=1.0, ge=0)


class AnnealParams(BaseModel):
    """Neighbourhood mass reinforcement."""

    window_links: float = Field(default=8.0, ge=0, description="Max center distance of a neighbour")
    hill_tau: float = Field(default=8.0, gt=0)
    hill_steepness: float = Field(default=2.2, gt=0)
    beta_lex_ll: float = Field(default=0.8, ge=0)
    damping: float = Field(default=0.15, ge=0, description="lambda: scales the summed contributions")
    top_k_contrib: int = Field(default=5, ge=0)
    include_context_text: bool = True


class ComposeParams(BaseModel):
    """Rounds 2+: pairing of same-round nodes into composites."""

    k_local_links: int = Field(default=8, ge=0)
    hill_tau: float = Field(default=30.0, gt=0)
    hill_steepness: float = Field(default=2.2, gt=0)
    beta_lex: float = Field(default=2.0, ge=0)
    min_bridge: float = Field(default=1.0, ge=0, description="Base merge threshold T0")
    threshold_growth: float = Field(
        default=0.15, ge=0, description="Growth resistance: larger nodes need stronger bridges"
    )
    max_forward_lines: float = Field(default=120.0, gt=0)


class LeverParams(BaseModel):
    """Two-lever scoring, an alternative to the per-stage Hill and beta_lex knobs.

    Distance and lexical evidence mix into ``E`` in [0, 1], which maps to
    ``strength = strength_scale * E ** coupling``.  ``locality`` sets the
    Hill half-value distance for those stages; ``growth_resistance`` and
    ``threshold_base`` set the composition threshold.
    """

    locality: float = Field(default=0.7, ge=0, le=1, description="Higher means faster distance decay")
    coupling: float = Field(default=1.0, gt=0, description="Evidence exponent: >1 strict, <1 forgiving")
    growth_resistance: float = Field(default=0.15, ge=0)
    threshold_base: float = Field(default=1.0, ge=0)
    strength_scale: float = Field(default=2.0, gt=0)
    keyword_lex_bonus: float = Field(
        default=0.25, ge=0, description="Extra lexical weight when the overlap is trigger keywords"
    )


class TierThresholds(BaseModel):
    """Absolute mass cutoffs; a node at or above a cutoff takes that tier."""

    beat: float = Field(default=3.0, ge=0)
    event: float = Field(default=6.0, ge=0)
    scene: float = Field(default=12.0, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "TierThresholds":
        if not (self.beat < self.event < self.scene):
            raise ValueError(
                f"Tier thresholds must satisfy beat < event < scene, got "
                f"beat={self.beat}, event={self.event}, scene={self.scene}"
            )
        return self

    def tier_for(self, mass: float) -> Tier:
        """Map a mass to its tier. Boundaries are inclusive."""
        if mass >= self.scene:
            return Tier.SCENE
        if mass >= self.event:
            return Tier.EVENT
        if mass >= self.beat:
            return Tier.BEAT
        return Tier.LINK


class HierarchyParams(BaseModel):
    """Complete parameter set for one engine run."""

    candidates: CandidateParams = Field(default_factory=CandidateParams)
    absorb: AbsorbParams = Field(default_factory=AbsorbParams)
    anneal: AnnealParams = Field(default_factory=AnnealParams)
    compose: ComposeParams = Field(default_factory=ComposeParams)
    tiers: TierThresholds = Field(default_factory=TierThresholds)
    levers: Optional[LeverParams] = Field(
        default=None, description="When set, candidate, anneal and compose scoring use the two levers"
    )
    rounds: int = Field(default=3, ge=1, description="Round 1 is leaf allocation")
    max_level: Optional[int] = Field(
        default=None, ge=2, description="Highest composite level; later rounds keep this level"
    )
    stop_when_stable: bool = Field(
        default=False, description="End early when a round forms no composite"
    )
