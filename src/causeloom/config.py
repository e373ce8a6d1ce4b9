from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from causeloom.models.params import (
    AbsorbParams,
    AnnealParams,
    CandidateParams,
    ComposeParams,
    HierarchyParams,
    LeverParams,
    TierThresholds,
)


_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Detectors ---
    default_detectors: str = "heuristic"

    # --- Transcript limits ---
    max_line_index: int = 1_000_000

    # --- Round 1: cause -> effect candidates ---
    k_local: int = 8
    hill_tau: float = 8.0
    hill_steepness: float = 2.2
    beta_lex: float = 2.0
    answer_boost: float = 0.15
    roll_backward_boost: float = 0.10
    min_pair_strength: float = 0.0
    strong_min_score: float = 0.0
    weak_min_score: float = 0.0
    strong_cause_mass: float = 0.7
    max_span: Optional[int] = None

    # --- Singleton absorption (context lines) ---
    absorb_enabled: bool = True
    absorb_radius_base: float = 4.0
    absorb_radius_per_mass: float = 1.0
    absorb_cap_base: float = 1.0
    absorb_cap_per_mass: float = 0.5
    absorb_min_strength: float = 0.5
    absorb_hill_tau: float = 4.0
    absorb_hill_steepness: float = 2.2
    absorb_beta_lex: float = 1.0

    # --- Anneal (neighbour reinforcement) ---
    anneal_window_links: float = 8.0
    anneal_hill_tau: float = 8.0
    anneal_hill_steepness: float = 2.2
    anneal_beta_lex_ll: float = 0.8
    anneal_damping: float = 0.15
    anneal_top_k_contrib: int = 5
    anneal_include_context_text: bool = True

    # --- Rounds 2+: node -> node composition ---
    compose_k_local_links: int = 8
    compose_hill_tau: float = 30.0
    compose_hill_steepness: float = 2.2
    compose_beta_lex: float = 2.0
    compose_min_bridge: float = 1.0
    compose_threshold_growth: float = 0.15
    compose_max_forward_lines: float = 120.0

    # --- Two-lever scoring (off unless levers_enabled) ---
    levers_enabled: bool = False
    lever_locality: float = 0.7
    lever_coupling: float = 1.0
    lever_growth_resistance: float = 0.15
    lever_threshold_base: float = 1.0
    lever_strength_scale: float = 2.0
    lever_keyword_lex_bonus: float = 0.25

    # --- Tiers & rounds ---
    tier_beat: float = 3.0
    tier_event: float = 6.0
    tier_scene: float = 12.0
    rounds: int = 3
    max_level: Optional[int] = None
    stop_when_stable: bool = False

    def hierarchy_params(self) -> HierarchyParams:
        """Build the default engine parameters from the configured values."""
        return HierarchyParams(
            candidates=CandidateParams(
                k_local=self.k_local,
                hill_tau=self.hill_tau,
                hill_steepness=self.hill_steepness,
                beta_lex=self.beta_lex,
                answer_boost=self.answer_boost,
                roll_backward_boost=self.roll_backward_boost,
                min_pair_strength=self.min_pair_strength,
                strong_min_score=self.strong_min_score,
                weak_min_score=self.weak_min_score,
                strong_cause_mass=self.strong_cause_mass,
                max_span=self.max_span,
            ),
            absorb=AbsorbParams(
                enabled=self.absorb_enabled,
                radius_base=self.absorb_radius_base,
                radius_per_mass=self.absorb_radius_per_mass,
                cap_base=self.absorb_cap_base,
                cap_per_mass=self.absorb_cap_per_mass,
                min_strength=self.absorb_min_strength,
                hill_tau=self.absorb_hill_tau,
                hill_steepness=self.absorb_hill_steepness,
                beta_lex=self.absorb_beta_lex,
            ),
            anneal=AnnealParams(
                window_links=self.anneal_window_links,
                hill_tau=self.anneal_hill_tau,
                hill_steepness=self.anneal_hill_steepness,
                beta_lex_ll=self.anneal_beta_lex_ll,
                damping=self.anneal_damping,
                top_k_contrib=self.anneal_top_k_contrib,
                include_context_text=self.anneal_include_context_text,
            ),
            compose=ComposeParams(
                k_local_links=self.compose_k_local_links,
                hill_tau=self.compose_hill_tau,
                hill_steepness=self.compose_hill_steepness,
                beta_lex=self.compose_beta_lex,
                min_bridge=self.compose_min_bridge,
                threshold_growth=self.compose_threshold_growth,
                max_forward_lines=self.compose_max_forward_lines,
            ),
            tiers=TierThresholds(
                beat=self.tier_beat,
                event=self.tier_event,
                scene=self.tier_scene,
            ),
            levers=self._levers(),
            rounds=self.rounds,
            max_level=self.max_level,
            stop_when_stable=self.stop_when_stable,
        )

    def _levers(self) -> Optional[LeverParams]:
        if not self.levers_enabled:
            return None
        return LeverParams(
            locality=self.lever_locality,
            coupling=self.lever_coupling,
            growth_resistance=self.lever_growth_resistance,
            threshold_base=self.lever_threshold_base,
            strength_scale=self.lever_strength_scale,
            keyword_lex_bonus=self.lever_keyword_lex_bonus,
        )


settings = Settings()
