from __future__ import annotations

import pytest
from pydantic import ValidationError

from causeloom.api.dependencies import resolve_params
from causeloom.config import Settings
from causeloom.models.graph import Tier
from causeloom.models.params import (
    AnnealParams,
    CandidateParams,
    ComposeParams,
    HierarchyParams,
    LeverParams,
    TierThresholds,
)
from causeloom.services.engine import build_provenance


def test_defaults():
    p = HierarchyParams()
    assert p.candidates.k_local == 8
    assert p.candidates.hill_tau == 8.0
    assert p.anneal.damping == 0.15
    assert p.compose.hill_tau == 30.0
    assert (p.tiers.beat, p.tiers.event, p.tiers.scene) == (3.0, 6.0, 12.0)
    assert p.rounds == 3
    assert p.levers is None
    assert p.max_level is None
    assert (p.candidates.strong_min_score, p.candidates.weak_min_score) == (0.0, 0.0)


@pytest.mark.parametrize("factory", [
    lambda: CandidateParams(k_local=-1),
    lambda: CandidateParams(hill_tau=0),
    lambda: CandidateParams(hill_steepness=-2),
    lambda: AnnealParams(window_links=-1),
    lambda: ComposeParams(max_forward_lines=0),
    lambda: HierarchyParams(rounds=0),
    lambda: HierarchyParams(max_level=1),
    lambda: CandidateParams(strong_cause_mass=1.5),
    lambda: LeverParams(locality=1.5),
    lambda: LeverParams(coupling=0),
    lambda: LeverParams(strength_scale=-1),
])
def test_misconfiguration_is_rejected(factory):
    with pytest.raises(ValidationError):
        factory()


def test_tier_thresholds_must_be_ordered():
    with pytest.raises(ValidationError, match="beat < event < scene"):
        TierThresholds(beat=5, event=3, scene=12)


def test_tier_boundaries_are_inclusive():
    tiers = TierThresholds(beat=0.8, event=1.5, scene=3.0)
    assert tiers.tier_for(0.79) == Tier.LINK
    assert tiers.tier_for(0.8) == Tier.BEAT
    assert tiers.tier_for(1.5) == Tier.EVENT
    assert tiers.tier_for(3.0) == Tier.SCENE


def test_tier_is_monotonic_in_mass():
    tiers = TierThresholds()
    ranks = [tiers.tier_for(m / 10).rank for m in range(0, 200)]
    assert ranks == sorted(ranks)


def test_settings_build_hierarchy_params():
    s = Settings(k_local=4, anneal_damping=0.3, tier_beat=1.0, rounds=5)
    p = s.hierarchy_params()
    assert p.candidates.k_local == 4
    assert p.anneal.damping == 0.3
    assert p.tiers.beat == 1.0
    assert p.rounds == 5


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("K_LOCAL", "3")
    monkeypatch.setenv("COMPOSE_MIN_BRIDGE", "0.5")
    s = Settings()
    assert s.k_local == 3
    assert s.hierarchy_params().compose.min_bridge == 0.5


def test_provenance_hash_tracks_parameters():
    a = build_provenance(HierarchyParams())
    b = build_provenance(HierarchyParams())
    c = build_provenance(HierarchyParams(rounds=4))
    assert a == b
    assert len(a.param_hash) == 12
    assert int(a.param_hash, 16) >= 0
    assert a.param_hash != c.param_hash
    assert '"rounds":3' in a.params_json


def test_lever_defaults():
    levers = LeverParams()
    assert (levers.locality, levers.coupling, levers.growth_resistance) == (0.7, 1.0, 0.15)
    assert (levers.threshold_base, levers.strength_scale, levers.keyword_lex_bonus) == (1.0, 2.0, 0.25)


def test_settings_enable_levers(monkeypatch):
    assert Settings().hierarchy_params().levers is None
    monkeypatch.setenv("LEVERS_ENABLED", "true")
    monkeypatch.setenv("LEVER_COUPLING", "1.5")
    monkeypatch.setenv("WEAK_MIN_SCORE", "0.4")
    p = Settings().hierarchy_params()
    assert p.levers == LeverParams(coupling=1.5)
    assert p.candidates.weak_min_score == 0.4


def test_partial_lever_overrides_merge_onto_defaults():
    p = resolve_params({"levers": {"locality": 0.2}, "max_level": 2})
    assert p.levers == LeverParams(locality=0.2)
    assert p.max_level == 2
