from __future__ import annotations

import math

import pytest

from causeloom.models.graph import NodeKind, Tier
from causeloom.models.params import AnnealParams, ComposeParams, LeverParams, TierThresholds
from causeloom.scoring.features import hill_curve
from causeloom.services.annealer import MassAnnealer
from causeloom.services.composer import HierarchyComposer

from conftest import make_leaf

TEXT = "goblin door lock"
TIERS = TierThresholds(beat=0.8, event=1.5, scene=3.0)


def test_composite_from_two_children():
    left = make_leaf("left", 0, 1, 0.4, TEXT)
    right = make_leaf("right", 2, 3, 0.5, TEXT)
    result = HierarchyComposer(tiers=TIERS).compose("s1", [left, right], round_number=2)

    assert len(result.composites) == 1
    composite = result.composites[0]
    assert composite.node_kind == NodeKind.COMPOSITE
    assert composite.level == 2
    assert composite.members == ["left", "right"]
    assert (composite.span_start_index, composite.span_end_index) == (0, 3)
    assert composite.center_index == 1.5
    assert composite.mass_base == pytest.approx(0.9)
    assert composite.tier == Tier.BEAT
    assert composite.join_center_distance == 2.0
    assert composite.join_lexical_score == 1.0
    assert result.carried == []


def test_composite_crosses_inclusive_boundary_after_boost():
    left = make_leaf("left", 0, 1, 0.4, TEXT)
    right = make_leaf("right", 2, 3, 0.5, TEXT)
    composite = HierarchyComposer(tiers=TIERS).compose("s1", [left, right], 2).composites[0]
    neighbour = make_leaf("n", 2, 3, 1.0, TEXT)

    annealed = MassAnnealer(AnnealParams(damping=1.0), TIERS).anneal([composite, neighbour])
    boosted = annealed.nodes[0]
    assert boosted.mass_base == pytest.approx(0.9)
    assert boosted.mass >= 1.5
    assert boosted.tier == Tier.EVENT


def test_threshold_grows_with_mass():
    composer = HierarchyComposer(ComposeParams(min_bridge=1.0, threshold_growth=0.15))
    assert composer.threshold_for(0, 0) == pytest.approx(1.0)
    assert composer.threshold_for(4, 9) == pytest.approx(1.0 + 0.15 * math.log(1 + 6))
    assert composer.threshold_for(10, 10) > composer.threshold_for(1, 1)


def test_weak_bridges_are_recorded_but_not_chosen():
    nodes = [make_leaf("a", 0, 1, 1.0, "open the vault"), make_leaf("b", 2, 3, 1.0, "sing a song")]
    result = HierarchyComposer().compose("s1", nodes, 2)
    assert result.composites == []
    assert len(result.candidates) == 1
    candidate = result.candidates[0]
    assert candidate.strength_bridge < candidate.threshold_link
    assert not candidate.chosen
    assert [n.id for n in result.nodes] == ["a", "b"]


def test_matching_is_one_to_one_and_leftmost_first():
    nodes = [make_leaf(name, i * 2, i * 2 + 1, 1.0, TEXT) for i, name in enumerate("abc")]
    result = HierarchyComposer().compose("s1", nodes, 2)

    assert len(result.composites) == 1
    assert result.composites[0].members == ["a", "b"]
    assert [n.id for n in result.carried] == ["c"]
    carried = result.carried[0]
    assert carried.level == 1
    assert carried.mass == 1.0
    chosen = [(c.left_id, c.right_id) for c in result.candidates if c.chosen]
    assert chosen == [("a", "b")]


def test_forward_candidates_respect_window_and_k():
    nodes = [make_leaf(str(i), i * 10, i * 10, 1.0, TEXT) for i in range(6)]
    composer = HierarchyComposer(ComposeParams(k_local_links=2, max_forward_lines=25))
    result = composer.compose("s1", nodes, 2)
    from_zero = sorted(c.right_id for c in result.candidates if c.left_id == "0")
    assert from_zero == ["1", "2"]
    assert all(0 < c.center_distance <= 25 for c in result.candidates)


def test_composite_ids_are_deterministic():
    nodes = [make_leaf("a", 0, 1, 1.0, TEXT), make_leaf("b", 2, 3, 1.0, TEXT)]
    first = HierarchyComposer().compose("s1", nodes, 2).composites[0]
    second = HierarchyComposer().compose("s1", nodes, 2).composites[0]
    other_session = HierarchyComposer().compose("s2", nodes, 2).composites[0]
    assert first.id == second.id
    assert first.id != other_session.id


def test_internal_strength_accumulates():
    left = make_leaf("a", 0, 1, 1.0, TEXT).model_copy(update={"strength_internal": 0.7})
    right = make_leaf("b", 2, 3, 1.0, TEXT).model_copy(update={"strength_internal": 0.2})
    composite = HierarchyComposer().compose("s1", [left, right], 2).composites[0]
    assert composite.strength_internal == pytest.approx(composite.strength_bridge + 0.9)


def test_context_lines_are_merged():
    left = make_leaf("a", 0, 1, 1.0, TEXT).model_copy(
        update={"context_line_indices": [4], "context_count": 1}
    )
    right = make_leaf("b", 2, 3, 1.0, TEXT).model_copy(
        update={"context_line_indices": [2, 4], "context_count": 2}
    )
    composite = HierarchyComposer().compose("s1", [left, right], 2).composites[0]
    assert composite.context_line_indices == [2, 4]
    assert composite.context_count == 2


def test_composite_level_is_capped():
    nodes = [make_leaf("a", 0, 1, 1.0, TEXT), make_leaf("b", 2, 3, 1.0, TEXT)]
    capped = HierarchyComposer(max_level=2).compose("s1", nodes, 4).composites[0]
    uncapped = HierarchyComposer().compose("s1", nodes, 4).composites[0]
    assert capped.level == 2
    assert uncapped.level == 4
    assert capped.id == uncapped.id


# ── Two-lever scoring ──


def test_lever_threshold_uses_base_and_growth_resistance():
    levers = LeverParams(threshold_base=0.5, growth_resistance=0.3)
    composer = HierarchyComposer(ComposeParams(min_bridge=9.0), levers=levers)
    assert composer.threshold_for(0, 0) == pytest.approx(0.5)
    assert composer.threshold_for(1, 4) == pytest.approx(0.5 + 0.3 * math.log(3))


def test_lever_bridge_strength():
    nodes = [make_leaf("a", 0, 1, 1.0, TEXT), make_leaf("b", 2, 3, 1.0, TEXT)]
    result = HierarchyComposer(levers=LeverParams()).compose("s1", nodes, 2)
    candidate = result.candidates[0]

    evidence = 0.7 * hill_curve(2, 5.2, 2.2) + 0.3 * 1.0
    assert candidate.strength_bridge == pytest.approx(2.0 * evidence)
    assert candidate.threshold_link == pytest.approx(1.0 + 0.15 * math.log(2))
    assert candidate.chosen


def test_high_coupling_blocks_a_bridge():
    nodes = [make_leaf("a", 0, 1, 1.0, TEXT), make_leaf("b", 2, 3, 1.0, TEXT)]
    result = HierarchyComposer(levers=LeverParams(coupling=8.0)).compose("s1", nodes, 2)
    assert result.composites == []
    assert result.candidates[0].strength_bridge < result.candidates[0].threshold_link
