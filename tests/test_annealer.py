from __future__ import annotations

import pytest

from causeloom.models.graph import Tier
from causeloom.models.params import AnnealParams, LeverParams, TierThresholds
from causeloom.scoring.features import hill_curve
from causeloom.services.annealer import MassAnnealer

from conftest import make_leaf

TEXT = "the goblin guards the bridge"


def _three_links():
    return [
        make_leaf("a", 9, 11, 1.0, TEXT, "you see the goblin"),
        make_leaf("b", 11, 13, 2.0, TEXT, "you see the goblin"),
        make_leaf("c", 49, 51, 1.5, TEXT, "you see the goblin"),
    ]


def test_reinforcement_stays_inside_the_window():
    annealer = MassAnnealer(AnnealParams(window_links=20))
    result = annealer.anneal(_three_links())
    by_id = {n.id: n for n in result.nodes}

    assert by_id["c"].mass_boost == 0.0
    assert by_id["c"].mass == by_id["c"].mass_base == 1.5

    strength = hill_curve(2, 8.0, 2.2) * (1 + 0.8 * 1.0)
    assert by_id["a"].mass_boost == pytest.approx(0.15 * strength * 2.0)
    assert by_id["b"].mass_boost == pytest.approx(0.15 * strength * 1.0)
    assert by_id["a"].mass == pytest.approx(1.0 + by_id["a"].mass_boost)


def test_boost_scales_with_lexical_overlap():
    params = AnnealParams(window_links=20)
    similar = [make_leaf("a", 0, 1, 1.0, "open the vault door"), make_leaf("b", 2, 3, 1.0, "open the vault door")]
    different = [make_leaf("a", 0, 1, 1.0, "open the vault door"), make_leaf("b", 2, 3, 1.0, "sing loudly")]
    boost_similar = MassAnnealer(params).anneal(similar).nodes[0].mass_boost
    boost_different = MassAnnealer(params).anneal(different).nodes[0].mass_boost
    assert boost_similar > boost_different > 0


def test_isolated_nodes_are_unchanged():
    nodes = [make_leaf(str(i), i * 100, i * 100 + 1, 1.0 + i, TEXT) for i in range(4)]
    result = MassAnnealer().anneal(nodes)
    for before, after in zip(nodes, result.nodes):
        assert after.mass == after.mass_base == before.mass
        assert after.mass_boost == 0.0
    assert result.neighbor_edges == []


def test_input_nodes_are_not_mutated():
    nodes = _three_links()
    MassAnnealer(AnnealParams(window_links=20)).anneal(nodes)
    assert [n.mass for n in nodes] == [1.0, 2.0, 1.5]
    assert all(n.mass_boost == 0.0 for n in nodes)


def test_contributions_use_previous_mass_regardless_of_order():
    nodes = _three_links()
    annealer = MassAnnealer(AnnealParams(window_links=20))
    forward = {n.id: n.mass for n in annealer.anneal(nodes).nodes}
    backward = {n.id: n.mass for n in annealer.anneal(list(reversed(nodes))).nodes}
    assert forward == backward


def test_mass_never_drops_and_tier_follows_mass():
    tiers = TierThresholds(beat=1.0, event=2.0, scene=2.5)
    nodes = [make_leaf(str(i), i, i + 1, 0.9, TEXT) for i in range(6)]
    result = MassAnnealer(AnnealParams(damping=1.0), tiers).anneal(nodes)
    for before, after in zip(nodes, result.nodes):
        assert after.mass >= after.mass_base >= 0
        assert after.tier == tiers.tier_for(after.mass)
        assert after.tier.rank >= before.tier.rank
    assert any(n.tier != Tier.LINK for n in result.nodes)


def test_neighbor_traces_keep_top_k():
    nodes = [make_leaf(str(i), i, i, 1.0, TEXT) for i in range(8)]
    result = MassAnnealer(AnnealParams(top_k_contrib=2)).anneal(nodes)
    to_first = [t for t in result.neighbor_edges if t.to_id == "0"]
    assert len(to_first) == 2
    assert to_first[0].contrib >= to_first[1].contrib
    assert to_first[0].from_id == "1"


def test_mass_delta_rows():
    result = MassAnnealer(AnnealParams(window_links=20)).anneal(_three_links())
    rows = {d.link_id: d for d in result.deltas}
    assert rows["a"].mass_prev == 1.0
    assert rows["a"].mass_new == pytest.approx(1.0 + rows["a"].boost)
    assert rows["a"].top_contributor_id == "b"
    assert rows["c"].top_contributor_id == ""
    assert rows["c"].tier_prev == rows["c"].tier_new == Tier.LINK


def test_context_text_feeds_lexical_term():
    params = AnnealParams(window_links=20)
    a = make_leaf("a", 0, 1, 1.0, "i wait")
    b = make_leaf("b", 2, 3, 1.0, "dragon hoard gold")
    a = a.model_copy(update={"context_line_indices": [5], "context_count": 1})
    context = {5: "the dragon hoard glitters with gold"}

    plain = MassAnnealer(params).anneal([a, b]).nodes[1].mass_boost
    with_context = MassAnnealer(params).anneal([a, b], context).nodes[1].mass_boost
    assert with_context > plain

    off = AnnealParams(window_links=20, include_context_text=False)
    assert MassAnnealer(off).anneal([a, b], context).nodes[1].mass_boost == pytest.approx(plain)


@pytest.mark.parametrize("levers", [None, LeverParams()])
def test_reinforcement_strictly_decreases_with_center_distance(levers):
    annealer = MassAnnealer(AnnealParams(window_links=8), levers=levers)
    strengths, boosts = [], []
    for gap in (1, 2, 3, 5, 7):
        anchor = make_leaf("a", 10, 11, 1.0, TEXT)
        neighbour = make_leaf("b", 10 + gap, 11 + gap, 1.0, TEXT)
        result = annealer.anneal([anchor, neighbour])
        (trace,) = [t for t in result.neighbor_edges if t.to_id == "a"]
        assert trace.distance == gap
        strengths.append(trace.strength_ll)
        boosts.append(result.nodes[0].mass_boost)

    assert all(a > b for a, b in zip(strengths, strengths[1:]))
    assert all(a > b for a, b in zip(boosts, boosts[1:]))
    assert boosts[-1] > 0


def test_lever_strength_mixes_distance_and_lexical_evidence():
    nodes = [make_leaf("a", 0, 1, 1.0, TEXT), make_leaf("b", 2, 3, 2.0, TEXT)]
    result = MassAnnealer(AnnealParams(window_links=20), levers=LeverParams()).anneal(nodes)

    # Identical texts: full lexical evidence, no trigger keywords.
    evidence = 0.7 * hill_curve(2, 5.2, 2.2) + 0.3 * 1.0
    assert result.neighbor_edges[0].strength_ll == pytest.approx(2.0 * evidence)
    assert result.nodes[0].mass_boost == pytest.approx(0.15 * 2.0 * evidence * 2.0)
