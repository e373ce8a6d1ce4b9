"""Neighbourhood mass reinforcement ("anneal").

One synchronous pass over a same-round node set.  Every node within
``window_links`` of another (by center index) lends it a share of its
*previous* mass:

    strength_ll(j, i) = hill(|c_i - c_j|) * (1 + beta_lex_ll * overlap(i, j))
    boost(i)          = damping * sum_j strength_ll(j, i) * mass_prev(j)
    mass(i)           = mass_prev(i) + boost(i)

With levers set, ``strength_ll`` comes from the two-lever evidence mix
(see ``causeloom.scoring.evidence``) instead.

Because every node reads only previous masses, the pass is order
independent.
"""

from __future__ import annotations

import bisect
import logging
import math
from typing import List, Mapping, NamedTuple, Optional, Sequence

from causeloom.models.graph import GraphNode, MassDelta, NeighborEdgeTrace
from causeloom.models.params import AnnealParams, LeverParams, TierThresholds
from causeloom.scoring.evidence import (
    LexicalCorpusStats,
    lever_strength,
    lexical_signals,
    locality_to_tau,
)
from causeloom.scoring.features import ensure_finite, hill_curve, token_overlap, tokenize

log = logging.getLogger(__name__)


class AnnealResult(NamedTuple):
    nodes: List[GraphNode]
    neighbor_edges: List[NeighborEdgeTrace]
    deltas: List[MassDelta]


class MassAnnealer:
    """Level-agnostic mass annealer: leaves and composites are treated alike."""

    def __init__(
        self,
        params: Optional[AnnealParams] = None,
        tiers: Optional[TierThresholds] = None,
        levers: Optional[LeverParams] = None,
    ):
        self._params = params or AnnealParams()
        self._tiers = tiers or TierThresholds()
        self._levers = levers

    def node_text(self, node: GraphNode, context_text: Optional[Mapping[int, str]] = None) -> str:
        """Cause+effect text, plus attached context lines when enabled."""
        text = node.text
        if not self._params.include_context_text or not context_text:
            return text
        extra = [context_text[i] for i in node.context_line_indices if i in context_text]
        return " ".join([text, *extra]).strip() if extra else text

    def anneal(
        self,
        nodes: Sequence[GraphNode],
        context_text: Optional[Mapping[int, str]] = None,
    ) -> AnnealResult:
        p = self._params
        n = len(nodes)
        centers = [node.span_center() for node in nodes]
        texts = [self.node_text(node, context_text) for node in nodes]
        tokens = [tokenize(text) for text in texts]
        levers = self._levers
        corpus = LexicalCorpusStats.from_texts(texts) if levers is not None else None
        tau = locality_to_tau(levers.locality) if levers is not None else p.hill_tau
        mass_prev = [node.mass for node in nodes]

        order = sorted(range(n), key=lambda i: (centers[i], nodes[i].id))
        sorted_centers = [centers[i] for i in order]

        annealed: List[GraphNode] = []
        neighbor_edges: List[NeighborEdgeTrace] = []
        deltas: List[MassDelta] = []

        for i, node in enumerate(nodes):
            lo = bisect.bisect_left(sorted_centers, centers[i] - p.window_links)
            hi = bisect.bisect_right(sorted_centers, centers[i] + p.window_links)

            contribs: List[float] = []
            traces: List[NeighborEdgeTrace] = []
            for pos in range(lo, hi):
                j = order[pos]
                if j == i:
                    continue
                distance = abs(centers[i] - centers[j])
                if distance > p.window_links:
                    continue
                distance_score = hill_curve(distance, tau, p.hill_steepness)
                if levers is None:
                    lexical = token_overlap(tokens[i], tokens[j])
                    strength_ll = distance_score * (1.0 + p.beta_lex_ll * lexical)
                else:
                    signals = lexical_signals(tokens[i], tokens[j], corpus)
                    lexical = signals.lexical
                    strength_ll = lever_strength(levers, distance_score, signals)
                contrib = strength_ll * mass_prev[j]
                contribs.append(contrib)
                traces.append(NeighborEdgeTrace(
                    from_id=nodes[j].id,
                    to_id=node.id,
                    strength_ll=strength_ll,
                    contrib=contrib,
                    distance=distance,
                    lexical=lexical,
                ))

            traces.sort(key=lambda t: (-t.contrib, t.distance, t.from_id))
            top = traces[: p.top_k_contrib]
            neighbor_edges.extend(top)

            boost = ensure_finite(p.damping * math.fsum(contribs), f"mass boost of {node.id}")
            new_mass = mass_prev[i] + boost
            tier_new = self._tiers.tier_for(new_mass)

            annealed.append(node.model_copy(
                update={
                    "mass_base": mass_prev[i],
                    "mass_boost": boost,
                    "mass": new_mass,
                    "link_mass": new_mass,
                    "center_index": centers[i],
                    "tier": tier_new,
                },
                deep=True,
            ))
            deltas.append(MassDelta(
                link_id=node.id,
                mass_base=node.mass_base,
                mass_prev=mass_prev[i],
                mass_new=new_mass,
                boost=boost,
                tier_prev=node.tier,
                tier_new=tier_new,
                top_contributor_id=traces[0].from_id if traces else "",
            ))

        boosted = sum(1 for d in deltas if d.boost > 0)
        log.info(
            "Anneal: %d nodes, %d boosted, %d neighbour traces kept (window=%.1f)",
            n, boosted, len(neighbor_edges), p.window_links,
        )
        return AnnealResult(nodes=annealed, neighbor_edges=neighbor_edges, deltas=deltas)
