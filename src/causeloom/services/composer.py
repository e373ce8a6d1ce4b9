"""Round-based composition: pair round-k nodes into round-(k+1) composites."""

from __future__ import annotations

import bisect
import logging
from typing import List, NamedTuple, Optional, Sequence, Set, Tuple

from causeloom.models.graph import CompositeCandidate, GraphNode, NodeKind, make_node_id
from causeloom.models.params import ComposeParams, LeverParams, TierThresholds
from causeloom.scoring.evidence import (
    LexicalCorpusStats,
    lever_strength,
    lexical_signals,
    locality_to_tau,
    merge_threshold,
)
from causeloom.scoring.features import ensure_finite, hill_curve, token_overlap, tokenize

log = logging.getLogger(__name__)


class ComposeResult(NamedTuple):
    nodes: List[GraphNode]
    composites: List[GraphNode]
    carried: List[GraphNode]
    candidates: List[CompositeCandidate]


class HierarchyComposer:
    """Bridges nearby, textually similar nodes into composites.

    For every node the ``k_local_links`` nearest nodes strictly to its right
    (by center, within ``max_forward_lines``) are scored:

        strength_bridge = hill(center distance) * (1 + beta_lex * overlap)
        threshold_link  = min_bridge + threshold_growth * ln(1 + sqrt(m_left * m_right))

    Pairs at or above their threshold are matched greedily, one-to-one,
    strongest first.  Heavier nodes need stronger bridges, which keeps
    large composites from absorbing everything nearby.

    With levers set, bridges are scored through the evidence mix and the
    threshold uses ``threshold_base`` and ``growth_resistance``.  Composites
    take the round number as level, capped at ``max_level`` when given.
    """

    def __init__(
        self,
        params: Optional[ComposeParams] = None,
        tiers: Optional[TierThresholds] = None,
        levers: Optional[LeverParams] = None,
        max_level: Optional[int] = None,
    ):
        self._params = params or ComposeParams()
        self._tiers = tiers or TierThresholds()
        self._levers = levers
        self._max_level = max_level

    def threshold_for(self, mass_left: float, mass_right: float) -> float:
        if self._levers is not None:
            return merge_threshold(
                mass_left, mass_right, self._levers.threshold_base, self._levers.growth_resistance,
            )
        p = self._params
        return merge_threshold(mass_left, mass_right, p.min_bridge, p.threshold_growth)

    def compose(
        self,
        session_id: str,
        nodes: Sequence[GraphNode],
        round_number: int,
    ) -> ComposeResult:
        p = self._params
        n = len(nodes)
        centers = [node.span_center() for node in nodes]
        texts = [node.text for node in nodes]
        tokens = [tokenize(text) for text in texts]
        levers = self._levers
        corpus = LexicalCorpusStats.from_texts(texts) if levers is not None else None
        tau = locality_to_tau(levers.locality) if levers is not None else p.hill_tau
        level = round_number if self._max_level is None else min(round_number, self._max_level)
        order = sorted(range(n), key=lambda i: (centers[i], nodes[i].id))
        sorted_centers = [centers[i] for i in order]

        proposals: List[Tuple[int, int, float, float, float, float]] = []
        for i in range(n):
            lo = bisect.bisect_right(sorted_centers, centers[i])
            hi = bisect.bisect_right(sorted_centers, centers[i] + p.max_forward_lines)
            for pos in range(lo, min(hi, lo + p.k_local_links)):
                j = order[pos]
                center_distance = centers[j] - centers[i]
                distance_score = hill_curve(center_distance, tau, p.hill_steepness)
                if levers is None:
                    lexical = token_overlap(tokens[i], tokens[j])
                    strength = distance_score * (1.0 + p.beta_lex * lexical)
                else:
                    signals = lexical_signals(tokens[i], tokens[j], corpus)
                    lexical = signals.lexical
                    strength = lever_strength(levers, distance_score, signals)
                ensure_finite(strength, f"strength_bridge ({nodes[i].id}, {nodes[j].id})")
                threshold = self.threshold_for(nodes[i].mass, nodes[j].mass)
                proposals.append((i, j, strength, threshold, center_distance, lexical))

        eligible = [prop for prop in proposals if prop[2] >= prop[3]]
        eligible.sort(key=lambda prop: (
            -prop[2], prop[4], centers[prop[0]], nodes[prop[0]].id, nodes[prop[1]].id,
        ))

        used: Set[int] = set()
        chosen: Set[Tuple[int, int]] = set()
        composites: List[GraphNode] = []
        for i, j, strength, _, center_distance, lexical in eligible:
            if i in used or j in used:
                continue
            used.update((i, j))
            chosen.add((i, j))
            composites.append(self._merge(
                session_id, nodes[i], nodes[j], round_number, level, strength, center_distance, lexical,
            ))

        carried = [node.model_copy(deep=True) for idx, node in enumerate(nodes) if idx not in used]
        next_round = sorted(composites + carried, key=lambda node: (node.span_center(), node.id))

        candidates = [
            CompositeCandidate(
                left_id=nodes[i].id,
                right_id=nodes[j].id,
                left_center=centers[i],
                right_center=centers[j],
                center_distance=center_distance,
                lexical_score=lexical,
                strength_bridge=strength,
                threshold_link=threshold,
                chosen=(i, j) in chosen,
            )
            for i, j, strength, threshold, center_distance, lexical in proposals
        ]

        log.info(
            "Round %d compose: %d proposals, %d eligible, %d composites, %d carried",
            round_number, len(proposals), len(eligible), len(composites), len(carried),
        )
        return ComposeResult(
            nodes=next_round,
            composites=composites,
            carried=carried,
            candidates=candidates,
        )

    def _merge(
        self,
        session_id: str,
        left: GraphNode,
        right: GraphNode,
        round_number: int,
        level: int,
        strength: float,
        center_distance: float,
        lexical: float,
    ) -> GraphNode:
        span_start = min(left.span_start_index, right.span_start_index)
        span_end = max(left.span_end_index, right.span_end_index)
        mass_base = left.mass + right.mass
        context = sorted(set(left.context_line_indices) | set(right.context_line_indices))
        return GraphNode(
            id=make_node_id(session_id, f"r{round_number}", left.id, right.id),
            session_id=session_id,
            node_kind=NodeKind.COMPOSITE,
            level=level,
            members=[left.id, right.id],
            span_start_index=span_start,
            span_end_index=span_end,
            center_index=(span_start + span_end) / 2,
            mass_base=mass_base,
            mass=mass_base,
            link_mass=mass_base,
            strength_bridge=strength,
            strength_internal=strength + left.strength_internal + right.strength_internal,
            tier=self._tiers.tier_for(mass_base),
            claimed=True,
            cause_text=left.text,
            effect_text=right.text,
            actor=left.actor if left.actor == right.actor else None,
            join_center_distance=center_distance,
            join_lexical_score=lexical,
            context_line_indices=context,
            context_count=len(context),
        )
