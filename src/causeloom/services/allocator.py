"""Global one-to-one allocation of cause -> effect candidates into leaf nodes."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from causeloom.models.graph import (
    AllocationTrace,
    CandidateTrace,
    EdgeCandidate,
    GraphNode,
    NodeKind,
    UnclaimedEffect,
    make_node_id,
)
from causeloom.models.params import TierThresholds
from causeloom.models.rounds import AllocationResult
from causeloom.services.candidates import DetectedCause, DetectedEffect

log = logging.getLogger(__name__)


def greedy_match(
    candidates: Sequence[EdgeCandidate],
) -> Tuple[Dict[int, EdgeCandidate], Set[int], Set[int]]:
    """Accept candidates in allocation order while both endpoints are free.

    Returns ``(chosen_by_cause, claimed_causes, claimed_effects)``.  The claim
    sets are built here and returned, never shared between calls.
    """
    chosen: Dict[int, EdgeCandidate] = {}
    claimed_causes: Set[int] = set()
    claimed_effects: Set[int] = set()
    for edge in sorted(candidates, key=EdgeCandidate.sort_key):
        if edge.cause_index in claimed_causes or edge.effect_index in claimed_effects:
            continue
        claimed_causes.add(edge.cause_index)
        claimed_effects.add(edge.effect_index)
        chosen[edge.cause_index] = edge
    return chosen, claimed_causes, claimed_effects


class EdgeAllocator:
    """Turns a candidate pool into leaf ``link`` and ``singleton`` nodes.

    Each cause and each effect is claimed at most once.  Causes that win no
    effect still become nodes (singletons); effects nobody claimed are
    reported separately.
    """

    def __init__(self, tiers: Optional[TierThresholds] = None):
        self._tiers = tiers or TierThresholds()

    def allocate(
        self,
        session_id: str,
        causes: Sequence[DetectedCause],
        effects: Sequence[DetectedEffect],
        candidates: Sequence[EdgeCandidate],
        emit_traces: bool = False,
    ) -> AllocationResult:
        chosen, _, claimed_effects = greedy_match(candidates)
        effect_by_index = {e.index: e for e in effects}
        cause_by_effect = {edge.effect_index: cause for cause, edge in chosen.items()}

        nodes: List[GraphNode] = []
        traces: List[AllocationTrace] = []
        by_cause: Dict[int, List[EdgeCandidate]] = {}
        if emit_traces:
            for edge in sorted(candidates, key=EdgeCandidate.sort_key):
                by_cause.setdefault(edge.cause_index, []).append(edge)

        for cause in sorted(causes, key=lambda c: c.index):
            edge = chosen.get(cause.index)
            if edge is not None:
                nodes.append(self._link_node(session_id, cause, effect_by_index[edge.effect_index], edge))
            else:
                nodes.append(self._singleton_node(session_id, cause))

            if emit_traces:
                considered = by_cause.get(cause.index, [])
                if edge is not None:
                    reason = "edge_greedy_one_to_one"
                elif considered:
                    reason = "outbid"
                else:
                    reason = "no_candidate"
                traces.append(AllocationTrace(
                    cause_index=cause.index,
                    cause_type=cause.detection.type,
                    cause_mass=cause.detection.mass,
                    candidates=[
                        CandidateTrace(
                            effect_index=c.effect_index,
                            direction=c.direction,
                            distance=c.distance,
                            distance_score=c.distance_score,
                            lexical_score=c.lexical_score,
                            answer_boost=c.answer_boost,
                            strength_ce=c.strength_ce,
                            claimed_by_cause=cause_by_effect.get(c.effect_index),
                        )
                        for c in considered
                    ],
                    chosen_effect_index=edge.effect_index if edge else None,
                    chosen_strength=edge.strength_ce if edge else None,
                    reason=reason,
                ))

        unclaimed = [
            UnclaimedEffect(
                anchor_index=e.index,
                text=e.text,
                type=e.detection.type,
                mass=e.detection.mass,
            )
            for e in effects
            if e.index not in claimed_effects
        ]

        log.info(
            "Allocation: %d links, %d singletons, %d/%d effects unclaimed",
            len(chosen), len(nodes) - len(chosen), len(unclaimed), len(effects),
        )
        return AllocationResult(
            nodes=nodes,
            candidates=list(candidates),
            effects_total=len(effects),
            unclaimed_effects=unclaimed,
            traces=traces if emit_traces else None,
        )

    def _link_node(
        self,
        session_id: str,
        cause: DetectedCause,
        effect: DetectedEffect,
        edge: EdgeCandidate,
    ) -> GraphNode:
        strength = edge.strength_ce
        mass_base = cause.detection.mass + effect.detection.mass + strength
        return GraphNode(
            id=make_node_id(session_id, "leaf", str(cause.index)),
            session_id=session_id,
            node_kind=NodeKind.LINK,
            level=1,
            span_start_index=min(cause.index, effect.index),
            span_end_index=max(cause.index, effect.index),
            center_index=(cause.index + effect.index) / 2,
            mass_base=mass_base,
            mass=mass_base,
            link_mass=mass_base,
            strength_internal=strength,
            strength_bridge=strength,
            tier=self._tiers.tier_for(mass_base),
            claimed=True,
            cause_text=cause.text,
            cause_type=cause.detection.type,
            cause_anchor_index=cause.index,
            cause_mass=cause.detection.mass,
            actor=cause.actor,
            effect_text=effect.text,
            effect_type=effect.detection.type,
            effect_anchor_index=effect.index,
            effect_mass=effect.detection.mass,
            distance=edge.distance,
            score=strength,
        )

    def _singleton_node(self, session_id: str, cause: DetectedCause) -> GraphNode:
        mass_base = cause.detection.mass
        return GraphNode(
            id=make_node_id(session_id, "leaf", str(cause.index)),
            session_id=session_id,
            node_kind=NodeKind.SINGLETON,
            level=1,
            span_start_index=cause.index,
            span_end_index=cause.index,
            center_index=float(cause.index),
            mass_base=mass_base,
            mass=mass_base,
            link_mass=mass_base,
            tier=self._tiers.tier_for(mass_base),
            claimed=False,
            cause_text=cause.text,
            cause_type=cause.detection.type,
            cause_anchor_index=cause.index,
            cause_mass=cause.detection.mass,
            actor=cause.actor,
        )
