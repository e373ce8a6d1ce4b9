"""Singleton absorption: eligible lines anchoring no leaf become context of nearby nodes."""

from __future__ import annotations

import bisect
import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from causeloom.models.graph import ContextEdge, GraphNode
from causeloom.models.params import AbsorbParams
from causeloom.models.transcript import EligibilityMask, TranscriptLine
from causeloom.scoring.features import hill_curve, token_overlap, tokenize

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrayLine:
    """An eligible line that anchors no leaf node."""

    index: int
    text: str
    tokens: FrozenSet[str]


def collect_stray_lines(
    lines: Sequence[TranscriptLine],
    mask: EligibilityMask,
    leaves: Sequence[GraphNode],
) -> List[StrayLine]:
    anchored: Set[int] = set()
    for node in leaves:
        if node.cause_anchor_index is not None:
            anchored.add(node.cause_anchor_index)
        if node.effect_anchor_index is not None:
            anchored.add(node.effect_anchor_index)
    return [
        StrayLine(index=line.index, text=line.text, tokens=tokenize(line.text))
        for line in lines
        if mask.is_eligible(line.index) and line.index not in anchored
    ]


class SingletonAbsorber:
    """Attach stray lines to nearby nodes as free-text context.

    Bigger nodes reach further (radius grows with mass) and hold more
    context (capacity grows with mass).  Allocation is a greedy global sweep
    so every stray line lands on at most one node.  Mass is left untouched.
    """

    def __init__(self, params: Optional[AbsorbParams] = None):
        self._params = params or AbsorbParams()

    def absorb(
        self,
        nodes: Sequence[GraphNode],
        stray: Sequence[StrayLine],
    ) -> Tuple[List[GraphNode], List[ContextEdge], List[StrayLine]]:
        """Return ``(nodes_with_context, context_edges, remaining_stray)``."""
        p = self._params
        if not p.enabled or not nodes or not stray:
            return [n.model_copy(deep=True) for n in nodes], [], list(stray)

        order = sorted(range(len(nodes)), key=lambda i: (nodes[i].center_index, nodes[i].id))
        centers = [nodes[i].center_index for i in order]
        node_tokens = [tokenize(n.text) for n in nodes]
        max_radius = max(p.radius_base + p.radius_per_mass * n.mass for n in nodes)

        candidates: List[Tuple[float, float, int, str, int, float]] = []
        for s in stray:
            lo = bisect.bisect_left(centers, s.index - max_radius)
            hi = bisect.bisect_right(centers, s.index + max_radius)
            for pos in range(lo, hi):
                i = order[pos]
                node = nodes[i]
                distance = abs(s.index - node.center_index)
                if distance > p.radius_base + p.radius_per_mass * node.mass:
                    continue
                lexical = token_overlap(s.tokens, node_tokens[i])
                strength = hill_curve(distance, p.hill_tau, p.hill_steepness) * (1.0 + p.beta_lex * lexical)
                if strength < p.min_strength:
                    continue
                candidates.append((-strength, distance, s.index, node.id, i, lexical))

        candidates.sort(key=lambda c: c[:4])

        caps = [max(0, math.floor(p.cap_base + p.cap_per_mass * n.mass)) for n in nodes]
        used = [0] * len(nodes)
        attached: Dict[int, List[int]] = {}
        taken: Set[int] = set()
        edges: List[ContextEdge] = []
        for neg_strength, distance, line_index, node_id, i, lexical in candidates:
            if line_index in taken or used[i] >= caps[i]:
                continue
            taken.add(line_index)
            used[i] += 1
            attached.setdefault(i, []).append(line_index)
            edges.append(ContextEdge(
                line_index=line_index,
                node_id=node_id,
                strength=-neg_strength,
                distance=distance,
                lexical=lexical,
            ))

        out: List[GraphNode] = []
        for i, node in enumerate(nodes):
            context = sorted(set(node.context_line_indices) | set(attached.get(i, [])))
            out.append(node.model_copy(
                update={"context_line_indices": context, "context_count": len(context)},
                deep=True,
            ))

        remaining = [s for s in stray if s.index not in taken]
        log.info(
            "Absorption: %d stray lines attached, %d remaining",
            len(edges), len(remaining),
        )
        return out, edges, remaining
